"""Trip reviews. A passenger can rate a confirmed booking once the journey is over."""
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy import func, select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from app.metrics import REVIEWS_CREATED
from app.models.models import Booking, Bus, Review
from app.services.bookings import BookingForbidden, BookingNotFound, BookingStateError

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = ("confirmed", "completed")


class AlreadyReviewed(BookingStateError):
    pass


def _round_rating(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


async def create_review(
    db: AsyncSession,
    user_id: str,
    booking_id: str,
    rating: int,
    review: Optional[str] = None,
    user_name: Optional[str] = None,
    today: Optional[date] = None,
) -> Review:
    if not 1 <= rating <= 5:
        raise ValueError("Rating must be between 1 and 5")
    today = today or date.today()
    async with db.begin():
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFound("Booking not found")
        if booking.user_id != user_id:
            raise BookingForbidden("Only the passenger who booked can review this trip")
        if booking.status not in REVIEWABLE_STATUSES:
            raise BookingStateError(f"A {booking.status} booking cannot be reviewed")
        if booking.journey_date >= today:
            raise BookingStateError("The trip can be reviewed after the journey date")
        if booking.bus_id is None:
            raise BookingStateError("The bus for this booking no longer exists")
        if await has_reviewed(db, booking_id):
            raise AlreadyReviewed("This booking has already been reviewed")

        entry = Review(
            id=uuid4().hex,
            bus_id=booking.bus_id,
            booking_id=booking.id,
            user_id=user_id,
            user_name=user_name,
            rating=rating,
            review=review,
        )
        db.add(entry)
        await db.flush()
        await update_bus_rating(db, booking.bus_id)
        await db.refresh(entry)

    REVIEWS_CREATED.labels(rating=str(rating)).inc()
    logger.info("Review created", extra={"booking_id": booking_id, "bus_id": entry.bus_id, "rating": rating})
    return entry


async def has_reviewed(db: AsyncSession, booking_id: str) -> bool:
    found = await db.scalar(sa_select(Review.id).where(Review.booking_id == booking_id).limit(1))
    return found is not None


async def rating_summary(db: AsyncSession, bus_id: str) -> Dict:
    avg, count = (await db.execute(
        sa_select(func.avg(Review.rating), func.count(Review.id)).where(Review.bus_id == bus_id)
    )).one()
    if not count:
        return {"rating": 0.0, "count": 0}
    return {"rating": float(_round_rating(avg)), "count": count}


async def update_bus_rating(db: AsyncSession, bus_id: str) -> None:
    """Store the average rating and review count on the bus. Caller owns the transaction."""
    summary = await rating_summary(db, bus_id)
    bus = await db.get(Bus, bus_id)
    if bus is None or not summary["count"]:
        return
    bus.rating = Decimal(str(summary["rating"]))
    bus.review_count = summary["count"]


async def list_bus_reviews(db: AsyncSession, bus_id: str, limit: Optional[int] = None) -> List[Review]:
    stmt = sa_select(Review).where(Review.bus_id == bus_id).order_by(Review.created_at.desc(), Review.id)
    if limit:
        stmt = stmt.limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_user_reviews(db: AsyncSession, user_id: str) -> List[Review]:
    stmt = sa_select(Review).where(Review.user_id == user_id).order_by(Review.created_at.desc())
    res = await db.execute(stmt)
    return list(res.scalars().all())
