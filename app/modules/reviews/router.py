from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_current_user_id
from app.db.session import get_session
from app.schemas.review import CreateReviewRequest, RatingSummary, ReviewResponse, ReviewStatus
from app.services import bookings as booking_service
from app.services import buses as bus_service
from app.services import reviews as review_service
from app.services.bookings import BookingForbidden, BookingNotFound, BookingStateError
from app.services.ledger_provider import get_ledger
from app.services.seat_ledger import SeatLedger

router = APIRouter()


@router.post("/", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    req: CreateReviewRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    ledger: SeatLedger = Depends(get_ledger),
):
    """Rate a finished trip. Recomputes the bus's average rating."""
    try:
        return await review_service.create_review(
            db, user_id, req.booking_id, req.rating, review=req.review, user_name=req.user_name,
            today=ledger.clock().date(),
        )
    except BookingNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except BookingForbidden as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    except BookingStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except IntegrityError:
        # lost a race with a concurrent review of the same booking
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This booking has already been reviewed")


@router.get("/mine", response_model=List[ReviewResponse])
async def my_reviews(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_session)):
    return await review_service.list_user_reviews(db, user_id)


@router.get("/booking/{booking_id}", response_model=ReviewStatus)
async def review_status(booking_id: str, user_id: str = Depends(get_current_user_id),
                        db: AsyncSession = Depends(get_session)):
    booking = await booking_service.get_booking(db, booking_id)
    if booking is None or booking.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return ReviewStatus(booking_id=booking_id, reviewed=await review_service.has_reviewed(db, booking_id))


@router.get("/bus/{bus_id}", response_model=List[ReviewResponse])
async def bus_reviews(bus_id: str, limit: Optional[int] = Query(None, ge=1, le=100),
                      db: AsyncSession = Depends(get_session)):
    if await bus_service.get_bus(db, bus_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bus not found")
    return await review_service.list_bus_reviews(db, bus_id, limit=limit)


@router.get("/bus/{bus_id}/rating", response_model=RatingSummary)
async def bus_rating(bus_id: str, db: AsyncSession = Depends(get_session)):
    if await bus_service.get_bus(db, bus_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bus not found")
    return RatingSummary(bus_id=bus_id, **await review_service.rating_summary(db, bus_id))
