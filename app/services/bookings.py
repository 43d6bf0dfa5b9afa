"""Booking records: the passenger-facing side of a seat hold.

A booking is created pending together with a ledger hold on its seats. The
simulated payment signal confirms the hold and marks the booking confirmed;
cancelling releases whatever the ledger still holds for it.
"""
import logging
import time
from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import func, select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from app.metrics import BOOKINGS_CANCELLED, BOOKINGS_CONFIRMED
from app.models.models import Booking, Bus
from app.services.audit import log_audit
from app.services.seat_ledger import HoldResult, InvalidRequest, ReleaseReason, SeatLedger

logger = logging.getLogger(__name__)


class BookingError(Exception):
    pass


class BookingNotFound(BookingError):
    pass


class BookingForbidden(BookingError):
    pass


class BookingStateError(BookingError):
    pass


def generate_booking_id() -> str:
    return f"BK-{uuid4().hex[:12].upper()}"


def generate_booking_ref() -> str:
    return f"BF-{int(time.time() * 1000)}-{uuid4().hex[:4].upper()}"


def on_booking_cancelled(booking: Booking) -> Tuple[str, date, List[str]]:
    """The seats a cancelled booking gives back to the ledger."""
    return booking.bus_id, booking.journey_date, list(booking.selected_seats)


async def create_booking(
    db: AsyncSession,
    ledger: SeatLedger,
    user_id: str,
    bus_id: str,
    journey_date: date,
    passengers: List[Dict],
    hold_seconds: Optional[int] = None,
    payment_method: Optional[str] = None,
) -> Tuple[Booking, HoldResult]:
    async with db.begin():
        bus = await db.get(Bus, bus_id)
        if bus is None:
            raise InvalidRequest(f"Unknown bus {bus_id}")
        price = bus.price

    seats = [p["seat_number"] for p in passengers]
    holder_token = uuid4().hex
    hold = await ledger.reserve(bus_id, journey_date, seats, holder_token, hold_seconds)

    booking = Booking(
        id=generate_booking_id(),
        booking_ref=generate_booking_ref(),
        user_id=user_id,
        bus_id=bus_id,
        journey_date=journey_date,
        passengers=passengers,
        selected_seats=seats,
        holder_token=holder_token,
        total_amount=price * len(passengers),
        payment_status="pending",
        payment_method=payment_method,
        status="pending",
    )
    try:
        async with db.begin():
            db.add(booking)
            await db.flush()
            await db.refresh(booking)
    except Exception:
        logger.exception("Booking insert failed, releasing hold", extra={"bus_id": bus_id, "seats": seats})
        await ledger.release(bus_id, journey_date, seats, ReleaseReason.HOLD_RELEASED, holder_token=holder_token)
        raise

    logger.info("Booking created", extra={"booking_id": booking.id, "bus_id": bus_id, "seats": seats})
    return booking, hold


async def on_payment_success(
    db: AsyncSession,
    ledger: SeatLedger,
    holder_token: str,
    booking_id: str,
    payment_method: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Booking:
    """Convert the booking's hold into booked seats. Safe to call again after success.

    The ledger confirm runs between two short transactions. It is idempotent, so
    a status update that fails after a successful confirm is fixed by paying again.
    """
    async with db.begin():
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        if booking.holder_token != holder_token or (user_id is not None and booking.user_id != user_id):
            raise BookingForbidden("Booking belongs to another session")
        if booking.status == "cancelled":
            raise BookingStateError("Booking is cancelled")
        bus_id, journey_date, seats = booking.bus_id, booking.journey_date, list(booking.selected_seats)

    await ledger.confirm(bus_id, journey_date, seats, holder_token, booking_id)

    async with db.begin():
        booking = await db.get(Booking, booking_id, populate_existing=True)
        if booking.status == "cancelled":
            # cancelled while the confirm was in flight; give the seats back
            await ledger.release(bus_id, journey_date, seats, ReleaseReason.BOOKING_CANCELLED, booking_id=booking_id)
            raise BookingStateError("Booking is cancelled")
        if booking.status == "pending":
            booking.status = "confirmed"
            booking.payment_status = "completed"
            if payment_method:
                booking.payment_method = payment_method
            await db.flush()
            await db.refresh(booking)
            BOOKINGS_CONFIRMED.inc()
            logger.info("Booking confirmed", extra={"booking_id": booking.id})
    return booking


async def cancel_booking(db: AsyncSession, ledger: SeatLedger, booking_id: str, user_id: str) -> Booking:
    async with db.begin():
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFound("Booking not found")
        if booking.user_id != user_id:
            raise BookingForbidden("Unauthorized to cancel this booking")
        if booking.status == "cancelled":
            raise BookingStateError("Booking is already cancelled")

        prior_status = booking.status
        booking.status = "cancelled"
        if booking.payment_status == "completed":
            booking.payment_status = "refunded"
        await log_audit(db, actor_id=user_id, action="cancel_booking", object_type="booking", object_id=booking.id,
                        detail={"prior_status": prior_status, "seats": list(booking.selected_seats)})

        bus_id, journey_date, seats = on_booking_cancelled(booking)
        if prior_status == "pending":
            # the confirm may have reached the ledger even though the status update did not
            await ledger.release(bus_id, journey_date, seats, ReleaseReason.HOLD_RELEASED,
                                 holder_token=booking.holder_token)
        await ledger.release(bus_id, journey_date, seats, ReleaseReason.BOOKING_CANCELLED, booking_id=booking.id)
        await db.flush()
        await db.refresh(booking)

    BOOKINGS_CANCELLED.labels(prior_status=prior_status).inc()
    logger.info("Booking cancelled", extra={"booking_id": booking.id, "prior_status": prior_status})
    return booking


async def get_booking(db: AsyncSession, booking_id: str) -> Optional[Booking]:
    return await db.get(Booking, booking_id)


async def list_user_bookings(db: AsyncSession, user_id: str) -> List[Booking]:
    stmt = sa_select(Booking).where(Booking.user_id == user_id).order_by(Booking.created_at.desc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_all_bookings(db: AsyncSession, status: Optional[str] = None, bus_id: Optional[str] = None) -> List[Booking]:
    stmt = sa_select(Booking)
    if status:
        stmt = stmt.where(Booking.status == status)
    if bus_id:
        stmt = stmt.where(Booking.bus_id == bus_id)
    res = await db.execute(stmt.order_by(Booking.created_at.desc()))
    return list(res.scalars().all())


async def booking_stats(db: AsyncSession) -> Dict:
    total = await db.scalar(sa_select(func.count(Booking.id)))
    confirmed = await db.scalar(sa_select(func.count(Booking.id)).where(Booking.status == "confirmed"))
    revenue = await db.scalar(
        sa_select(func.coalesce(func.sum(Booking.total_amount), 0)).where(Booking.status == "confirmed")
    )
    buses = await db.scalar(sa_select(func.count(Bus.id)))
    return {
        "total_bookings": total or 0,
        "confirmed_bookings": confirmed or 0,
        "total_revenue": float(revenue or 0),
        "total_buses": buses or 0,
    }
