from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_current_user_id
from app.db.session import get_session
from app.schemas.booking import (
    BookingHoldResponse,
    BookingResponse,
    CreateBookingRequest,
    PaymentRequest,
    booking_to_response,
)
from app.services import bookings as booking_service
from app.services.bookings import BookingForbidden, BookingNotFound, BookingStateError
from app.services.ledger_provider import get_ledger
from app.services.seat_ledger import SeatLedger

router = APIRouter()


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, BookingNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, BookingForbidden):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post("/", response_model=BookingHoldResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    req: CreateBookingRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    ledger: SeatLedger = Depends(get_ledger),
):
    """Hold the passengers' seats and record a pending booking."""
    booking, hold = await booking_service.create_booking(
        db,
        ledger,
        user_id=user_id,
        bus_id=req.bus_id,
        journey_date=req.journey_date,
        passengers=[p.model_dump() for p in req.passengers],
        hold_seconds=req.hold_seconds,
        payment_method=req.payment_method,
    )
    return booking_to_response(booking, hold)


@router.get("/", response_model=List[BookingResponse])
async def my_bookings(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_session)):
    return [booking_to_response(b) for b in await booking_service.list_user_bookings(db, user_id)]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: str, user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_session)):
    booking = await booking_service.get_booking(db, booking_id)
    if booking is None or booking.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking_to_response(booking)


@router.post("/{booking_id}/pay", response_model=BookingResponse)
async def pay_booking(
    booking_id: str,
    req: PaymentRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    ledger: SeatLedger = Depends(get_ledger),
):
    """Simulated payment: success is immediate and confirms the held seats."""
    try:
        booking = await booking_service.on_payment_success(
            db, ledger, req.holder_token, booking_id, payment_method=req.payment_method, user_id=user_id
        )
    except (BookingNotFound, BookingForbidden, BookingStateError) as exc:
        raise _http_error(exc)
    return booking_to_response(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    ledger: SeatLedger = Depends(get_ledger),
):
    try:
        booking = await booking_service.cancel_booking(db, ledger, booking_id, user_id)
    except (BookingNotFound, BookingForbidden, BookingStateError) as exc:
        raise _http_error(exc)
    return booking_to_response(booking)
