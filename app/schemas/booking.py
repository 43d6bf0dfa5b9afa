from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class Passenger(BaseModel):
    name: str = Field(..., min_length=1)
    age: int = Field(..., ge=0, le=120)
    gender: Literal["M", "F", "O"]
    seat_number: str


class CreateBookingRequest(BaseModel):
    bus_id: str
    journey_date: date
    passengers: List[Passenger]
    hold_seconds: Optional[int] = None
    payment_method: Optional[Literal["card", "upi", "netbanking"]] = None


class PaymentRequest(BaseModel):
    holder_token: str
    payment_method: Optional[Literal["card", "upi", "netbanking"]] = None


class BookingResponse(BaseModel):
    id: str
    booking_ref: str
    user_id: str
    bus_id: Optional[str]
    journey_date: date
    passengers: List[Passenger]
    selected_seats: List[str]
    total_amount: float
    payment_status: str
    payment_method: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class BookingHoldResponse(BookingResponse):
    holder_token: str
    hold_expires_at: datetime


class BookingStats(BaseModel):
    total_bookings: int
    confirmed_bookings: int
    total_revenue: float
    total_buses: int


def booking_to_response(booking, hold=None) -> BookingResponse:
    values = dict(
        id=booking.id,
        booking_ref=booking.booking_ref,
        user_id=booking.user_id,
        bus_id=booking.bus_id,
        journey_date=booking.journey_date,
        passengers=booking.passengers,
        selected_seats=booking.selected_seats,
        total_amount=float(booking.total_amount),
        payment_status=booking.payment_status,
        payment_method=booking.payment_method,
        status=booking.status,
        created_at=booking.created_at,
    )
    if hold is not None:
        return BookingHoldResponse(holder_token=hold.holder_token, hold_expires_at=hold.expires_at, **values)
    return BookingResponse(**values)
