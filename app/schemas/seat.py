from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ReserveSeatsRequest(BaseModel):
    bus_id: str
    journey_date: date
    seat_ids: List[str]
    holder_token: str
    hold_seconds: Optional[int] = Field(None, description="Hold duration in seconds, defaults to 10 minutes")


class HoldResponse(BaseModel):
    granted: List[str]
    version: int
    holder_token: str
    expires_at: datetime


class ConfirmSeatsRequest(BaseModel):
    bus_id: str
    journey_date: date
    seat_ids: List[str]
    holder_token: str
    booking_id: str


class ConfirmResponse(BaseModel):
    committed: bool
    version: int
    booking_id: str
    seat_ids: List[str]


class ReleaseHoldRequest(BaseModel):
    """A checkout session giving back its own hold. Booked seats are only freed by cancelling the booking."""

    bus_id: str
    journey_date: date
    seat_ids: List[str]
    holder_token: str = Field(..., min_length=1)


class AdminReleaseRequest(BaseModel):
    bus_id: str
    journey_date: date
    seat_ids: List[str] = Field(..., min_length=1)
    note: Optional[str] = None


class BookedSeatsResponse(BaseModel):
    bus_id: str
    journey_date: date
    seat_ids: List[str]


class SeatStateOut(BaseModel):
    state: str
    expires_at: Optional[datetime] = None
    booking_id: Optional[str] = None


class SeatMapResponse(BaseModel):
    bus_id: str
    journey_date: date
    version: int
    seats: Dict[str, SeatStateOut]


class LedgerErrorResponse(BaseModel):
    error: str
    detail: str
    seat_ids: List[str] = []
