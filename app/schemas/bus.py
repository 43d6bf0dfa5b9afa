from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

BusType = Literal["AC", "Non-AC", "Sleeper", "Semi-Sleeper"]


class BusCreate(BaseModel):
    id: Optional[str] = None
    bus_number: str
    name: str
    bus_type: BusType = "AC"
    source: str
    destination: str
    departure_time: str
    arrival_time: str
    price: float = Field(..., ge=0)
    rating: Optional[float] = Field(None, ge=0, le=5)
    operator: Optional[str] = None
    amenities: List[str] = []
    rows: int = Field(10, ge=1, le=26)
    seats_per_row: int = Field(4, ge=1, le=10)
    aisle_after: int = Field(2, ge=0)


class BusUpdate(BaseModel):
    name: Optional[str] = None
    bus_type: Optional[BusType] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    rating: Optional[float] = Field(None, ge=0, le=5)
    operator: Optional[str] = None
    amenities: Optional[List[str]] = None
    rows: Optional[int] = Field(None, ge=1, le=26)
    seats_per_row: Optional[int] = Field(None, ge=1, le=10)
    aisle_after: Optional[int] = Field(None, ge=0)


class SeatLayout(BaseModel):
    rows: int
    seats_per_row: int
    aisle_after: int


class BusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    bus_number: str
    name: str
    bus_type: str
    source: str
    destination: str
    departure_time: str
    arrival_time: str
    price: float
    rating: Optional[float] = None
    review_count: int = 0
    operator: Optional[str] = None
    amenities: Optional[List[str]] = None
    total_seats: int
    seat_layout: SeatLayout


def bus_to_response(bus) -> BusResponse:
    return BusResponse(
        id=bus.id,
        bus_number=bus.bus_number,
        name=bus.name,
        bus_type=bus.bus_type,
        source=bus.source,
        destination=bus.destination,
        departure_time=bus.departure_time,
        arrival_time=bus.arrival_time,
        price=float(bus.price),
        rating=float(bus.rating) if bus.rating is not None else None,
        review_count=bus.review_count or 0,
        operator=bus.operator,
        amenities=bus.amenities,
        total_seats=bus.total_seats,
        seat_layout=SeatLayout(rows=bus.rows, seats_per_row=bus.seats_per_row, aisle_after=bus.aisle_after),
    )
