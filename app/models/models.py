from string import ascii_uppercase

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    JSON,
    Index,
    SmallInteger,
    Text,
)
from sqlalchemy.sql import func

from app.db.base import Base


DEFAULT_ROWS = 10
DEFAULT_SEATS_PER_ROW = 4
DEFAULT_AISLE_AFTER = 2


def seat_label(row: int, seat: int) -> str:
    """Zero-based row/seat to the label printed on the seat, e.g. (1, 2) -> "B3"."""
    return f"{ascii_uppercase[row]}{seat + 1}"


class Bus(Base):
    __tablename__ = "buses"
    id = Column(String(64), primary_key=True)
    bus_number = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    # AC, Non-AC, Sleeper, Semi-Sleeper
    bus_type = Column(String(32), nullable=False, default="AC")
    source = Column(String(128), nullable=False, index=True)
    destination = Column(String(128), nullable=False, index=True)
    departure_time = Column(String(16), nullable=False)
    arrival_time = Column(String(16), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    # average of review ratings, recomputed on each new review
    rating = Column(Numeric(2, 1), nullable=True)
    review_count = Column(Integer, nullable=False, default=0)
    operator = Column(String(255), nullable=True)
    amenities = Column(JSON, nullable=True)
    rows = Column(Integer, nullable=False, default=DEFAULT_ROWS)
    seats_per_row = Column(Integer, nullable=False, default=DEFAULT_SEATS_PER_ROW)
    aisle_after = Column(Integer, nullable=False, default=DEFAULT_AISLE_AFTER)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def total_seats(self) -> int:
        return self.rows * self.seats_per_row

    def seat_ids(self):
        return [seat_label(r, s) for r in range(self.rows) for s in range(self.seats_per_row)]


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(String(64), primary_key=True)
    booking_ref = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    bus_id = Column(String(64), ForeignKey("buses.id", ondelete="SET NULL"), nullable=True, index=True)
    journey_date = Column(Date, nullable=False)
    passengers = Column(JSON, nullable=False)
    selected_seats = Column(JSON, nullable=False)
    # seat hold owner; confirm and cancel act on the ledger with it
    holder_token = Column(String(64), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    # pending, completed, refunded
    payment_status = Column(String(32), nullable=False, default="pending")
    payment_method = Column(String(32), nullable=True)
    # pending, confirmed, cancelled, completed
    status = Column(String(32), nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (Index("ix_booking_bus_date", "bus_id", "journey_date"),)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    actor_id = Column(String(128), nullable=True, index=True)
    action = Column(String(255), nullable=False)
    object_type = Column(String(128), nullable=True)
    object_id = Column(String(128), nullable=True)
    detail = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Review(Base):
    __tablename__ = "reviews"
    id = Column(String(64), primary_key=True)
    bus_id = Column(String(64), ForeignKey("buses.id", ondelete="CASCADE"), nullable=False, index=True)
    # one review per booking
    booking_id = Column(String(64), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    user_id = Column(String(128), nullable=False, index=True)
    user_name = Column(String(255), nullable=True)
    rating = Column(SmallInteger, nullable=False)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
