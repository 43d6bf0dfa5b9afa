"""Pytest configuration and fixtures."""
import os
from datetime import date, datetime, timedelta, timezone

# must be set before anything from app is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LEDGER_BACKEND"] = "memory"
os.environ["SWEEPER_ENABLED"] = "false"

import httpx
import pytest

from app.db.base import Base
from app.db.session import async_session, engine
from app.main import app
from app.services import buses as bus_service
from app.services.buses import BusSeatCatalog
from app.services.ledger_provider import get_ledger
from app.services.seat_ledger import SeatLedger
from app.services.seat_store import MemorySeatStore


JOURNEY_DATE = date(2026, 3, 14)


@pytest.fixture
def journey_date():
    return JOURNEY_DATE


class FakeClock:
    """Controllable replacement for the ledger clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


class StaticSeatCatalog:
    """Seat catalog with fixed layouts instead of the buses table."""

    def __init__(self, layouts):
        self._layouts = {bus_id: set(seats) for bus_id, seats in layouts.items()}

    async def seat_ids(self, bus_id):
        return self._layouts.get(bus_id)


@pytest.fixture
def static_catalog():
    return StaticSeatCatalog


@pytest.fixture
def store():
    return MemorySeatStore()


@pytest.fixture
def ledger(store, clock):
    return SeatLedger(store=store, clock=clock)


@pytest.fixture
async def db_engine():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def api_ledger(db_engine, clock):
    return SeatLedger(store=MemorySeatStore(), catalog=BusSeatCatalog(async_session), clock=clock)


@pytest.fixture
async def client(api_ledger):
    app.dependency_overrides[get_ledger] = lambda: api_ledger
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def test_bus(db_engine):
    """A 10 x 4 seater (A1..J4) on the Mumbai -> Pune route."""
    async with async_session() as db:
        return await bus_service.create_bus(db, "admin-1", {
            "id": "bus-1",
            "bus_number": "MH-12-AB-1234",
            "name": "Shivneri Express",
            "bus_type": "AC",
            "source": "Mumbai",
            "destination": "Pune",
            "departure_time": "06:00",
            "arrival_time": "09:30",
            "price": 450.0,
        })
