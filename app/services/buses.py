from typing import Dict, List, Optional, Set
from uuid import uuid4

from sqlalchemy import func, select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import async_session
from app.models.models import Bus
from app.services.audit import log_audit


class BusSeatCatalog:
    """Seat catalog backed by the buses table, used by the ledger to validate seat ids."""

    def __init__(self, session_factory=async_session):
        self.session_factory = session_factory

    async def seat_ids(self, bus_id: str) -> Optional[Set[str]]:
        async with self.session_factory() as db:
            bus = await db.get(Bus, bus_id)
            if bus is None:
                return None
            return set(bus.seat_ids())


async def search_buses(db: AsyncSession, source: str, destination: str) -> List[Bus]:
    stmt = sa_select(Bus).where(
        func.lower(Bus.source) == source.lower(),
        func.lower(Bus.destination) == destination.lower(),
    ).order_by(Bus.departure_time)
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_buses(db: AsyncSession) -> List[Bus]:
    res = await db.execute(sa_select(Bus).order_by(Bus.id))
    return list(res.scalars().all())


async def get_bus(db: AsyncSession, bus_id: str) -> Optional[Bus]:
    return await db.get(Bus, bus_id)


async def create_bus(db: AsyncSession, actor_id: Optional[str], data: Dict) -> Bus:
    values = dict(data)
    bus_id = values.pop("id", None) or uuid4().hex[:12]
    if not values.get("operator") and values.get("name"):
        values["operator"] = values["name"].split(" ")[0]
    bus = Bus(id=bus_id, **values)
    async with db.begin():
        db.add(bus)
        await log_audit(db, actor_id=actor_id, action="create_bus", object_type="bus", object_id=bus_id,
                        detail={"bus_number": bus.bus_number, "route": f"{bus.source}->{bus.destination}"})
        await db.flush()
        await db.refresh(bus)
    return bus


async def update_bus(db: AsyncSession, actor_id: Optional[str], bus_id: str, changes: Dict) -> Optional[Bus]:
    async with db.begin():
        bus = await db.get(Bus, bus_id)
        if bus is None:
            return None
        for field, value in changes.items():
            setattr(bus, field, value)
        await log_audit(db, actor_id=actor_id, action="update_bus", object_type="bus", object_id=bus_id,
                        detail={"fields": sorted(changes)})
        await db.flush()
        await db.refresh(bus)
    return bus


async def delete_bus(db: AsyncSession, actor_id: Optional[str], bus_id: str) -> bool:
    async with db.begin():
        bus = await db.get(Bus, bus_id)
        if bus is None:
            return False
        await db.delete(bus)
        await log_audit(db, actor_id=actor_id, action="delete_bus", object_type="bus", object_id=bus_id)
    return True
