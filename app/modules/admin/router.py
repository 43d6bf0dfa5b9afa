from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import role_required
from app.db.session import get_session
from app.schemas.audit import AuditEntryResponse
from app.schemas.booking import BookingResponse, BookingStats, booking_to_response
from app.schemas.bus import BusCreate, BusResponse, BusUpdate, bus_to_response
from app.schemas.seat import AdminReleaseRequest
from app.services import bookings as booking_service
from app.services import buses as bus_service
from app.services.audit import list_audit_entries, log_audit
from app.services.ledger_provider import get_ledger
from app.services.seat_ledger import ReleaseReason, SeatLedger

router = APIRouter()

admin_only = role_required(["admin"])


@router.get("/")
async def admin_root():
    return {"module": "admin", "status": "ok"}


@router.get("/stats", response_model=BookingStats)
async def dashboard_stats(admin_id: str = Depends(admin_only), db: AsyncSession = Depends(get_session)):
    return BookingStats(**await booking_service.booking_stats(db))


@router.get("/bookings", response_model=List[BookingResponse])
async def view_bookings(
    status: Optional[str] = None,
    bus_id: Optional[str] = None,
    admin_id: str = Depends(admin_only),
    db: AsyncSession = Depends(get_session),
):
    found = await booking_service.list_all_bookings(db, status=status, bus_id=bus_id)
    return [booking_to_response(b) for b in found]


# Fleet management
@router.post("/buses", response_model=BusResponse, status_code=status.HTTP_201_CREATED)
async def create_bus(req: BusCreate, admin_id: str = Depends(admin_only), db: AsyncSession = Depends(get_session)):
    try:
        bus = await bus_service.create_bus(db, admin_id, req.model_dump())
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Bus already exists")
    return bus_to_response(bus)


@router.put("/buses/{bus_id}", response_model=BusResponse)
async def update_bus(bus_id: str, req: BusUpdate, admin_id: str = Depends(admin_only), db: AsyncSession = Depends(get_session)):
    bus = await bus_service.update_bus(db, admin_id, bus_id, req.model_dump(exclude_unset=True))
    if bus is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bus not found")
    return bus_to_response(bus)


@router.delete("/buses/{bus_id}")
async def delete_bus(bus_id: str, admin_id: str = Depends(admin_only), db: AsyncSession = Depends(get_session)):
    if not await bus_service.delete_bus(db, admin_id, bus_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bus not found")
    return {"deleted": True}


@router.post("/sweep")
async def sweep_holds(
    admin_id: str = Depends(admin_only),
    db: AsyncSession = Depends(get_session),
    ledger: SeatLedger = Depends(get_ledger),
):
    """Run an expired-hold sweep now instead of waiting for the scheduled one."""
    released = await ledger.sweep_expired_holds()
    async with db.begin():
        await log_audit(db, actor_id=admin_id, action="sweep_holds", object_type="ledger", object_id="seat_holds",
                        detail={"released": released})
    return {"released": released}


@router.post("/seats/release")
async def release_seats(
    req: AdminReleaseRequest,
    admin_id: str = Depends(admin_only),
    db: AsyncSession = Depends(get_session),
    ledger: SeatLedger = Depends(get_ledger),
):
    """Free seats whatever their state. The only route that can free booked seats outside a cancellation."""
    await ledger.release(req.bus_id, req.journey_date, req.seat_ids, ReleaseReason.ADMIN)
    async with db.begin():
        await log_audit(db, actor_id=admin_id, action="release_seats", object_type="seat_map",
                        object_id=f"{req.bus_id}:{req.journey_date.isoformat()}",
                        detail={"seats": sorted(set(req.seat_ids)), "note": req.note})
    return {"released": True}


@router.get("/audit", response_model=List[AuditEntryResponse])
async def audit_log(
    object_type: Optional[str] = None,
    object_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    admin_id: str = Depends(admin_only),
    db: AsyncSession = Depends(get_session),
):
    return await list_audit_entries(db, object_type=object_type, object_id=object_id, limit=limit)
