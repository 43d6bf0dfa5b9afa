from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.schemas.bus import BusResponse, bus_to_response
from app.services import buses as bus_service

router = APIRouter()


@router.get("/", response_model=List[BusResponse])
async def find_buses(source: Optional[str] = None, destination: Optional[str] = None, db: AsyncSession = Depends(get_session)):
    if source and destination:
        found = await bus_service.search_buses(db, source, destination)
    else:
        found = await bus_service.list_buses(db)
    return [bus_to_response(b) for b in found]


@router.get("/{bus_id}", response_model=BusResponse)
async def get_bus(bus_id: str, db: AsyncSession = Depends(get_session)):
    bus = await bus_service.get_bus(db, bus_id)
    if bus is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bus not found")
    return bus_to_response(bus)
