from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends

from app.schemas.seat import (
    BookedSeatsResponse,
    ConfirmResponse,
    ConfirmSeatsRequest,
    HoldResponse,
    LedgerErrorResponse,
    ReleaseHoldRequest,
    ReserveSeatsRequest,
    SeatMapResponse,
    SeatStateOut,
)
from app.services.ledger_provider import get_ledger
from app.services.seat_ledger import Booked, Held, ReleaseReason, SeatLedger

router = APIRouter()

LEDGER_ERROR_RESPONSES = {
    409: {"model": LedgerErrorResponse, "description": "SeatConflict, HoldExpired, HoldMismatch or NotHeld"},
    422: {"model": LedgerErrorResponse, "description": "InvalidRequest"},
    503: {"model": LedgerErrorResponse, "description": "StoreUnavailable"},
}


@router.get("/")
async def seats_root():
    return {"module": "seats", "status": "ok"}


@router.post("/reserve", response_model=HoldResponse, responses=LEDGER_ERROR_RESPONSES)
async def reserve_seats(req: ReserveSeatsRequest, ledger: SeatLedger = Depends(get_ledger)):
    """Hold seats for a checkout session. All requested seats are held or none are."""
    res = await ledger.reserve(req.bus_id, req.journey_date, req.seat_ids, req.holder_token, req.hold_seconds)
    return HoldResponse(**asdict(res))


@router.post("/confirm", response_model=ConfirmResponse, responses=LEDGER_ERROR_RESPONSES)
async def confirm_seats(req: ConfirmSeatsRequest, ledger: SeatLedger = Depends(get_ledger)):
    res = await ledger.confirm(req.bus_id, req.journey_date, req.seat_ids, req.holder_token, req.booking_id)
    return ConfirmResponse(**asdict(res))


@router.post("/release", responses=LEDGER_ERROR_RESPONSES)
async def release_seats(req: ReleaseHoldRequest, ledger: SeatLedger = Depends(get_ledger)):
    """Give back seats held by ``holder_token``; anything else in the list is left as it is."""
    await ledger.release(req.bus_id, req.journey_date, req.seat_ids, ReleaseReason.HOLD_RELEASED,
                         holder_token=req.holder_token)
    return {"released": True}


@router.get("/{bus_id}/{journey_date}", response_model=BookedSeatsResponse, responses=LEDGER_ERROR_RESPONSES)
async def booked_seats(bus_id: str, journey_date: date, ledger: SeatLedger = Depends(get_ledger)):
    seat_ids = await ledger.query_booked(bus_id, journey_date)
    return BookedSeatsResponse(bus_id=bus_id, journey_date=journey_date, seat_ids=seat_ids)


@router.get("/{bus_id}/{journey_date}/map", response_model=SeatMapResponse, responses=LEDGER_ERROR_RESPONSES)
async def seat_map(bus_id: str, journey_date: date, ledger: SeatLedger = Depends(get_ledger)):
    snapshot = await ledger.snapshot(bus_id, journey_date)
    now = ledger.clock()
    seats = {}
    for seat_id, state in sorted(snapshot.seats.items()):
        if isinstance(state, Held):
            if state.is_expired(now):
                continue
            seats[seat_id] = SeatStateOut(state="held", expires_at=state.expires_at)
        elif isinstance(state, Booked):
            seats[seat_id] = SeatStateOut(state="booked", booking_id=state.booking_id)
    return SeatMapResponse(bus_id=bus_id, journey_date=journey_date, version=snapshot.version, seats=seats)
