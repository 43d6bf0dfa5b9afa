from datetime import timedelta
from typing import Optional

from app.config import settings
from app.services.buses import BusSeatCatalog
from app.services.seat_ledger import SeatLedger
from app.services.seat_store import MemorySeatStore, RedisSeatStore, SeatMapStore


def build_store(backend: Optional[str] = None) -> SeatMapStore:
    backend = (backend or settings.LEDGER_BACKEND).lower()
    if backend == "memory":
        return MemorySeatStore()
    if backend == "redis":
        from app.redis_client import redis_client

        return RedisSeatStore(redis_client)
    raise ValueError(f"Unknown ledger backend: {backend}")


def build_ledger(store: Optional[SeatMapStore] = None, catalog=None) -> SeatLedger:
    return SeatLedger(
        store=store or build_store(),
        catalog=catalog if catalog is not None else BusSeatCatalog(),
        default_hold=timedelta(seconds=settings.SEAT_HOLD_SECONDS),
        max_seats_per_hold=settings.MAX_SEATS_PER_HOLD,
        max_attempts=settings.LEDGER_MAX_CAS_ATTEMPTS,
    )


# Global ledger instance
_ledger: Optional[SeatLedger] = None


def get_ledger() -> SeatLedger:
    """Get or create the process-wide ledger (also the FastAPI dependency)."""
    global _ledger
    if _ledger is None:
        _ledger = build_ledger()
    return _ledger


def set_ledger(ledger: Optional[SeatLedger]) -> None:
    """Override the global ledger; ``None`` resets it so the next call rebuilds from settings."""
    global _ledger
    _ledger = ledger
