import asyncio
import logging

from app.services.seat_ledger import SeatLedger

logger = logging.getLogger(__name__)


async def run_sweeper(ledger: SeatLedger, interval: float) -> None:
    """Release expired holds every ``interval`` seconds until cancelled."""
    while True:
        try:
            await ledger.sweep_expired_holds()
        except asyncio.CancelledError:
            raise
        except Exception:
            # a failed pass must not stop later ones
            logger.exception("Expired hold sweep failed")
        await asyncio.sleep(interval)
