import asyncio

from celery.utils.log import get_task_logger
from redis.asyncio import Redis

from app.celery_app import celery_app
from app.config import settings
from app.services.ledger_provider import build_ledger
from app.services.seat_store import RedisSeatStore

logger = get_task_logger(__name__)


async def _sweep() -> int:
    # each task run has its own event loop, so it gets its own connection pool
    redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        ledger = build_ledger(store=RedisSeatStore(redis))
        return await ledger.sweep_expired_holds()
    finally:
        await redis.aclose()


@celery_app.task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_backoff_max=60, max_retries=3)
def sweep_expired_holds_task(self):
    """Release seat holds whose expiry has passed. Scheduled by celery beat."""
    released = asyncio.run(_sweep())
    logger.info("Released %s expired seat holds", released)
    return released
