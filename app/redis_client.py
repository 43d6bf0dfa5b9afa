from redis.asyncio import Redis

from app.config import settings


# connections are opened lazily on first command
redis_client: Redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
