import json
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Dict, List, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from app.services.seat_ledger import (
    Booked,
    Held,
    SeatMap,
    SeatMapKey,
    SeatState,
    StoreUnavailable,
)


SEATMAP_KEY_TPL = "seatmap:{bus_id}:{journey_date}"
SEATMAP_INDEX_KEY = "seatmap_index"
VERSION_FIELD = "_version"


class SeatMapStore(ABC):
    """Persistence for seat maps. Writes only land on the version they were computed from."""

    @abstractmethod
    async def load(self, key: SeatMapKey) -> SeatMap:
        raise NotImplementedError()

    @abstractmethod
    async def compare_and_swap(self, key: SeatMapKey, expected_version: int, seats: Dict[str, SeatState]) -> bool:
        """Replace the seat states and bump the version, unless the stored version moved on."""
        raise NotImplementedError()

    @abstractmethod
    async def keys(self) -> List[SeatMapKey]:
        raise NotImplementedError()


class MemorySeatStore(SeatMapStore):
    """Single-process store."""

    def __init__(self):
        self._maps: Dict[SeatMapKey, Tuple[int, Dict[str, SeatState]]] = {}
        self._mutex = threading.Lock()

    async def load(self, key: SeatMapKey) -> SeatMap:
        with self._mutex:
            version, seats = self._maps.get(key, (0, {}))
            return SeatMap(key.bus_id, key.journey_date, dict(seats), version)

    async def compare_and_swap(self, key: SeatMapKey, expected_version: int, seats: Dict[str, SeatState]) -> bool:
        with self._mutex:
            current, _ = self._maps.get(key, (0, {}))
            if current != expected_version:
                return False
            self._maps[key] = (expected_version + 1, dict(seats))
            return True

    async def keys(self) -> List[SeatMapKey]:
        with self._mutex:
            return list(self._maps)


def encode_state(state: SeatState) -> str:
    if isinstance(state, Held):
        return json.dumps({"state": "held", "holder_token": state.holder_token,
                           "expires_at": state.expires_at.isoformat()})
    if isinstance(state, Booked):
        return json.dumps({"state": "booked", "booking_id": state.booking_id, "holder_token": state.holder_token,
                           "committed_version": state.committed_version})
    raise ValueError(f"Free seats are not stored: {state!r}")


def decode_state(raw: str) -> SeatState:
    data = json.loads(raw)
    if data["state"] == "held":
        return Held(holder_token=data["holder_token"], expires_at=datetime.fromisoformat(data["expires_at"]))
    if data["state"] == "booked":
        return Booked(booking_id=data["booking_id"], holder_token=data["holder_token"],
                      committed_version=int(data["committed_version"]))
    raise ValueError(f"Unknown seat state {data['state']!r}")


def redis_key(key: SeatMapKey) -> str:
    return SEATMAP_KEY_TPL.format(bus_id=key.bus_id, journey_date=key.journey_date.isoformat())


def parse_redis_key(name: str) -> SeatMapKey:
    bus_id, journey_date = name[len("seatmap:"):].rsplit(":", 1)
    return SeatMapKey(bus_id, date.fromisoformat(journey_date))


class RedisSeatStore(SeatMapStore):
    """One hash per seat map: seat id -> JSON state, plus a version field.

    The swap watches the hash, so a write by another process between our
    version check and EXEC aborts the transaction instead of overwriting it.
    The client must be created with ``decode_responses=True``.
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    async def load(self, key: SeatMapKey) -> SeatMap:
        try:
            raw = await self.redis.hgetall(redis_key(key))
        except RedisError as exc:
            raise StoreUnavailable(f"Seat store unavailable: {exc}") from exc
        version = int(raw.pop(VERSION_FIELD, 0))
        seats = {seat_id: decode_state(value) for seat_id, value in raw.items()}
        return SeatMap(key.bus_id, key.journey_date, seats, version)

    async def compare_and_swap(self, key: SeatMapKey, expected_version: int, seats: Dict[str, SeatState]) -> bool:
        name = redis_key(key)
        mapping = {seat_id: encode_state(state) for seat_id, state in seats.items()}
        mapping[VERSION_FIELD] = expected_version + 1
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(name)
                current = await pipe.hget(name, VERSION_FIELD)
                if int(current or 0) != expected_version:
                    return False
                pipe.multi()
                pipe.delete(name)
                pipe.hset(name, mapping=mapping)
                pipe.sadd(SEATMAP_INDEX_KEY, name)
                await pipe.execute()
                return True
        except WatchError:
            return False
        except RedisError as exc:
            raise StoreUnavailable(f"Seat store unavailable: {exc}") from exc

    async def keys(self) -> List[SeatMapKey]:
        try:
            names = await self.redis.smembers(SEATMAP_INDEX_KEY)
        except RedisError as exc:
            raise StoreUnavailable(f"Seat store unavailable: {exc}") from exc
        return [parse_redis_key(name) for name in sorted(names)]
