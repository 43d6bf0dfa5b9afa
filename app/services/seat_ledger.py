"""Seat inventory ledger.

Tracks, per (bus, journey date), which seats are held during checkout and which
are booked, and arbitrates concurrent reservation attempts. Every mutation is
committed through a compare-and-swap on the seat map version: the operation is
evaluated against a snapshot and only written if nobody else wrote in between,
otherwise it is re-evaluated against the newer snapshot.
"""
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set, Union

from app.metrics import LEDGER_CAS_RETRIES, LEDGER_LATENCY, LEDGER_OPERATIONS, SEATS_SWEPT

logger = logging.getLogger(__name__)

DEFAULT_HOLD = timedelta(minutes=10)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Seat states
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Free:
    pass


FREE = Free()


@dataclass(frozen=True)
class Held:
    holder_token: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class Booked:
    booking_id: str
    holder_token: str
    # version of the seat map write that booked the seat, replayed on retried confirms
    committed_version: int


SeatState = Union[Free, Held, Booked]


def is_occupied(state: SeatState, now: datetime) -> bool:
    if isinstance(state, Booked):
        return True
    if isinstance(state, Held):
        return not state.is_expired(now)
    return False


@dataclass(frozen=True)
class SeatMapKey:
    bus_id: str
    journey_date: date


@dataclass
class SeatMap:
    bus_id: str
    journey_date: date
    # free seats are not stored
    seats: Dict[str, SeatState] = field(default_factory=dict)
    version: int = 0

    @property
    def key(self) -> SeatMapKey:
        return SeatMapKey(self.bus_id, self.journey_date)

    def state_of(self, seat_id: str) -> SeatState:
        return self.seats.get(seat_id, FREE)

    def unavailable(self, now: datetime) -> List[str]:
        return sorted(seat_id for seat_id, state in self.seats.items() if is_occupied(state, now))


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LedgerError(Exception):
    code = "LedgerError"

    def __init__(self, message: str, seat_ids: Iterable[str] = ()):
        super().__init__(message)
        self.message = message
        self.seat_ids = sorted(seat_ids)


class SeatConflict(LedgerError):
    code = "SeatConflict"


class HoldExpired(LedgerError):
    code = "HoldExpired"


class HoldMismatch(LedgerError):
    code = "HoldMismatch"


class NotHeld(LedgerError):
    code = "NotHeld"


class InvalidRequest(LedgerError):
    code = "InvalidRequest"


class StoreUnavailable(LedgerError):
    code = "StoreUnavailable"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HoldResult:
    granted: List[str]
    version: int
    holder_token: str
    expires_at: datetime


@dataclass(frozen=True)
class ConfirmResult:
    committed: bool
    version: int
    booking_id: str
    seat_ids: List[str]


class ReleaseReason(str, Enum):
    HOLD_EXPIRED = "hold_expired"
    HOLD_RELEASED = "hold_released"
    BOOKING_CANCELLED = "booking_cancelled"
    ADMIN = "admin"


class SeatCatalog(Protocol):
    async def seat_ids(self, bus_id: str) -> Optional[Set[str]]:
        """Seat ids laid out on the bus, or None when the bus is unknown."""


@dataclass
class _Change:
    # None means the operation leaves the seat map untouched
    seats: Optional[Dict[str, SeatState]]
    result: Callable[[int], Any]


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class SeatLedger:
    def __init__(
        self,
        store,
        catalog: Optional[SeatCatalog] = None,
        clock: Callable[[], datetime] = utcnow,
        default_hold: timedelta = DEFAULT_HOLD,
        max_seats_per_hold: Optional[int] = 6,
        max_attempts: int = 5,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.default_hold = default_hold
        self.max_seats_per_hold = max_seats_per_hold
        self.max_attempts = max_attempts

    async def reserve(
        self,
        bus_id: str,
        journey_date: date,
        seat_ids: Iterable[str],
        holder_token: str,
        hold_duration: Union[timedelta, int, float, None] = None,
    ) -> HoldResult:
        """Hold every requested seat for ``holder_token`` or none of them.

        Seats held by the same token are re-held with a fresh expiry, so a
        retried reserve succeeds. Raises SeatConflict listing the seats that
        are booked or held by someone else.
        """
        seats = _validate_seat_ids(seat_ids, self.max_seats_per_hold)
        if not holder_token:
            raise InvalidRequest("holder_token is required")
        duration = self._hold_duration(hold_duration)
        if journey_date < self.clock().date():
            raise InvalidRequest(f"journey date {journey_date.isoformat()} is in the past")
        await self._check_catalog(bus_id, seats)

        def plan(seat_map: SeatMap, now: datetime) -> _Change:
            conflicts = []
            for seat_id in seats:
                state = seat_map.state_of(seat_id)
                if isinstance(state, Booked):
                    conflicts.append(seat_id)
                elif isinstance(state, Held) and state.holder_token != holder_token and not state.is_expired(now):
                    conflicts.append(seat_id)
            if conflicts:
                raise SeatConflict("Seats are no longer available", seat_ids=conflicts)

            expires_at = now + duration
            updated = dict(seat_map.seats)
            for seat_id in seats:
                updated[seat_id] = Held(holder_token=holder_token, expires_at=expires_at)
            return _Change(
                updated,
                lambda version: HoldResult(
                    granted=sorted(seats), version=version, holder_token=holder_token, expires_at=expires_at
                ),
            )

        result = await self._mutate("reserve", bus_id, journey_date, plan)
        logger.info(
            "Seats held",
            extra={"bus_id": bus_id, "journey_date": journey_date.isoformat(), "seats": result.granted,
                   "version": result.version},
        )
        return result

    async def confirm(
        self,
        bus_id: str,
        journey_date: date,
        seat_ids: Iterable[str],
        holder_token: str,
        booking_id: str,
    ) -> ConfirmResult:
        """Turn the caller's unexpired holds into bookings.

        Expiry is checked against the snapshot that is committed, so a sweep
        that frees the hold first always wins. Repeating a successful confirm
        with the same arguments returns the original result unchanged.
        """
        seats = _validate_seat_ids(seat_ids, self.max_seats_per_hold)
        if not holder_token or not booking_id:
            raise InvalidRequest("holder_token and booking_id are required")
        await self._check_catalog(bus_id, seats)

        def plan(seat_map: SeatMap, now: datetime) -> _Change:
            to_book, expired, mismatched, not_held = [], [], [], []
            replayed_versions = []
            for seat_id in seats:
                state = seat_map.state_of(seat_id)
                if isinstance(state, Booked):
                    if state.booking_id == booking_id and state.holder_token == holder_token:
                        replayed_versions.append(state.committed_version)
                    else:
                        not_held.append(seat_id)
                elif isinstance(state, Held):
                    if state.holder_token != holder_token:
                        # someone else's lapsed hold leaves the seat free, not held by us
                        (not_held if state.is_expired(now) else mismatched).append(seat_id)
                    elif state.is_expired(now):
                        expired.append(seat_id)
                    else:
                        to_book.append(seat_id)
                else:
                    not_held.append(seat_id)

            if expired:
                raise HoldExpired("Seat hold has expired, reserve again", seat_ids=expired)
            if mismatched:
                raise HoldMismatch("Seats are held by another session", seat_ids=mismatched)
            if not_held:
                raise NotHeld("Seats are not held by this session", seat_ids=not_held)

            if not to_book:
                replay = ConfirmResult(True, max(replayed_versions), booking_id, sorted(seats))
                return _Change(None, lambda version: replay)

            commit_version = seat_map.version + 1
            updated = dict(seat_map.seats)
            for seat_id in to_book:
                updated[seat_id] = Booked(booking_id=booking_id, holder_token=holder_token,
                                          committed_version=commit_version)
            return _Change(updated, lambda version: ConfirmResult(True, version, booking_id, sorted(seats)))

        result = await self._mutate("confirm", bus_id, journey_date, plan)
        logger.info(
            "Seats booked",
            extra={"bus_id": bus_id, "journey_date": journey_date.isoformat(), "booking_id": booking_id,
                   "seats": result.seat_ids, "version": result.version},
        )
        return result

    async def release(
        self,
        bus_id: str,
        journey_date: date,
        seat_ids: Iterable[str],
        reason: ReleaseReason,
        holder_token: Optional[str] = None,
        booking_id: Optional[str] = None,
    ) -> None:
        """Free seats that are in the state the caller expects.

        ``reason`` and the optional ``holder_token`` / ``booking_id`` describe
        that expected state; anything else (including free seats) is left
        alone. Never raises for seat state.
        """
        await self._release(bus_id, journey_date, seat_ids, ReleaseReason(reason), holder_token, booking_id)

    async def _release(self, bus_id, journey_date, seat_ids, reason, holder_token, booking_id) -> List[str]:
        seats = sorted(set(seat_ids))
        if not seats:
            return []

        def matches(state: SeatState, now: datetime) -> bool:
            if isinstance(state, Free):
                return False
            if reason == ReleaseReason.HOLD_EXPIRED:
                return isinstance(state, Held) and state.is_expired(now)
            if reason == ReleaseReason.HOLD_RELEASED:
                return isinstance(state, Held) and holder_token in (None, state.holder_token)
            if reason == ReleaseReason.BOOKING_CANCELLED:
                return isinstance(state, Booked) and booking_id in (None, state.booking_id)
            return True

        def plan(seat_map: SeatMap, now: datetime) -> _Change:
            freed = [seat_id for seat_id in seats if matches(seat_map.state_of(seat_id), now)]
            if not freed:
                return _Change(None, lambda version: [])
            updated = {k: v for k, v in seat_map.seats.items() if k not in freed}
            return _Change(updated, lambda version: freed)

        freed = await self._mutate("release", bus_id, journey_date, plan)
        if freed:
            logger.info(
                "Seats released",
                extra={"bus_id": bus_id, "journey_date": journey_date.isoformat(), "seats": freed,
                       "reason": reason.value},
            )
        return freed

    async def query_booked(self, bus_id: str, journey_date: date) -> List[str]:
        """Seats a seat picker must show as unavailable (booked or actively held)."""
        seat_map = await self.snapshot(bus_id, journey_date)
        return seat_map.unavailable(self.clock())

    async def snapshot(self, bus_id: str, journey_date: date) -> SeatMap:
        await self._check_catalog(bus_id, [])
        start = time.perf_counter()
        seat_map = await self.store.load(SeatMapKey(bus_id, journey_date))
        LEDGER_OPERATIONS.labels(operation="query", result="ok").inc()
        LEDGER_LATENCY.labels(operation="query").observe(time.perf_counter() - start)
        return seat_map

    async def sweep_expired_holds(self) -> int:
        """Release every lapsed hold across all seat maps. Returns seats freed."""
        released = 0
        for key in await self.store.keys():
            try:
                seat_map = await self.store.load(key)
                now = self.clock()
                expired = [
                    seat_id for seat_id, state in seat_map.seats.items()
                    if isinstance(state, Held) and state.is_expired(now)
                ]
                if not expired:
                    continue
                freed = await self._release(key.bus_id, key.journey_date, expired, ReleaseReason.HOLD_EXPIRED,
                                            None, None)
            except StoreUnavailable:
                logger.exception("Sweep skipped seat map", extra={"bus_id": key.bus_id,
                                                                  "journey_date": key.journey_date.isoformat()})
                continue
            released += len(freed)
        if released:
            SEATS_SWEPT.inc(released)
            logger.info("Expired holds swept", extra={"released": released})
        return released

    async def _mutate(self, operation: str, bus_id: str, journey_date: date, plan) -> Any:
        key = SeatMapKey(bus_id, journey_date)
        start = time.perf_counter()
        try:
            for _ in range(self.max_attempts):
                seat_map = await self.store.load(key)
                change = plan(seat_map, self.clock())
                if change.seats is None:
                    result = change.result(seat_map.version)
                    break
                if await self.store.compare_and_swap(key, seat_map.version, change.seats):
                    result = change.result(seat_map.version + 1)
                    break
                LEDGER_CAS_RETRIES.labels(operation=operation).inc()
                logger.debug("Seat map version moved, re-evaluating",
                             extra={"operation": operation, "bus_id": bus_id, "version": seat_map.version})
            else:
                raise StoreUnavailable(f"Seat map for bus {bus_id} on {journey_date.isoformat()} is too contended, retry")
        except LedgerError as exc:
            LEDGER_OPERATIONS.labels(operation=operation, result=exc.code).inc()
            raise
        LEDGER_OPERATIONS.labels(operation=operation, result="ok").inc()
        LEDGER_LATENCY.labels(operation=operation).observe(time.perf_counter() - start)
        return result

    def _hold_duration(self, value) -> timedelta:
        if value is None:
            return self.default_hold
        duration = value if isinstance(value, timedelta) else timedelta(seconds=value)
        if duration <= timedelta(0):
            raise InvalidRequest("hold duration must be positive")
        return duration

    async def _check_catalog(self, bus_id: str, seats: List[str]):
        if self.catalog is None:
            return
        known = await self.catalog.seat_ids(bus_id)
        if known is None:
            raise InvalidRequest(f"Unknown bus {bus_id}")
        unknown = [seat_id for seat_id in seats if seat_id not in known]
        if unknown:
            raise InvalidRequest(f"Seats do not exist on bus {bus_id}", seat_ids=unknown)


def _validate_seat_ids(seat_ids: Iterable[str], limit: Optional[int] = None) -> List[str]:
    seats = list(seat_ids)
    if not seats:
        raise InvalidRequest("At least one seat is required")
    if any(not isinstance(seat_id, str) or not seat_id for seat_id in seats):
        raise InvalidRequest("Seat ids must be non-empty strings")
    duplicates = [seat_id for seat_id, count in Counter(seats).items() if count > 1]
    if duplicates:
        raise InvalidRequest("Duplicate seat ids", seat_ids=duplicates)
    if limit and len(seats) > limit:
        raise InvalidRequest(f"At most {limit} seats can be held at once")
    return seats
