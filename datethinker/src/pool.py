"""
Per-city venue pool: remembers which venue ids a city's session has already
been shown and how far each upstream source has been read, so successive
"load more" requests never repeat a venue.

A batch arrives as lanes, one per upstream source (for explore, one per
category and provider). Every lane keeps its own cursor, advanced only by
the records of that lane actually consumed, so records a page did not reach
are fetched again for the next page.

State lives behind a ``PoolStore`` (process memory or Redis). Mutations of
one pool are serialized by a per-pool ``asyncio.Lock``.
"""

import asyncio
import json
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from datethinker.models import Venue

logger = logging.getLogger(__name__)

BATCH_SIZE = 20
MAX_ROUNDS = 3
# A lane this far below what was requested means its source is running dry
EXHAUSTED_RATIO = 0.5
HAS_MORE_FLOOR = 10

REDIS_KEY_PREFIX = "datethinker:pool:"
SCOPE_SEPARATOR = "|"


def normalize_city_key(city: Optional[str]) -> str:
    """'  New   York ' -> 'new york'."""
    return " ".join((city or "").split()).lower()


def pool_key(city: Optional[str], category: Optional[str] = None, variant: str = "") -> str:
    """'Austin' -> 'austin'; a category or filter variant gets a pool of its own: 'austin|restaurant|p2'."""
    parts = [normalize_city_key(city)]
    if category:
        parts.append(category)
    if variant:
        parts.append(variant)
    return SCOPE_SEPARATOR.join(parts)


def compute_has_more(fresh_count: int, requested: int) -> bool:
    """Advisory "more available" signal.

    True when the fresh results reach half of what was asked for, or 10,
    whichever is smaller.
    """
    if requested <= 0:
        return False
    return fresh_count >= min(math.ceil(requested / 2), HAS_MORE_FLOOR)


@dataclass
class BatchRequest:
    """What the pool asks its fetcher for: ``limit`` records starting at each lane's cursor."""
    city: str
    limit: int
    category: Optional[str] = None
    price: Optional[int] = None
    cursors: Dict[str, int] = field(default_factory=dict)
    drained: Set[str] = field(default_factory=set)

    def offset(self, lane_key: str) -> int:
        return self.cursors.get(lane_key, 0)


@dataclass
class PoolLane:
    """One source's records, starting at that source's cursor.

    ``group`` is what pages are balanced over (the venue category for explore).
    """
    key: str
    venues: List[Venue]
    requested: int
    group: str = ""


FetchBatch = Callable[[BatchRequest], Awaitable[List[PoolLane]]]
Accept = Callable[[Venue], bool]


@dataclass
class PoolState:
    city: str
    seen_ids: Set[str] = field(default_factory=set)
    cursors: Dict[str, int] = field(default_factory=dict)
    drained: Set[str] = field(default_factory=set)
    exhausted: bool = False
    created_at: float = field(default_factory=time.time)
    last_fetched: Optional[float] = None

    @property
    def cursor(self) -> int:
        """Records consumed over all lanes."""
        return sum(self.cursors.values())

    def to_dict(self) -> Dict:
        return {
            "city": self.city,
            "seen_ids": sorted(self.seen_ids),
            "cursors": dict(self.cursors),
            "drained": sorted(self.drained),
            "exhausted": self.exhausted,
            "created_at": self.created_at,
            "last_fetched": self.last_fetched,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "PoolState":
        return cls(
            city=data["city"],
            seen_ids=set(data.get("seen_ids") or []),
            cursors={str(k): int(v) for k, v in (data.get("cursors") or {}).items()},
            drained=set(data.get("drained") or []),
            exhausted=bool(data.get("exhausted")),
            created_at=float(data.get("created_at") or time.time()),
            last_fetched=data.get("last_fetched"),
        )


@dataclass
class PoolPage:
    venues: List[Venue]
    has_more: bool


class PoolStore(ABC):
    """Storage for pool state, keyed by ``pool_key``."""

    @abstractmethod
    async def get(self, key: str) -> Optional[PoolState]:
        pass

    @abstractmethod
    async def set(self, key: str, state: PoolState) -> None:
        pass

    @abstractmethod
    async def reset(self, key: str) -> bool:
        """Delete a pool. Returns True if one existed."""
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        pass


class InMemoryPoolStore(PoolStore):
    """Process-local store. Each server process keeps its own pools."""

    def __init__(self, ttl: int = 0):
        self.ttl = ttl
        self._pools: Dict[str, Tuple[PoolState, float]] = {}

    def _expired(self, stored_at: float) -> bool:
        return bool(self.ttl) and (time.time() - stored_at) >= self.ttl

    async def get(self, key: str) -> Optional[PoolState]:
        entry = self._pools.get(key)
        if entry is None:
            return None
        state, stored_at = entry
        if self._expired(stored_at):
            del self._pools[key]
            return None
        return state

    async def set(self, key: str, state: PoolState) -> None:
        self._pools[key] = (state, time.time())

    async def reset(self, key: str) -> bool:
        return self._pools.pop(key, None) is not None

    async def keys(self) -> List[str]:
        return [k for k, (_, stored_at) in self._pools.items() if not self._expired(stored_at)]


class RedisPoolStore(PoolStore):
    """Pools stored as JSON in Redis so several app instances share them."""

    def __init__(self, redis_client, ttl: int = 0, prefix: str = REDIS_KEY_PREFIX):
        self.redis = redis_client
        self.ttl = ttl
        self.prefix = prefix

    async def get(self, key: str) -> Optional[PoolState]:
        raw = await self.redis.get(self.prefix + key)
        if raw is None:
            return None
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode()
        try:
            return PoolState.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.warning("Discarding unreadable pool state for %s", key)
            return None

    async def set(self, key: str, state: PoolState) -> None:
        await self.redis.set(self.prefix + key, json.dumps(state.to_dict()), ex=self.ttl or None)

    async def reset(self, key: str) -> bool:
        return bool(await self.redis.delete(self.prefix + key))

    async def keys(self) -> List[str]:
        raw_keys = await self.redis.keys(f"{self.prefix}*")
        out = []
        for k in raw_keys:
            k = k.decode() if isinstance(k, (bytes, bytearray)) else k
            out.append(k[len(self.prefix):])
        return out


class VenuePoolManager:
    """Serves successive pages of never-before-seen venues per city.

    ``fetch_batch(request)`` returns lanes, each starting at its lane's
    cursor in ``request.cursors``; the manager owns the cursors and the seen
    set and only ever moves a cursor forward.
    """

    def __init__(self, store: PoolStore, fetch_batch: FetchBatch,
                 batch_size: int = BATCH_SIZE, max_rounds: int = MAX_ROUNDS):
        self.store = store
        self.fetch_batch = fetch_batch
        self.batch_size = batch_size
        self.max_rounds = max_rounds
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get_next_venues(self, city: str, count: Optional[int] = None,
                              exclude_ids: Iterable[str] = (), category: Optional[str] = None,
                              price: Optional[int] = None, accept: Optional[Accept] = None,
                              variant: str = "") -> PoolPage:
        """Return up to ``count`` venues this pool has not served yet.

        Args:
            city: City name (pool key is its normalized form)
            count: Venues wanted, defaults to the batch size
            exclude_ids: Extra ids to skip (already on the client's screen)
            category: Only fetch this category's sources; the category gets its own pool
            price: Price hint passed on to the fetcher
            accept: Filter applied before a venue counts as served
            variant: Names the filter combination, so filtered pages use their own pool

        Returns:
            PoolPage with the venues and an advisory has_more flag
        """
        if not normalize_city_key(city):
            raise ValueError("city is required")
        key = pool_key(city, category, variant)
        count = count if count and count > 0 else self.batch_size
        excluded = set(exclude_ids or ())

        async with self._lock_for(key):
            state = await self.store.get(key) or PoolState(city=normalize_city_key(city))
            fresh: List[Venue] = []
            fresh_ids: Set[str] = set()
            rounds = 0
            while len(fresh) < count and not state.exhausted and rounds < self.max_rounds:
                rounds += 1
                request = BatchRequest(
                    city=city.strip(),
                    limit=max(count * 2, self.batch_size),
                    category=category,
                    price=price,
                    cursors=dict(state.cursors),
                    drained=set(state.drained),
                )
                lanes = [lane for lane in await self.fetch_batch(request) if lane.key not in state.drained]
                state.last_fetched = time.time()
                consumed = self._consume(lanes, state, count, excluded, accept, fresh, fresh_ids)
                for lane in lanes:
                    used = consumed.get(lane.key, 0)
                    state.cursors[lane.key] = state.cursors.get(lane.key, 0) + used
                    if len(lane.venues) < lane.requested * EXHAUSTED_RATIO and used >= len(lane.venues):
                        state.drained.add(lane.key)
                if all(lane.key in state.drained for lane in lanes):
                    state.exhausted = True

            page = fresh[:count]
            state.seen_ids.update(v.id for v in page)
            await self.store.set(key, state)

        has_more = compute_has_more(len(fresh), count)
        logger.info("Pool %s: served %d/%d (fresh %d), cursor %d, seen %d, exhausted=%s",
                    key, len(page), count, len(fresh), state.cursor, len(state.seen_ids), state.exhausted)
        if len(page) < count * 0.7:
            logger.warning("Pool shortfall for %s: requested %d, returning %d", key, count, len(page))
        return PoolPage(venues=page, has_more=has_more)

    @staticmethod
    def _consume(lanes: List[PoolLane], state: PoolState, count: int, excluded: Set[str],
                 accept: Optional[Accept], fresh: List[Venue], fresh_ids: Set[str]) -> Dict[str, int]:
        """Take records off the lanes until ``fresh`` holds ``count`` venues.

        The next record always comes from the least-read group, then the
        least-read lane in it, so every source gets its turn across pages.
        Returns how many records of each lane were consumed.
        """
        consumed = {lane.key: 0 for lane in lanes}
        group_totals: Dict[str, int] = {}
        for lane in lanes:
            group_totals[lane.group] = group_totals.get(lane.group, 0) + state.cursors.get(lane.key, 0)

        while len(fresh) < count:
            open_lanes = [(i, lane) for i, lane in enumerate(lanes) if consumed[lane.key] < len(lane.venues)]
            if not open_lanes:
                break
            _, lane = min(open_lanes, key=lambda item: (
                group_totals[item[1].group],
                state.cursors.get(item[1].key, 0) + consumed[item[1].key],
                item[0],
            ))
            venue = lane.venues[consumed[lane.key]]
            consumed[lane.key] += 1
            group_totals[lane.group] += 1
            if venue.id in state.seen_ids or venue.id in excluded or venue.id in fresh_ids:
                continue
            if accept is not None and not accept(venue):
                continue
            fresh_ids.add(venue.id)
            fresh.append(venue)
        return consumed

    async def reset_pool(self, city: str) -> bool:
        """Forget everything served for a city, filtered pools included."""
        key = normalize_city_key(city)
        async with self._lock_for(key):
            existed = await self.store.reset(key)
            for scoped in await self.store.keys():
                if scoped.startswith(key + SCOPE_SEPARATOR):
                    existed = await self.store.reset(scoped) or existed
        logger.info("Reset venue pool for %s", key)
        return existed

    async def get_pool_stats(self, city: str) -> Optional[Dict]:
        """Read-only view of a city's explore pool, or None if it has none."""
        state = await self.store.get(normalize_city_key(city))
        if state is None:
            return None
        return {
            "city": state.city,
            "totalSeen": len(state.seen_ids),
            "cursor": state.cursor,
            "cursors": dict(state.cursors),
            "exhausted": state.exhausted,
            "createdAt": state.created_at,
            "lastFetched": state.last_fetched,
        }
