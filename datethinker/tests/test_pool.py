import asyncio
import time

import pytest

from conftest import FakeRedis
from datethinker.models import Venue
from datethinker.src.pool import (
    VenuePoolManager, InMemoryPoolStore, RedisPoolStore, PoolState, PoolLane,
    normalize_city_key, pool_key, compute_has_more, REDIS_KEY_PREFIX,
)


def make_fetch(total=1000, calls=None, lanes=("v",)):
    """Batch fetcher with one lane per name, each over ``total`` venues ``{lane}-{n}``."""
    async def fetch(request):
        if calls is not None:
            calls.append(request)
        out = []
        for name in lanes:
            if name in request.drained:
                continue
            start = request.offset(name)
            venues = [Venue(id=f"{name}-{n}", name=f"Venue {n}", category="restaurant")
                      for n in range(start, min(start + request.limit, total))]
            out.append(PoolLane(key=name, venues=venues, requested=request.limit))
        return out
    return fetch


def test_city_key_normalization():
    assert normalize_city_key("  New   York ") == "new york"
    assert normalize_city_key("AUSTIN") == "austin"
    assert normalize_city_key(None) == ""
    assert pool_key(" Austin ") == "austin"
    assert pool_key("Austin", "restaurant", "p2") == "austin|restaurant|p2"


@pytest.mark.parametrize("fresh,requested,expected", [
    (10, 20, True),
    (9, 20, False),
    (10, 100, True),
    (3, 5, True),
    (2, 5, False),
    (0, 0, False),
])
def test_has_more_threshold(fresh, requested, expected):
    assert compute_has_more(fresh, requested) is expected


@pytest.mark.asyncio
async def test_successive_pages_never_repeat():
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch())
    seen = set()
    for _ in range(5):
        page = await pool.get_next_venues("Austin", 10)
        ids = {v.id for v in page.venues}
        assert len(ids) == 10
        assert not ids & seen
        seen |= ids


@pytest.mark.asyncio
async def test_cursor_is_monotonic_and_shared_across_spellings():
    calls = []
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch(calls=calls))
    cursors = []
    for city in ("Austin", " austin ", "AUSTIN"):
        await pool.get_next_venues(city, 10)
        cursors.append((await pool.get_pool_stats("Austin"))["cursor"])
    assert cursors == [10, 20, 30]
    offsets = [request.offset("v") for request in calls]
    assert offsets == sorted(offsets)


@pytest.mark.asyncio
async def test_every_lane_gets_its_turn():
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch(lanes=("yelp", "google")))
    served = []
    for _ in range(3):
        page = await pool.get_next_venues("Austin", 4)
        served += [v.id for v in page.venues]
    assert served == ["yelp-0", "google-0", "yelp-1", "google-1", "yelp-2", "google-2",
                      "yelp-3", "google-3", "yelp-4", "google-4", "yelp-5", "google-5"]
    stats = await pool.get_pool_stats("Austin")
    assert stats["cursors"] == {"yelp": 6, "google": 6}


@pytest.mark.asyncio
async def test_pages_balance_groups_before_lanes():
    async def fetch(request):
        lanes = []
        for group, names in (("restaurant", ("yelp", "google")), ("event", ("ticketmaster",))):
            for name in names:
                key = f"{group}:{name}"
                start = request.offset(key)
                lanes.append(PoolLane(key=key, group=group, requested=10, venues=[
                    Venue(id=f"{name}-{group}-{n}", name="x", category=group) for n in range(start, start + 10)
                ]))
        return lanes

    pool = VenuePoolManager(InMemoryPoolStore(), fetch)
    page = await pool.get_next_venues("Austin", 4)
    assert [v.id for v in page.venues] == [
        "yelp-restaurant-0", "ticketmaster-event-0", "google-restaurant-0", "ticketmaster-event-1",
    ]


@pytest.mark.asyncio
async def test_exclude_ids_are_skipped():
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch())
    page = await pool.get_next_venues("Austin", 5, exclude_ids=["v-0", "v-1"])
    ids = [v.id for v in page.venues]
    assert "v-0" not in ids and "v-1" not in ids
    assert len(ids) == 5


@pytest.mark.asyncio
async def test_rejected_venues_are_not_marked_seen():
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch())
    even = await pool.get_next_venues("Austin", 5, accept=lambda v: int(v.id.split("-")[1]) % 2 == 0,
                                      variant="even")
    assert [v.id for v in even.venues] == ["v-0", "v-2", "v-4", "v-6", "v-8"]
    # the unfiltered pool is separate and still starts at the beginning
    plain = await pool.get_next_venues("Austin", 3)
    assert [v.id for v in plain.venues] == ["v-0", "v-1", "v-2"]


@pytest.mark.asyncio
async def test_category_pool_is_separate_and_passes_category():
    calls = []
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch(calls=calls))
    await pool.get_next_venues("Austin", 3, category="restaurant", price=2)
    assert calls[0].category == "restaurant"
    assert calls[0].price == 2
    assert await pool.get_pool_stats("Austin") is None
    assert await pool.store.get("austin|restaurant") is not None


@pytest.mark.asyncio
async def test_exhaustion_stops_fetching():
    calls = []
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch(total=25, calls=calls))
    first = await pool.get_next_venues("Austin", 20)
    assert len(first.venues) == 20
    second = await pool.get_next_venues("Austin", 20)
    assert [v.id for v in second.venues] == [f"v-{n}" for n in range(20, 25)]
    assert second.has_more is False
    stats = await pool.get_pool_stats("Austin")
    assert stats["exhausted"] is True

    calls.clear()
    third = await pool.get_next_venues("Austin", 20)
    assert third.venues == []
    assert calls == []


@pytest.mark.asyncio
async def test_drained_lane_stops_while_others_continue():
    calls = []

    async def fetch(request):
        calls.append(request)
        lanes = []
        for name, total in (("short", 3), ("long", 1000)):
            if name in request.drained:
                continue
            start = request.offset(name)
            lanes.append(PoolLane(key=name, requested=request.limit, venues=[
                Venue(id=f"{name}-{n}", name="x", category="outdoor") for n in range(start, min(start + request.limit, total))
            ]))
        return lanes

    pool = VenuePoolManager(InMemoryPoolStore(), fetch)
    first = await pool.get_next_venues("Austin", 10)
    assert {"short-0", "short-1", "short-2"} <= {v.id for v in first.venues}
    await pool.get_next_venues("Austin", 10)
    assert "short" in calls[-1].drained
    assert (await pool.get_pool_stats("Austin"))["exhausted"] is False


@pytest.mark.asyncio
async def test_short_batch_leftovers_are_served_next():
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch(total=15))
    first = await pool.get_next_venues("Austin", 10)
    assert len(first.venues) == 10
    assert (await pool.get_pool_stats("Austin"))["exhausted"] is False
    second = await pool.get_next_venues("Austin", 10)
    assert [v.id for v in second.venues] == [f"v-{n}" for n in range(10, 15)]


@pytest.mark.asyncio
async def test_rounds_are_bounded():
    calls = []

    async def always_repeats(request):
        calls.append(request)
        return [PoolLane(key="v", requested=request.limit,
                         venues=[Venue(id="same", name="Same", category="outdoor")] * request.limit)]

    pool = VenuePoolManager(InMemoryPoolStore(), always_repeats, max_rounds=3)
    page = await pool.get_next_venues("Austin", 10)
    assert [v.id for v in page.venues] == ["same"]
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_reset_and_stats():
    pool = VenuePoolManager(InMemoryPoolStore(), make_fetch())
    assert await pool.get_pool_stats("Austin") is None
    await pool.get_next_venues("Austin", 4)
    await pool.get_next_venues("Austin", 4, category="event")
    stats = await pool.get_pool_stats("Austin")
    assert stats["city"] == "austin"
    assert stats["totalSeen"] == 4
    assert stats["lastFetched"] is not None

    assert await pool.reset_pool("Austin") is True
    assert await pool.get_pool_stats("Austin") is None
    assert await pool.store.get("austin|event") is None
    page = await pool.get_next_venues("Austin", 4)
    assert [v.id for v in page.venues] == ["v-0", "v-1", "v-2", "v-3"]


@pytest.mark.asyncio
async def test_concurrent_requests_for_one_city_do_not_overlap():
    async def slow_fetch(request):
        await asyncio.sleep(0.01)
        start = request.offset("v")
        return [PoolLane(key="v", requested=request.limit, venues=[
            Venue(id=f"v-{n}", name="x", category="event") for n in range(start, start + request.limit)
        ])]

    pool = VenuePoolManager(InMemoryPoolStore(), slow_fetch)
    pages = await asyncio.gather(*[pool.get_next_venues("Austin", 10) for _ in range(4)])
    ids = [v.id for page in pages for v in page.venues]
    assert len(ids) == 40
    assert len(set(ids)) == 40


@pytest.mark.asyncio
async def test_memory_store_ttl_expires_pool():
    store = InMemoryPoolStore(ttl=60)
    await store.set("austin", PoolState(city="austin", cursors={"v": 40}))
    assert (await store.get("austin")).cursor == 40
    state, _ = store._pools["austin"]
    store._pools["austin"] = (state, time.time() - 120)
    assert await store.get("austin") is None


@pytest.mark.asyncio
async def test_redis_store_round_trip():
    redis = FakeRedis()
    store = RedisPoolStore(redis, ttl=300)
    state = PoolState(city="austin", seen_ids={"a", "b"}, cursors={"restaurant:yelp": 30, "event:ticketmaster": 10},
                      drained={"event:ticketmaster"}, exhausted=True)
    await store.set("austin", state)
    assert redis.expiry[REDIS_KEY_PREFIX + "austin"] == 300

    loaded = await store.get("austin")
    assert loaded.seen_ids == {"a", "b"}
    assert loaded.cursors == {"restaurant:yelp": 30, "event:ticketmaster": 10}
    assert loaded.cursor == 40
    assert loaded.drained == {"event:ticketmaster"}
    assert loaded.exhausted is True
    assert await store.keys() == ["austin"]
    assert await store.reset("austin") is True
    assert await store.get("austin") is None


@pytest.mark.asyncio
async def test_redis_store_ignores_corrupt_state():
    redis = FakeRedis()
    redis.store[REDIS_KEY_PREFIX + "austin"] = b"{not json"
    redis.store[REDIS_KEY_PREFIX + "dallas"] = b'{"city": "dallas", "cursors": [1, 2]}'
    assert await RedisPoolStore(redis).get("austin") is None
    assert await RedisPoolStore(redis).get("dallas") is None


@pytest.mark.asyncio
async def test_manager_shares_state_through_redis_store():
    redis = FakeRedis()
    first = VenuePoolManager(RedisPoolStore(redis), make_fetch())
    second = VenuePoolManager(RedisPoolStore(redis), make_fetch())
    a = await first.get_next_venues("Austin", 10)
    b = await second.get_next_venues("Austin", 10)
    assert not {v.id for v in a.venues} & {v.id for v in b.venues}
