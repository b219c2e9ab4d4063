import pytest

from conftest import FakeProvider
from datethinker.models import Venue
from datethinker.providers.multi_provider import merge_unique, async_fetch_venues, async_fetch_query_variants
from datethinker.src.metrics import get_metrics


def _v(venue_id):
    return Venue(id=venue_id, name=venue_id, category="restaurant")


def test_merge_unique_keeps_first_occurrence_in_order():
    merged = merge_unique([[_v("a"), _v("b")], None, [_v("b"), _v("c")], [_v("a")]])
    assert [v.id for v in merged] == ["a", "b", "c"]


def test_merge_unique_respects_exclusions():
    merged = merge_unique([[_v("a"), _v("b")]], exclude_ids=["a"])
    assert [v.id for v in merged] == ["b"]


@pytest.mark.asyncio
async def test_results_follow_provider_order():
    yelp = FakeProvider(name="yelp", total=2)
    google = FakeProvider(name="google", total=2)
    venues = await async_fetch_venues([yelp, google], "Austin", "restaurant", 5)
    assert [v.id for v in venues] == [
        "yelp-restaurant-0", "yelp-restaurant-1", "google-restaurant-0", "google-restaurant-1",
    ]


@pytest.mark.asyncio
async def test_failing_provider_does_not_break_the_others():
    broken = FakeProvider(name="broken", fail=True)
    ok = FakeProvider(name="ok", total=3)
    venues = await async_fetch_venues([broken, ok], "Austin", "activity", 3)
    assert [v.id for v in venues] == ["ok-activity-0", "ok-activity-1", "ok-activity-2"]

    data = await get_metrics()
    assert data["counters"]["provider.broken.errors"] == 1
    assert data["counters"]["provider.ok.calls"] == 1
    assert data["latencies"]["provider.ok"]["count"] == 1


@pytest.mark.asyncio
async def test_query_only_reaches_query_capable_providers():
    capable = FakeProvider(name="google", supports_query=True)
    plain = FakeProvider(name="geoapify")
    await async_fetch_venues([capable, plain], "Austin", "restaurant", 2, query="sushi")
    assert capable.calls[0]["query"] == "sushi"
    assert plain.calls[0]["query"] is None


@pytest.mark.asyncio
async def test_unconfigured_provider_is_an_empty_source():
    keyless = FakeProvider(name="yelp", api_key=None)
    assert await async_fetch_venues([keyless], "Austin", "restaurant", 5) == []
    assert keyless.calls == []


@pytest.mark.asyncio
async def test_query_variants_merge_without_duplicates():
    capable = FakeProvider(name="yelp", supports_query=True, total=2)
    plain = FakeProvider(name="geoapify")
    variants = [("bars", "Austin"), ("bars", "Austin Downtown"), ("pub", "Austin")]
    venues = await async_fetch_query_variants([capable, plain], "restaurant", variants, 2)
    assert plain.calls == []
    assert len(capable.calls) == 3
    assert {c["city"] for c in capable.calls} == {"Austin", "Austin Downtown"}
    assert all(c["discovery"] for c in capable.calls)
    # the two "bars" variants return the same ids
    assert [v.id for v in venues] == [
        "yelp-restaurant-bars-0", "yelp-restaurant-bars-1", "yelp-restaurant-pub-0", "yelp-restaurant-pub-1",
    ]
