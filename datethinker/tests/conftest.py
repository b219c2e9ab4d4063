"""
Pytest configuration for DateThinker tests.

Environment variables are set at import time, before any test module
imports ``datethinker.config`` (which reads them once).
"""
import fnmatch
import os

import pytest

os.environ["ENVIRONMENT"] = "testing"
os.environ["REDIS_URL"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEBUG_ENDPOINTS"] = "true"
for _key in ("GOOGLE_API_KEY", "GEOAPIFY_API_KEY", "YELP_API_KEY", "EVENTBRITE_API_KEY", "TICKETMASTER_API_KEY"):
    os.environ[_key] = ""

from datethinker.config import reload_config  # noqa: E402
from datethinker.models import Venue, CATEGORIES  # noqa: E402
from datethinker.providers.base import VenueProvider, ProviderMetadata, ProviderError  # noqa: E402
from datethinker.providers.container import ProviderContainer, set_container, reset_container  # noqa: E402
from datethinker.src import metrics, rate_limit  # noqa: E402


class FakeProvider(VenueProvider):
    """In-memory provider serving ``total`` numbered venues per category.

    Venue ids are ``{name}-{category}-{n}``; ``fail`` makes ``_fetch`` raise.
    """

    def __init__(self, name="fake", categories=tuple(CATEGORIES), total=100, supports_query=False,
                 fail=False, price=None, open_now=None, api_key="test-key", rating=None):
        super().__init__(api_key=api_key, timeout=2.0)
        self.name = name
        self.categories = tuple(categories)
        self.supports_query = supports_query
        self.total = total
        self.fail = fail
        self.price = price
        self.open_now = open_now
        self.rating = rating
        self.calls = []

    async def _fetch(self, city, category, limit, offset=0, query=None, price=None,
                     discovery=False, session=None):
        self.calls.append({"city": city, "category": category, "limit": limit, "offset": offset,
                           "query": query, "price": price, "discovery": discovery})
        if self.fail:
            raise ProviderError("boom", self.name)
        end = min(offset + limit, self.total)
        suffix = f"-{query.replace(' ', '_')}" if query else ""
        return [
            Venue(id=f"{self.name}-{category}{suffix}-{n}", name=f"{self.name} {category} {n}",
                  category=category, price=self.price, open_now=self.open_now, rating=self.rating)
            for n in range(offset, end)
        ]

    async def get_metadata(self):
        return ProviderMetadata(name=self.name, version="test", description="fake", capabilities=["venues"])


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}

    async def ping(self):
        return True

    async def close(self):
        return None

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, key):
        existed = key in self.store
        self.store.pop(key, None)
        return 1 if existed else 0

    async def incrby(self, key, amount):
        self.store[key] = int(self.store.get(key, 0)) + amount

    async def lpush(self, key, value):
        self.store.setdefault(key, []).insert(0, float(value))

    async def ltrim(self, key, start, stop):
        if key in self.store:
            self.store[key] = self.store[key][start:stop + 1]

    async def keys(self, pattern):
        return [k for k in self.store.keys() if fnmatch.fnmatch(k, pattern)]

    async def lrange(self, key, start, stop):
        vals = self.store.get(key, [])
        return vals[start:] if stop == -1 else vals[start:stop + 1]


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables before any tests run."""
    os.environ["TESTING"] = "true"
    yield
    # Cleanup after all tests
    os.environ.pop("TESTING", None)


@pytest.fixture(autouse=True)
def reset_globals(monkeypatch):
    """Fresh config, metrics, rate limiter and provider container for every test."""
    reload_config()
    metrics.bind_redis(None)
    metrics.reset_metrics()
    monkeypatch.setattr(rate_limit, "_limiter", None)
    reset_container()
    yield
    reset_container()
    metrics.bind_redis(None)
    metrics.reset_metrics()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def make_container():
    """Build a container from fake providers and install it globally."""
    def _make(*providers):
        container = ProviderContainer()
        for provider in providers:
            container.register(provider.name, FakeProvider, provider)
        set_container(container)
        return container
    return _make
