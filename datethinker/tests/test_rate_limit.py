from datethinker.config import reload_config
from datethinker.src.rate_limit import RateLimiter, allow_request


def test_rejects_call_over_limit_within_window():
    limiter = RateLimiter(window=60)
    assert [limiter.check("search:1.2.3.4", 3, now=100 + i) for i in range(4)] == [True, True, True, False]


def test_window_slides():
    limiter = RateLimiter(window=60)
    assert limiter.check("k", 1, now=0)
    assert not limiter.check("k", 1, now=59)
    assert limiter.check("k", 1, now=61)


def test_keys_are_independent():
    limiter = RateLimiter(window=60)
    assert limiter.check("search:a", 1, now=0)
    assert limiter.check("search:b", 1, now=0)
    assert not limiter.check("search:a", 1, now=1)


def test_rejected_calls_do_not_extend_the_window():
    limiter = RateLimiter(window=10)
    assert limiter.check("k", 1, now=0)
    for t in range(1, 10):
        assert not limiter.check("k", 1, now=t)
    assert limiter.check("k", 1, now=10)


def test_allow_request_uses_config(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")
    monkeypatch.setenv("RATE_LIMIT_REFRESH", "1")
    reload_config()
    assert allow_request("refresh", "client") is True
    assert allow_request("refresh", "client") is False
    assert allow_request("refresh", "other-client") is True
    # endpoints without a configured limit are never limited
    assert all(allow_request("healthz", "client") for _ in range(50))


def test_disabled_limiter_allows_everything():
    # conftest disables rate limiting
    assert all(allow_request("search", "client") for _ in range(50))


def test_idle_clients_are_forgotten():
    limiter = RateLimiter(window=60)
    for n in range(100):
        limiter.check(f"search:10.0.0.{n}", 5, now=1000)
    assert len(limiter) == 100
    # once their window has passed, the next check drops every idle key
    limiter.check("search:10.0.1.1", 5, now=1100)
    assert len(limiter) == 1
