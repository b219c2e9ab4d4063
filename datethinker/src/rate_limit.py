"""
In-process sliding window rate limiter for the public search endpoints.
"""

import time
from typing import Dict, List, Optional

from datethinker.config import get_config


class RateLimiter:
    """Allow at most ``limit`` calls per ``window`` seconds for each key."""

    def __init__(self, window: float = 60.0):
        self.window = window
        self._calls: Dict[str, List[float]] = {}
        self._last_prune = 0.0

    def check(self, key: str, limit: int, now: Optional[float] = None) -> bool:
        """Record a call for ``key`` and report whether it is within the limit."""
        now = time.time() if now is None else now
        self._prune(now)
        recent = [t for t in self._calls.get(key, []) if now - t < self.window]
        allowed = len(recent) < limit
        if allowed:
            recent.append(now)
        if recent:
            self._calls[key] = recent
        else:
            self._calls.pop(key, None)
        return allowed

    def _prune(self, now: float) -> None:
        """Drop keys whose newest call has left the window, at most once per window."""
        if now - self._last_prune < self.window:
            return
        self._last_prune = now
        for key in [k for k, calls in self._calls.items() if not calls or now - calls[-1] >= self.window]:
            del self._calls[key]

    def __len__(self) -> int:
        return len(self._calls)

    def reset(self) -> None:
        self._calls.clear()


_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = RateLimiter(window=get_config().rate_limit_config.window_seconds)
    return _limiter


def allow_request(endpoint: str, client_id: str) -> bool:
    """Check the configured limit for an endpoint ('search', 'refresh', ...)."""
    cfg = get_config().rate_limit_config
    if not cfg.enabled:
        return True
    limit = cfg.limits.get(endpoint)
    if limit is None:
        return True
    return get_rate_limiter().check(f"{endpoint}:{client_id}", limit)
