"""
Lightweight async metrics: counters and latency samples, kept in Redis when
the app has a Redis connection and in process memory otherwise.

Design:
- Counters: INCRBY on `metrics:counter:{name}`
- Latency samples: LPUSH to `metrics:lat:{name}`, LTRIM to the last 1000
- get_metrics() merges Redis and in-memory values and reports count, avg, p50
"""

from typing import Dict, Any, List, Optional
import logging
import statistics

logger = logging.getLogger(__name__)

COUNTER_PREFIX = "metrics:counter:"
LATENCY_PREFIX = "metrics:lat:"

_MEM_COUNTERS: Dict[str, int] = {}
_MEM_LATS: Dict[str, List[float]] = {}

# Set by the app at startup; None means in-memory only
_redis = None


def bind_redis(client) -> None:
    """Use this Redis client for metrics (None to go back to memory)."""
    global _redis
    _redis = client


def reset_metrics() -> None:
    """Drop in-memory metrics (tests)."""
    _MEM_COUNTERS.clear()
    _MEM_LATS.clear()


def _key_name(key) -> str:
    key = key.decode() if isinstance(key, (bytes, bytearray)) else key
    return key.split(':', 2)[-1]


def _mem_observe(name: str, ms: float, max_samples: int) -> None:
    samples = _MEM_LATS.setdefault(name, [])
    samples.insert(0, ms)
    del samples[max_samples:]


def _summarize(vals: List[float]) -> Dict[str, float]:
    return {
        'count': len(vals),
        'avg_ms': sum(vals) / len(vals),
        'p50_ms': float(statistics.median(vals)),
    }


async def increment(name: str, amount: int = 1) -> None:
    """Increment a named counter by amount"""
    if _redis is not None:
        try:
            await _redis.incrby(f"{COUNTER_PREFIX}{name}", amount)
            return
        except Exception as e:
            logger.debug("metrics incr fell back to memory: %s", e)
    _MEM_COUNTERS[name] = _MEM_COUNTERS.get(name, 0) + amount


async def observe_latency(name: str, ms: float, max_samples: int = 1000) -> None:
    """Record a latency sample (milliseconds) for a named metric"""
    if _redis is not None:
        try:
            key = f"{LATENCY_PREFIX}{name}"
            await _redis.lpush(key, str(ms))
            await _redis.ltrim(key, 0, max_samples - 1)
            return
        except Exception as e:
            logger.debug("metrics latency fell back to memory: %s", e)
    _mem_observe(name, ms, max_samples)


async def _redis_snapshot() -> Optional[Dict[str, Any]]:
    counters: Dict[str, int] = {}
    lats: Dict[str, List[float]] = {}
    try:
        # KEYS is fine for the handful of metric names this service produces
        for k in await _redis.keys(f"{COUNTER_PREFIX}*"):
            v = await _redis.get(k)
            counters[_key_name(k)] = int(v) if v is not None else 0
        for k in await _redis.keys(f"{LATENCY_PREFIX}*"):
            vals = await _redis.lrange(k, 0, -1)
            lats[_key_name(k)] = [float(v) for v in vals]
    except Exception:
        logger.exception("Failed to read metrics from Redis")
        return None
    return {"counters": counters, "latencies": lats}


async def get_metrics() -> Dict[str, Any]:
    """Return a JSON-serializable dict of counters and latency summaries.

    In-memory values collected before Redis was bound are merged in so
    startup instrumentation is not lost.
    """
    counters: Dict[str, int] = {}
    lats: Dict[str, List[float]] = {}
    if _redis is not None:
        snap = await _redis_snapshot()
        if snap:
            counters.update(snap["counters"])
            lats.update(snap["latencies"])

    for n, v in _MEM_COUNTERS.items():
        counters[n] = counters.get(n, 0) + v
    for n, vals in _MEM_LATS.items():
        lats[n] = list(vals) + lats.get(n, [])

    return {
        "counters": counters,
        "latencies": {n: _summarize(vals) for n, vals in lats.items() if vals},
    }
