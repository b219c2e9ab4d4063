import pytest

from conftest import FakeRedis
from datethinker.config import reload_config
from datethinker.src import app as quart_app_module
from datethinker.src.metrics import increment, observe_latency, get_metrics


@pytest.mark.asyncio
async def test_metrics_endpoint(monkeypatch, make_container):
    fake_redis = FakeRedis()
    make_container()
    monkeypatch.setenv('REDIS_URL', 'redis://localhost:6379/0')
    reload_config()
    # Ensure the app startup will pick up our fake redis (patch aioredis.from_url)
    monkeypatch.setattr(quart_app_module.aioredis, 'from_url', lambda url: fake_redis)

    async with quart_app_module.app.test_app() as test_app:
        # instrument some metrics via the helpers once Redis is bound
        await increment('test.counter', 2)
        await observe_latency('test.latency', 100.0)
        await observe_latency('test.latency', 120.0)

        async with test_app.test_client() as client:
            resp = await client.get('/metrics/json')
            assert resp.status_code == 200
            data = await resp.get_json()
            assert data['counters'].get('test.counter') == 2
            assert 'test.latency' in data['latencies']
            assert data['latencies']['test.latency']['count'] == 2
            assert data['latencies']['test.latency']['avg_ms'] == 110.0

    assert fake_redis.store['metrics:counter:test.counter'] == 2


@pytest.mark.asyncio
async def test_metrics_fall_back_to_memory():
    await increment('mem.counter')
    await increment('mem.counter', 4)
    await observe_latency('mem.latency', 10.0)
    await observe_latency('mem.latency', 30.0)
    await observe_latency('mem.latency', 20.0)
    data = await get_metrics()
    assert data['counters']['mem.counter'] == 5
    assert data['latencies']['mem.latency'] == {'count': 3, 'avg_ms': 20.0, 'p50_ms': 20.0}


@pytest.mark.asyncio
async def test_endpoint_requests_are_counted(make_container):
    make_container()
    async with quart_app_module.app.test_app() as test_app:
        async with test_app.test_client() as client:
            await client.get('/api/explore')
            resp = await client.get('/metrics/json')
            data = await resp.get_json()
            assert data['counters']['endpoint.explore.requests'] == 1
