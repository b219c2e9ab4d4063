"""
DateThinker app.py: Quart application, shared clients and lifecycle hooks
"""

from quart import Quart, jsonify
from quart_cors import cors
import os
import aiohttp
from redis import asyncio as aioredis

from datethinker.config import get_config, setup_logging
from datethinker.providers.container import get_container
from datethinker.src import metrics
from datethinker.src.pool import RedisPoolStore, InMemoryPoolStore
from datethinker.src.search import VenueSearchOrchestrator
from datethinker.src.routes import register_blueprints

app = Quart(__name__)

# Configure CORS
_origins = get_config().cors_origins
cors(app, allow_origin="*" if _origins == ["*"] else _origins, allow_methods=["GET", "POST", "OPTIONS"])

# Global async clients
aiohttp_session: aiohttp.ClientSession | None = None
redis_client: aioredis.Redis | None = None
orchestrator: VenueSearchOrchestrator | None = None


@app.before_serving
async def startup():
    global aiohttp_session, redis_client, orchestrator
    setup_logging()
    cfg = get_config()
    aiohttp_session = aiohttp.ClientSession(headers={"User-Agent": "datethinker-async"})

    redis_client = None
    if cfg.redis_url:
        try:
            redis_client = aioredis.from_url(cfg.redis_url)
            await redis_client.ping()  # type: ignore
            app.logger.info("Redis connected")
        except Exception:
            redis_client = None
            app.logger.warning("Redis not available; running without cache")
    else:
        app.logger.info("REDIS_URL not set; running without cache")
    metrics.bind_redis(redis_client)

    if redis_client is not None:
        pool_store = RedisPoolStore(redis_client, ttl=cfg.pool_config.ttl)
    else:
        pool_store = InMemoryPoolStore(ttl=cfg.pool_config.ttl)

    container = get_container()
    orchestrator = VenueSearchOrchestrator(container, session=aiohttp_session, pool_store=pool_store)
    app.logger.info("Providers registered: %s", ", ".join(container.list_providers()))


@app.after_serving
async def shutdown():
    global aiohttp_session, redis_client, orchestrator
    if orchestrator:
        await orchestrator.container.close_all()
        orchestrator = None
    if aiohttp_session:
        await aiohttp_session.close()
        aiohttp_session = None
    if redis_client:
        await redis_client.close()
        redis_client = None
    metrics.bind_redis(None)


@app.errorhandler(404)
async def not_found(_e):
    return jsonify({"error": "not found"}), 404


register_blueprints(app)


def main():
    # Prefer standard env vars used by many hosts (Render/Heroku/etc.)
    port = int(os.getenv("PORT") or os.getenv("QUART_PORT") or 5010)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
