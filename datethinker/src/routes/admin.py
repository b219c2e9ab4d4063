"""
Admin routes: Health checks, metrics, provider status and pool debugging
"""
import time
from collections import Counter

from quart import Blueprint, jsonify, request

from datethinker.config import get_config
from datethinker.src.metrics import get_metrics as get_metrics_dict
from datethinker.src.validation import parse_int

bp = Blueprint('admin', __name__)


@bp.route('/healthz')
async def healthz():
    """Lightweight health endpoint returning component status."""
    from datethinker.src.app import aiohttp_session, redis_client, orchestrator

    keys = get_config().provider_config.keys_present()
    status = {
        'app': 'ok',
        'time': time.time(),
        'ready': bool(aiohttp_session is not None and orchestrator is not None),
        'redis': bool(redis_client is not None),
        'google': keys['GOOGLE_API_KEY'],
        'geoapify': keys['GEOAPIFY_API_KEY'],
        'yelp': keys['YELP_API_KEY'],
        'eventbrite': keys['EVENTBRITE_API_KEY'],
        'ticketmaster': keys['TICKETMASTER_API_KEY'],
    }
    return jsonify(status)


@bp.route('/admin/keys')
async def keys_status():
    """Report presence (not values) of provider API keys."""
    required = get_config().provider_config.keys_present()
    return jsonify({
        'ok': all(required.values()),
        'keys': required,
        'missing': [k for k, v in required.items() if not v]
    })


@bp.route('/metrics/json')
async def metrics_json():
    """Return simple JSON metrics (counters and latency summaries)"""
    try:
        metrics = await get_metrics_dict()
        return jsonify(metrics)
    except Exception:
        from datethinker.src.app import app
        app.logger.exception('Failed to get metrics')
        return jsonify({'error': 'failed to fetch metrics'}), 500


@bp.route('/admin/providers/health')
async def providers_health():
    """Run every provider's health check."""
    from datethinker.providers.container import get_container
    container = get_container()
    try:
        results = await container.health_check_all()
    except Exception:
        from datethinker.src.app import app
        app.logger.exception('Provider health check failed')
        return jsonify({'error': 'health check failed'}), 500
    return jsonify({
        'providers': {name: result.to_dict() for name, result in results.items()},
        'healthy': container.get_healthy_providers(),
    })


@bp.route('/api/debug/restaurant-pool')
async def debug_pool():
    """Inspect, reset or exercise a city's venue pool.

    Query: ?city=...&action=stats|reset|test&count=20
    """
    from datethinker.src.app import app, orchestrator
    if not get_config().debug_endpoints:
        return jsonify({'error': 'not found'}), 404

    city = (request.args.get('city') or '').strip()
    if not city:
        return jsonify({'error': 'City parameter is required'}), 400
    action = (request.args.get('action') or 'stats').strip().lower()
    if orchestrator is None:
        return jsonify({'error': 'service not ready'}), 503
    pool = orchestrator.pool_manager

    try:
        if action == 'stats':
            stats = await pool.get_pool_stats(city)
            return jsonify({'city': city, 'poolExists': stats is not None, 'stats': stats})

        if action == 'reset':
            await pool.reset_pool(city)
            return jsonify({'message': f'Pool reset for {city}', 'city': city})

        if action == 'test':
            count = parse_int(request.args.get('count'), 20, minimum=1, maximum=100)
            page = await pool.get_next_venues(city, count)
            return jsonify({
                'city': city,
                'requested': count,
                'returned': len(page.venues),
                'hasMore': page.has_more,
                'venues': [v.to_dict() for v in page.venues],
                'poolStats': await pool.get_pool_stats(city),
                'breakdown': dict(Counter(v.category for v in page.venues)),
            })
    except Exception:
        app.logger.exception('pool debug action failed')
        return jsonify({'error': 'pool debug failed'}), 500

    return jsonify({'error': f'Unknown action: {action}'}), 400


def register(app):
    """Register admin blueprint with app"""
    app.register_blueprint(bp)
