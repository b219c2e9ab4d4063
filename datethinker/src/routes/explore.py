"""
Explore routes: pool-backed infinite scroll and the direct discovery feed
"""
import hashlib
import json

from quart import Blueprint, jsonify

from datethinker.config import get_config
from datethinker.src.pool import normalize_city_key
from datethinker.src.validation import parse_bool, parse_exclude_ids, parse_int
from .utils import get_params, get_orchestrator, rate_limited

bp = Blueprint('explore', __name__, url_prefix='/api')

EXPLORE_DEFAULT_LIMIT = 20
EXPLORE_MAX_LIMIT = 100
DISCOVERY_DEFAULT_LIMIT = 150
DISCOVERY_MAX_LIMIT = 300


def build_discovery_cache_key(city, category, query, limit, offset, exclude_ids) -> str:
    """Cache key for a discovery response; exclusions are part of the key."""
    excluded = ",".join(sorted(exclude_ids))
    raw = f"discovery:{normalize_city_key(city)}:{category or ''}:{(query or '').strip().lower()}:{limit}:{offset}:{excluded}"
    return "datethinker:" + hashlib.sha1(raw.encode()).hexdigest()


@bp.route('/explore', methods=['GET', 'POST'])
async def explore():
    """Next page of never-seen venues for a city, mixed across categories.

    Request: {"city": "...", "placeId": "...", "maxResults": 20, "excludeIds": [...], "page": 1}

    With "trending": true the response is a single page of trending venues instead.
    """
    limited = await rate_limited('explore')
    if limited:
        return limited
    from datethinker.src.app import app
    try:
        params = await get_params()
        city = (params.get('city') or '').strip()
        if not city:
            return jsonify({'error': 'City is required'}), 400

        limit = parse_int(params.get('maxResults', params.get('limit')), EXPLORE_DEFAULT_LIMIT,
                          minimum=1, maximum=EXPLORE_MAX_LIMIT)
        page = parse_int(params.get('page'), 1, minimum=1)
        exclude_ids = parse_exclude_ids(params.get('excludeIds'))
        if params.get('placeId'):
            exclude_ids.append(str(params['placeId']))

        if parse_bool(params.get('trending')):
            trending = await get_orchestrator().trending(city)
            app.logger.info('Trending %s: %d venues', city, len(trending))
            return jsonify({
                'venues': [t.to_dict() for t in trending],
                'hasMore': False,
                'page': 1,
                'totalPages': 1,
                'total': len(trending),
                'city': city,
            })

        result = await get_orchestrator().explore(city, max_results=limit, exclude_ids=exclude_ids)
        app.logger.info('Explore %s page %d: %d venues', city, page, len(result.venues))

        response = jsonify({
            'venues': [v.to_dict() for v in result.venues],
            'hasMore': result.has_more,
            'pagination': {
                'currentPage': page,
                'hasMore': result.has_more,
                'nextPage': page + 1 if result.has_more else None,
                'limit': limit,
            },
            'total': len(result.venues),
            'city': city,
        })
        max_age = get_config().cache_config.explore_max_age
        response.headers['Cache-Control'] = f'public, s-maxage={max_age}, stale-while-revalidate={max_age * 2}'
        return response
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception:
        app.logger.exception('explore failed')
        return jsonify({'error': 'Failed to fetch venues'}), 500


@bp.route('/explore/discovery', methods=['GET', 'POST'])
async def explore_discovery():
    """Direct multi-provider search, widened with query variants for events and uncategorized searches.

    Request: {"city": "...", "searchQuery": "...", "category": "events", "limit": 150, "offset": 0, "excludeIds": [...]}
    """
    limited = await rate_limited('discovery')
    if limited:
        return limited
    from datethinker.src.app import app, redis_client
    try:
        params = await get_params()
        city = (params.get('city') or '').strip()
        if not city:
            return jsonify({'error': 'City parameter is required'}), 400

        category = (params.get('category') or '').strip() or None
        query = params.get('searchQuery') or params.get('query') or None
        limit = parse_int(params.get('limit'), DISCOVERY_DEFAULT_LIMIT, minimum=1, maximum=DISCOVERY_MAX_LIMIT)
        offset = parse_int(params.get('offset'), 0)
        exclude_ids = parse_exclude_ids(params.get('excludeIds'))
        cfg = get_config().cache_config

        cache_key = build_discovery_cache_key(city, category, query, limit, offset, exclude_ids)
        payload = None
        if redis_client:
            try:
                cached = await redis_client.get(cache_key)
                if cached:
                    payload = json.loads(cached)
                    app.logger.debug('Discovery cache hit for %s', city)
            except Exception:
                app.logger.exception('discovery cache read failed')

        if payload is None:
            result = await get_orchestrator().search(
                city,
                category=category,
                search_query=query,
                max_results=limit,
                exclude_ids=exclude_ids,
                offset=offset,
            )
            page = offset // limit + 1
            payload = {
                'venues': [v.to_dict() for v in result.venues],
                'hasMore': result.has_more,
                'page': page,
                'totalPages': page + 1 if result.has_more else page,
                'discoveryMode': result.discovery_mode,
                'category': category or '',
            }
            if redis_client:
                try:
                    await redis_client.set(cache_key, json.dumps(payload), ex=cfg.ttl_discovery)
                except Exception:
                    app.logger.exception('discovery cache write failed')

        response = jsonify(payload)
        response.headers['Cache-Control'] = (
            f'public, s-maxage={cfg.ttl_discovery}, stale-while-revalidate={cfg.explore_max_age}'
        )
        return response
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception:
        app.logger.exception('discovery failed')
        return jsonify({'error': 'Failed to fetch discovery venues'}), 500


def register(app):
    """Register explore blueprint with app"""
    app.register_blueprint(bp)
