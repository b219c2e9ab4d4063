"""
Search routes: date plan search (one venue per filter) and single venue refresh
"""
from quart import Blueprint, jsonify

from datethinker.models import normalize_category
from datethinker.src.validation import parse_exclude_ids, parse_filters, parse_int
from .utils import get_params, get_orchestrator, rate_limited

bp = Blueprint('search', __name__, url_prefix='/api')


@bp.route('/search', methods=['GET', 'POST'])
async def search():
    """One venue per enabled filter.

    Request: {"city": "...", "filters": {"restaurants": true, "drinks": true}, "priceRange": 2, "excludeIds": [...]}
    Response: {"restaurant": Venue, "drink": Venue, ...}
    """
    limited = await rate_limited('search')
    if limited:
        return limited
    from datethinker.src.app import app
    try:
        params = await get_params()
        city = (params.get('city') or '').strip()
        if not city:
            return jsonify({'error': 'City is required'}), 400

        results = await get_orchestrator().search_places(
            city,
            filters=parse_filters(params.get('filters')),
            price_range=parse_int(params.get('priceRange'), 0, maximum=4),
            exclude_ids=parse_exclude_ids(params.get('excludeIds')),
        )
        return jsonify({key: venue.to_dict() for key, venue in results.items()})
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception:
        app.logger.exception('search failed')
        return jsonify({'error': 'Failed to search for places'}), 500


@bp.route('/refresh', methods=['POST'])
async def refresh():
    """Replace one venue of a plan.

    Request: {"type": "restaurant", "city": "...", "placeId": "...", "priceRange": 2}
    """
    limited = await rate_limited('refresh')
    if limited:
        return limited
    from datethinker.src.app import app
    try:
        params = await get_params()
        place_type = (params.get('type') or '').strip()
        city = (params.get('city') or '').strip()
        if not place_type or not city:
            return jsonify({'error': 'Missing required parameters'}), 400
        if normalize_category(place_type) is None:
            return jsonify({'error': f'Invalid place type: {place_type}'}), 400

        venue = await get_orchestrator().refresh_place(
            place_type,
            city,
            place_id=str(params['placeId']) if params.get('placeId') else None,
            price_range=parse_int(params.get('priceRange'), 0, maximum=4),
        )
        return jsonify(venue.to_dict())
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception:
        app.logger.exception('refresh failed')
        return jsonify({'error': 'Failed to refresh place'}), 500


def register(app):
    """Register search blueprint with app"""
    app.register_blueprint(bp)
