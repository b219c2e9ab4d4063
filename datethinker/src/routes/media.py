"""
Media routes: Google Places photo proxy and city autocomplete
"""
from quart import Blueprint, Response, jsonify, request

from datethinker.config import get_config
from datethinker.providers.base import ProviderError
from datethinker.providers.google_places_provider import GooglePlacesProvider
from datethinker.src.validation import parse_int, sanitize_input
from .utils import get_params

bp = Blueprint('media', __name__, url_prefix='/api')


def _google():
    from datethinker.providers.container import get_provider
    provider = get_provider('google')
    if isinstance(provider, GooglePlacesProvider) and provider.is_configured:
        return provider
    return None


@bp.route('/place-photo')
async def place_photo():
    """Proxy Places photo media so the API key never reaches the browser"""
    from datethinker.src.app import app, aiohttp_session

    photo_name = (request.args.get('photoName') or '').strip()
    if not photo_name:
        return jsonify({'error': 'Photo name is required'}), 400
    max_width = parse_int(request.args.get('maxWidth'), 600, minimum=1, maximum=4800)

    google = _google()
    if google is None:
        app.logger.error('Google API key is not configured')
        return jsonify({'error': 'API key not configured'}), 500

    cfg = get_config()
    try:
        content, content_type = await google.fetch_photo(
            photo_name, max_width, timeout=cfg.get_timeout('photo'), session=aiohttp_session)
    except ProviderError as e:
        app.logger.warning(f'Place photo fetch failed for {photo_name}: {e}')
        status = (e.details or {}).get('status')
        return jsonify({'error': 'Failed to fetch photo'}), status if isinstance(status, int) and status >= 400 else 502
    except Exception:
        app.logger.exception('place photo proxy failed')
        return jsonify({'error': 'Failed to fetch photo'}), 500

    return Response(content, content_type=content_type, headers={
        'Cache-Control': f'public, max-age={cfg.cache_config.photo_max_age}',
    })


@bp.route('/city-autocomplete', methods=['GET', 'POST'])
async def city_autocomplete():
    """City suggestions for the search box"""
    from datethinker.src.app import app, aiohttp_session

    params = await get_params()
    query = sanitize_input(params.get('query'))
    if not query:
        return jsonify({'predictions': []}), 400

    google = _google()
    if google is None:
        app.logger.error('Google API key is not configured')
        return jsonify({'predictions': [], 'error': 'API key not configured'}), 500

    try:
        predictions = await google.autocomplete_cities(query, session=aiohttp_session)
    except Exception:
        app.logger.exception('city autocomplete failed')
        return jsonify({'predictions': [], 'error': 'Failed to fetch city suggestions'}), 500
    return jsonify({'predictions': predictions})


def register(app):
    """Register media blueprint with app"""
    app.register_blueprint(bp)
