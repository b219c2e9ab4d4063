"""
Venue details route: one venue looked up again at its source
"""
from quart import Blueprint, jsonify

from .utils import get_orchestrator, rate_limited

bp = Blueprint('details', __name__, url_prefix='/api')


@bp.route('/venue-details/<path:venue_id>')
async def venue_details(venue_id):
    """Description, contact, photos, hours and event facts for a venue id from any search endpoint"""
    limited = await rate_limited('details')
    if limited:
        return limited
    from datethinker.src.app import app
    try:
        details = await get_orchestrator().venue_details(venue_id.strip())
        if details is None:
            return jsonify({'error': 'Venue details not found'}), 404
        return jsonify(details.to_dict())
    except Exception:
        app.logger.exception('venue details failed for %s', venue_id)
        return jsonify({'error': 'Failed to fetch venue details'}), 500


def register(app):
    """Register details blueprint with app"""
    app.register_blueprint(bp)
