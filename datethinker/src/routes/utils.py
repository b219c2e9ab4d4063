"""
Request helpers shared by the route blueprints
"""
from typing import Any, Dict

from quart import request, jsonify

from datethinker.src.metrics import increment
from datethinker.src.rate_limit import allow_request


async def get_params() -> Dict[str, Any]:
    """Query string merged with the JSON body (body wins), so GET and POST share one parser."""
    params: Dict[str, Any] = dict(request.args.items())
    payload = await request.get_json(silent=True)
    if isinstance(payload, dict):
        params.update(payload)
    return params


def client_id() -> str:
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr or 'unknown'


async def rate_limited(endpoint: str):
    """Return a 429 response when the caller is over the endpoint's limit, else None."""
    await increment(f'endpoint.{endpoint}.requests')
    if allow_request(endpoint, client_id()):
        return None
    await increment(f'endpoint.{endpoint}.rate_limited')
    return jsonify({'error': 'Too many requests, please slow down'}), 429


def get_orchestrator():
    from datethinker.src import app as app_module
    if app_module.orchestrator is None:
        raise RuntimeError('orchestrator not initialized')
    return app_module.orchestrator
