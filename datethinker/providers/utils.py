"""
Shared utilities for provider modules.
"""
import asyncio
import aiohttp
import logging
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

from .base import ProviderError, ProviderRateLimitError, ProviderTimeoutError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def get_session(session: Optional[aiohttp.ClientSession] = None):
    """Context manager for aiohttp session handling.

    If session is provided, yields it.
    If not, creates a new session and closes it after use.
    """
    if session is not None:
        yield session
    else:
        async with aiohttp.ClientSession() as new_session:
            yield new_session


async def _request_json(
    method: str,
    url: str,
    provider_name: str,
    params: Optional[Dict[str, Any]] = None,
    json_data: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 15,
    session: Optional[aiohttp.ClientSession] = None,
) -> Any:
    try:
        async with get_session(session) as sess:
            async with sess.request(
                method,
                url,
                params=params,
                json=json_data,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                if resp.status == 429:
                    raise ProviderRateLimitError(f"HTTP 429 from {url}", provider_name)
                if resp.status >= 400:
                    body = await resp.text()
                    raise ProviderError(
                        f"HTTP {resp.status} from {url}",
                        provider_name,
                        {"status": resp.status, "body": body[:500]},
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise ProviderError(f"Malformed JSON from {url}: {e}", provider_name)
    except asyncio.TimeoutError:
        raise ProviderTimeoutError(f"{method} {url} timed out after {timeout}s", provider_name)
    except aiohttp.ClientError as e:
        logger.debug("HTTP %s %s failed: %s", method, url, e)
        raise ProviderError(f"{method} {url} failed: {e}", provider_name)


async def http_get(
    url: str,
    provider_name: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 15,
    session: Optional[aiohttp.ClientSession] = None
) -> Any:
    """
    Unified HTTP GET returning parsed JSON.

    Args:
        url: The URL to request
        provider_name: Provider name for error attribution
        params: Query parameters
        headers: Request headers
        timeout: Request timeout in seconds
        session: Optional aiohttp session to reuse

    Returns:
        Parsed JSON response

    Raises:
        ProviderRateLimitError: On HTTP 429
        ProviderTimeoutError: When the request times out
        ProviderError: On any other non-2xx status, network error or bad JSON
    """
    return await _request_json("GET", url, provider_name, params=params, headers=headers,
                               timeout=timeout, session=session)


async def http_post(
    url: str,
    provider_name: str,
    json_data: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 15,
    session: Optional[aiohttp.ClientSession] = None
) -> Any:
    """
    Unified HTTP POST with a JSON body, returning parsed JSON.

    Raises the same errors as ``http_get``.
    """
    return await _request_json("POST", url, provider_name, params=params, json_data=json_data,
                               headers=headers, timeout=timeout, session=session)
