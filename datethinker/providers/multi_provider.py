"""
Concurrent fan-out over venue providers.

Providers are called concurrently; their results are merged in provider
call order (then each provider's own order) and deduplicated by venue id.
There is no score-based ranking and no name-based dedup.
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import aiohttp

from datethinker.models import Venue
from datethinker.src.metrics import increment, observe_latency
from .base import VenueProvider

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 6


def merge_unique(venue_lists: Iterable[Optional[List[Venue]]], exclude_ids: Iterable[str] = ()) -> List[Venue]:
    """Flatten venue lists in order, keeping the first venue per id."""
    seen_ids = set(exclude_ids)
    merged = []
    for venues in venue_lists:
        for venue in venues or []:
            if venue.id in seen_ids:
                continue
            seen_ids.add(venue.id)
            merged.append(venue)
    return merged


async def _call_provider(provider: VenueProvider, city: str, category: str, limit: int,
                         semaphore: Optional[asyncio.Semaphore] = None, **kwargs) -> List[Venue]:
    start = time.time()
    res: List[Venue] = []
    try:
        if semaphore is not None:
            async with semaphore:
                res = await provider.fetch_venues(city, category, limit, **kwargs)
        else:
            res = await provider.fetch_venues(city, category, limit, **kwargs)
        return res
    finally:
        dur = time.time() - start
        logger.info(
            f"Provider timing: {provider.name} took {dur:.2f}s and returned {len(res or [])} items"
        )
        await increment(f"provider.{provider.name}.calls")
        await observe_latency(f"provider.{provider.name}", dur * 1000)


async def _gather_in_order(coros) -> List[List[Venue]]:
    # return_exceptions keeps one broken provider from cancelling the others
    gather_results = await asyncio.gather(*coros, return_exceptions=True)
    results = []
    for idx, res in enumerate(gather_results):
        if isinstance(res, BaseException):
            logger.warning(f"Provider call {idx} raised during gather: {res}")
            results.append([])
            continue
        results.append(res or [])
    return results


async def async_fetch_venues(
    providers: Sequence[VenueProvider],
    city: str,
    category: str,
    limit: int,
    offset: int = 0,
    query: Optional[str] = None,
    price: Optional[int] = None,
    discovery: bool = False,
    session: Optional[aiohttp.ClientSession] = None,
) -> List[Venue]:
    """Ask every provider for ``limit`` venues and merge the answers.

    Args:
        providers: Providers in call order
        city: City name
        category: Venue category
        limit: Venues requested from each provider
        offset: Upstream pagination offset passed to each provider
        query: Free-text query for query-capable providers
        price: Price tier filter hint
        discovery: Widen provider searches
        session: Shared aiohttp session

    Returns:
        Deduplicated venues, provider order preserved
    """
    if not providers or limit <= 0:
        return []
    coros = [
        _call_provider(p, city, category, limit, offset=offset,
                       query=query if p.supports_query else None,
                       price=price, discovery=discovery, session=session)
        for p in providers
    ]
    return merge_unique(await _gather_in_order(coros))


async def async_fetch_per_provider(
    providers: Sequence[VenueProvider],
    city: str,
    category: str,
    limit: int,
    offsets: Optional[Dict[str, int]] = None,
    price: Optional[int] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> List[List[Venue]]:
    """Like ``async_fetch_venues`` but each provider reads from its own offset
    (``offsets[provider.name]``) and its list is returned separately."""
    if not providers or limit <= 0:
        return [[] for _ in providers]
    offsets = offsets or {}
    coros = [
        _call_provider(p, city, category, limit, offset=offsets.get(p.name, 0), price=price, session=session)
        for p in providers
    ]
    return await _gather_in_order(coros)


async def async_fetch_query_variants(
    providers: Sequence[VenueProvider],
    category: str,
    variants: Sequence[Tuple[str, str]],
    limit_per_query: int,
    price: Optional[int] = None,
    session: Optional[aiohttp.ClientSession] = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> List[Venue]:
    """Run several (query, city) variants against the query-capable providers.

    Results are merged variant by variant, then provider by provider.
    """
    capable = [p for p in providers if p.supports_query]
    if not capable or not variants or limit_per_query <= 0:
        return []
    semaphore = asyncio.Semaphore(max(1, concurrency))
    coros = [
        _call_provider(p, variant_city, category, limit_per_query, semaphore=semaphore,
                       query=q, price=price, discovery=True, session=session)
        for q, variant_city in variants
        for p in capable
    ]
    return merge_unique(await _gather_in_order(coros))
