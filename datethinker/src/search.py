"""
Venue search orchestration.

``VenueSearchOrchestrator`` is the single entry point behind every search
endpoint:
- ``search`` with ``use_pool=True`` serves the explore feed through the
  per-city pool, so "load more" never repeats a venue
- ``search`` with ``use_pool=False`` fans out directly to the providers
  (the discovery feed), optionally widened by discovery-mode query variants
- ``search_places`` picks one venue per requested category for a date plan
- ``refresh_place`` swaps a single venue of a plan for another one
- ``trending`` and ``venue_details`` back the trending feed and the venue
  details page

Provider failures never reach the caller: they arrive here as empty lists,
and an empty result is a valid answer.
"""

import asyncio
import logging
import math
import random
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

import aiohttp

from datethinker.config import get_config
from datethinker.models import (
    Venue, VenueDetails, CATEGORIES, RESTAURANT, ACTIVITY, OUTDOOR, EVENT,
    normalize_category, category_search_query, is_discovery_mode,
)
from datethinker.providers.container import ProviderContainer
from datethinker.providers.google_places_provider import GooglePlacesProvider, CATEGORY_SEARCHES, NIGHTLIFE_SEARCH
from datethinker.providers.multi_provider import (
    async_fetch_venues, async_fetch_per_provider, async_fetch_query_variants, merge_unique,
)
from datethinker.src.pool import (
    VenuePoolManager, InMemoryPoolStore, PoolStore, BatchRequest, PoolLane, compute_has_more,
)
from datethinker.src.queries import generate_discovery_queries
from datethinker.src.validation import sanitize_input

logger = logging.getLogger(__name__)

# Stock imagery is the only thing a fallback venue is allowed to carry
STOCK_IMAGES: Dict[str, List[str]] = {
    RESTAURANT: [
        "https://images.unsplash.com/photo-1517248135467-4c7edcad34c4?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1552566626-52f8b828add9?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1514933651103-005eec06c04b?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1559339352-11d035aa65de?q=80&w=600&auto=format&fit=crop",
    ],
    ACTIVITY: [
        "https://images.unsplash.com/photo-1540575467063-178a50c2df87?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1517457373958-b7bdd4587205?q=80&w=600&auto=format&fit=crop",
    ],
    OUTDOOR: [
        "https://images.unsplash.com/photo-1501785888041-af3ef285b470?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1470071459604-3b5ec3a7fe05?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1441974231531-c6227db76b6e?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1472214103451-9374bd1c798e?q=80&w=600&auto=format&fit=crop",
    ],
    EVENT: [
        "https://images.unsplash.com/photo-1540039155733-5bb30b53aa14?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1493225457124-a3eb161ffa5f?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1501281668745-f7f57925c3b4?q=80&w=600&auto=format&fit=crop",
        "https://images.unsplash.com/photo-1516450360452-9312f5e86fc7?q=80&w=600&auto=format&fit=crop",
    ],
}

FALLBACK_LABELS = {
    RESTAURANT: "Restaurant",
    ACTIVITY: "Activity",
    OUTDOOR: "Outdoor spot",
    EVENT: "Event",
}

# search filter name -> (result key, venue category, bar search)
SEARCH_FILTERS = {
    "restaurants": ("restaurant", RESTAURANT, False),
    "activities": ("activity", ACTIVITY, False),
    "drinks": ("drink", RESTAURANT, True),
    "outdoors": ("outdoor", OUTDOOR, False),
    "events": ("event", EVENT, False),
}

# Random pick among the first few candidates keeps plans varied
PICK_FROM_TOP = 5
SINGLE_PICK_LIMIT = 20
MAX_VARIANT_LIMIT = 20

TRENDING_LIMIT = 8
TRENDING_EVENT_LIMIT = 10
TRENDING_YELP_LIMIT = 5
TRENDING_SEARCH_LIMIT = 10
TRENDING_EVENT_WORDS = ("music", "food")
# (google search, venue category, minimum rating, picks)
TRENDING_SEARCHES = [
    (CATEGORY_SEARCHES[ACTIVITY], ACTIVITY, 4.3, 2),
    (NIGHTLIFE_SEARCH, ACTIVITY, 4.2, 1),
    (CATEGORY_SEARCHES[OUTDOOR], OUTDOOR, 4.4, 1),
]


def create_fallback_venue(city: str, category: str, price: Optional[int] = None) -> Venue:
    """Placeholder venue used when no provider had anything.

    Only a generic name and a stock image; no address, rating, hours or
    contact details are invented.
    """
    stamp = int(time.time() * 1000)
    suffix = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=9))
    return Venue(
        id=f"fallback-{category}-{stamp}-{suffix}",
        name=f"{FALLBACK_LABELS[category]} in {city}",
        category=category,
        price=price or None,
        photo_url=random.choice(STOCK_IMAGES[category]),
    )


def raw_place_id(venue_id: str) -> str:
    """Strip the source prefix: 'google-restaurant-abc' -> 'abc', 'yelp-x' -> 'x'."""
    if venue_id.startswith("google-"):
        parts = venue_id.split("-", 2)
        return parts[2] if len(parts) == 3 else venue_id
    return venue_id.split("-", 1)[1] if "-" in venue_id else venue_id


def _is_excluded(venue: Venue, excluded: Set[str]) -> bool:
    return venue.id in excluded or raw_place_id(venue.id) in excluded


def interleave(lists: List[List[Venue]]) -> List[Venue]:
    """Round-robin merge so a page mixes categories."""
    out = []
    for i in range(max((len(lst) for lst in lists), default=0)):
        for lst in lists:
            if i < len(lst):
                out.append(lst[i])
    return out


def split_evenly(total: int, parts: int) -> List[int]:
    """12 over 4 -> [3, 3, 3, 3]; 10 over 4 -> [3, 3, 2, 2]."""
    base, remainder = divmod(total, parts)
    return [base + (1 if i < remainder else 0) for i in range(parts)]


def lane_key(category: str, provider_name: str) -> str:
    return f"{category}:{provider_name}"


def trending_reason(venue: Venue) -> str:
    if venue.category == EVENT:
        return "Hot event"
    rating = venue.rating or 0.0
    if rating >= 4.7:
        return "Highly rated"
    if rating >= 4.5:
        return "Popular choice"
    if venue.category == RESTAURANT:
        return "Food hotspot"
    return "Trending now"


def _rated(venues: Iterable[Venue], minimum: float) -> List[Venue]:
    return [v for v in venues if v.rating is not None and v.rating >= minimum]


@dataclass
class TrendingVenue:
    venue: Venue
    reason: str

    def to_dict(self) -> Dict:
        data = self.venue.to_dict()
        data.update({"trending": True, "trending_reason": self.reason})
        return data


def apply_filters(venues: Iterable[Venue], category: Optional[str] = None, price: Optional[int] = None,
                  open_now: Optional[bool] = None) -> List[Venue]:
    """Category must match; unknown price passes a price filter; open_now=True needs a known open venue."""
    out = []
    for v in venues:
        if category and v.category != category:
            continue
        if price and v.price is not None and v.price > price:
            continue
        if open_now and v.open_now is not True:
            continue
        out.append(v)
    return out


@dataclass
class SearchResult:
    venues: List[Venue]
    has_more: bool
    discovery_mode: bool
    category: Optional[str]
    query: str


class VenueSearchOrchestrator:
    """Fans searches out to providers and applies dedup, exclusion and filters."""

    def __init__(self, container: ProviderContainer, pool_manager: Optional[VenuePoolManager] = None,
                 session: Optional[aiohttp.ClientSession] = None, pool_store: Optional[PoolStore] = None):
        cfg = get_config()
        self.container = container
        self.session = session
        # Without an explicit manager the pool is fed by the balanced explore batch
        self.pool_manager = pool_manager or VenuePoolManager(
            pool_store or InMemoryPoolStore(ttl=cfg.pool_config.ttl),
            self.fetch_explore_batch,
            batch_size=cfg.pool_config.batch_size,
            max_rounds=cfg.pool_config.max_rounds,
        )

    async def fetch_explore_batch(self, request: BatchRequest) -> List[PoolLane]:
        """Lanes for the explore pool, one per (category, provider).

        The limit is split over the requested categories (all four for the
        mixed feed); each provider reads from its own lane's cursor.
        """
        categories = [request.category] if request.category else list(CATEGORIES)
        plans = []
        for cat, target in zip(categories, split_evenly(request.limit, len(categories))):
            providers = [p for p in self.container.providers_for(cat)
                         if lane_key(cat, p.name) not in request.drained]
            if providers and target > 0:
                plans.append((cat, target, providers))
        per_category = await asyncio.gather(*[
            async_fetch_per_provider(providers, request.city, cat, target,
                                     offsets={p.name: request.offset(lane_key(cat, p.name)) for p in providers},
                                     price=request.price, session=self.session)
            for cat, target, providers in plans
        ])
        return [
            PoolLane(key=lane_key(cat, p.name), venues=venues, requested=target, group=cat)
            for (cat, target, providers), lists in zip(plans, per_category)
            for p, venues in zip(providers, lists)
        ]

    async def search(
        self,
        city: str,
        category: Optional[str] = None,
        search_query: Optional[str] = None,
        max_results: int = 20,
        exclude_ids: Iterable[str] = (),
        offset: int = 0,
        discovery_mode: Optional[bool] = None,
        use_pool: bool = False,
        price: Optional[int] = None,
        open_now: Optional[bool] = None,
    ) -> SearchResult:
        """Search venues in a city.

        Args:
            city: City name (required)
            category: 'restaurants', 'activities', 'outdoors', 'events' or singular forms
            search_query: Free text used when no category is given
            max_results: Upper bound on returned venues
            exclude_ids: Ids the client already shows
            offset: Skip this many matches (direct path only; the pool keeps its own cursor)
            discovery_mode: Override the default (on for events and for no category)
            use_pool: Serve through the per-city pool
            price: Maximum price tier
            open_now: Only venues known to be open

        Returns:
            SearchResult; venues may be fewer than requested or empty

        Raises:
            ValueError: If city is empty
        """
        city = sanitize_input(city)
        if not city:
            raise ValueError("city is required")
        cat = normalize_category(category)
        query = category_search_query(category, search_query)
        discovery = is_discovery_mode(category) if discovery_mode is None else bool(discovery_mode)
        excluded = set(exclude_ids or ())
        max_results = max(0, int(max_results))

        if use_pool:
            # Filtered pages come from a pool of their own; rejected venues are never marked seen
            variant = "|".join(part for part in (f"p{price}" if price else "", "open" if open_now else "") if part)
            page = await self.pool_manager.get_next_venues(
                city, max_results, excluded, category=cat, price=price,
                accept=lambda v: bool(apply_filters([v], cat, price, open_now)), variant=variant,
            )
            return SearchResult(page.venues, page.has_more, discovery, cat, query)

        target = offset + max_results
        categories = [cat] if cat else list(CATEGORIES)
        # A user query only replaces provider defaults when no category tab is selected
        provider_query = (search_query or "").strip() or None
        if cat:
            provider_query = None

        limits = [target] if cat else [max(1, math.ceil(target / len(categories)))] * len(categories)
        base_lists = await asyncio.gather(*[
            async_fetch_venues(self.container.providers_for(c), city, c, lim, query=provider_query,
                               price=price, discovery=discovery, session=self.session)
            for c, lim in zip(categories, limits)
        ])
        lists = [interleave(list(base_lists))]

        if discovery:
            variants = generate_discovery_queries(query, city)
            per_query = min(MAX_VARIANT_LIMIT, max(5, math.ceil(target / max(1, len(variants)))))
            variant_lists = await asyncio.gather(*[
                async_fetch_query_variants(self.container.providers_for(c, query_capable=True), c,
                                           variants, per_query, price=price, session=self.session)
                for c in categories
            ])
            lists.append(interleave(list(variant_lists)))

        merged = merge_unique(lists)
        candidates = [v for v in merged if not _is_excluded(v, excluded)]
        candidates = apply_filters(candidates, cat, price, open_now)[offset:]
        venues = candidates[:max_results]
        has_more = compute_has_more(len(candidates), max_results)
        logger.info("Search %s category=%s discovery=%s: %d merged, %d returned",
                    city, cat, discovery, len(merged), len(venues))
        return SearchResult(venues, has_more, discovery, cat, query)

    async def explore(self, city: str, max_results: int = 20, exclude_ids: Iterable[str] = ()) -> SearchResult:
        """Next page of the city's mixed explore feed, never repeating a venue."""
        return await self.search(city, max_results=max_results, exclude_ids=exclude_ids,
                                 use_pool=True, discovery_mode=False)

    def _google(self) -> Optional[GooglePlacesProvider]:
        provider = self.container.get("google")
        return provider if isinstance(provider, GooglePlacesProvider) else None

    async def _single_candidates(self, city: str, category: str, drink: bool, price: Optional[int]) -> List[Venue]:
        google = self._google()
        candidates: List[Venue] = []
        if google is not None:
            if drink:
                candidates = await google.fetch_drinks(city, SINGLE_PICK_LIMIT, price=price, session=self.session)
            else:
                candidates = await google.fetch_venues(city, category, SINGLE_PICK_LIMIT, price=price,
                                                       session=self.session)
        if not candidates:
            others = [p for p in self.container.providers_for(category) if p is not google]
            candidates = await async_fetch_venues(others, city, category, SINGLE_PICK_LIMIT,
                                                  query="bars" if drink else None, price=price,
                                                  session=self.session)
        return apply_filters(candidates, category, price)

    async def _pick_one(self, city: str, category: str, drink: bool, price: Optional[int],
                        excluded: Set[str]) -> Venue:
        candidates = await self._single_candidates(city, category, drink, price)
        candidates = [v for v in candidates if not _is_excluded(v, excluded)]
        if candidates:
            return random.choice(candidates[:PICK_FROM_TOP])
        logger.warning("No new %s venues found in %s, using fallback", "drink" if drink else category, city)
        return create_fallback_venue(city, category, price)

    async def search_places(self, city: str, filters: Optional[Dict[str, bool]] = None,
                            price_range: int = 0, exclude_ids: Iterable[str] = ()) -> Dict[str, Venue]:
        """One venue per enabled filter, keyed 'restaurant', 'activity', 'drink', 'outdoor', 'event'.

        Raises:
            ValueError: If city is empty
        """
        city = sanitize_input(city)
        if not city:
            raise ValueError("city is required")
        filters = filters if filters is not None else {"restaurants": True}
        excluded = set(exclude_ids or ())
        price = price_range or None

        wanted = [(name, slot) for name, slot in SEARCH_FILTERS.items() if filters.get(name)]
        picks = await asyncio.gather(*[
            self._pick_one(city, category, drink, price, excluded)
            for _, (_, category, drink) in wanted
        ])
        return {key: venue for (_, (key, _, _)), venue in zip(wanted, picks)}

    async def refresh_place(self, category: str, city: str, place_id: Optional[str] = None,
                            price_range: int = 0) -> Venue:
        """Replacement for one venue of a plan.

        Raises:
            ValueError: If city is empty or the category is unknown
        """
        cat = normalize_category(category)
        if cat is None:
            raise ValueError(f"Invalid place type: {category}")
        city = sanitize_input(city)
        if not city:
            raise ValueError("city is required")
        excluded = {place_id, raw_place_id(place_id)} if place_id else set()
        return await self._pick_one(city, cat, False, price_range or None, excluded)

    async def trending(self, city: str, limit: int = TRENDING_LIMIT) -> List[TrendingVenue]:
        """Highly rated venues and notable events for a city, best rated first.

        Each source contributes a few picks above its own rating floor; a
        source that is missing or fails contributes nothing.

        Raises:
            ValueError: If city is empty
        """
        city = sanitize_input(city)
        if not city:
            raise ValueError("city is required")
        google = self._google()
        yelp = self.container.get("yelp")

        async def nothing() -> List[Venue]:
            return []

        events, restaurants, *searches = await asyncio.gather(
            async_fetch_venues(self.container.providers_for(EVENT), city, EVENT, TRENDING_EVENT_LIMIT,
                               session=self.session),
            yelp.fetch_venues(city, RESTAURANT, TRENDING_YELP_LIMIT, session=self.session)
            if yelp is not None else nothing(),
            *[
                google.fetch_search(city, cat, search, TRENDING_SEARCH_LIMIT, session=self.session)
                if google is not None else nothing()
                for search, cat, _, _ in TRENDING_SEARCHES
            ],
        )
        notable = [v for v in events
                   if (v.rating or 0.0) >= 4.5 or any(w in v.name.lower() for w in TRENDING_EVENT_WORDS)]
        picks = [notable[:2], _rated(restaurants, 4.5)[:3]]
        for (_, _, minimum, count), venues in zip(TRENDING_SEARCHES, searches):
            picks.append(_rated(venues, minimum)[:count])

        venues = sorted(merge_unique(picks), key=lambda v: v.rating or 0.0, reverse=True)[:max(0, limit)]
        logger.info("Trending %s: %d venues", city, len(venues))
        return [TrendingVenue(v, trending_reason(v)) for v in venues]

    async def venue_details(self, venue_id: str) -> Optional[VenueDetails]:
        """Full details for a venue id as served by the search endpoints.

        The id prefix names the source; None when that source is unknown,
        the id is a fallback placeholder, or the lookup finds nothing.
        """
        source, _, rest = (venue_id or "").partition("-")
        if not rest or source == "fallback":
            return None
        provider = self.container.get(source)
        if provider is None:
            return None
        category = None
        if source == "google":
            parts = venue_id.split("-", 2)
            category = normalize_category(parts[1]) if len(parts) == 3 else None
        return await provider.fetch_details(raw_place_id(venue_id), category=category, session=self.session)
