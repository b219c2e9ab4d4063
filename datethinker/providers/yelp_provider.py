"""
Yelp Fusion provider (business search).
"""

from typing import Any, Dict, Optional, List
from urllib.parse import quote

from datethinker.models import Venue, VenueDetails, RESTAURANT, ACTIVITY, OUTDOOR
from .base import VenueProvider, ProviderMetadata, ProviderError
from .normalize import normalize_all, yelp_details
from .utils import http_get

SEARCH_URL = "https://api.yelp.com/v3/businesses/search"
BUSINESS_URL = "https://api.yelp.com/v3/businesses/{id}"

# Yelp caps a single request at 50 and any search at 1000 results
MAX_PER_REQUEST = 50
MAX_TOTAL_RESULTS = 1000

YELP_CATEGORIES = {
    RESTAURANT: "restaurants,food,bars",
    ACTIVITY: ",".join([
        "active", "arts", "museums", "theater", "escapegames", "arcades", "bowling",
        "axethrowing", "paintandsip", "landmarks", "cinema", "comedyclubs",
    ]),
    OUTDOOR: "parks,hiking,beaches,gardens",
}


def category_for(business: Dict[str, Any]) -> str:
    """Venue category from a business's Yelp category aliases; restaurants when nothing matches."""
    aliases = {c.get("alias") for c in business.get("categories") or []}
    for category in (OUTDOOR, ACTIVITY):
        if aliases & set(YELP_CATEGORIES[category].split(",")):
            return category
    return RESTAURANT


class YelpProvider(VenueProvider):
    """Paged Yelp business search, 50 results per request."""

    name = "yelp"
    categories = (RESTAURANT, ACTIVITY, OUTDOOR)
    supports_query = True

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    async def _fetch(self, city, category, limit, offset=0, query=None, price=None,
                     discovery=False, session=None) -> List[Venue]:
        total = min(limit, MAX_TOTAL_RESULTS - offset)
        headers = self._headers()
        venues: List[Venue] = []
        fetched = 0
        while fetched < total:
            page_limit = min(MAX_PER_REQUEST, total - fetched)
            params = {
                "location": city,
                "categories": YELP_CATEGORIES[category],
                "limit": page_limit,
                "offset": offset + fetched,
                "sort_by": "best_match",
            }
            if query:
                params["term"] = query
            if price:
                params["price"] = ",".join(str(p) for p in range(1, int(price) + 1))
            data = await http_get(SEARCH_URL, self.name, params=params, headers=headers,
                                  timeout=self.timeout, session=session)
            if not isinstance(data, dict):
                raise ProviderError("Unexpected business search response", self.name)
            businesses = data.get("businesses") or []
            venues.extend(normalize_all(businesses, self.name, category))
            fetched += len(businesses)
            if len(businesses) < page_limit:
                break
        return venues

    async def _fetch_details(self, venue_id, category=None, session=None) -> Optional[VenueDetails]:
        data = await http_get(BUSINESS_URL.format(id=quote(venue_id, safe="")), self.name,
                              headers=self._headers(), timeout=self.timeout, session=session)
        if not isinstance(data, dict):
            raise ProviderError("Unexpected business details response", self.name)
        return yelp_details(data, category or category_for(data))

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="v3",
            description="Yelp Fusion business search",
            capabilities=["venues", "details"],
            rate_limit=5000,
        )
