"""
Geoapify provider: geocode the city, then search places in a circle
around it.
"""

from typing import Optional, List, Dict, Tuple

from datethinker.config import get_config
from datethinker.models import Venue, VenueDetails, RESTAURANT, ACTIVITY, OUTDOOR, EVENT
from .base import VenueProvider, ProviderMetadata, ProviderError
from .normalize import normalize_all, geoapify_details
from .utils import http_get

GEOCODE_URL = "https://api.geoapify.com/v1/geocode/search"
PLACES_URL = "https://api.geoapify.com/v2/places"
PLACE_DETAILS_URL = "https://api.geoapify.com/v2/place-details"

GEOAPIFY_CATEGORIES: Dict[str, str] = {
    RESTAURANT: "catering.restaurant,catering.cafe,catering.fast_food,catering.bar,catering.pub",
    ACTIVITY: "entertainment,leisure,tourism,sport",
    EVENT: "entertainment.culture,entertainment.music,entertainment.sports",
    OUTDOOR: "natural,leisure.park,sport",
}

MAX_LIMIT = 500


class GeoapifyProvider(VenueProvider):
    """Two-step Geoapify search (geocode, then places by category)."""

    name = "geoapify"
    categories = (RESTAURANT, ACTIVITY, OUTDOOR, EVENT)

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None,
                 radius_m: int = 10000, discovery_radius_m: int = 15000):
        super().__init__(api_key=api_key, timeout=timeout)
        self.radius_m = radius_m
        self.discovery_radius_m = discovery_radius_m
        # city (lowercased) -> (lat, lon); cities do not move
        self._geocode_cache: Dict[str, Tuple[float, float]] = {}

    async def geocode(self, city: str, session=None) -> Optional[Tuple[float, float]]:
        """Resolve a city name to (lat, lon), or None when Geoapify has no match.

        Raises:
            ProviderError: If the geocode request fails
        """
        key = city.strip().lower()
        if key in self._geocode_cache:
            return self._geocode_cache[key]
        data = await http_get(
            GEOCODE_URL,
            self.name,
            params={"text": city, "limit": 1, "apiKey": self.api_key},
            timeout=get_config().get_timeout('geocode'),
            session=session,
        )
        features = (data or {}).get("features") or []
        if not features:
            return None
        props = features[0].get("properties") or {}
        lat, lon = props.get("lat"), props.get("lon")
        if lat is None or lon is None:
            return None
        coords = (float(lat), float(lon))
        self._geocode_cache[key] = coords
        return coords

    async def _fetch(self, city, category, limit, offset=0, query=None, price=None,
                     discovery=False, session=None) -> List[Venue]:
        coords = await self.geocode(city, session=session)
        if coords is None:
            self.logger.info("Geoapify could not geocode %s", city)
            return []
        lat, lon = coords
        radius = self.discovery_radius_m if discovery else self.radius_m
        data = await http_get(
            PLACES_URL,
            self.name,
            params={
                "categories": GEOAPIFY_CATEGORIES[category],
                "filter": f"circle:{lon},{lat},{radius}",
                "limit": min(limit, MAX_LIMIT),
                "offset": offset,
                "apiKey": self.api_key,
            },
            timeout=self.timeout,
            session=session,
        )
        if not isinstance(data, dict):
            raise ProviderError("Unexpected places response", self.name)
        return normalize_all(data.get("features") or [], self.name, category)

    async def _fetch_details(self, venue_id, category=None, session=None) -> Optional[VenueDetails]:
        data = await http_get(
            PLACE_DETAILS_URL,
            self.name,
            params={"id": venue_id, "apiKey": self.api_key},
            timeout=self.timeout,
            session=session,
        )
        if not isinstance(data, dict):
            raise ProviderError("Unexpected place details response", self.name)
        features = data.get("features") or []
        if not features:
            return None
        return geoapify_details(features[0], category or ACTIVITY)

    async def close(self) -> None:
        self._geocode_cache.clear()

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="v2",
            description="Geoapify geocoding and places search",
            capabilities=["venues", "geocode", "details"],
        )
