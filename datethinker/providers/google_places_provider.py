"""
Google Places API (v1) provider: text search for venues, place details,
city autocomplete and photo media.
"""

import asyncio
from typing import Optional, List, Dict, Any, Tuple
from urllib.parse import quote

import aiohttp

from datethinker.models import Venue, VenueDetails, RESTAURANT, ACTIVITY, OUTDOOR, EVENT
from .base import VenueProvider, ProviderMetadata, ProviderError, ProviderTimeoutError
from .normalize import normalize_all, google_details
from .utils import get_session, http_get, http_post

SEARCH_TEXT_URL = "https://places.googleapis.com/v1/places:searchText"
PLACE_DETAILS_URL = "https://places.googleapis.com/v1/places/{id}"
AUTOCOMPLETE_URL = "https://places.googleapis.com/v1/places:autocomplete"
PHOTO_MEDIA_URL = "https://places.googleapis.com/v1/{name}/media"

FIELD_MASK = ",".join([
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.rating",
    "places.priceLevel",
    "places.photos",
    "places.currentOpeningHours",
])

DETAILS_FIELD_MASK = ",".join([
    "id",
    "displayName",
    "formattedAddress",
    "rating",
    "priceLevel",
    "photos",
    "currentOpeningHours",
    "regularOpeningHours",
    "nationalPhoneNumber",
    "websiteUri",
    "editorialSummary",
    "location",
])

# category -> (text query template, included place type)
CATEGORY_SEARCHES: Dict[str, Tuple[str, str]] = {
    RESTAURANT: ("restaurants in {city}", "restaurant"),
    ACTIVITY: ("attractions in {city}", "tourist_attraction"),
    OUTDOOR: ("parks in {city}", "park"),
    EVENT: ("events in {city}", "event_venue"),
}

# Bars share the restaurant venue category but use their own search
DRINK_SEARCH: Tuple[str, str] = ("bars in {city}", "bar")
NIGHTLIFE_SEARCH: Tuple[str, str] = ("nightlife in {city}", "night_club")

PRICE_LEVEL_NAMES = {
    1: "PRICE_LEVEL_INEXPENSIVE",
    2: "PRICE_LEVEL_MODERATE",
    3: "PRICE_LEVEL_EXPENSIVE",
    4: "PRICE_LEVEL_VERY_EXPENSIVE",
}

MAX_PAGE_SIZE = 20


class GooglePlacesProvider(VenueProvider):
    """Venue search through Places API v1 ``places:searchText``.

    Text search has no numeric offset; one page of up to 20 places is
    fetched and ``offset`` slices into it, so offsets past the first page
    return nothing.
    """

    name = "google"
    categories = (RESTAURANT, ACTIVITY, OUTDOOR, EVENT)
    supports_query = True

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None,
                 max_results: int = MAX_PAGE_SIZE):
        super().__init__(api_key=api_key, timeout=timeout)
        self.max_results = max(1, min(max_results, MAX_PAGE_SIZE))

    def _headers(self, field_mask: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key or "",
            "X-Goog-FieldMask": field_mask,
        }

    def build_request(self, city: str, category: str, query: Optional[str] = None,
                      price: Optional[int] = None, drink: bool = False,
                      search: Optional[Tuple[str, str]] = None) -> Dict[str, Any]:
        """Build the searchText request body for a category, the bar search or an explicit search."""
        template, place_type = search or (DRINK_SEARCH if drink else CATEGORY_SEARCHES[category])
        body: Dict[str, Any] = {
            "textQuery": f"{query} in {city}" if query else template.format(city=city),
            "maxResultCount": self.max_results,
            "languageCode": "en",
        }
        if not query:
            body["includedType"] = place_type
        # Google only honours price filters on food and drink searches
        if price and price in PRICE_LEVEL_NAMES and (drink or category == RESTAURANT):
            body["priceLevels"] = [PRICE_LEVEL_NAMES[price]]
        return body

    async def search_places(
        self,
        city: str,
        category: str,
        query: Optional[str] = None,
        price: Optional[int] = None,
        drink: bool = False,
        session: Optional[aiohttp.ClientSession] = None,
        search: Optional[Tuple[str, str]] = None,
    ) -> List[Venue]:
        """Run one text search and normalize the places. Raises on failure."""
        body = self.build_request(city, category, query=query, price=price, drink=drink, search=search)
        data = await http_post(
            SEARCH_TEXT_URL,
            self.name,
            json_data=body,
            headers=self._headers(FIELD_MASK),
            timeout=self.timeout,
            session=session,
        )
        if not isinstance(data, dict):
            raise ProviderError("Unexpected searchText response", self.name)
        if data.get("error"):
            raise ProviderError(str(data["error"].get("message", data["error"])), self.name, data["error"])
        places = data.get("places") or []
        self.logger.debug("Google searchText '%s' returned %d places", body["textQuery"], len(places))
        return normalize_all(places, self.name, category)

    async def _fetch(self, city, category, limit, offset=0, query=None, price=None,
                     discovery=False, session=None) -> List[Venue]:
        venues = await self.search_places(city, category, query=query, price=price, session=session)
        return venues[offset:offset + limit]

    async def fetch_search(self, city: str, category: str, search: Tuple[str, str], limit: int,
                           price: Optional[int] = None, drink: bool = False,
                           session: Optional[aiohttp.ClientSession] = None) -> List[Venue]:
        """One explicit (template, place type) search, categorized as ``category``. Never raises."""
        label = search[1]
        if not self.is_configured:
            self.logger.warning("google API key not configured; returning no %s venues", label)
            return []
        try:
            venues = await asyncio.wait_for(
                self.search_places(city, category, price=price, drink=drink, session=session, search=search),
                timeout=self.timeout,
            )
            return venues[:limit]
        except asyncio.TimeoutError:
            self.logger.warning("google %s search timed out for %s", label, city)
        except ProviderError as e:
            self.logger.warning("google %s search failed for %s: %s", label, city, e)
        except Exception:
            self.logger.exception("google %s search raised unexpectedly for %s", label, city)
        await self._record_error()
        return []

    async def fetch_drinks(self, city: str, limit: int, price: Optional[int] = None,
                           session: Optional[aiohttp.ClientSession] = None) -> List[Venue]:
        """Bars and lounges, categorized as restaurants. Never raises."""
        return await self.fetch_search(city, RESTAURANT, DRINK_SEARCH, limit, price=price, drink=True,
                                       session=session)

    async def _fetch_details(self, venue_id, category=None, session=None) -> Optional[VenueDetails]:
        data = await http_get(
            PLACE_DETAILS_URL.format(id=quote(venue_id, safe="")),
            self.name,
            params={"languageCode": "en"},
            headers=self._headers(DETAILS_FIELD_MASK),
            timeout=self.timeout,
            session=session,
        )
        if not isinstance(data, dict):
            raise ProviderError("Unexpected place details response", self.name)
        if data.get("error"):
            raise ProviderError(str(data["error"].get("message", data["error"])), self.name, data["error"])
        return google_details(data, category or ACTIVITY)

    async def autocomplete_cities(self, text: str,
                                  session: Optional[aiohttp.ClientSession] = None) -> List[Dict[str, Any]]:
        """City predictions for a partial name. Empty on any failure."""
        if not self.is_configured or not text.strip():
            return []
        body = {"input": text.strip(), "includedPrimaryTypes": ["(cities)"], "languageCode": "en"}
        headers = {"Content-Type": "application/json", "X-Goog-Api-Key": self.api_key or ""}
        try:
            data = await http_post(AUTOCOMPLETE_URL, self.name, json_data=body, headers=headers,
                                   timeout=self.timeout, session=session)
        except ProviderError as e:
            self.logger.warning("Google autocomplete failed for '%s': %s", text, e)
            return []
        predictions = []
        for suggestion in (data or {}).get("suggestions") or []:
            pred = suggestion.get("placePrediction") or {}
            if not pred.get("placeId"):
                continue
            fmt = pred.get("structuredFormat") or {}
            main_text = (fmt.get("mainText") or {}).get("text") or (pred.get("text") or {}).get("text", "")
            predictions.append({
                "description": (pred.get("text") or {}).get("text", main_text),
                "place_id": pred["placeId"],
                "structured_formatting": {
                    "main_text": main_text,
                    "secondary_text": (fmt.get("secondaryText") or {}).get("text", ""),
                },
            })
        return predictions

    async def fetch_photo(self, photo_name: str, max_width: int = 600, timeout: Optional[float] = None,
                          session: Optional[aiohttp.ClientSession] = None) -> Tuple[bytes, str]:
        """Download photo media bytes.

        Returns:
            (image bytes, content type)

        Raises:
            ProviderError: If the key is missing or the upstream request fails
        """
        if not self.is_configured:
            raise ProviderError("Google API key not configured", self.name)
        url = PHOTO_MEDIA_URL.format(name=photo_name)
        params = {"maxWidthPx": str(max_width), "key": self.api_key}
        try:
            async with get_session(session) as sess:
                async with sess.get(url, params=params, headers={"Accept": "image/*"},
                                    timeout=aiohttp.ClientTimeout(total=timeout or self.timeout)) as resp:
                    if resp.status != 200:
                        raise ProviderError(f"Photo fetch failed: HTTP {resp.status}", self.name,
                                            {"status": resp.status})
                    content = await resp.read()
                    return content, resp.headers.get("Content-Type", "image/jpeg")
        except asyncio.TimeoutError:
            raise ProviderTimeoutError("Photo fetch timed out", self.name)
        except aiohttp.ClientError as e:
            raise ProviderError(f"Photo fetch failed: {e}", self.name)

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="v1",
            description="Google Places API text search",
            capabilities=["venues", "drinks", "autocomplete", "photos", "details"],
        )
