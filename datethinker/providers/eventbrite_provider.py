"""
Eventbrite provider (event search by city).
"""

from typing import List, Optional
from urllib.parse import quote

from datethinker.models import Venue, VenueDetails, EVENT
from .base import VenueProvider, ProviderMetadata, ProviderError
from .normalize import normalize_all, eventbrite_details
from .utils import http_get

SEARCH_URL = "https://www.eventbriteapi.com/v3/events/search/"
EVENT_URL = "https://www.eventbriteapi.com/v3/events/{id}/"
MAX_PAGE_SIZE = 50


class EventbriteProvider(VenueProvider):
    name = "eventbrite"
    categories = (EVENT,)
    supports_query = True

    async def _fetch(self, city, category, limit, offset=0, query=None, price=None,
                     discovery=False, session=None) -> List[Venue]:
        page_size = min(max(limit, 1), MAX_PAGE_SIZE)
        page = offset // page_size + 1
        skip = offset % page_size
        params = {
            "location.address": city,
            "expand": "venue,ticket_availability",
            "page_size": page_size,
            "page": page,
            "sort_by": "date",
        }
        if query:
            params["q"] = query
        data = await http_get(
            SEARCH_URL,
            self.name,
            params=params,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
            session=session,
        )
        if not isinstance(data, dict):
            raise ProviderError("Unexpected events response", self.name)
        venues = normalize_all(data.get("events") or [], self.name, EVENT)
        return venues[skip:skip + limit]

    async def _fetch_details(self, venue_id, category=None, session=None) -> Optional[VenueDetails]:
        data = await http_get(
            EVENT_URL.format(id=quote(venue_id, safe="")),
            self.name,
            params={"expand": "venue,ticket_availability"},
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
            session=session,
        )
        if not isinstance(data, dict):
            raise ProviderError("Unexpected event details response", self.name)
        return eventbrite_details(data)

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="v3",
            description="Eventbrite event search",
            capabilities=["events", "details"],
        )
