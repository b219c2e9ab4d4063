"""
Ticketmaster Discovery API provider.
"""

from typing import List, Optional
from urllib.parse import quote

from datethinker.models import Venue, VenueDetails, EVENT
from .base import VenueProvider, ProviderMetadata, ProviderError
from .normalize import normalize_all, ticketmaster_details
from .utils import http_get

EVENTS_URL = "https://app.ticketmaster.com/discovery/v2/events.json"
EVENT_URL = "https://app.ticketmaster.com/discovery/v2/events/{id}.json"
MAX_PAGE_SIZE = 200


class TicketmasterProvider(VenueProvider):
    name = "ticketmaster"
    categories = (EVENT,)
    supports_query = True

    async def _fetch(self, city, category, limit, offset=0, query=None, price=None,
                     discovery=False, session=None) -> List[Venue]:
        size = min(max(limit, 1), MAX_PAGE_SIZE)
        params = {
            "apikey": self.api_key,
            "city": city,
            "size": size,
            "page": offset // size,
            "sort": "date,asc",
        }
        if query:
            params["keyword"] = query
        data = await http_get(EVENTS_URL, self.name, params=params, timeout=self.timeout, session=session)
        if not isinstance(data, dict):
            raise ProviderError("Unexpected events response", self.name)
        if data.get("fault"):
            raise ProviderError(str(data["fault"].get("faultstring", "fault")), self.name, data["fault"])
        events = (data.get("_embedded") or {}).get("events") or []
        skip = offset % size
        return normalize_all(events, self.name, EVENT)[skip:skip + limit]

    async def _fetch_details(self, venue_id, category=None, session=None) -> Optional[VenueDetails]:
        data = await http_get(EVENT_URL.format(id=quote(venue_id, safe="")), self.name,
                              params={"apikey": self.api_key}, timeout=self.timeout, session=session)
        if not isinstance(data, dict):
            raise ProviderError("Unexpected event details response", self.name)
        if data.get("fault"):
            raise ProviderError(str(data["fault"].get("faultstring", "fault")), self.name, data["fault"])
        return ticketmaster_details(data)

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="v2",
            description="Ticketmaster Discovery event search",
            capabilities=["events", "details"],
            rate_limit=5000,
        )
