"""
Venue record shared by every provider, the pool and the HTTP layer.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

RESTAURANT = "restaurant"
ACTIVITY = "activity"
OUTDOOR = "outdoor"
EVENT = "event"

CATEGORIES: List[str] = [RESTAURANT, ACTIVITY, OUTDOOR, EVENT]

# Request-side category names (plural UI tabs) mapped onto venue categories
CATEGORY_ALIASES: Dict[str, str] = {
    "restaurants": RESTAURANT,
    "restaurant": RESTAURANT,
    "activities": ACTIVITY,
    "activity": ACTIVITY,
    "outdoors": OUTDOOR,
    "outdoor": OUTDOOR,
    "events": EVENT,
    "event": EVENT,
}

# Broad text queries used when a category tab is selected
CATEGORY_SEARCH_QUERIES: Dict[str, str] = {
    RESTAURANT: "restaurants food dining cafes bars",
    ACTIVITY: "activities entertainment recreation fun things to do",
    OUTDOOR: "outdoors parks nature trails hiking",
    EVENT: "events concerts shows performances",
}

DEFAULT_SEARCH_QUERY = "restaurant"


def normalize_category(category: Optional[str]) -> Optional[str]:
    """Map a request category ('restaurants', 'Events', ...) to a venue category.

    Returns None for empty or unknown values.
    """
    if not category:
        return None
    return CATEGORY_ALIASES.get(str(category).strip().lower())


def category_search_query(category: Optional[str], search_query: Optional[str] = None) -> str:
    """Pick the text query for a search.

    A known category always wins over the free-text query; otherwise the
    caller's query is used, defaulting to a plain restaurant search.
    """
    cat = normalize_category(category)
    if cat:
        return CATEGORY_SEARCH_QUERIES[cat]
    query = (search_query or "").strip()
    return query or DEFAULT_SEARCH_QUERY


def is_discovery_mode(category: Optional[str]) -> bool:
    """Discovery mode applies to event searches and to searches with no category."""
    cat = normalize_category(category)
    return cat is None or cat == EVENT


def _clamp(value, low, high):
    return max(low, min(high, value))


@dataclass
class Venue:
    """A normalized restaurant, activity, outdoor spot or event.

    ``rating``, ``price``, ``address``, ``photo_url`` and ``open_now`` are
    optional: None means the provider did not say, which is not the same as
    a zero rating or a closed venue.
    """
    id: str
    name: str
    category: str
    address: Optional[str] = None
    rating: Optional[float] = None
    price: Optional[int] = None
    photo_url: Optional[str] = None
    open_now: Optional[bool] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("venue id is required")
        if not self.name:
            raise ValueError("venue name is required")
        if self.category not in CATEGORIES:
            raise ValueError(f"invalid venue category: {self.category}")
        if self.rating is not None:
            self.rating = float(_clamp(float(self.rating), 0.0, 5.0))
        if self.price is not None:
            self.price = int(_clamp(int(self.price), 0, 4))

    @property
    def source(self) -> str:
        """Provider name taken from the id prefix (attribution only)."""
        return self.id.split("-", 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "address": self.address,
            "rating": self.rating,
            "price": self.price,
            "photoUrl": self.photo_url,
            "openNow": self.open_now,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Venue":
        return cls(
            id=data["id"],
            name=data["name"],
            category=data["category"],
            address=data.get("address"),
            rating=data.get("rating"),
            price=data.get("price"),
            photo_url=data.get("photoUrl"),
            open_now=data.get("openNow"),
        )


@dataclass
class VenueDetails:
    """Everything a source knows about one venue beyond the ``Venue`` fields.

    Only what the upstream record carries is filled in; ``hours`` maps a
    weekday name to a display string, ``event`` holds date, time, ticket
    price and hall name for events.
    """
    venue: Venue
    description: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    photos: List[str] = field(default_factory=list)
    hours: Optional[Dict[str, str]] = None
    coordinates: Optional[Dict[str, float]] = None
    event: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.venue.to_dict()
        data.update({
            "description": self.description,
            "phone": self.phone,
            "website": self.website,
            "photos": list(self.photos),
            "hours": self.hours,
            "coordinates": self.coordinates,
            "eventDetails": self.event,
        })
        return data
