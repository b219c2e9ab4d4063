"""
Normalization of raw provider records into ``Venue`` objects.

Each provider returns its own shape; the helpers here map them onto the
shared schema. Rules shared by every provider:
- Missing rating or price stays None (an unrated venue is not a 0-star venue)
- Address, hours and contact details are never invented
- A record without a usable id or name is dropped (None)
"""

import logging
import re
from typing import Optional, Dict, Any, List
from urllib.parse import quote

from datethinker.models import Venue, VenueDetails

logger = logging.getLogger(__name__)

PHOTO_MAX_WIDTH = 600

GOOGLE_PRICE_LEVELS = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}

_DOLLARS = re.compile(r"\${1,4}")


def price_from_dollars(value: Any) -> Optional[int]:
    """'$$' -> 2. Returns None when no dollar run is present."""
    if not value or not isinstance(value, str):
        return None
    m = _DOLLARS.search(value)
    return len(m.group(0)) if m else None


def google_price_level(value: Any) -> Optional[int]:
    """Map Places API v1 enum names (or legacy 0-4 ints) to a price tier."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return GOOGLE_PRICE_LEVELS.get(str(value))


def eventbrite_price(event: Dict[str, Any]) -> Optional[int]:
    """Free events are tier 1; paid events are tiered by minimum ticket price."""
    if event.get("is_free"):
        return 1
    minimum = ((event.get("ticket_availability") or {}).get("minimum_ticket_price") or {})
    amount = None
    if minimum.get("major_value") is not None:
        amount = float(minimum["major_value"])
    elif minimum.get("value") is not None:
        # minor units (cents)
        amount = float(minimum["value"]) / 100
    if amount is None:
        return None
    if amount < 20:
        return 1
    if amount < 50:
        return 2
    if amount < 100:
        return 3
    return 4


def ticketmaster_price(event: Dict[str, Any]) -> Optional[int]:
    """Tier from the average of the first listed price range."""
    ranges = event.get("priceRanges") or []
    if not ranges:
        return None
    low = ranges[0].get("min")
    high = ranges[0].get("max", low)
    if low is None:
        return None
    avg = (float(low) + float(high if high is not None else low)) / 2
    if avg < 30:
        return 2
    if avg < 75:
        return 3
    return 4


def google_photo_url(photo_name: Optional[str], max_width: int = PHOTO_MAX_WIDTH) -> Optional[str]:
    """Photos are served through our own proxy so the API key stays server side."""
    if not photo_name or "/" not in photo_name:
        return None
    return f"/api/place-photo?photoName={quote(photo_name, safe='')}&maxWidth={max_width}"


def _best_ticketmaster_image(images: List[Dict[str, Any]]) -> Optional[str]:
    usable = [img for img in images if (img.get("width") or 0) >= 400 and (img.get("height") or 0) >= 300]
    wide = [img for img in usable if img.get("ratio") == "16_9"]
    candidates = wide or usable or images
    if not candidates:
        return None
    best = max(candidates, key=lambda img: (img.get("width") or 0) * (img.get("height") or 0))
    return best.get("url")


def normalize_google(place: Dict[str, Any], category: str) -> Optional[Venue]:
    place_id = place.get("id")
    name = (place.get("displayName") or {}).get("text") or place.get("name")
    if not place_id or not name:
        return None
    photos = place.get("photos") or []
    return Venue(
        id=f"google-{category}-{place_id}",
        name=name,
        category=category,
        address=place.get("formattedAddress") or None,
        rating=place.get("rating"),
        price=google_price_level(place.get("priceLevel")),
        photo_url=google_photo_url(photos[0].get("name")) if photos else None,
        open_now=(place.get("currentOpeningHours") or {}).get("openNow"),
    )


def normalize_geoapify(feature: Dict[str, Any], category: str) -> Optional[Venue]:
    props = feature.get("properties") or feature
    place_id = props.get("place_id")
    name = props.get("name")
    if not place_id or not name:
        return None
    raw = ((props.get("datasource") or {}).get("raw") or {})
    price = price_from_dollars(props.get("price_range")) or price_from_dollars(raw.get("price_range"))
    return Venue(
        id=f"geoapify-{place_id}",
        name=name,
        category=category,
        address=props.get("formatted") or props.get("address_line2") or None,
        rating=None,
        price=price,
    )


def normalize_yelp(business: Dict[str, Any], category: str) -> Optional[Venue]:
    biz_id = business.get("id")
    name = business.get("name")
    if not biz_id or not name:
        return None
    display = (business.get("location") or {}).get("display_address") or []
    is_closed = business.get("is_closed")
    return Venue(
        id=f"yelp-{biz_id}",
        name=name,
        category=category,
        address=", ".join(display) or None,
        rating=business.get("rating"),
        price=price_from_dollars(business.get("price")),
        photo_url=business.get("image_url") or None,
        open_now=(not is_closed) if is_closed is not None else None,
    )


def normalize_eventbrite(event: Dict[str, Any], category: str = "event") -> Optional[Venue]:
    event_id = event.get("id")
    name = (event.get("name") or {}).get("text")
    if not event_id or not name:
        return None
    venue = event.get("venue") or {}
    address = ((venue.get("address") or {}).get("localized_address_display")) or venue.get("name")
    return Venue(
        id=f"eventbrite-{event_id}",
        name=name,
        category=category,
        address=address or None,
        price=eventbrite_price(event),
        photo_url=(event.get("logo") or {}).get("url") or None,
    )


def normalize_ticketmaster(event: Dict[str, Any], category: str = "event") -> Optional[Venue]:
    event_id = event.get("id")
    name = event.get("name")
    if not event_id or not name:
        return None
    venues = ((event.get("_embedded") or {}).get("venues")) or []
    address = None
    if venues:
        v = venues[0]
        parts = [v.get("name"), (v.get("address") or {}).get("line1"), (v.get("city") or {}).get("name")]
        address = ", ".join(p for p in parts if p) or None
    return Venue(
        id=f"ticketmaster-{event_id}",
        name=name,
        category=category,
        address=address,
        price=ticketmaster_price(event),
        photo_url=_best_ticketmaster_image(event.get("images") or []),
    )


NORMALIZERS = {
    "google": normalize_google,
    "geoapify": normalize_geoapify,
    "yelp": normalize_yelp,
    "eventbrite": normalize_eventbrite,
    "ticketmaster": normalize_ticketmaster,
}


def normalize(raw: Dict[str, Any], provider_name: str, category: str) -> Optional[Venue]:
    """Convert one raw provider record into a Venue.

    Args:
        raw: Record as returned by the provider API
        provider_name: One of the keys of ``NORMALIZERS``
        category: Venue category the record was fetched for

    Returns:
        Venue, or None if the record is unusable
    """
    normalizer = NORMALIZERS.get(provider_name)
    if normalizer is None:
        raise ValueError(f"Unknown provider: {provider_name}")
    try:
        return normalizer(raw, category)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("Dropping malformed %s record: %s", provider_name, e)
        return None


def normalize_all(records: List[Dict[str, Any]], provider_name: str, category: str) -> List[Venue]:
    """Normalize a list of records, dropping unusable ones."""
    venues = []
    for raw in records or []:
        if not isinstance(raw, dict):
            continue
        venue = normalize(raw, provider_name, category)
        if venue is not None:
            venues.append(venue)
    return venues


# Details lookups

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MAX_DETAIL_PHOTOS = 4


def format_hhmm(value: str) -> str:
    """'0930' -> '9:30 AM', '2200' -> '10:00 PM', '0000' -> '12:00 AM'."""
    hour, minute = int(value[:2]), value[2:4]
    suffix = "PM" if hour >= 12 else "AM"
    display = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    return f"{display}:{minute} {suffix}"


def yelp_hours(hours: Any) -> Optional[Dict[str, str]]:
    """Yelp ``hours[0].open`` (day 0 = Monday) as weekday -> 'start - end'; unlisted days are closed."""
    if not hours or not isinstance(hours, list) or not (hours[0] or {}).get("open"):
        return None
    out = {}
    for index, day in enumerate(WEEKDAYS):
        spans = [h for h in hours[0]["open"] if h.get("day") == index]
        if spans:
            out[day] = ", ".join(f"{format_hhmm(h['start'])} - {format_hhmm(h['end'])}" for h in spans)
        else:
            out[day] = "Closed"
    return out


def google_hours(opening_hours: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    """'Monday: 9:00 AM - 5:00 PM' descriptions as weekday -> hours."""
    lines = (opening_hours or {}).get("weekdayDescriptions") or []
    out = {}
    for line in lines:
        day, sep, span = line.partition(": ")
        if sep:
            out[day] = span
    return out or None


def _coordinates(lat: Any, lon: Any) -> Optional[Dict[str, float]]:
    if lat is None or lon is None:
        return None
    return {"latitude": float(lat), "longitude": float(lon)}


def yelp_details(business: Dict[str, Any], category: str) -> Optional[VenueDetails]:
    venue = normalize_yelp(business, category)
    if venue is None:
        return None
    coords = business.get("coordinates") or {}
    titles = [c.get("title") for c in business.get("categories") or [] if c.get("title")]
    return VenueDetails(
        venue=venue,
        description=", ".join(titles) or None,
        phone=business.get("display_phone") or None,
        website=business.get("url") or None,
        photos=list(business.get("photos") or [])[:MAX_DETAIL_PHOTOS],
        hours=yelp_hours(business.get("hours")),
        coordinates=_coordinates(coords.get("latitude"), coords.get("longitude")),
    )


def google_details(place: Dict[str, Any], category: str) -> Optional[VenueDetails]:
    venue = normalize_google(place, category)
    if venue is None:
        return None
    location = place.get("location") or {}
    photos = [google_photo_url(p.get("name")) for p in (place.get("photos") or [])[:MAX_DETAIL_PHOTOS]]
    return VenueDetails(
        venue=venue,
        description=(place.get("editorialSummary") or {}).get("text") or None,
        phone=place.get("nationalPhoneNumber") or None,
        website=place.get("websiteUri") or None,
        photos=[p for p in photos if p],
        hours=google_hours(place.get("regularOpeningHours") or place.get("currentOpeningHours")),
        coordinates=_coordinates(location.get("latitude"), location.get("longitude")),
    )


def geoapify_details(feature: Dict[str, Any], category: str) -> Optional[VenueDetails]:
    venue = normalize_geoapify(feature, category)
    if venue is None:
        return None
    props = feature.get("properties") or feature
    contact = props.get("contact") or {}
    return VenueDetails(
        venue=venue,
        phone=contact.get("phone") or None,
        website=props.get("website") or None,
        coordinates=_coordinates(props.get("lat"), props.get("lon")),
    )


def ticketmaster_details(event: Dict[str, Any]) -> Optional[VenueDetails]:
    venue = normalize_ticketmaster(event)
    if venue is None:
        return None
    start = (event.get("dates") or {}).get("start") or {}
    halls = ((event.get("_embedded") or {}).get("venues")) or []
    hall = halls[0] if halls else {}
    ranges = event.get("priceRanges") or []
    ticket_price = None
    if ranges and ranges[0].get("min") is not None:
        low = float(ranges[0]["min"])
        high = float(ranges[0]["max"]) if ranges[0].get("max") is not None else low
        ticket_price = f"${low:g} - ${high:g}" if high != low else f"${low:g}"
    images = sorted((img for img in event.get("images") or [] if (img.get("width") or 0) >= 400),
                    key=lambda img: img.get("width") or 0, reverse=True)
    labels = []
    for c in event.get("classifications") or []:
        for part in ("segment", "genre"):
            label = (c.get(part) or {}).get("name")
            if label and label != "Undefined" and label not in labels:
                labels.append(label)
    description = ". ".join(p for p in (", ".join(labels), event.get("info")) if p) or None
    location = hall.get("location") or {}
    return VenueDetails(
        venue=venue,
        description=description,
        website=event.get("url") or None,
        photos=[img["url"] for img in images[:MAX_DETAIL_PHOTOS] if img.get("url")],
        coordinates=_coordinates(location.get("latitude"), location.get("longitude")),
        event={
            "date": start.get("localDate"),
            "time": start.get("localTime"),
            "ticketPrice": ticket_price,
            "venue": hall.get("name"),
        },
    )


def eventbrite_details(event: Dict[str, Any]) -> Optional[VenueDetails]:
    venue = normalize_eventbrite(event)
    if venue is None:
        return None
    start = ((event.get("start") or {}).get("local") or "")
    date, _, time_of_day = start.partition("T")
    hall = event.get("venue") or {}
    address = hall.get("address") or {}
    minimum = ((event.get("ticket_availability") or {}).get("minimum_ticket_price") or {})
    if event.get("is_free"):
        ticket_price = "Free"
    else:
        ticket_price = minimum.get("display") or None
    logo = (event.get("logo") or {}).get("url")
    return VenueDetails(
        venue=venue,
        description=(event.get("description") or {}).get("text") or None,
        website=event.get("url") or None,
        photos=[logo] if logo else [],
        coordinates=_coordinates(address.get("latitude"), address.get("longitude")),
        event={
            "date": date or None,
            "time": time_of_day[:5] or None,
            "ticketPrice": ticket_price,
            "venue": hall.get("name"),
        },
    )
