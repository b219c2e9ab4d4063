import pytest

from datethinker.providers.normalize import (
    normalize, normalize_all, eventbrite_price, ticketmaster_price, google_photo_url,
    format_hhmm, yelp_hours, google_hours,
)


def test_google_place_mapping():
    place = {
        "id": "ChIJ123",
        "displayName": {"text": "Blue Door"},
        "formattedAddress": "1 Main St, Austin",
        "rating": 4.6,
        "priceLevel": "PRICE_LEVEL_EXPENSIVE",
        "photos": [{"name": "places/ChIJ123/photos/abc"}],
        "currentOpeningHours": {"openNow": True},
    }
    v = normalize(place, "google", "restaurant")
    assert v.id == "google-restaurant-ChIJ123"
    assert v.name == "Blue Door"
    assert v.price == 3
    assert v.rating == 4.6
    assert v.open_now is True
    assert v.photo_url == "/api/place-photo?photoName=places%2FChIJ123%2Fphotos%2Fabc&maxWidth=600"


def test_google_missing_fields_stay_none():
    v = normalize({"id": "x", "displayName": {"text": "No Frills"}}, "google", "activity")
    assert v.rating is None
    assert v.price is None
    assert v.open_now is None
    assert v.address is None


def test_geoapify_mapping():
    feature = {"properties": {
        "place_id": "51abc",
        "name": "Corner Pub",
        "formatted": "2 Side St",
        "datasource": {"raw": {"price_range": "$$"}},
    }}
    v = normalize(feature, "geoapify", "restaurant")
    assert v.id == "geoapify-51abc"
    assert v.address == "2 Side St"
    assert v.price == 2
    assert v.rating is None


def test_geoapify_unnamed_place_dropped():
    assert normalize({"properties": {"place_id": "1"}}, "geoapify", "outdoor") is None


def test_yelp_mapping():
    biz = {
        "id": "abc",
        "name": "Taco Shop",
        "rating": 4.0,
        "price": "$$",
        "image_url": "https://img/1.jpg",
        "is_closed": False,
        "location": {"display_address": ["5 Elm St", "Austin, TX 78701"]},
    }
    v = normalize(biz, "yelp", "restaurant")
    assert v.id == "yelp-abc"
    assert v.address == "5 Elm St, Austin, TX 78701"
    assert v.price == 2
    assert v.open_now is True
    assert v.photo_url == "https://img/1.jpg"


def test_yelp_without_is_closed_has_unknown_open_state():
    v = normalize({"id": "z", "name": "Museum"}, "yelp", "activity")
    assert v.open_now is None


def test_eventbrite_mapping_and_price_tiers():
    event = {
        "id": "99",
        "name": {"text": "Jazz Night"},
        "venue": {"address": {"localized_address_display": "Hall, Austin"}},
        "logo": {"url": "https://img/logo.png"},
        "is_free": False,
        "ticket_availability": {"minimum_ticket_price": {"major_value": "35.00"}},
    }
    v = normalize(event, "eventbrite", "event")
    assert v.id == "eventbrite-99"
    assert v.address == "Hall, Austin"
    assert v.price == 2
    assert eventbrite_price({"is_free": True}) == 1
    assert eventbrite_price({"ticket_availability": {"minimum_ticket_price": {"value": 15000}}}) == 4
    assert eventbrite_price({}) is None


def test_ticketmaster_mapping_and_price_tiers():
    event = {
        "id": "tm1",
        "name": "Rock Show",
        "priceRanges": [{"min": 40, "max": 60}],
        "images": [
            {"url": "small.jpg", "width": 100, "height": 56, "ratio": "16_9"},
            {"url": "big.jpg", "width": 1024, "height": 576, "ratio": "16_9"},
        ],
        "_embedded": {"venues": [{"name": "Arena", "address": {"line1": "9 Way"}, "city": {"name": "Austin"}}]},
    }
    v = normalize(event, "ticketmaster", "event")
    assert v.id == "ticketmaster-tm1"
    assert v.address == "Arena, 9 Way, Austin"
    assert v.price == 3
    assert v.photo_url == "big.jpg"
    assert ticketmaster_price({"priceRanges": [{"min": 10, "max": 20}]}) == 2
    assert ticketmaster_price({"priceRanges": [{"min": 100}]}) == 4


def test_normalize_all_drops_unusable_records():
    records = [{"id": "a", "name": "A"}, {"id": "b"}, "junk", {"name": "no id"}]
    venues = normalize_all(records, "yelp", "restaurant")
    assert [v.id for v in venues] == ["yelp-a"]


def test_malformed_record_becomes_none():
    assert normalize({"id": "x", "displayName": "not a dict"}, "google", "restaurant") is None


def test_unknown_provider_rejected():
    with pytest.raises(ValueError):
        normalize({}, "foursquare", "restaurant")


def test_photo_url_requires_resource_name():
    assert google_photo_url(None) is None
    assert google_photo_url("bare") is None


@pytest.mark.parametrize("raw,expected", [
    ("0930", "9:30 AM"),
    ("1200", "12:00 PM"),
    ("2215", "10:15 PM"),
    ("0000", "12:00 AM"),
])
def test_format_hhmm(raw, expected):
    assert format_hhmm(raw) == expected


def test_yelp_hours_split_days_and_closed_days():
    hours = yelp_hours([{"open": [
        {"day": 4, "start": "1100", "end": "1430"},
        {"day": 4, "start": "1700", "end": "2300"},
    ]}])
    assert hours["Friday"] == "11:00 AM - 2:30 PM, 5:00 PM - 11:00 PM"
    assert hours["Sunday"] == "Closed"
    assert list(hours)[0] == "Monday"
    assert yelp_hours(None) is None
    assert yelp_hours([{"open": []}]) is None


def test_google_hours():
    assert google_hours({"weekdayDescriptions": ["Sunday: Closed", "garbage"]}) == {"Sunday": "Closed"}
    assert google_hours(None) is None
