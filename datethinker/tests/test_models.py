import pytest

from datethinker.models import (
    Venue, normalize_category, category_search_query, is_discovery_mode, DEFAULT_SEARCH_QUERY,
)


@pytest.mark.parametrize("raw,expected", [
    ("restaurants", "restaurant"),
    ("Activities", "activity"),
    ("outdoors", "outdoor"),
    ("outdoor", "outdoor"),
    (" events ", "event"),
    ("event", "event"),
    ("bowling", None),
    ("", None),
    (None, None),
])
def test_normalize_category(raw, expected):
    assert normalize_category(raw) == expected


def test_category_query_wins_over_free_text():
    assert category_search_query("restaurants", "sushi") == "restaurants food dining cafes bars"
    assert category_search_query("outdoors") == "outdoors parks nature trails hiking"
    assert category_search_query(None, "  sushi ") == "sushi"
    assert category_search_query(None, "") == DEFAULT_SEARCH_QUERY


def test_discovery_mode_rule():
    assert is_discovery_mode(None) is True
    assert is_discovery_mode("events") is True
    assert is_discovery_mode("restaurants") is False
    assert is_discovery_mode("outdoors") is False


def test_venue_clamps_and_keeps_unknowns():
    v = Venue(id="yelp-1", name="Spot", category="restaurant", rating=7.2, price=9)
    assert v.rating == 5.0
    assert v.price == 4
    assert v.open_now is None
    assert v.source == "yelp"

    unrated = Venue(id="geoapify-2", name="Park", category="outdoor")
    assert unrated.rating is None


def test_venue_to_dict_serializes_nulls_in_camel_case():
    data = Venue(id="google-restaurant-x", name="Cafe", category="restaurant", open_now=False).to_dict()
    assert data == {
        "id": "google-restaurant-x",
        "name": "Cafe",
        "category": "restaurant",
        "address": None,
        "rating": None,
        "price": None,
        "photoUrl": None,
        "openNow": False,
    }
    assert Venue.from_dict(data).open_now is False


def test_venue_rejects_bad_records():
    with pytest.raises(ValueError):
        Venue(id="", name="x", category="restaurant")
    with pytest.raises(ValueError):
        Venue(id="a-1", name="x", category="bar")
