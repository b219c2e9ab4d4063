"""
Query variations used by discovery mode.

Discovery widens a search by re-running it with related terms, with
neighbouring districts of the city and with date-oriented time modifiers.
Each variant is a (query, city) pair; providers add the city themselves.
"""

from typing import List, Tuple

MAX_DISCOVERY_VARIANTS = 8

RELATED_TERMS = [
    (("restaurant", "food", "dining"),
     ["cafe", "bistro", "eatery", "kitchen", "grill", "bar", "pub", "tavern"]),
    (("activity", "activities", "entertainment", "fun"),
     ["attraction", "museum", "gallery", "theater", "cinema", "bowling", "arcade", "escape room"]),
    (("outdoor", "park", "nature"),
     ["trail", "garden", "beach", "lake", "mountain", "forest", "wildlife", "scenic"]),
    (("event", "concert", "show"),
     ["performance", "festival", "exhibition", "workshop", "class", "tour", "experience"]),
]

AREA_SUFFIXES = ["Downtown", "Uptown", "Midtown", "West", "East", "North", "South", "Center", "District"]
TIME_MODIFIERS = ["evening", "night", "day", "weekend", "date night", "romantic"]


def related_terms(query: str, limit: int = 4) -> List[str]:
    q = query.lower()
    terms: List[str] = []
    for triggers, words in RELATED_TERMS:
        if any(t in q for t in triggers):
            terms.extend(words)
    return terms[:limit]


def nearby_areas(city: str, limit: int = 3) -> List[str]:
    return [f"{city} {suffix}" for suffix in AREA_SUFFIXES[:limit]]


def time_variations(query: str, limit: int = 3) -> List[str]:
    return [f"{modifier} {query}" for modifier in TIME_MODIFIERS[:limit]]


def generate_discovery_queries(base_query: str, city: str,
                               max_variants: int = MAX_DISCOVERY_VARIANTS) -> List[Tuple[str, str]]:
    """Expand one search into up to ``max_variants`` (query, city) pairs.

    Order: the original query, related terms, nearby areas, time variations.
    Duplicates are dropped.
    """
    variants: List[Tuple[str, str]] = [(base_query, city)]
    variants += [(term, city) for term in related_terms(base_query)]
    variants += [(base_query, area) for area in nearby_areas(city)]
    variants += [(variation, city) for variation in time_variations(base_query)]

    unique: List[Tuple[str, str]] = []
    for v in variants:
        if v not in unique:
            unique.append(v)
    return unique[:max_variants]
