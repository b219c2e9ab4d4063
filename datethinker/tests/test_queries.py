from datethinker.src.queries import generate_discovery_queries, related_terms, nearby_areas, time_variations


def test_variants_start_with_original_and_are_capped():
    variants = generate_discovery_queries("restaurant", "Austin")
    assert variants[0] == ("restaurant", "Austin")
    assert len(variants) == 8
    assert len(set(variants)) == len(variants)


def test_variant_kinds():
    variants = generate_discovery_queries("restaurant", "Austin", max_variants=20)
    assert ("cafe", "Austin") in variants
    assert ("restaurant", "Austin Downtown") in variants
    assert ("evening restaurant", "Austin") in variants


def test_unrelated_query_has_no_related_terms():
    assert related_terms("sushi") == []
    variants = generate_discovery_queries("sushi", "Austin")
    assert variants[1] == ("sushi", "Austin Downtown")


def test_helpers():
    assert nearby_areas("Austin", 2) == ["Austin Downtown", "Austin Uptown"]
    assert time_variations("jazz", 1) == ["evening jazz"]
    assert related_terms("events concerts", 2) == ["performance", "festival"]
