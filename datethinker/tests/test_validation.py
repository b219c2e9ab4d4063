import pytest

from datethinker.src.validation import sanitize_input, parse_exclude_ids, parse_int


@pytest.mark.parametrize("raw,expected", [
    ("  Austin ", "Austin"),
    ("Food & Wine, Napa", "Food & Wine, Napa"),
    ("<script>", "&lt;script&gt;"),
    ('say "hi"', "say &quot;hi&quot;"),
    ("O'Fallon", "O&#039;Fallon"),
    (None, ""),
])
def test_sanitize_input(raw, expected):
    assert sanitize_input(raw) == expected


def test_parse_exclude_ids():
    assert parse_exclude_ids("a, b,,c") == ["a", "b", "c"]
    assert parse_exclude_ids(["x", " y "]) == ["x", "y"]
    assert parse_exclude_ids(None) == []
    assert parse_exclude_ids(42) == []


def test_parse_int_clamps_and_defaults():
    assert parse_int("7", 20) == 7
    assert parse_int("junk", 20) == 20
    assert parse_int("500", 20, maximum=100) == 100
