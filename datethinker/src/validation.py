"""
Request input helpers shared by the route modules.
"""

from typing import Any, Dict, List, Optional

# '&' is left alone: it is a legal part of venue and place names
_ESCAPES = str.maketrans({"<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#039;"})


def sanitize_input(value: Optional[str]) -> str:
    """Trim and escape markup characters before text is echoed or sent upstream."""
    return (value or "").strip().translate(_ESCAPES)


def parse_exclude_ids(value: Any) -> List[str]:
    """Accept a JSON list or a comma separated string."""
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        return []
    return [str(i).strip() for i in items if str(i).strip()]


def parse_int(value: Any, default: int, minimum: int = 0, maximum: Optional[int] = None) -> int:
    """Lenient int parsing with clamping; junk falls back to the default."""
    try:
        result = int(value)
    except (TypeError, ValueError):
        return default
    result = max(minimum, result)
    if maximum is not None:
        result = min(maximum, result)
    return result


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_filters(value: Any) -> Dict[str, bool]:
    """Search filters as a JSON object or 'restaurants,drinks' style string.

    Defaults to restaurants only.
    """
    if isinstance(value, dict):
        return {str(k): parse_bool(v) for k, v in value.items()}
    if isinstance(value, str) and value.strip():
        return {name.strip(): True for name in value.split(",") if name.strip()}
    return {"restaurants": True}
