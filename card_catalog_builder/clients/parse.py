from __future__ import annotations

from typing import Any


def as_str(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def as_opt_str(value: object) -> str | None:
    """Stripped string, or None for missing/blank values."""
    s = as_str(value)
    return s or None


def as_int(value: object) -> int | None:
    """
    Strict numeric conversion.

    - Accepts: int, integral float
    - Rejects: bool, strings (even if numeric)
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    return None


def parse_int_text(value: object) -> int | None:
    """
    Parse an integer from scraped text ("87", " 91 ").

    Use this only where the site is known to render numbers as plain digits.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    if s.isdigit() or (s.startswith("-") and s[1:].isdigit()):
        return int(s)
    return None


def parse_score_100(value: object) -> int | None:
    """Parse a 0-100 score; anything else (tbd, 7.5 user scores, junk) is None."""
    n = parse_int_text(value)
    if n is None or n < 0 or n > 100:
        return None
    return n


def first_str(values: object) -> str | None:
    """First non-empty string of a list (Steam returns developers/publishers as lists)."""
    if isinstance(values, str):
        return as_opt_str(values)
    if not isinstance(values, list):
        return None
    for v in values:
        s = as_opt_str(v)
        if s:
            return s
    return None


def get_list_of_dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def descriptions(value: Any, *, key: str = "description") -> list[str]:
    """Collect `key` from a list of dicts, dropping blanks (Steam genres/categories)."""
    out: list[str] = []
    for item in get_list_of_dicts(value):
        s = as_str(item.get(key))
        if s:
            out.append(s)
    return out
