"""Per-field value transforms referenced by import schemas.

Each transform takes the raw cell string and returns the normalized value.
A transform that raises is caught by the RowTransformer and reported as a
warning; the field is then treated as empty.
"""
import json
import re
from datetime import date

from crm_import.imports.heuristics import DEFAULT_QUARTER_SENTINELS

TRUE_VALUES = frozenset({"true", "1", "yes", "y"})
FALSE_VALUES = frozenset({"false", "0", "no", "n"})

_QUARTER_RE = re.compile(r"^Q([1-4])\s*'?(\d{4}|\d{2})$", re.IGNORECASE)
_LIST_SPLIT_RE = re.compile(r"[;|,]")


def strip(value: str) -> str:
    return value.strip()


def lower_strip(value: str) -> str:
    return value.strip().lower()


def upper_strip(value: str) -> str:
    return value.strip().upper()


def normalize_boolean(value: str) -> str:
    """Canonicalize yes/no style flags to "true"/"false".

    Unrecognized input is returned unchanged so an enum rule can reject it.
    """
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return "true"
    if lowered in FALSE_VALUES:
        return "false"
    return value.strip()


def is_truthy(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUE_VALUES


def parse_quarter(value: str, sentinels: frozenset[str] = DEFAULT_QUARTER_SENTINELS) -> date | None:
    """Parse `Q125`, `Q1 25` or `Q1 2025` to the first day of the quarter.

    Empty input and placeholder strings ("Opportunity", "Exploration", ...)
    mean "no committed date" and return None.

    Raises:
        ValueError: for anything else.
    """
    text = (value or "").strip()
    if not text or text.lower() in sentinels:
        return None
    match = _QUARTER_RE.match(text)
    if not match:
        raise ValueError(f"Unrecognized quarter '{text}' (expected e.g. Q125 or Q1 25)")
    quarter = int(match.group(1))
    year = int(match.group(2))
    if year < 100:
        year += 2000
    return date(year, (quarter - 1) * 3 + 1, 1)


def parse_list(value: str) -> list[str]:
    """`["TMT", "Services"]` or `TMT; Services` -> ["TMT", "Services"]."""
    text = (value or "").strip()
    if not text:
        return []
    if text.startswith("["):
        items = json.loads(text)
        if not isinstance(items, list):
            raise ValueError("Expected a JSON list")
        return [str(i).strip() for i in items if str(i).strip()]
    return [part.strip() for part in _LIST_SPLIT_RE.split(text) if part.strip()]
