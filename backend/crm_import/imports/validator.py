"""Single-rule field validation.

Every rule except `required` accepts an empty value: a missing optional
field is never an error, only a blank required one is.
"""
import math
import re
from datetime import date, datetime
from functools import lru_cache
from typing import Any

from crm_import.imports.registry import LengthBounds, RuleKind, ValidationRule

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d")


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


@lru_cache(maxsize=128)
def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def _is_number(value: Any) -> bool:
    """Finite real number; NaN and infinities are rejected."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    try:
        number = float(str(value).replace(",", "").strip())
    except ValueError:
        return False
    return math.isfinite(number)


def _is_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            datetime.strptime(text, fmt)
            return True
        except ValueError:
            pass
    return False


def validate_field(value: Any, rule: ValidationRule) -> bool:
    """Return True when `value` satisfies `rule`."""
    if rule.kind == RuleKind.required:
        return not is_empty(value)
    if is_empty(value):
        return True

    if rule.kind == RuleKind.email:
        return bool(_EMAIL_RE.match(str(value)))
    if rule.kind == RuleKind.number:
        return _is_number(value)
    if rule.kind == RuleKind.date:
        return _is_date(value)
    if rule.kind == RuleKind.enum:
        try:
            return value in rule.parameter
        except TypeError:  # unhashable value against a set
            return False
    if rule.kind == RuleKind.length:
        bounds: LengthBounds = rule.parameter
        length = len(str(value))
        return length >= bounds.min and (bounds.max is None or length <= bounds.max)
    if rule.kind == RuleKind.pattern:
        return bool(_compile(rule.parameter).search(str(value)))
    return True
