"""Tests for single-rule field validation."""
from datetime import date

import pytest

from crm_import.imports.registry import LengthBounds, RuleKind, ValidationRule
from crm_import.imports.validator import is_empty, validate_field


def _rule(kind: RuleKind, parameter=None) -> ValidationRule:
    return ValidationRule("field", kind, "bad value", parameter)


@pytest.mark.parametrize("value", [None, "", [], {}])
def test_empty_values(value):
    assert is_empty(value)


@pytest.mark.parametrize("value", [0, False, " ", ["x"]])
def test_non_empty_values(value):
    assert not is_empty(value)


@pytest.mark.parametrize("kind,parameter", [
    (RuleKind.email, None),
    (RuleKind.number, None),
    (RuleKind.date, None),
    (RuleKind.enum, frozenset({"a"})),
    (RuleKind.length, LengthBounds(2, 5)),
    (RuleKind.pattern, r"^\d+$"),
])
def test_optional_rules_accept_empty(kind, parameter):
    assert validate_field(None, _rule(kind, parameter))
    assert validate_field("", _rule(kind, parameter))


def test_required():
    assert validate_field("x", _rule(RuleKind.required))
    assert not validate_field("", _rule(RuleKind.required))
    assert not validate_field(None, _rule(RuleKind.required))


def test_email():
    rule = _rule(RuleKind.email)
    assert validate_field("jane@example.com", rule)
    assert not validate_field("jane@example", rule)
    assert not validate_field("jane example@x.com", rule)


def test_number_tolerates_thousands_separators():
    rule = _rule(RuleKind.number)
    assert validate_field("1,250.50", rule)
    assert validate_field(42, rule)
    assert validate_field("-3", rule)
    assert not validate_field("twelve", rule)
    assert not validate_field(True, rule)


@pytest.mark.parametrize("value", ["nan", "NaN", "inf", "-inf", "Infinity", "1e400", float("nan"), float("inf")])
def test_number_rejects_non_finite(value):
    assert not validate_field(value, _rule(RuleKind.number))


def test_date_formats():
    rule = _rule(RuleKind.date)
    assert validate_field("2025-01-31", rule)
    assert validate_field("01/31/2025", rule)
    assert validate_field("31/01/2025", rule)
    assert validate_field("2025/01/31", rule)
    assert validate_field(date(2025, 1, 1), rule)
    assert not validate_field("Q125", rule)


def test_enum_is_case_sensitive():
    rule = _rule(RuleKind.enum, frozenset({"DXP", "SMBA"}))
    assert validate_field("DXP", rule)
    assert not validate_field("dxp", rule)
    assert not validate_field(["DXP"], rule)


def test_length_bounds():
    rule = _rule(RuleKind.length, LengthBounds(2, 4))
    assert not validate_field("a", rule)
    assert validate_field("ab", rule)
    assert validate_field("abcd", rule)
    assert not validate_field("abcde", rule)
    assert validate_field("a" * 500, _rule(RuleKind.length, LengthBounds(2)))


def test_pattern_searches():
    rule = _rule(RuleKind.pattern, r"[A-Z]{3}\d{3}")
    assert validate_field("job ACM001", rule)
    assert not validate_field("acm001", rule)
