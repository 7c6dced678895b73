from datetime import date, datetime
from decimal import Decimal

import pytest

from budget_ledger.dates import (
    format_date,
    normalize_date_for_key,
    parse_date,
    try_parse_date,
    try_parse_datetime,
)
from budget_ledger.errors import ValidationError
from budget_ledger.money import amount_or_zero, format_amount, format_plain, halve, parse_amount
from budget_ledger.periods import StatementPeriod, canonical_period, is_valid_period


# ---- money -------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12.5", Decimal("12.50")),
        ("$1,200.00", Decimal("1200.00")),
        ("1200.0", Decimal("1200.00")),
        (" $28.36 ", Decimal("28.36")),
        ("-$4.10", Decimal("-4.10")),
        ("($1,234.56)", Decimal("-1234.56")),
        (Decimal("3.333"), Decimal("3.33")),
        (7, Decimal("7.00")),
    ],
)
def test_parse_amount_accepts_common_spellings(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "$", "1.2.3", "NaN", None])
def test_parse_amount_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        parse_amount(raw)


def test_amount_or_zero_is_lenient():
    assert amount_or_zero("oops") == Decimal("0.00")
    assert amount_or_zero("$2") == Decimal("2.00")


def test_halve_rounds_half_up_to_cents():
    assert halve(Decimal("100.00")) == Decimal("50.00")
    assert halve(Decimal("0.05")) == Decimal("0.03")
    assert halve(Decimal("28.37")) == Decimal("14.19")


def test_amount_formatting():
    assert format_amount(Decimal("5")) == "$5.00"
    assert format_amount(Decimal("-1234.5")) == "$-1234.50"
    assert format_plain(Decimal("5")) == "5.00"


# ---- dates -------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw",
    ["August 4, 2025", "Aug 4, 2025", "2025-08-04", "08/04/2025", "8/4/25", "  August  4,  2025 "],
)
def test_accepted_date_patterns(raw):
    assert try_parse_date(raw) == date(2025, 8, 4)


def test_date_with_time_of_day_reads_as_date():
    assert try_parse_date("August 22, 2025 12:17 PM") == date(2025, 8, 22)


def test_parse_date_is_strict():
    assert try_parse_date("someday") is None
    with pytest.raises(ValidationError):
        parse_date("someday")


def test_created_time_parsing():
    assert try_parse_datetime("August 22, 2025 12:17 PM") == datetime(2025, 8, 22, 12, 17)
    assert try_parse_datetime("2025-08-22 08:30:00") == datetime(2025, 8, 22, 8, 30)
    assert try_parse_datetime("") is None
    assert try_parse_datetime("later") is None


def test_normalize_date_for_key():
    assert normalize_date_for_key("August 4, 2025") == "2025-08-04"
    assert normalize_date_for_key("08/04/2025") == "2025-08-04"
    assert normalize_date_for_key("  Someday ") == "someday"
    assert normalize_date_for_key(None) == ""


def test_format_date():
    assert format_date(date(2025, 9, 1)) == "2025-09-01"
    assert format_date(None) == ""


# ---- statement periods -------------------------------------------------------


@pytest.mark.parametrize("raw", ["SEPTEMBER2025", "September 2025", "september2025", " September  2025 "])
def test_period_spellings(raw):
    assert canonical_period(raw) == "SEPTEMBER2025"


def test_abbreviated_month_is_not_a_period():
    assert not is_valid_period("Sep 2025")


def test_period_bounds_and_label():
    p = StatementPeriod.parse("February 2024")
    assert p.key == "FEBRUARY2024"
    assert p.label == "February 2024"
    assert p.first_day == date(2024, 2, 1)
    assert p.last_day == date(2024, 2, 29)
    assert str(p) == "FEBRUARY2024"


def test_period_next_rolls_over_year():
    assert StatementPeriod.parse("SEPTEMBER2025").next().key == "OCTOBER2025"
    assert StatementPeriod.parse("DECEMBER2025").next().key == "JANUARY2026"


def test_period_ordering_is_chronological():
    assert StatementPeriod.parse("DECEMBER2024") < StatementPeriod.parse("JANUARY2025")


@pytest.mark.parametrize("raw", ["", "Smarch 2025", "SEPTEMBER1899", "SEPTEMBER3001", "2025"])
def test_invalid_periods(raw):
    assert not is_valid_period(raw)
    with pytest.raises(ValidationError):
        StatementPeriod.parse(raw)


def test_period_containing_date():
    assert StatementPeriod.containing(date(2025, 7, 15)).key == "JULY2025"
