from datetime import date
from decimal import Decimal

import pytest

from budget_ledger.errors import ValidationError
from budget_ledger.records import (
    COMPOSITE_KEY,
    RECORD_HEADERS,
    SPLIT_MARKER,
    BudgetRecord,
    BudgetRecordCodec,
    Criticality,
    RecordKind,
    composite_key,
    new_record,
    same_period,
)
from tests.helpers.builders import make_projection, make_tx


def test_new_record_normalizes_input():
    r = new_record(
        RecordKind.ACTUAL,
        name="  Amazon ",
        amount="$28.36",
        category="music",
        criticality="non-essential",
        transaction_date="August 4, 2025",
        account="Josh",
        statement_period="August 2025",
    )
    assert r.name == "Amazon"
    assert r.amount == Decimal("28.36")
    assert r.criticality is Criticality.NON_ESSENTIAL
    assert r.transaction_date == date(2025, 8, 4)
    assert r.statement_period == "AUGUST2025"


@pytest.mark.parametrize(
    "changes",
    [
        {"name": " "},
        {"amount": "twelve"},
        {"account": ""},
        {"criticality": "important"},
        {"transaction_date": "someday"},
        {"statement_period": "Smarch 2025"},
    ],
)
def test_new_record_rejects_bad_input(changes):
    fields = {"name": "Coffee", "amount": "4.50", "account": "Anna"} | changes
    with pytest.raises(ValidationError):
        new_record(RecordKind.ACTUAL, **fields)


def test_projected_record_requires_period():
    with pytest.raises(ValidationError):
        new_record(RecordKind.PROJECTED, name="Rent", amount="1500", account="Joint")


def test_criticality_parse_is_forgiving_about_spelling():
    assert Criticality.try_parse("Essential") is Criticality.ESSENTIAL
    assert Criticality.try_parse("NON ESSENTIAL") is Criticality.NON_ESSENTIAL
    assert Criticality.try_parse("NonEssential") is Criticality.NON_ESSENTIAL
    assert Criticality.try_parse("") is None


def test_record_helpers():
    joint = make_tx("Dinner" + SPLIT_MARKER, "40", account="joint", category="")
    assert joint.is_joint
    assert joint.is_owned_by("JOINT")
    assert joint.category_label == "(Uncategorized)"
    assert joint.base_name == "Dinner"


def test_to_row_uses_canonical_cells():
    row = make_tx("Coffee", "4.5", transaction_date="Sep 5, 2025").to_row()
    assert list(row) == list(RECORD_HEADERS)
    assert row["Amount"] == "$4.50"
    assert row["Transaction Date"] == "2025-09-05"
    assert row["Criticality"] == "Essential"


def test_codec_reads_stored_rows_leniently():
    codec = BudgetRecordCodec(RecordKind.ACTUAL)
    r = codec.from_row({"Name": "Mystery", "Amount": "n/a", "Transaction Date": "soon"})
    assert r.amount == Decimal("0.00")
    assert r.transaction_date is None
    assert r.criticality is None


def test_codec_match_value_supports_composite_key():
    codec = BudgetRecordCodec(RecordKind.PROJECTED)
    p = make_projection("Rent", "1500")
    assert codec.match_value(p, "Name") == "Rent"
    assert codec.match_value(p, COMPOSITE_KEY) == composite_key(p)
    assert codec.match_value(p, "No Such Field") == ""


def test_composite_key_distinguishes_shared_names():
    a = make_projection("Gym", "30", period="SEPTEMBER2025")
    b = make_projection("Gym", "30", period="OCTOBER2025")
    assert composite_key(a) != composite_key(b)
    assert composite_key(a).split("|")[0] == "Gym"


def test_same_period_compares_canonical_keys():
    assert same_period("SEPTEMBER2025", "September 2025")
    assert not same_period("SEPTEMBER2025", "OCTOBER2025")
    assert not same_period("", "SEPTEMBER2025")


def test_records_are_immutable():
    r = make_tx("Coffee", "4.50")
    with pytest.raises(AttributeError):
        r.amount = Decimal("1.00")  # type: ignore[misc]
    assert isinstance(r, BudgetRecord)
