from pathlib import Path

import pytest

from budget_ledger.errors import ImportFormatError
from budget_ledger.importer import (
    dedup_key,
    import_transactions,
    preview_import,
    read_import_file,
    record_dedup_key,
)
from tests.helpers.builders import make_tx

IMPORT_HEADER = "Name,Amount,Category,Criticality,Transaction Date,Account,status,Created time,Payment Method"
AMAZON = 'Amazon,$28.36,music,NonEssential,"August 4, 2025",Josh,,"August 22, 2025 12:17 PM",Amex'


def write_import(tmp_path: Path, *rows: str, header: str = IMPORT_HEADER) -> Path:
    path = tmp_path / "export.csv"
    path.write_text("\n".join([header, *rows]) + "\n", encoding="utf-8")
    return path


def fields(**overrides: str) -> dict[str, str]:
    base = {
        "Name": "Amazon",
        "Amount": "$28.36",
        "Category": "music",
        "Criticality": "NonEssential",
        "Transaction Date": "August 4, 2025",
        "Account": "Josh",
        "status": "",
        "Created time": "August 22, 2025 12:17 PM",
        "Payment Method": "Amex",
    }
    return base | overrides


# ---- dedup key ---------------------------------------------------------------


def test_dedup_key_is_sha256_hex():
    key = dedup_key(fields())
    assert len(key) == 64
    int(key, 16)


@pytest.mark.parametrize(
    "overrides",
    [
        {"Name": "  AMAZON "},
        {"Amount": "28.36"},
        {"Amount": "$28.360"},
        {"Category": "Music"},
        {"Criticality": "non essential"},
        {"Transaction Date": "2025-08-04"},
        {"Transaction Date": "08/04/2025"},
        {"Transaction Date": "Aug 4, 2025"},
        {"Account": "josh"},
        {"Payment Method": "Visa"},
        {"Statement Period": "OCTOBER2025"},
    ],
)
def test_dedup_key_ignores_formatting_drift(overrides):
    assert dedup_key(fields(**overrides)) == dedup_key(fields())


def test_dedup_key_thousands_separator():
    assert dedup_key(fields(Amount="$1,200.00")) == dedup_key(fields(Amount="1200.0"))


@pytest.mark.parametrize(
    "overrides",
    [{"Name": "Amazon Prime"}, {"Amount": "28.37"}, {"Transaction Date": "August 5, 2025"}],
)
def test_dedup_key_distinguishes_real_differences(overrides):
    assert dedup_key(fields(**overrides)) != dedup_key(fields())


def test_stored_record_hashes_like_its_import_row():
    stored = make_tx(
        "Amazon",
        "28.36",
        category="music",
        criticality="NonEssential",
        transaction_date="2025-08-04",
        created_time="August 22, 2025 12:17 PM",
        payment_method="Amex",
        statement_period="AUGUST2025",
    )
    assert record_dedup_key(stored) == dedup_key(fields())


# ---- import file -------------------------------------------------------------


def test_header_columns_match_case_insensitively_and_in_any_order(tmp_path):
    header = "payment method,CREATED TIME,Status,account,transaction date,criticality,category,amount,name,Extra"
    row = 'Amex,"August 22, 2025 12:17 PM",,Josh,"August 4, 2025",NonEssential,music,$28.36,Amazon,ignored'
    rows = read_import_file(write_import(tmp_path, row, header=header))
    assert rows[0].fields["Name"] == "Amazon"
    assert rows[0].fields["Payment Method"] == "Amex"
    assert "Extra" not in rows[0].fields


def test_missing_required_column_fails_before_rows(tmp_path, tx_repo):
    path = write_import(tmp_path, "Amazon,$28.36", header="Name,Amount")
    with pytest.raises(ImportFormatError, match="Category"):
        import_transactions(path, tx_repo)
    assert not tx_repo.path.exists()


def test_missing_and_empty_files_are_format_errors(tmp_path, tx_repo):
    with pytest.raises(ImportFormatError):
        import_transactions(tmp_path / "nope.csv", tx_repo)
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(ImportFormatError):
        import_transactions(empty, tx_repo)


def test_bom_on_header_is_stripped(tmp_path):
    path = tmp_path / "bom.csv"
    path.write_text("\ufeff" + IMPORT_HEADER + "\n" + AMAZON + "\n", encoding="utf-8")
    assert read_import_file(path)[0].fields["Name"] == "Amazon"


# ---- import ------------------------------------------------------------------


def test_import_then_reimport_detects_duplicate(tmp_path, tx_repo):
    path = write_import(tmp_path, AMAZON)

    first = import_transactions(path, tx_repo)
    assert (first.detected_count, first.imported_count, first.duplicate_count) == (1, 1, 0)

    second = import_transactions(path, tx_repo)
    assert (second.detected_count, second.imported_count, second.duplicate_count) == (1, 0, 1)
    assert second.duplicate_lines == [AMAZON.replace('"', "")]
    assert len(tx_repo.read_all()) == 1


def test_duplicates_within_one_batch_are_caught(tmp_path, tx_repo):
    variant = 'amazon,28.36,Music,NonEssential,2025-08-04,Josh,,"August 22, 2025 12:17 PM",Amex'
    result = import_transactions(write_import(tmp_path, AMAZON, variant), tx_repo)
    assert result.imported_count == 1
    assert result.duplicate_count == 1


def test_bad_rows_are_counted_and_do_not_abort(tmp_path, tx_repo):
    rows = [
        "Broken,$1.00",
        'Bad amount,lots,food,Essential,"August 4, 2025",Josh,,,Amex',
        'Bad date,$3.00,food,Essential,someday,Josh,,,Amex',
        AMAZON,
    ]
    result = import_transactions(write_import(tmp_path, *rows), tx_repo)
    assert result.detected_count == 4
    assert result.error_count == 3
    assert result.imported_count == 1
    assert [r.name for r in tx_repo.read_all()] == ["Amazon"]


def test_import_tags_statement_period(tmp_path, tx_repo):
    import_transactions(write_import(tmp_path, AMAZON), tx_repo, statement_period="August 2025")
    assert tx_repo.read_all()[0].statement_period == "AUGUST2025"


def test_blank_account_is_accepted_on_import(tmp_path, tx_repo):
    row = 'Amazon,$28.36,music,NonEssential,"August 4, 2025",,,,Amex'
    result = import_transactions(write_import(tmp_path, row), tx_repo)
    assert result.imported_count == 1


def test_preview_does_not_write(tmp_path, tx_repo):
    tx_repo.add(
        make_tx(
            "Amazon",
            "28.36",
            category="music",
            criticality="NonEssential",
            transaction_date="2025-08-04",
            created_time="August 22, 2025 12:17 PM",
        )
    )
    other = 'Target,$10.00,home,Essential,"August 5, 2025",Anna,,,Visa'
    candidates = preview_import(write_import(tmp_path, AMAZON, other), tx_repo)
    assert [c.duplicate for c in candidates] == [True, False]
    assert [c.is_new for c in candidates] == [False, True]
    assert len(tx_repo.read_all()) == 1
