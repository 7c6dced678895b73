from pathlib import Path

import pytest

from budget_ledger.errors import ArchiveError, StatementLifecycleError, ValidationError
from budget_ledger.lifecycle import StatementLifecycle
from budget_ledger.records import RECORD_HEADERS
from budget_ledger.repositories import repositories_for
from budget_ledger.settings import Settings
from tests.helpers.builders import make_projection, make_tx

HEADER = ",".join(RECORD_HEADERS)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        active_statement_period="SEPTEMBER2025",
        transaction_file_path=str(tmp_path / "transactions.csv"),
        projected_file_path=str(tmp_path / "projected.csv"),
    )


@pytest.fixture
def populated(settings: Settings):
    tx, proj = repositories_for(settings)
    tx.overwrite_all(
        [
            make_tx("Groceries", "80", account="Joint", payment_method="Amex"),
            make_tx("Books", "20", account="Josh", payment_method="Amex"),
        ]
    )
    proj.overwrite_all(
        [
            make_projection("Rent", "1500", period="SEPTEMBER2025"),
            make_projection("Rent", "1500", period="OCTOBER2025"),
        ]
    )
    return tx, proj


def test_end_statement_archives_clears_and_advances(tmp_path, settings, populated, home):
    tx, proj = populated
    result = StatementLifecycle(settings).end_statement("October 2025")

    assert result.ok
    assert (result.closed_period, result.new_period) == ("SEPTEMBER2025", "OCTOBER2025")
    assert result.projections_removed == 1

    assert tx.path.read_text(encoding="utf-8") == HEADER + "\n"
    assert [r.statement_period for r in proj.read_all()] == ["OCTOBER2025"]

    folder = tmp_path / "archive" / "SEPTEMBER2025"
    assert result.archive.location == folder
    assert len((folder / "transactions.csv").read_text(encoding="utf-8").splitlines()) == 3
    assert len((folder / "projected.csv").read_text(encoding="utf-8").splitlines()) == 3
    assert (folder / "payment_summary_SEPTEMBER2025.csv").read_text(
        encoding="utf-8"
    ).splitlines() == ["Card,Josh Payment,Anna Payment", "Amex,60.00,40.00"]

    saved = Settings.load(home / "settings.json")
    assert saved.active_statement_period == "OCTOBER2025"
    assert saved.statement_periods == ["SEPTEMBER2025"]
    assert saved.statement_period_files == {"SEPTEMBER2025": str(folder)}


def test_suffix_layout_places_archives_beside_live_file(tmp_path, settings, populated):
    settings.archive_layout = "suffix"
    result = StatementLifecycle(settings).end_statement("OCTOBER2025")
    assert result.archive.location == tmp_path / "budget_SEPTEMBER2025.csv"
    assert (tmp_path / "budget_SEPTEMBER2025.csv").is_file()
    assert (tmp_path / "projected_SEPTEMBER2025.csv").is_file()
    assert (tmp_path / "payment_summary_SEPTEMBER2025.csv").is_file()


def test_missing_projected_file_is_not_fatal(tmp_path, settings):
    tx, _ = repositories_for(settings)
    tx.overwrite_all([make_tx("Books", "20")])
    result = StatementLifecycle(settings).end_statement("OCTOBER2025")
    assert result.ok
    assert result.projections_removed == 0
    assert not (tmp_path / "archive" / "SEPTEMBER2025" / "projected.csv").exists()


def test_requires_active_period(settings, populated):
    settings.active_statement_period = None
    with pytest.raises(StatementLifecycleError, match="no active"):
        StatementLifecycle(settings).end_statement("OCTOBER2025")


def test_requires_transaction_file(settings):
    with pytest.raises(StatementLifecycleError, match="not found"):
        StatementLifecycle(settings).end_statement("OCTOBER2025")


def test_rejects_same_or_invalid_period(settings, populated):
    lifecycle = StatementLifecycle(settings)
    with pytest.raises(StatementLifecycleError):
        lifecycle.end_statement("September 2025")
    with pytest.raises(ValidationError):
        lifecycle.end_statement("Smarch 2025")
    assert settings.active_statement_period == "SEPTEMBER2025"


def test_archive_failure_leaves_live_files_untouched(tmp_path, settings, populated):
    tx, proj = populated
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    settings.archive_dir = str(blocker)
    before = tx.path.read_bytes()

    with pytest.raises(ArchiveError):
        StatementLifecycle(settings).end_statement("OCTOBER2025")

    assert tx.path.read_bytes() == before
    assert len(proj.read_all()) == 2
    assert settings.active_statement_period == "SEPTEMBER2025"
