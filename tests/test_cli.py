from pathlib import Path

import pytest
from typer.testing import CliRunner

from budget_ledger.cli import app
from budget_ledger.records import RECORD_HEADERS
from budget_ledger.repositories import projected_repository, transaction_repository
from budget_ledger.settings import Settings

DATA = Path(__file__).resolve().parent / "data" / "september_export.csv"
HEADER = ",".join(RECORD_HEADERS)

runner = CliRunner()


def invoke(*args: str):
    return runner.invoke(app, list(args))


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    for key, value in (
        ("transaction_file_path", str(tmp_path / "transactions.csv")),
        ("projected_file_path", str(tmp_path / "projected.csv")),
        ("active_statement_period", "September 2025"),
    ):
        result = invoke("settings", "set", key, value)
        assert result.exit_code == 0, result.output
    return tmp_path


def test_settings_set_persists_canonical_period(workspace, home):
    saved = Settings.load(home / "settings.json")
    assert saved.active_statement_period == "SEPTEMBER2025"
    assert saved.recent_transaction_files == [str(workspace / "transactions.csv")]


def test_settings_set_rejects_unknown_key_and_bad_value(workspace):
    result = invoke("settings", "set", "colour", "blue")
    assert result.exit_code == 1
    assert "Error:" in result.output

    result = invoke("settings", "set", "archive_layout", "sideways")
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_import_reports_counts_and_skips_duplicates(workspace):
    result = invoke("import", str(DATA))
    assert result.exit_code == 0, result.output
    assert "Detected: 3  Imported: 3  Duplicates: 0  Errors: 0" in result.output

    again = invoke("import", str(DATA))
    assert "Detected: 3  Imported: 0  Duplicates: 3  Errors: 0" in again.output

    stored = transaction_repository(workspace / "transactions.csv").read_all()
    assert len(stored) == 3
    assert {r.statement_period for r in stored} == {"SEPTEMBER2025"}


def test_import_dry_run_writes_nothing(workspace):
    result = invoke("import", "--dry-run", str(DATA))
    assert result.exit_code == 0, result.output
    assert result.output.count(" new ") == 3
    assert transaction_repository(workspace / "transactions.csv").read_all() == []


def test_import_missing_file_is_an_error(workspace):
    result = invoke("import", str(workspace / "missing.csv"))
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_add_update_delete(workspace):
    coffee = ["--name", "Coffee", "--amount", "4.5", "--account", "Josh", "--category", "Dining"]
    result = invoke("add", *coffee, "--date", "2025-09-04")
    assert result.exit_code == 0, result.output
    assert "Added Coffee $4.50 (Josh)" in result.output

    result = invoke("update", "--field", "Name", "--value", "Coffee", "--amount", "5.25")
    assert result.exit_code == 0, result.output
    repo = transaction_repository(workspace / "transactions.csv")
    [record] = repo.read_all()
    assert str(record.amount) == "5.25"
    assert record.statement_period == "SEPTEMBER2025"

    result = invoke("delete", "--field", "Name", "--value", "Coffee")
    assert result.exit_code == 0, result.output
    assert repo.read_all() == []

    result = invoke("delete", "--field", "Name", "--value", "Coffee")
    assert result.exit_code == 1


def test_add_rejects_bad_amount(workspace):
    coffee = ["--name", "Coffee", "--amount", "lots", "--account", "Josh", "--category", "Dining"]
    result = invoke("add", *coffee)
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_update_rejects_unknown_field(workspace):
    result = invoke("update", "--field", "Colour", "--value", "x", "--amount", "1")
    assert result.exit_code == 1
    assert "unknown field" in result.output


def test_list_personalized_view(workspace):
    invoke("import", str(DATA))
    result = invoke("list", "--owner", "Josh")
    assert result.exit_code == 0, result.output
    assert "Whole Foods [Split Joint]" in result.output
    assert "$42.10" in result.output
    assert "Pharmacy" not in result.output


def test_projection_commands_use_list_positions(workspace):
    for name, amount in (("Rent", "1500"), ("Gym", "30")):
        result = invoke("project", "add", "--name", name, "--amount", amount, "--account", "Joint")
        assert result.exit_code == 0, result.output

    result = invoke("project", "update", "2", "--amount", "35")
    assert result.exit_code == 0, result.output
    repo = projected_repository(workspace / "projected.csv")
    assert [(r.name, str(r.amount)) for r in repo.read_all()] == [
        ("Rent", "1500.00"),
        ("Gym", "35.00"),
    ]

    result = invoke("project", "delete", "1")
    assert result.exit_code == 0, result.output
    assert [r.name for r in repo.read_all()] == ["Gym"]

    result = invoke("project", "delete", "5")
    assert result.exit_code == 1


def test_summaries(workspace):
    invoke("import", str(DATA))
    rent = ["--name", "Rent", "--amount", "1500", "--account", "Joint", "--category", "Housing"]
    invoke("project", "add", *rent)

    payments = invoke("summary", "payments")
    assert payments.exit_code == 0, payments.output
    assert "$64.10" in payments.output  # Josh on Amex: 22.00 + 42.10

    categories = invoke("summary", "categories")
    assert "Housing" in categories.output
    assert "$2618.70" in categories.output

    weekly = invoke("summary", "weekly", "--owner", "Anna")
    assert weekly.exit_code == 0, weekly.output
    assert "Week 1 (2025-09-01 - 2025-09-07): $42.10" in weekly.output
    assert "Week 3 (2025-09-15 - 2025-09-21): $1012.50" in weekly.output

    crit = invoke("summary", "criticality", "--owner", "Josh")
    assert "Essential: $42.10" in crit.output
    assert "NonEssential: $22.00" in crit.output


def test_exports(workspace):
    invoke("import", str(DATA))
    out = workspace / "payments.csv"
    result = invoke("export", "payments", str(out))
    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8").splitlines() == [
        "Card,Josh Payment,Anna Payment",
        "Amex,64.10,42.10",
        "Visa,0.00,1012.50",
    ]

    cats = workspace / "categories.csv"
    assert invoke("export", "categories", str(cats), "--owner", "Josh").exit_code == 0
    assert cats.read_text(encoding="utf-8").splitlines()[-1] == "TOTAL,64.10,0.00"


def test_end_statement_defaults_to_next_month(workspace, home):
    invoke("import", str(DATA))
    invoke("project", "add", "--name", "Rent", "--amount", "1500", "--account", "Joint")

    result = invoke("end-statement")
    assert result.exit_code == 0, result.output
    assert "active period OCTOBER2025" in result.output

    assert (workspace / "transactions.csv").read_text(encoding="utf-8") == HEADER + "\n"
    assert projected_repository(workspace / "projected.csv").read_all() == []
    assert (workspace / "archive" / "SEPTEMBER2025" / "transactions.csv").is_file()
    assert Settings.load(home / "settings.json").active_statement_period == "OCTOBER2025"


def test_end_statement_without_active_period(tmp_path):
    result = invoke("end-statement", "OCTOBER2025")
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_snapshot_backup_and_restore(workspace):
    invoke("import", str(DATA))
    snaps = str(workspace / "snaps")
    result = invoke("snapshot", "backup", "--dir", snaps)
    assert result.exit_code == 0, result.output

    listed = invoke("snapshot", "list", "--dir", snaps)
    assert listed.output.startswith("workspace_")

    transaction_repository(workspace / "transactions.csv").clear()
    result = invoke("snapshot", "restore", "--dir", snaps)
    assert result.exit_code == 0, result.output
    assert "Restored 3 transaction(s) and 0 projection(s)" in result.output
    assert len(transaction_repository(workspace / "transactions.csv").read_all()) == 3


def test_snapshot_restore_without_backups(workspace):
    result = invoke("snapshot", "restore", "--dir", str(workspace / "none"))
    assert result.exit_code == 1
    assert "no snapshots" in result.output


def test_add_prompts_for_missing_fields(workspace, monkeypatch):
    import budget_ledger.cli as cli

    asked: list[str] = []

    def fake_select(options, *, message, **kwargs):
        asked.append(message)
        return "Joint" if message == "Account: " else "Drinks"

    monkeypatch.setattr(cli, "prompt_text", lambda **kwargs: "Tea")
    monkeypatch.setattr(cli, "prompt_amount", lambda **kwargs: "$3.20")
    monkeypatch.setattr(cli, "select_option", fake_select)

    result = invoke("add")
    assert result.exit_code == 0, result.output
    assert asked == ["Account: ", "Category: "]
    [record] = transaction_repository(workspace / "transactions.csv").read_all()
    assert (record.name, str(record.amount), record.account, record.category) == (
        "Tea",
        "3.20",
        "Joint",
        "Drinks",
    )


def test_add_cancelled_at_name_prompt(workspace, monkeypatch):
    import budget_ledger.cli as cli

    monkeypatch.setattr(cli, "prompt_text", lambda **kwargs: None)
    result = invoke("add")
    assert result.exit_code == 1
    assert "cancelled" in result.output
