# ruff: noqa: I001
"""CLI for the ``budget_ledger`` package.

This module exposes callable command handlers (``cmd_import``,
``cmd_end_statement``, ...) that return process exit codes, and a Typer-based
console interface wrapping them. Environment variables (``BUDGET_LEDGER_HOME``,
``BUDGET_LEDGER_LOG_LEVEL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Ledger logic lives in the other
modules of the package; handlers only load settings, call into it and print.

Expected failures are printed as a single ``Error: ...`` line on stderr with
exit code 1.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from pathlib import Path

import typer
from dotenv import load_dotenv
from pydantic import ValidationError as SettingsValidationError

from .aggregation import (
    category_summary,
    criticality_totals,
    filter_for_period,
    joint_view,
    payment_summary,
    personalize,
    sort_newest_first,
    weekly_breakdown,
)
from .dates import format_date, parse_date
from .errors import BudgetLedgerError
from .exporters import export_category_summary, export_payment_summary
from .importer import import_transactions, preview_import
from .lifecycle import StatementLifecycle
from .logging_setup import configure_logging
from .money import format_amount
from .periods import StatementPeriod, canonical_period
from .projections import (
    add_projection,
    delete_projection,
    projections_for_period,
    update_projection,
)
from .records import (
    RECORD_HEADERS,
    COMPOSITE_KEY,
    BudgetRecord,
    RecordKind,
    new_record,
)
from .repositories import repositories_for
from .settings import Settings
from .snapshot import DirectorySnapshotStore, apply_snapshot, build_snapshot
from .term_ui import prompt_amount, prompt_text, select_option

CREATED_TIME_FORMAT = "%B %d, %Y %I:%M %p"


# ---- Small module-level helpers used by CLI commands -------------------------


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _print_records(records: Sequence[BudgetRecord]) -> None:
    if not records:
        print("(no records)")
        return
    for i, r in enumerate(records, start=1):
        print(
            f"{i:>3}  {format_date(r.transaction_date) or '-':<10}  {r.name:<32}  "
            f"{format_amount(r.amount):>10}  {r.category_label:<20}  {r.account:<8}  "
            f"{r.payment_method}"
        )


def _active_period(settings: Settings) -> str:
    if not settings.active_statement_period:
        raise BudgetLedgerError(
            "no active statement period; run `settings set active_statement_period <PERIOD>`"
        )
    return settings.active_statement_period


def _statement_bounds(
    settings: Settings, start: str | None, end: str | None
) -> tuple[date, date]:
    """Explicit dates win; otherwise the active period's calendar month."""

    if start and end:
        return parse_date(start), parse_date(end)
    period = StatementPeriod.parse(_active_period(settings))
    first = parse_date(start) if start else period.first_day
    last = parse_date(end) if end else period.last_day
    return first, last


def _known_categories(records: Iterable[BudgetRecord]) -> list[str]:
    return sorted({r.category for r in records if r.category}, key=str.lower)


def _merged(existing: BudgetRecord, **changes: object) -> BudgetRecord:
    """Re-validate ``existing`` with the non-None ``changes`` applied."""

    fields: dict[str, object] = {
        "name": existing.name,
        "amount": existing.amount,
        "category": existing.category,
        "criticality": existing.criticality,
        "transaction_date": existing.transaction_date,
        "account": existing.account,
        "status": existing.status,
        "created_time": existing.created_time,
        "payment_method": existing.payment_method,
        "statement_period": existing.statement_period,
    }
    fields.update({k: v for k, v in changes.items() if v is not None})
    return new_record(existing.kind, require_account=False, **fields)  # type: ignore[arg-type]


# ---- Command handlers ---------------------------------------------------------


def cmd_import(csv_path: str, *, dry_run: bool = False) -> int:
    """Import an export file into the live transaction file.

    New rows are tagged with the active statement period when one is set.
    With ``dry_run`` the rows are classified and printed but nothing is written.
    """

    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    period = settings.active_statement_period or ""
    try:
        if dry_run:
            candidates = preview_import(csv_path, tx_repo, statement_period=period)
            for cand in candidates:
                status = "error" if cand.error else "duplicate" if cand.duplicate else "new"
                print(f"{cand.line_no:>4}  {status:<9}  {cand.line}")
            return 0
        result = import_transactions(csv_path, tx_repo, statement_period=period)
    except BudgetLedgerError as e:
        return _error(str(e))

    print(
        f"Detected: {result.detected_count}  Imported: {result.imported_count}  "
        f"Duplicates: {result.duplicate_count}  Errors: {result.error_count}"
    )
    for line in result.duplicate_lines:
        print(f"duplicate: {line}")
    for line in result.error_lines:
        print(f"error: {line}", file=sys.stderr)
    return 0


def cmd_add(
    *,
    name: str | None = None,
    amount: str | None = None,
    account: str | None = None,
    category: str | None = None,
    criticality: str | None = None,
    transaction_date: str | None = None,
    status: str = "",
    created_time: str | None = None,
    payment_method: str = "",
) -> int:
    """Append one transaction; prompts for whatever was not given.

    Esc at the name prompt cancels without writing.
    """

    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    try:
        if name is None:
            name = prompt_text(message="Name: ", required=True)
            if name is None:
                return _error("cancelled")
        if amount is None:
            amount = prompt_amount()
        if account is None:
            account = select_option(
                [*settings.owners, settings.joint_account], message="Account: "
            )
        if category is None:
            category = select_option(
                _known_categories(tx_repo.read_all()), message="Category: ", allow_new=True
            )
        record = new_record(
            RecordKind.ACTUAL,
            name=name,
            amount=amount,
            category=category,
            criticality=criticality,
            transaction_date=transaction_date,
            account=account,
            status=status,
            created_time=created_time or datetime.now().strftime(CREATED_TIME_FORMAT),
            payment_method=payment_method,
            statement_period=settings.active_statement_period or "",
        )
        tx_repo.add(record)
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Added {record.name} {format_amount(record.amount)} ({record.account})")
    return 0


def cmd_list(*, owner: str | None = None, joint: bool = False) -> int:
    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    records = tx_repo.read_all()
    if joint:
        records = joint_view(records, joint_account=settings.joint_account)
    elif owner:
        records = personalize(
            records, owner, joint_account=settings.joint_account, mark_split=True
        )
    _print_records(sort_newest_first(records))
    return 0


def cmd_update(match_field: str, match_value: str, **changes: str | None) -> int:
    """Replace the first transaction whose ``match_field`` equals ``match_value``."""

    if match_field not in (*RECORD_HEADERS, COMPOSITE_KEY):
        return _error(f"unknown field {match_field!r}")
    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    try:
        existing = tx_repo.find(match_field, match_value)
        if existing is None:
            return _error(f"no transaction with {match_field}={match_value!r}")
        tx_repo.update(match_field, match_value, _merged(existing, **changes))
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Updated {existing.name}")
    return 0


def cmd_delete(match_field: str, match_value: str) -> int:
    """Delete every transaction whose ``match_field`` equals ``match_value``."""

    if match_field not in (*RECORD_HEADERS, COMPOSITE_KEY):
        return _error(f"unknown field {match_field!r}")
    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    try:
        deleted = tx_repo.delete(match_field, match_value)
    except BudgetLedgerError as e:
        return _error(str(e))
    if not deleted:
        return _error(f"no transaction with {match_field}={match_value!r}")
    print("Deleted")
    return 0


def _projection_at(settings: Settings, index: int, period: str | None) -> BudgetRecord:
    _, proj_repo = repositories_for(settings)
    key = canonical_period(period) if period else _active_period(settings)
    rows = projections_for_period(proj_repo, key)
    if not 1 <= index <= len(rows):
        raise BudgetLedgerError(f"no projection #{index} in {key} ({len(rows)} listed)")
    return rows[index - 1]


def cmd_project_add(
    *,
    name: str,
    amount: str,
    account: str,
    category: str = "",
    criticality: str | None = None,
    payment_method: str = "",
    period: str | None = None,
) -> int:
    settings = Settings.load()
    _, proj_repo = repositories_for(settings)
    try:
        record = new_record(
            RecordKind.PROJECTED,
            name=name,
            amount=amount,
            category=category,
            criticality=criticality,
            account=account,
            created_time=datetime.now().strftime(CREATED_TIME_FORMAT),
            payment_method=payment_method,
            statement_period=period or _active_period(settings),
        )
        add_projection(proj_repo, record)
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Projected {record.name} {format_amount(record.amount)} for {record.statement_period}")
    return 0


def cmd_project_list(*, period: str | None = None) -> int:
    settings = Settings.load()
    _, proj_repo = repositories_for(settings)
    try:
        key = canonical_period(period) if period else _active_period(settings)
    except BudgetLedgerError as e:
        return _error(str(e))
    _print_records(projections_for_period(proj_repo, key))
    return 0


def cmd_project_update(index: int, *, period: str | None = None, **changes: str | None) -> int:
    settings = Settings.load()
    _, proj_repo = repositories_for(settings)
    try:
        target = _projection_at(settings, index, period)
        if not update_projection(proj_repo, target, _merged(target, **changes)):
            return _error(f"projection {target.name!r} no longer matches a stored row")
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Updated projection {target.name}")
    return 0


def cmd_project_delete(index: int, *, period: str | None = None) -> int:
    settings = Settings.load()
    _, proj_repo = repositories_for(settings)
    try:
        target = _projection_at(settings, index, period)
        if not delete_projection(proj_repo, target):
            return _error(f"projection {target.name!r} no longer matches a stored row")
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Deleted projection {target.name}")
    return 0


def _category_summary_for(settings: Settings, owner: str | None):
    tx_repo, proj_repo = repositories_for(settings)
    actual = tx_repo.read_all()
    projected = filter_for_period(proj_repo.read_all(), _active_period(settings))
    if owner:
        actual = personalize(actual, owner, joint_account=settings.joint_account)
        projected = personalize(projected, owner, joint_account=settings.joint_account)
    return category_summary(actual, projected)


def cmd_summary_categories(*, owner: str | None = None) -> int:
    settings = Settings.load()
    try:
        summary = _category_summary_for(settings, owner)
    except BudgetLedgerError as e:
        return _error(str(e))
    for row in summary.rows:
        actual = format_amount(row.actual_total) if row.actual_total is not None else ""
        projected = format_amount(row.projected_total) if row.projected_total is not None else ""
        print(f"{row.category:<24}  {actual:>12}  {projected:>12}")
    print(f"{'TOTAL':<24}  {format_amount(summary.grand_total):>12}")
    return 0


def cmd_summary_weekly(
    *, owner: str | None = None, start: str | None = None, end: str | None = None
) -> int:
    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    try:
        first, last = _statement_bounds(settings, start, end)
        buckets = weekly_breakdown(
            tx_repo.read_all(), first, last, owner=owner, joint_account=settings.joint_account
        )
    except (BudgetLedgerError, ValueError) as e:
        return _error(str(e))
    for b in buckets:
        print(
            f"Week {b.week.index} ({format_date(b.week.start)} - {format_date(b.week.end)}): "
            f"{format_amount(b.total)}"
        )
    return 0


def cmd_summary_payments() -> int:
    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    summary = payment_summary(
        tx_repo.read_all(), settings.owners, joint_account=settings.joint_account
    )
    owner_a, owner_b = summary.owners
    print(f"{'Card':<20}  {owner_a:>12}  {owner_b:>12}")
    for card in summary.cards:
        print(
            f"{card.card:<20}  {format_amount(card.owner_a_total):>12}  "
            f"{format_amount(card.owner_b_total):>12}"
        )
    print(f"{'TOTAL':<20}  {format_amount(summary.grand_total):>12}")
    return 0


def cmd_summary_criticality(*, owner: str) -> int:
    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    totals = criticality_totals(tx_repo.read_all(), owner, joint_account=settings.joint_account)
    print(f"Essential: {format_amount(totals.essential)}")
    print(f"NonEssential: {format_amount(totals.non_essential)}")
    if totals.unclassified:
        print(f"Unclassified: {format_amount(totals.unclassified)}")
    return 0


def cmd_export_payments(out_path: str) -> int:
    settings = Settings.load()
    tx_repo, _ = repositories_for(settings)
    summary = payment_summary(
        tx_repo.read_all(), settings.owners, joint_account=settings.joint_account
    )
    try:
        written = export_payment_summary(summary, out_path)
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Wrote {written}")
    return 0


def cmd_export_categories(out_path: str, *, owner: str | None = None) -> int:
    settings = Settings.load()
    try:
        written = export_category_summary(_category_summary_for(settings, owner), out_path)
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Wrote {written}")
    return 0


def cmd_end_statement(new_period: str | None = None) -> int:
    """Archive the active statement and make ``new_period`` active.

    Defaults to the month after the active period.
    """

    settings = Settings.load()
    try:
        target = new_period or StatementPeriod.parse(_active_period(settings)).next().key
        result = StatementLifecycle(settings).end_statement(target)
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Closed {result.closed_period}; archived to {result.archive.location}")
    print(f"Removed {result.projections_removed} projection(s); active period {result.new_period}")
    if not result.ok:
        for message in result.errors:
            print(f"Error: {message}", file=sys.stderr)
        return 1
    return 0


def cmd_snapshot_backup(*, directory: str | None = None) -> int:
    settings = Settings.load()
    tx_repo, proj_repo = repositories_for(settings)
    store = DirectorySnapshotStore(directory)
    try:
        version = store.save(build_snapshot(settings, tx_repo, proj_repo))
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Saved {version}")
    return 0


def cmd_snapshot_restore(version: str | None = None, *, directory: str | None = None) -> int:
    settings = Settings.load()
    tx_repo, proj_repo = repositories_for(settings)
    store = DirectorySnapshotStore(directory)
    try:
        snapshot = store.load(version)
        n_tx, n_proj = apply_snapshot(snapshot, tx_repo, proj_repo)
    except BudgetLedgerError as e:
        return _error(str(e))
    print(f"Restored {n_tx} transaction(s) and {n_proj} projection(s) from {snapshot.last_modified}")
    return 0


def cmd_snapshot_list(*, directory: str | None = None) -> int:
    versions = DirectorySnapshotStore(directory).versions()
    if not versions:
        print("(no snapshots)")
    for v in versions:
        print(v)
    return 0


SETTABLE_KEYS = (
    "active_statement_period",
    "transaction_file_path",
    "projected_file_path",
    "archive_dir",
    "archive_layout",
    "owners",
    "joint_account",
)


def cmd_settings_show() -> int:
    settings = Settings.load()
    for key, value in settings.model_dump(mode="json").items():
        print(f"{key} = {value}")
    return 0


def cmd_settings_set(key: str, value: str) -> int:
    if key not in SETTABLE_KEYS:
        return _error(f"unknown setting {key!r} (choose from {', '.join(SETTABLE_KEYS)})")
    settings = Settings.load()
    try:
        if key == "transaction_file_path":
            settings.use_transaction_file(value)
        elif key == "projected_file_path":
            settings.use_projected_file(value)
        elif key == "owners":
            settings.owners = tuple(value.split(","))
        elif key == "active_statement_period":
            settings.active_statement_period = value
            settings.record_statement_period(value)
        else:
            setattr(settings, key, value)
        settings.save()
    except (BudgetLedgerError, SettingsValidationError) as e:
        return _error(str(e))
    print(f"{key} = {getattr(settings, key)}")
    return 0


# ---- Typer-based console interface -------------------------------------------


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Household budget ledger: import transactions, split joint spending, "
        "summarize a statement period and roll it over."
    ),
)
project_app = typer.Typer(no_args_is_help=True, help="Projected (planned) expenses.")
summary_app = typer.Typer(no_args_is_help=True, help="Summaries of the live statement.")
export_app = typer.Typer(no_args_is_help=True, help="CSV exports of summaries.")
snapshot_app = typer.Typer(no_args_is_help=True, help="Workspace backup and restore.")
settings_app = typer.Typer(no_args_is_help=True, help="Show or change settings.")
app.add_typer(project_app, name="project")
app.add_typer(summary_app, name="summary")
app.add_typer(export_app, name="export")
app.add_typer(snapshot_app, name="snapshot")
app.add_typer(settings_app, name="settings")


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


@app.command("import")
def import_cmd(
    csv_path: Path = typer.Argument(..., dir_okay=False, help="Export file to import."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Classify rows without writing."),
) -> None:
    """Import an export file, skipping rows already present."""

    _exit(cmd_import(str(csv_path), dry_run=dry_run))


@app.command("add")
def add_cmd(
    name: str | None = typer.Option(None, help="Merchant or description."),
    amount: str | None = typer.Option(None, help="Amount, e.g. 12.50 or $1,200.00."),
    account: str | None = typer.Option(None, help="Owner or the joint account."),
    category: str | None = typer.Option(None, help="Category (prompted when omitted)."),
    criticality: str | None = typer.Option(None, help="Essential or NonEssential."),
    date_: str | None = typer.Option(None, "--date", help="Transaction date."),
    status: str = typer.Option("", help="Free-form status."),
    payment_method: str = typer.Option("", help="Card or payment method."),
) -> None:
    """Add one transaction to the live statement."""

    _exit(
        cmd_add(
            name=name,
            amount=amount,
            account=account,
            category=category,
            criticality=criticality,
            transaction_date=date_,
            status=status,
            payment_method=payment_method,
        )
    )


@app.command("list")
def list_cmd(
    owner: str | None = typer.Option(None, help="Personalized view for one owner."),
    joint: bool = typer.Option(False, "--joint", help="Joint account rows, unsplit."),
) -> None:
    """List transactions, newest first."""

    _exit(cmd_list(owner=owner, joint=joint))


@app.command("update")
def update_cmd(
    field: str = typer.Option(..., "--field", help="Column to match, e.g. Name."),
    value: str = typer.Option(..., "--value", help="Value to match exactly."),
    name: str | None = typer.Option(None),
    amount: str | None = typer.Option(None),
    category: str | None = typer.Option(None),
    criticality: str | None = typer.Option(None),
    date_: str | None = typer.Option(None, "--date"),
    account: str | None = typer.Option(None),
    status: str | None = typer.Option(None),
    payment_method: str | None = typer.Option(None),
) -> None:
    """Change the first matching transaction."""

    _exit(
        cmd_update(
            field,
            value,
            name=name,
            amount=amount,
            category=category,
            criticality=criticality,
            transaction_date=date_,
            account=account,
            status=status,
            payment_method=payment_method,
        )
    )


@app.command("delete")
def delete_cmd(
    field: str = typer.Option(..., "--field", help="Column to match, e.g. Name."),
    value: str = typer.Option(..., "--value", help="Value to match exactly."),
) -> None:
    """Delete every matching transaction."""

    _exit(cmd_delete(field, value))


@project_app.command("add")
def project_add_cmd(
    name: str = typer.Option(...),
    amount: str = typer.Option(...),
    account: str = typer.Option(...),
    category: str = typer.Option(""),
    criticality: str | None = typer.Option(None),
    payment_method: str = typer.Option(""),
    period: str | None = typer.Option(None, help="Defaults to the active period."),
) -> None:
    _exit(
        cmd_project_add(
            name=name,
            amount=amount,
            account=account,
            category=category,
            criticality=criticality,
            payment_method=payment_method,
            period=period,
        )
    )


@project_app.command("list")
def project_list_cmd(
    period: str | None = typer.Option(None, help="Defaults to the active period."),
) -> None:
    _exit(cmd_project_list(period=period))


@project_app.command("update")
def project_update_cmd(
    index: int = typer.Argument(..., help="Position shown by `project list`."),
    period: str | None = typer.Option(None),
    name: str | None = typer.Option(None),
    amount: str | None = typer.Option(None),
    category: str | None = typer.Option(None),
    criticality: str | None = typer.Option(None),
    account: str | None = typer.Option(None),
    payment_method: str | None = typer.Option(None),
) -> None:
    _exit(
        cmd_project_update(
            index,
            period=period,
            name=name,
            amount=amount,
            category=category,
            criticality=criticality,
            account=account,
            payment_method=payment_method,
        )
    )


@project_app.command("delete")
def project_delete_cmd(
    index: int = typer.Argument(..., help="Position shown by `project list`."),
    period: str | None = typer.Option(None),
) -> None:
    _exit(cmd_project_delete(index, period=period))


@summary_app.command("categories")
def summary_categories_cmd(owner: str | None = typer.Option(None)) -> None:
    _exit(cmd_summary_categories(owner=owner))


@summary_app.command("weekly")
def summary_weekly_cmd(
    owner: str | None = typer.Option(None),
    start: str | None = typer.Option(None, help="Statement start (default: period start)."),
    end: str | None = typer.Option(None, help="Statement end (default: period end)."),
) -> None:
    _exit(cmd_summary_weekly(owner=owner, start=start, end=end))


@summary_app.command("payments")
def summary_payments_cmd() -> None:
    _exit(cmd_summary_payments())


@summary_app.command("criticality")
def summary_criticality_cmd(owner: str = typer.Option(...)) -> None:
    _exit(cmd_summary_criticality(owner=owner))


@export_app.command("payments")
def export_payments_cmd(out: Path = typer.Argument(..., dir_okay=False)) -> None:
    _exit(cmd_export_payments(str(out)))


@export_app.command("categories")
def export_categories_cmd(
    out: Path = typer.Argument(..., dir_okay=False),
    owner: str | None = typer.Option(None),
) -> None:
    _exit(cmd_export_categories(str(out), owner=owner))


@app.command("end-statement")
def end_statement_cmd(
    new_period: str | None = typer.Argument(None, help="e.g. OCTOBER2025 or 'October 2025'."),
) -> None:
    """Archive the active statement and start the next one."""

    _exit(cmd_end_statement(new_period))


@snapshot_app.command("backup")
def snapshot_backup_cmd(directory: str | None = typer.Option(None, "--dir")) -> None:
    _exit(cmd_snapshot_backup(directory=directory))


@snapshot_app.command("restore")
def snapshot_restore_cmd(
    version: str | None = typer.Argument(None, help="Snapshot file name; latest by default."),
    directory: str | None = typer.Option(None, "--dir"),
) -> None:
    _exit(cmd_snapshot_restore(version, directory=directory))


@snapshot_app.command("list")
def snapshot_list_cmd(directory: str | None = typer.Option(None, "--dir")) -> None:
    _exit(cmd_snapshot_list(directory=directory))


@settings_app.command("show")
def settings_show_cmd() -> None:
    _exit(cmd_settings_show())


@settings_app.command("set")
def settings_set_cmd(key: str, value: str) -> None:
    _exit(cmd_settings_set(key, value))


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m budget_ledger.cli`
    app()
