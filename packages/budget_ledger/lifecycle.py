"""End-of-statement rollover.

``StatementLifecycle.end_statement(new_period)`` closes the active period:

1. check preconditions (active period, existing transaction file, valid new
   period different from the active one);
2. archive copies of the transaction and projected files together with a
   payment summary export;
3. clear the live transaction file to its header;
4. drop projections tagged with the closed period;
5. advance the active period and record the archive in settings.

Failures in steps 1-3 raise and leave the live files untouched. Once step 3
has run, later failures cannot be undone; they are collected in
``RolloverResult.errors`` and the remaining steps still run.

Archive layouts (``Settings.archive_layout``):

- ``folder``: ``<archive_root>/<PERIOD>/`` holds copies under their own file
  names plus ``payment_summary_<PERIOD>.csv``.
- ``suffix``: siblings of the transaction file named
  ``budget_<PERIOD>.csv``, ``projected_<PERIOD>.csv`` and
  ``payment_summary_<PERIOD>.csv``.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

from .aggregation import payment_summary
from .errors import (
    ArchiveError,
    StatementLifecycleError,
    StorageError,
)
from .exporters import export_payment_summary
from .logging_setup import get_logger
from .periods import canonical_period
from .projections import delete_projections_for_period
from .repositories import RecordRepository, repositories_for
from .settings import Settings

_logger = get_logger("budget_ledger.lifecycle")


@dataclass(frozen=True, slots=True)
class ArchivePlan:
    location: Path
    transactions: Path
    projected: Path
    payment_summary: Path


@dataclass(slots=True)
class RolloverResult:
    closed_period: str
    new_period: str
    archive: ArchivePlan
    projections_removed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class StatementLifecycle:
    """Owns the transition from one active statement period to the next."""

    def __init__(
        self,
        settings: Settings,
        *,
        settings_path: str | PathLike[str] | None = None,
        transactions: RecordRepository | None = None,
        projections: RecordRepository | None = None,
    ) -> None:
        self.settings = settings
        self.settings_path = settings_path
        default_tx, default_proj = repositories_for(settings)
        self.transactions = transactions or default_tx
        self.projections = projections or default_proj

    def archive_plan(self, period: str) -> ArchivePlan:
        tx_path = self.transactions.path
        proj_path = self.projections.path
        summary_name = f"payment_summary_{period}.csv"
        if self.settings.archive_layout == "suffix":
            tx_archive = tx_path.with_name(f"budget_{period}.csv")
            return ArchivePlan(
                location=tx_archive,
                transactions=tx_archive,
                projected=proj_path.with_name(f"projected_{period}.csv"),
                payment_summary=tx_path.with_name(summary_name),
            )
        folder = self.settings.archive_root() / period
        return ArchivePlan(
            location=folder,
            transactions=folder / tx_path.name,
            projected=folder / proj_path.name,
            payment_summary=folder / summary_name,
        )

    # -- steps -----------------------------------------------------------------

    def _check_preconditions(self, new_period: str) -> tuple[str, str]:
        active = self.settings.active_statement_period
        if not active:
            raise StatementLifecycleError("no active statement period is set")
        if not self.transactions.path.is_file():
            raise StatementLifecycleError(
                f"transaction file not found: {self.transactions.path}"
            )
        target = canonical_period(new_period)
        if target == active:
            raise StatementLifecycleError(f"statement period {active} is already active")
        return active, target

    def _archive(self, period: str, plan: ArchivePlan) -> None:
        records = self.transactions.read_all()
        try:
            plan.transactions.parent.mkdir(parents=True, exist_ok=True)
            if plan.transactions.exists():
                _logger.warning("overwriting existing archive %s", plan.transactions)
            shutil.copy2(self.transactions.path, plan.transactions)
            if self.projections.path.is_file():
                plan.projected.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(self.projections.path, plan.projected)
            else:
                _logger.warning(
                    "no projected file at %s; nothing to archive", self.projections.path
                )
            summary = payment_summary(
                records, self.settings.owners, joint_account=self.settings.joint_account
            )
            export_payment_summary(summary, plan.payment_summary)
        except (OSError, StorageError) as exc:
            raise ArchiveError(f"archiving {period} failed: {exc}") from exc
        _logger.info("archived %s to %s", period, plan.location)

    # -- transition ---------------------------------------------------------------

    def end_statement(self, new_period: str) -> RolloverResult:
        closed, target = self._check_preconditions(new_period)
        _logger.info("ending statement %s; next period %s", closed, target)

        plan = self.archive_plan(closed)
        self._archive(closed, plan)

        try:
            self.transactions.clear()
        except StorageError as exc:
            raise StatementLifecycleError(
                f"could not clear {self.transactions.path}: {exc}"
            ) from exc

        result = RolloverResult(closed_period=closed, new_period=target, archive=plan)

        try:
            result.projections_removed = delete_projections_for_period(self.projections, closed)
        except StorageError as exc:
            _logger.error("removing %s projections failed: %s", closed, exc)
            result.errors.append(f"projections for {closed} were not removed: {exc}")

        self.settings.active_statement_period = target
        self.settings.record_statement_period(closed, str(plan.location))
        try:
            self.settings.save(self.settings_path)
        except StorageError as exc:
            _logger.error("saving settings after rollover failed: %s", exc)
            result.errors.append(f"settings were not saved: {exc}")

        _logger.info(
            "statement %s closed; active period now %s (errors=%d)",
            closed,
            target,
            len(result.errors),
        )
        return result


__all__ = ["ArchivePlan", "RolloverResult", "StatementLifecycle"]
