"""Projected-transaction operations keyed by composite value.

Projections often share individual field values (the same name or amount
across periods), so updates and deletes match on
:func:`~budget_ledger.records.composite_key` rather than a single field.
"""

from __future__ import annotations

from collections.abc import Iterable

from .errors import ValidationError
from .logging_setup import get_logger
from .records import COMPOSITE_KEY, BudgetRecord, RecordKind, composite_key
from .repositories import RecordRepository

_logger = get_logger("budget_ledger.projections")


def _require_projected(record: BudgetRecord) -> None:
    if record.kind is not RecordKind.PROJECTED:
        raise ValidationError(f"not a projected record: {record.name!r}")


def add_projection(repository: RecordRepository, record: BudgetRecord) -> None:
    _require_projected(record)
    repository.add(record)


def projections_for_period(repository: RecordRepository, period: str) -> list[BudgetRecord]:
    return [r for r in repository.read_all() if r.in_period(period)]


def find_projection(
    records: Iterable[BudgetRecord], target: BudgetRecord
) -> BudgetRecord | None:
    key = composite_key(target)
    return next((r for r in records if composite_key(r) == key), None)


def update_projection(
    repository: RecordRepository, original: BudgetRecord, updated: BudgetRecord
) -> bool:
    """Replace the stored row matching ``original``'s composite key."""

    _require_projected(updated)
    return repository.update(COMPOSITE_KEY, composite_key(original), updated)


def delete_projection(repository: RecordRepository, record: BudgetRecord) -> bool:
    """Delete every stored row sharing ``record``'s composite key."""

    return repository.delete(COMPOSITE_KEY, composite_key(record))


def delete_projections_for_period(repository: RecordRepository, period: str) -> int:
    """Remove all projections tagged with ``period``; return how many went."""

    removed = repository.delete_where(lambda r: r.in_period(period))
    _logger.info("removed %d projection(s) for %s", removed, period)
    return removed


__all__ = [
    "add_projection",
    "projections_for_period",
    "find_projection",
    "update_projection",
    "delete_projection",
    "delete_projections_for_period",
]
