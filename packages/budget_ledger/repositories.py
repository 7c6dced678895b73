"""Transaction and projected-transaction repositories bound to settings paths."""

from __future__ import annotations

from os import PathLike

from .csv_repository import CsvRepository
from .records import (
    PROJECTED_HEADERS,
    TRANSACTION_HEADERS,
    BudgetRecord,
    BudgetRecordCodec,
    RecordKind,
)
from .settings import Settings

type RecordRepository = CsvRepository[BudgetRecord]


def transaction_repository(path: str | PathLike[str]) -> RecordRepository:
    return CsvRepository(path, BudgetRecordCodec(RecordKind.ACTUAL, TRANSACTION_HEADERS))


def projected_repository(path: str | PathLike[str]) -> RecordRepository:
    return CsvRepository(path, BudgetRecordCodec(RecordKind.PROJECTED, PROJECTED_HEADERS))


def repositories_for(settings: Settings) -> tuple[RecordRepository, RecordRepository]:
    """Return ``(transactions, projections)`` for the configured file paths."""

    return (
        transaction_repository(settings.transaction_path()),
        projected_repository(settings.projected_path()),
    )


__all__ = [
    "RecordRepository",
    "transaction_repository",
    "projected_repository",
    "repositories_for",
]
