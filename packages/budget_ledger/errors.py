"""Error taxonomy for ``budget_ledger``.

Read paths degrade to empty results and log; write paths raise
``StorageWriteError``. "No matching row" is never an exception: update and
delete operations report it by returning ``False``.
"""

from __future__ import annotations


class BudgetLedgerError(Exception):
    """Base class for all expected, user-reportable failures."""


class ValidationError(BudgetLedgerError, ValueError):
    """Malformed amount, date, criticality, period, or missing required field."""


class ImportFormatError(ValidationError):
    """The import file as a whole cannot be processed (header/empty/unreadable)."""


class StorageError(BudgetLedgerError):
    """Base for file-backed storage failures."""


class StorageReadError(StorageError):
    """A backing file could not be read or parsed."""


class StorageWriteError(StorageError):
    """A backing file could not be written; the operation was not applied."""


class StatementLifecycleError(BudgetLedgerError):
    """Statement rollover could not start (missing period or file path)."""


class ArchiveError(StatementLifecycleError):
    """Archival failed; the live files were left untouched."""


class SnapshotError(BudgetLedgerError):
    """A workspace snapshot failed validation and was not applied."""


__all__ = [
    "BudgetLedgerError",
    "ValidationError",
    "ImportFormatError",
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    "StatementLifecycleError",
    "ArchiveError",
    "SnapshotError",
]
