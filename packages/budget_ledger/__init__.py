"""Public interface for the ``budget_ledger`` package.

This module re-exports the record model, the repositories, the import and
aggregation entry points, the statement lifecycle and the snapshot API as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .aggregation import (
    CardPaymentSummary,
    CategoryAggregate,
    CategorySummary,
    PaymentSummary,
    build_split_transactions,
    category_summary,
    criticality_totals,
    joint_view,
    payment_summary,
    personalize,
    weekly_breakdown,
)
from .errors import (
    ArchiveError,
    BudgetLedgerError,
    ImportFormatError,
    SnapshotError,
    StatementLifecycleError,
    StorageError,
    StorageReadError,
    StorageWriteError,
    ValidationError,
)
from .importer import ImportResult, dedup_key, import_transactions, preview_import
from .lifecycle import RolloverResult, StatementLifecycle
from .periods import StatementPeriod
from .records import BudgetRecord, Criticality, RecordKind, new_record
from .repositories import projected_repository, repositories_for, transaction_repository
from .settings import Settings
from .snapshot import DirectorySnapshotStore, WorkspaceSnapshot, apply_snapshot, build_snapshot

__all__ = [
    # Records
    "BudgetRecord",
    "Criticality",
    "RecordKind",
    "StatementPeriod",
    "new_record",
    # Storage
    "Settings",
    "transaction_repository",
    "projected_repository",
    "repositories_for",
    # Import
    "ImportResult",
    "dedup_key",
    "preview_import",
    "import_transactions",
    # Aggregation
    "personalize",
    "build_split_transactions",
    "joint_view",
    "category_summary",
    "weekly_breakdown",
    "payment_summary",
    "criticality_totals",
    "CategoryAggregate",
    "CategorySummary",
    "CardPaymentSummary",
    "PaymentSummary",
    # Lifecycle
    "StatementLifecycle",
    "RolloverResult",
    # Snapshots
    "WorkspaceSnapshot",
    "DirectorySnapshotStore",
    "build_snapshot",
    "apply_snapshot",
    # Errors
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
