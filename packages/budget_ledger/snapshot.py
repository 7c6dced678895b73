"""Workspace snapshots for backup and restore.

A snapshot carries the full transaction list, the full projected list and a
settings view, each protected by a Base64 SHA-256 hash of its canonical JSON
form. A snapshot is validated completely before anything local is written;
applying one replaces record contents only and never touches local settings
such as file paths.

Transport is abstracted behind :class:`SnapshotStore`. The bundled
:class:`DirectorySnapshotStore` keeps versioned JSON files in a directory:

    <root>/workspace_2025-09-01T12-00-00Z.json
    <root>/workspace_2025-09-01T12-00-00Z-1.json   (second backup in that second)
"""

from __future__ import annotations

import base64
import contextlib
import hashlib
import json
import os
import re
from datetime import UTC, datetime, timedelta
from os import PathLike
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import SnapshotError, StorageWriteError, ValidationError
from .logging_setup import get_logger
from .records import (
    ACCOUNT,
    AMOUNT,
    CATEGORY,
    CREATED_TIME,
    CRITICALITY,
    NAME,
    PAYMENT_METHOD,
    STATEMENT_PERIOD,
    STATUS,
    TRANSACTION_DATE,
    BudgetRecord,
    BudgetRecordCodec,
    RecordKind,
)
from .repositories import RecordRepository
from .settings import Settings, get_home

_logger = get_logger("budget_ledger.snapshot")

SNAPSHOT_VERSION = "1"
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_FILENAME_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%SZ"
_FILENAME_PREFIX = "workspace_"
_FILENAME_SUFFIX = ".json"
_FILENAME_RE = re.compile(
    r"^workspace_(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}Z)(?:-(\d+))?\.json$"
)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class SnapshotRecord(BaseModel):
    """Storage-form record: every cell as text, as written to CSV."""

    model_config = ConfigDict(extra="ignore")

    name: str
    amount: str
    category: str = ""
    criticality: str = ""
    transaction_date: str = ""
    account: str = ""
    status: str = ""
    created_time: str = ""
    payment_method: str = ""
    statement_period: str = ""

    @classmethod
    def from_record(cls, record: BudgetRecord) -> SnapshotRecord:
        row = record.to_row()
        return cls(
            name=row[NAME],
            amount=row[AMOUNT],
            category=row[CATEGORY],
            criticality=row[CRITICALITY],
            transaction_date=row[TRANSACTION_DATE],
            account=row[ACCOUNT],
            status=row[STATUS],
            created_time=row[CREATED_TIME],
            payment_method=row[PAYMENT_METHOD],
            statement_period=row[STATEMENT_PERIOD],
        )

    def to_row(self) -> dict[str, str]:
        return {
            NAME: self.name,
            AMOUNT: self.amount,
            CATEGORY: self.category,
            CRITICALITY: self.criticality,
            TRANSACTION_DATE: self.transaction_date,
            ACCOUNT: self.account,
            STATUS: self.status,
            CREATED_TIME: self.created_time,
            PAYMENT_METHOD: self.payment_method,
            STATEMENT_PERIOD: self.statement_period,
        }


class SectionHashes(BaseModel):
    transactions: str
    projected: str
    settings: str


class WorkspaceSnapshot(BaseModel):
    version: str = SNAPSHOT_VERSION
    last_modified: str
    transactions: list[SnapshotRecord] = Field(default_factory=list)
    projected: list[SnapshotRecord] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)
    hashes: SectionHashes


def section_hash(payload: Any) -> str:
    """Base64 SHA-256 of ``payload`` serialized as canonical JSON."""

    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(hashlib.sha256(data.encode("utf-8")).digest()).decode("ascii")


def _compute_hashes(
    transactions: list[SnapshotRecord], projected: list[SnapshotRecord], settings: dict[str, Any]
) -> SectionHashes:
    return SectionHashes(
        transactions=section_hash([r.model_dump() for r in transactions]),
        projected=section_hash([r.model_dump() for r in projected]),
        settings=section_hash(settings),
    )


# ---------------------------------------------------------------------------
# Build / validate / apply
# ---------------------------------------------------------------------------


def build_snapshot(
    settings: Settings,
    transactions: RecordRepository,
    projections: RecordRepository,
    *,
    now: datetime | None = None,
) -> WorkspaceSnapshot:
    stamp = (now or datetime.now(UTC)).astimezone(UTC)
    tx = [SnapshotRecord.from_record(r) for r in transactions.read_all()]
    proj = [SnapshotRecord.from_record(r) for r in projections.read_all()]
    view = settings.snapshot_view()
    snapshot = WorkspaceSnapshot(
        last_modified=stamp.strftime(_TIMESTAMP_FORMAT),
        transactions=tx,
        projected=proj,
        settings=view,
        hashes=_compute_hashes(tx, proj, view),
    )
    _logger.info("snapshot built transactions=%d projected=%d", len(tx), len(proj))
    return snapshot


def parse_snapshot(text: str | bytes) -> WorkspaceSnapshot:
    try:
        return WorkspaceSnapshot.model_validate_json(text)
    except PydanticValidationError as exc:
        raise SnapshotError(f"snapshot document is malformed: {exc}") from exc


def validate_snapshot(snapshot: WorkspaceSnapshot) -> None:
    """Raise :class:`SnapshotError` unless every section hash matches."""

    if snapshot.version != SNAPSHOT_VERSION:
        raise SnapshotError(f"unsupported snapshot version: {snapshot.version!r}")
    if not snapshot.last_modified.strip():
        raise SnapshotError("snapshot has no last-modified timestamp")
    expected = _compute_hashes(snapshot.transactions, snapshot.projected, snapshot.settings)
    for section in ("transactions", "projected", "settings"):
        if getattr(expected, section) != getattr(snapshot.hashes, section):
            raise SnapshotError(f"snapshot section {section!r} failed its hash check")


def _to_records(rows: list[SnapshotRecord], kind: RecordKind) -> list[BudgetRecord]:
    codec = BudgetRecordCodec(kind)
    return [codec.from_row(r.to_row()) for r in rows]


def apply_snapshot(
    snapshot: WorkspaceSnapshot,
    transactions: RecordRepository,
    projections: RecordRepository,
) -> tuple[int, int]:
    """Validate ``snapshot`` and overwrite both stores with its records.

    Local settings are left as they are. Returns the number of transactions and
    projections written.
    """

    validate_snapshot(snapshot)
    try:
        tx = _to_records(snapshot.transactions, RecordKind.ACTUAL)
        proj = _to_records(snapshot.projected, RecordKind.PROJECTED)
    except ValidationError as exc:
        raise SnapshotError(f"snapshot contains an invalid record: {exc}") from exc

    transactions.overwrite_all(tx)
    projections.overwrite_all(proj)
    _logger.info(
        "snapshot from %s applied transactions=%d projected=%d",
        snapshot.last_modified,
        len(tx),
        len(proj),
    )
    return len(tx), len(proj)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class SnapshotStore(Protocol):
    def save(self, snapshot: WorkspaceSnapshot) -> str: ...

    def versions(self) -> list[str]: ...

    def load(self, version: str | None = None) -> WorkspaceSnapshot: ...


def default_snapshot_dir() -> Path:
    return get_home() / "snapshots"


class DirectorySnapshotStore:
    """Versioned snapshot files in one directory, newest version first."""

    def __init__(self, root: str | PathLike[str] | None = None) -> None:
        self.root = Path(root) if root is not None else default_snapshot_dir()

    @staticmethod
    def version_for(snapshot: WorkspaceSnapshot) -> str:
        try:
            stamp = datetime.strptime(snapshot.last_modified, _TIMESTAMP_FORMAT)
        except ValueError as exc:
            raise SnapshotError(
                f"snapshot timestamp not in {_TIMESTAMP_FORMAT}: {snapshot.last_modified!r}"
            ) from exc
        return f"{_FILENAME_PREFIX}{stamp.strftime(_FILENAME_TIMESTAMP_FORMAT)}{_FILENAME_SUFFIX}"

    def _unused_version(self, version: str) -> str:
        """``version``, or the same name with the lowest free ``-N`` suffix."""

        stem = version.removesuffix(_FILENAME_SUFFIX)
        candidate = version
        n = 0
        while (self.root / candidate).exists():
            n += 1
            candidate = f"{stem}-{n}{_FILENAME_SUFFIX}"
        if n:
            _logger.warning("snapshot %s already exists; saving as %s", version, candidate)
        return candidate

    def save(self, snapshot: WorkspaceSnapshot) -> str:
        """Write ``snapshot`` under a new version name; existing versions are kept."""

        validate_snapshot(snapshot)
        version = self._unused_version(self.version_for(snapshot))
        path = self.root / version
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StorageWriteError(f"cannot write snapshot {path}: {exc}") from exc
        _logger.info("snapshot saved to %s", path)
        return version

    def versions(self) -> list[str]:
        if not self.root.is_dir():
            return []
        matched: list[re.Match[str]] = []
        for p in self.root.iterdir():
            m = _FILENAME_RE.match(p.name)
            if m is not None:
                matched.append(m)
        matched.sort(key=lambda m: (m.group(1), int(m.group(2) or 0)), reverse=True)
        return [m.string for m in matched]

    def load(self, version: str | None = None) -> WorkspaceSnapshot:
        """Read and validate one version; the newest when ``version`` is None."""

        if version is None:
            available = self.versions()
            if not available:
                raise SnapshotError(f"no snapshots found in {self.root}")
            version = available[0]
        path = self.root / version
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise SnapshotError(f"snapshot not found: {version}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise SnapshotError(f"cannot read snapshot {path}: {exc}") from exc
        snapshot = parse_snapshot(text)
        validate_snapshot(snapshot)
        return snapshot

    def prune(
        self, *, older_than: timedelta = timedelta(days=30), now: datetime | None = None
    ) -> list[str]:
        """Delete versions older than ``older_than``; return their names."""

        cutoff = (now or datetime.now(UTC)) - older_than
        removed: list[str] = []
        for name in self.versions():
            m = _FILENAME_RE.match(name)
            if m is None:
                continue
            stamp = datetime.strptime(m.group(1), _FILENAME_TIMESTAMP_FORMAT).replace(tzinfo=UTC)
            if stamp >= cutoff:
                continue
            try:
                (self.root / name).unlink()
            except OSError as exc:
                _logger.error("could not delete old snapshot %s: %s", name, exc)
                continue
            removed.append(name)
        if removed:
            _logger.info("pruned %d snapshot(s) older than %s", len(removed), older_than)
        return removed


__all__ = [
    "SNAPSHOT_VERSION",
    "SnapshotRecord",
    "SectionHashes",
    "WorkspaceSnapshot",
    "section_hash",
    "build_snapshot",
    "parse_snapshot",
    "validate_snapshot",
    "apply_snapshot",
    "SnapshotStore",
    "default_snapshot_dir",
    "DirectorySnapshotStore",
]
