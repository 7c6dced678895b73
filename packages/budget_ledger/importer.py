"""Import external transaction exports with duplicate detection.

Export rows carry no stable identifier, so identity is derived from a
normalized projection of the user-visible fields and hashed with SHA-256
(:func:`dedup_key`). Normalization makes trivially different spellings of the
same transaction collide: case and surrounding whitespace are ignored,
amounts lose currency symbols and thousands separators, and dates are
reduced to ISO form when any accepted pattern parses.

The payment-method / statement-period slot of the key is always empty, so
those two fields never distinguish one transaction from another here.

Public surface:

- ``dedup_key`` / ``record_dedup_key``: the normalized hash.
- ``read_import_file``: header validation and row extraction.
- ``preview_import``: classify each row as new, duplicate, or invalid.
- ``import_transactions``: append the new rows and report counts.
"""

from __future__ import annotations

import csv
import hashlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

from .csv_repository import BOM
from .dates import normalize_date_for_key
from .errors import ImportFormatError, StorageError, ValidationError
from .logging_setup import get_logger
from .money import parse_amount
from .records import (
    ACCOUNT,
    AMOUNT,
    CATEGORY,
    CREATED_TIME,
    CRITICALITY,
    KEY_SEPARATOR,
    NAME,
    PAYMENT_METHOD,
    STATUS,
    TRANSACTION_DATE,
    BudgetRecord,
    Criticality,
    RecordKind,
    new_record,
)
from .repositories import RecordRepository

_logger = get_logger("budget_ledger.importer")

# Lower-cased import header -> canonical field name.
REQUIRED_IMPORT_COLUMNS: dict[str, str] = {
    "name": NAME,
    "amount": AMOUNT,
    "category": CATEGORY,
    "criticality": CRITICALITY,
    "transaction date": TRANSACTION_DATE,
    "account": ACCOUNT,
    "status": STATUS,
    "created time": CREATED_TIME,
    "payment method": PAYMENT_METHOD,
}


# ---------------------------------------------------------------------------
# Dedup key
# ---------------------------------------------------------------------------


def _norm_text(value: str | None) -> str:
    return (value or "").strip().lower()


def _norm_amount(value: str | None) -> str:
    try:
        return f"{parse_amount(value):.2f}"
    except ValidationError:
        return _norm_text(value)


def _norm_criticality(value: str | None) -> str:
    parsed = Criticality.try_parse(value)
    return parsed.value.lower() if parsed else _norm_text(value)


def dedup_key(fields: Mapping[str, str]) -> str:
    """SHA-256 hex digest over the normalized transaction fields.

    ``fields`` is keyed by canonical column names (``Name``, ``Amount``, ...).
    """

    parts = [
        _norm_text(fields.get(NAME)),
        _norm_amount(fields.get(AMOUNT)),
        _norm_text(fields.get(CATEGORY)),
        _norm_criticality(fields.get(CRITICALITY)),
        normalize_date_for_key(fields.get(TRANSACTION_DATE)),
        _norm_text(fields.get(ACCOUNT)),
        _norm_text(fields.get(STATUS)),
        _norm_text(fields.get(CREATED_TIME)),
        # Payment method / statement period slot: fixed empty.
        "",
    ]
    data = KEY_SEPARATOR.join(parts)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def record_dedup_key(record: BudgetRecord) -> str:
    return dedup_key(record.to_row())


# ---------------------------------------------------------------------------
# Import file
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawImportRow:
    line_no: int
    fields: dict[str, str]
    line: str
    malformed: bool = False


def read_import_file(path: str | PathLike[str]) -> list[RawImportRow]:
    """Read an export file and map its columns onto canonical field names.

    Raises :class:`ImportFormatError` when the file is missing, unreadable,
    empty, or lacks any required column. Rows with fewer cells than the header
    are returned flagged ``malformed``.
    """

    p = Path(path)
    try:
        with p.open(encoding="utf-8", newline="") as f:
            rows = list(csv.reader(f))
    except FileNotFoundError as exc:
        raise ImportFormatError(f"import file does not exist: {p}") from exc
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise ImportFormatError(f"error reading import file {p}: {exc}") from exc

    if not rows or not any(c.strip() for c in rows[0]):
        raise ImportFormatError(f"import file is empty: {p}")

    header = list(rows[0])
    if header[0].startswith(BOM):
        _logger.info("stripping byte-order mark from import header")
        header[0] = header[0][len(BOM) :]

    index: dict[str, int] = {}
    for i, name in enumerate(header):
        canonical = REQUIRED_IMPORT_COLUMNS.get(name.strip().lower())
        if canonical is not None and canonical not in index:
            index[canonical] = i
    missing = [c for c in REQUIRED_IMPORT_COLUMNS.values() if c not in index]
    if missing:
        raise ImportFormatError(
            "import file is missing required columns: " + ", ".join(missing)
        )

    out: list[RawImportRow] = []
    for line_no, cells in enumerate(rows[1:], start=2):
        if not any(c.strip() for c in cells):
            continue
        line = ",".join(cells)
        if len(cells) < len(header):
            out.append(RawImportRow(line_no=line_no, fields={}, line=line, malformed=True))
            continue
        fields = {canonical: cells[i].strip() for canonical, i in index.items()}
        out.append(RawImportRow(line_no=line_no, fields=fields, line=line))
    return out


# ---------------------------------------------------------------------------
# Classification and import
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImportCandidate:
    """One import row with its classification."""

    line_no: int
    line: str
    key: str | None
    record: BudgetRecord | None
    duplicate: bool = False
    error: str | None = None

    @property
    def is_new(self) -> bool:
        return self.record is not None and not self.duplicate and self.error is None


@dataclass(slots=True)
class ImportResult:
    detected_count: int = 0
    imported_count: int = 0
    duplicate_count: int = 0
    error_count: int = 0
    imported_lines: list[str] = field(default_factory=list)
    duplicate_lines: list[str] = field(default_factory=list)
    error_lines: list[str] = field(default_factory=list)


def _candidate(raw: RawImportRow, statement_period: str) -> ImportCandidate:
    if raw.malformed:
        return ImportCandidate(
            line_no=raw.line_no, line=raw.line, key=None, record=None, error="wrong column count"
        )
    try:
        record = new_record(
            RecordKind.ACTUAL,
            name=raw.fields[NAME],
            amount=raw.fields[AMOUNT],
            category=raw.fields[CATEGORY],
            criticality=raw.fields[CRITICALITY],
            transaction_date=raw.fields[TRANSACTION_DATE],
            account=raw.fields[ACCOUNT],
            status=raw.fields[STATUS],
            created_time=raw.fields[CREATED_TIME],
            payment_method=raw.fields[PAYMENT_METHOD],
            statement_period=statement_period,
            require_account=False,
        )
    except ValidationError as exc:
        return ImportCandidate(
            line_no=raw.line_no, line=raw.line, key=None, record=None, error=str(exc)
        )
    return ImportCandidate(
        line_no=raw.line_no, line=raw.line, key=dedup_key(raw.fields), record=record
    )


def classify(
    rows: Iterable[RawImportRow],
    existing: Iterable[BudgetRecord],
    *,
    statement_period: str = "",
) -> list[ImportCandidate]:
    """Mark each row new or duplicate against ``existing`` and earlier rows."""

    seen = {record_dedup_key(r) for r in existing}
    out: list[ImportCandidate] = []
    for raw in rows:
        cand = _candidate(raw, statement_period)
        if cand.key is not None:
            if cand.key in seen:
                cand = ImportCandidate(
                    line_no=cand.line_no,
                    line=cand.line,
                    key=cand.key,
                    record=cand.record,
                    duplicate=True,
                )
            else:
                seen.add(cand.key)
        out.append(cand)
    return out


def preview_import(
    path: str | PathLike[str],
    repository: RecordRepository,
    *,
    statement_period: str = "",
) -> list[ImportCandidate]:
    """Classify the rows of ``path`` without writing anything."""

    return classify(
        read_import_file(path), repository.read_all(), statement_period=statement_period
    )


def import_transactions(
    path: str | PathLike[str],
    repository: RecordRepository,
    *,
    statement_period: str = "",
) -> ImportResult:
    """Append the non-duplicate rows of ``path`` to ``repository``.

    Rows are appended one at a time; a failing row is counted as an error and
    the rest of the batch continues.
    """

    _logger.info("import start file=%s target=%s", path, repository.path)
    candidates = preview_import(path, repository, statement_period=statement_period)
    result = ImportResult(detected_count=len(candidates))

    for cand in candidates:
        if cand.error is not None or cand.record is None:
            _logger.warning("import line %d rejected: %s", cand.line_no, cand.error)
            result.error_count += 1
            result.error_lines.append(cand.line)
            continue
        if cand.duplicate:
            result.duplicate_count += 1
            result.duplicate_lines.append(cand.line)
            continue
        try:
            repository.add(cand.record)
        except StorageError as exc:
            _logger.error("import line %d not written: %s", cand.line_no, exc)
            result.error_count += 1
            result.error_lines.append(cand.line)
            continue
        result.imported_count += 1
        result.imported_lines.append(cand.line)

    _logger.info(
        "import done detected=%d imported=%d duplicates=%d errors=%d",
        result.detected_count,
        result.imported_count,
        result.duplicate_count,
        result.error_count,
    )
    return result


__all__ = [
    "REQUIRED_IMPORT_COLUMNS",
    "dedup_key",
    "record_dedup_key",
    "RawImportRow",
    "read_import_file",
    "ImportCandidate",
    "ImportResult",
    "classify",
    "preview_import",
    "import_transactions",
]
