"""Generic CRUD over a single header-led CSV file.

Records have no primary key. Update and delete take a caller-supplied match
(field name and value, or a predicate):

- ``update`` replaces only the **first** matching record;
- ``delete`` removes **every** matching record.

Both behaviors are part of the contract; call sites depend on each.

Update and delete rewrite the file from the cells as they were read, so rows
they do not touch (including rows ``read_all`` skips as unreadable) keep
their original text.

File format: UTF-8, comma-separated, mandatory header row, one record per
line, fields quoted only when needed. Reads are best-effort (failures are
logged and yield an empty list); writes raise
:class:`~budget_ledger.errors.StorageWriteError`.
"""

from __future__ import annotations

import contextlib
import csv
import io
import os
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Protocol

from .errors import StorageError, StorageReadError, StorageWriteError, ValidationError
from .logging_setup import get_logger

_logger = get_logger("budget_ledger.csv_repository")

BOM = "\ufeff"

# Cells that mark a first line as a (possibly stale) header rather than data.
_HEADER_MARKERS = frozenset({"name", "amount"})


class RecordCodec[R](Protocol):
    headers: tuple[str, ...]

    def to_row(self, record: R) -> dict[str, str]: ...

    def from_row(self, row: Mapping[str, str]) -> R: ...

    def match_value(self, record: R, field: str) -> str: ...


# ---------------------------------------------------------------------------
# Header reconciliation (pure)
# ---------------------------------------------------------------------------


def _split_cells(line: str) -> list[str]:
    return next(csv.reader([line]), [])


def _render_row(values: Sequence[str]) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="").writerow(values)
    return buf.getvalue()


def _looks_like_header(cells: Sequence[str]) -> bool:
    normalized = {c.strip().lstrip(BOM).strip().lower() for c in cells}
    return _HEADER_MARKERS <= normalized


def _remap_rows(
    stale_header: Sequence[str], data_lines: Sequence[str], expected: Sequence[str]
) -> list[str]:
    """Re-emit data lines in ``expected`` column order.

    Columns are matched by name, case-insensitively. Lines whose cell count
    does not fit the stale header are passed through unchanged.
    """

    positions = {c.strip().lstrip(BOM).strip().lower(): i for i, c in enumerate(stale_header)}
    if [c.lower() for c in expected] == list(positions):
        return list(data_lines)

    out: list[str] = []
    for line in data_lines:
        if not line.strip():
            out.append(line)
            continue
        cells = _split_cells(line)
        if len(cells) != len(stale_header):
            out.append(line)
            continue
        values = [
            cells[positions[h.lower()]] if h.lower() in positions else "" for h in expected
        ]
        out.append(_render_row(values))
    return out


def reconcile_header(existing_lines: Sequence[str], expected_header: Sequence[str]) -> list[str]:
    """Return the file lines with a correct header in front.

    - No lines: just the header.
    - First line equal to the expected header: lines unchanged.
    - Blank first line: replaced by the header.
    - First line recognizable as a header (has ``Name`` and ``Amount`` cells):
      replaced by the header; data lines are re-ordered to the expected
      columns when the stale header used a different layout.
    - Anything else: header prepended, all original lines kept as data.

    Applying the function to its own output returns it unchanged.
    """

    expected_line = ",".join(expected_header)
    lines = list(existing_lines)
    if not lines:
        return [expected_line]

    first = lines[0].strip()
    if first == expected_line:
        return lines
    if not first:
        return [expected_line, *lines[1:]]

    first_cells = _split_cells(first)
    if _looks_like_header(first_cells):
        return [expected_line, *_remap_rows(first_cells, lines[1:], expected_header)]
    return [expected_line, *lines]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _StoredRow[R]:
    """One data line as read: its raw cells and the parsed record, if any."""

    cells: list[str]
    record: R | None


class CsvRepository[R]:
    """CSV-backed store for one record type bound to one file."""

    def __init__(self, path: str | PathLike[str], codec: RecordCodec[R]) -> None:
        self._path = Path(path)
        self._codec = codec

    @property
    def path(self) -> Path:
        return self._path

    def headers(self) -> list[str]:
        return list(self._codec.headers)

    # -- file helpers -------------------------------------------------------

    def _read_lines(self) -> list[str]:
        try:
            with self._path.open(encoding="utf-8", newline="") as f:
                return f.read().splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageReadError(f"cannot read {self._path}: {exc}") from exc

    def _write_text(self, text: str) -> None:
        """Replace the file contents atomically."""

        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.replace(tmp, self._path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StorageWriteError(f"cannot write {self._path}: {exc}") from exc

    def _cells(self, record: R) -> list[str]:
        row = self._codec.to_row(record)
        return [row.get(h, "") for h in self._codec.headers]

    def _render(self, rows: Iterable[Sequence[str]]) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(self._codec.headers)
        writer.writerows(rows)
        return buf.getvalue()

    def _load(self) -> list[_StoredRow[R]]:
        """Read every non-blank data line; unreadable lines carry ``record=None``."""

        self.ensure_ready()
        try:
            with self._path.open(encoding="utf-8", newline="") as f:
                rows = list(csv.reader(f))
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise StorageReadError(f"cannot read {self._path}: {exc}") from exc

        if not rows:
            return []
        header = [h.strip() for h in rows[0]]
        if header:
            header[0] = header[0].lstrip(BOM)

        stored: list[_StoredRow[R]] = []
        for line_no, cells in enumerate(rows[1:], start=2):
            if not any(c.strip() for c in cells):
                continue
            record: R | None = None
            if len(cells) != len(header):
                _logger.warning(
                    "skipping %s line %d: expected %d columns, found %d",
                    self._path,
                    line_no,
                    len(header),
                    len(cells),
                )
            else:
                try:
                    record = self._codec.from_row(dict(zip(header, cells, strict=True)))
                except ValidationError as exc:
                    _logger.warning("skipping %s line %d: %s", self._path, line_no, exc)
            stored.append(_StoredRow(cells, record))
        return stored

    def _rewrite(self, stored: Iterable[_StoredRow[R]]) -> None:
        self._write_text(self._render(row.cells for row in stored))

    # -- contract -----------------------------------------------------------

    def ensure_ready(self) -> None:
        """Create the file with a header, or repair a missing/stale header."""

        if not self._path.exists():
            _logger.info("creating %s with header", self._path)
            self._write_text(",".join(self._codec.headers) + "\n")
            return

        lines = self._read_lines()
        repaired = reconcile_header(lines, self._codec.headers)
        if repaired != lines:
            _logger.warning("header missing or stale in %s; rewriting", self._path)
            self._write_text("\n".join(repaired) + "\n")

    def read_all(self) -> list[R]:
        """Return every parseable record; failures degrade to ``[]``."""

        try:
            stored = self._load()
        except StorageError:
            _logger.error("read failed for %s; returning no records", self._path, exc_info=True)
            return []

        records = [row.record for row in stored if row.record is not None]
        _logger.debug("read %d record(s) from %s", len(records), self._path)
        return records

    def add(self, record: R) -> None:
        """Append one record, writing the header first for a new file."""

        existed = self._path.exists()
        if existed:
            self.ensure_ready()
        line = _render_row(self._cells(record)) + "\n"
        try:
            if existed:
                with self._path.open("rb") as fb:
                    fb.seek(0, os.SEEK_END)
                    if fb.tell() > 0:
                        fb.seek(-1, os.SEEK_END)
                        if fb.read(1) not in (b"\n", b"\r"):
                            line = "\n" + line
            else:
                line = ",".join(self._codec.headers) + "\n" + line
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8", newline="") as f:
                f.write(line)
        except OSError as exc:
            raise StorageWriteError(f"cannot append to {self._path}: {exc}") from exc

    def find(self, match_field: str, match_value: str) -> R | None:
        """First stored record whose ``match_field`` equals ``match_value``."""

        return next(
            (r for r in self.read_all() if self._codec.match_value(r, match_field) == match_value),
            None,
        )

    def update_where(self, predicate: Callable[[R], bool], new_record: R) -> bool:
        stored = self._load()
        for i, row in enumerate(stored):
            if row.record is not None and predicate(row.record):
                stored[i] = _StoredRow(self._cells(new_record), new_record)
                self._rewrite(stored)
                return True
        return False

    def update(self, match_field: str, match_value: str, new_record: R) -> bool:
        """Replace the first record whose ``match_field`` equals ``match_value``."""

        updated = self.update_where(
            lambda r: self._codec.match_value(r, match_field) == match_value, new_record
        )
        if not updated:
            _logger.warning(
                "update: no row with %s=%r in %s", match_field, match_value, self._path
            )
        return updated

    def delete_where(self, predicate: Callable[[R], bool]) -> int:
        """Remove every record matching ``predicate``; return how many went."""

        stored = self._load()
        kept = [r for r in stored if r.record is None or not predicate(r.record)]
        removed = len(stored) - len(kept)
        if removed:
            self._rewrite(kept)
            _logger.info("deleted %d row(s) from %s", removed, self._path)
        return removed

    def delete(self, match_field: str, match_value: str) -> bool:
        """Remove every record whose ``match_field`` equals ``match_value``."""

        deleted = self.delete_where(
            lambda r: self._codec.match_value(r, match_field) == match_value
        )
        if not deleted:
            _logger.warning(
                "delete: no row with %s=%r in %s", match_field, match_value, self._path
            )
        return deleted > 0

    def overwrite_all(self, records: Iterable[R]) -> None:
        """Replace the file with the header followed by ``records`` in order."""

        self._write_text(self._render(self._cells(r) for r in records))

    def clear(self) -> None:
        self.overwrite_all([])


__all__ = ["RecordCodec", "CsvRepository", "reconcile_header"]
