"""CSV exports of derived summaries.

- Payment summary: ``Card,<OwnerA> Payment,<OwnerB> Payment``, one row per
  card in sorted order, amounts as plain two-decimal numbers.
- Category summary: ``Category,Actual,Projected`` with empty cells for a
  missing side, followed by a ``TOTAL`` row.
"""

from __future__ import annotations

import contextlib
import csv
import io
import os
from collections.abc import Sequence
from decimal import Decimal
from os import PathLike
from pathlib import Path

from .aggregation import CategorySummary, PaymentSummary
from .errors import StorageWriteError
from .logging_setup import get_logger
from .money import format_plain

_logger = get_logger("budget_ledger.exporters")

TOTAL_LABEL = "TOTAL"


def _rows_to_csv(rows: Sequence[Sequence[str]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue()


def _write_atomic(path: Path, text: str) -> Path:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise StorageWriteError(f"cannot write export {path}: {exc}") from exc
    _logger.info("wrote %s", path)
    return path


def payment_summary_csv(summary: PaymentSummary) -> str:
    owner_a, owner_b = summary.owners
    rows: list[list[str]] = [["Card", f"{owner_a} Payment", f"{owner_b} Payment"]]
    for card in summary.cards:
        rows.append(
            [card.card, format_plain(card.owner_a_total), format_plain(card.owner_b_total)]
        )
    return _rows_to_csv(rows)


def export_payment_summary(summary: PaymentSummary, path: str | PathLike[str]) -> Path:
    return _write_atomic(Path(path), payment_summary_csv(summary))


def category_summary_csv(summary: CategorySummary) -> str:
    def cell(value: Decimal | None) -> str:
        return format_plain(value) if value is not None else ""

    rows: list[list[str]] = [["Category", "Actual", "Projected"]]
    for row in summary.rows:
        rows.append([row.category, cell(row.actual_total), cell(row.projected_total)])
    rows.append(
        [TOTAL_LABEL, format_plain(summary.actual_total), format_plain(summary.projected_total)]
    )
    return _rows_to_csv(rows)


def export_category_summary(summary: CategorySummary, path: str | PathLike[str]) -> Path:
    return _write_atomic(Path(path), category_summary_csv(summary))


__all__ = [
    "TOTAL_LABEL",
    "payment_summary_csv",
    "export_payment_summary",
    "category_summary_csv",
    "export_category_summary",
]
