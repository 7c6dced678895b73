"""Budget record model shared by real and projected transactions.

A single frozen ``BudgetRecord`` covers both shapes; ``kind`` is the explicit
discriminant (``actual`` vs ``projected``). Projected records must carry a
statement period. Records have no identity beyond their field values, so
repositories match them by field value or by :func:`composite_key`.

Two construction paths exist:

- :func:`new_record` (input context): every field is validated strictly and a
  :class:`~budget_ledger.errors.ValidationError` is raised on bad input.
- :meth:`BudgetRecordCodec.from_row` (storage context): stored cells are read
  leniently; an unparseable amount reads as zero and is logged.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import StrEnum

from .dates import format_date, parse_date, try_parse_date
from .errors import ValidationError
from .logging_setup import get_logger
from .money import ZERO, format_amount, parse_amount
from .periods import canonical_period

_logger = get_logger("budget_ledger.records")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NAME = "Name"
AMOUNT = "Amount"
CATEGORY = "Category"
CRITICALITY = "Criticality"
TRANSACTION_DATE = "Transaction Date"
ACCOUNT = "Account"
STATUS = "status"
CREATED_TIME = "Created time"
PAYMENT_METHOD = "Payment Method"
STATEMENT_PERIOD = "Statement Period"

# Virtual match field resolved by the codec, never written to disk.
COMPOSITE_KEY = "Composite Key"

RECORD_HEADERS: tuple[str, ...] = (
    NAME,
    AMOUNT,
    CATEGORY,
    CRITICALITY,
    TRANSACTION_DATE,
    ACCOUNT,
    STATUS,
    CREATED_TIME,
    PAYMENT_METHOD,
    STATEMENT_PERIOD,
)
TRANSACTION_HEADERS = RECORD_HEADERS
PROJECTED_HEADERS = RECORD_HEADERS

JOINT_ACCOUNT = "Joint"
SPLIT_MARKER = " [Split Joint]"
UNCATEGORIZED = "(Uncategorized)"
KEY_SEPARATOR = "|"


class RecordKind(StrEnum):
    ACTUAL = "actual"
    PROJECTED = "projected"


class Criticality(StrEnum):
    ESSENTIAL = "Essential"
    NON_ESSENTIAL = "NonEssential"

    @classmethod
    def try_parse(cls, raw: str | None) -> Criticality | None:
        token = "".join(ch for ch in (raw or "").lower() if ch.isalpha())
        if token == "essential":
            return cls.ESSENTIAL
        if token == "nonessential":
            return cls.NON_ESSENTIAL
        return None

    @classmethod
    def parse(cls, raw: str | None) -> Criticality:
        parsed = cls.try_parse(raw)
        if parsed is None:
            raise ValidationError(
                f"invalid criticality: {raw!r} (expected Essential or NonEssential)"
            )
        return parsed


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BudgetRecord:
    """One real or planned expense.

    ``amount`` is a cents-quantized ``Decimal``; ``transaction_date`` is
    ``None`` when absent (typical for projections). Text fields are stored
    as-is; empty string means "not set".
    """

    kind: RecordKind
    name: str
    amount: Decimal
    category: str = ""
    criticality: Criticality | None = None
    transaction_date: date | None = None
    account: str = ""
    status: str = ""
    created_time: str = ""
    payment_method: str = ""
    statement_period: str = ""

    def __post_init__(self) -> None:
        if self.kind is RecordKind.PROJECTED and not self.statement_period.strip():
            raise ValidationError("projected records require a statement period")

    @property
    def is_projected(self) -> bool:
        return self.kind is RecordKind.PROJECTED

    def is_owned_by(self, account: str) -> bool:
        return self.account.strip().lower() == account.strip().lower()

    @property
    def is_joint(self) -> bool:
        return self.is_owned_by(JOINT_ACCOUNT)

    @property
    def category_label(self) -> str:
        return self.category.strip() or UNCATEGORIZED

    @property
    def base_name(self) -> str:
        """Name with any split marker removed."""

        return self.name.removesuffix(SPLIT_MARKER)

    def in_period(self, period: str) -> bool:
        return same_period(self.statement_period, period)

    def to_row(self) -> dict[str, str]:
        return {
            NAME: self.name,
            AMOUNT: format_amount(self.amount),
            CATEGORY: self.category,
            CRITICALITY: self.criticality.value if self.criticality else "",
            TRANSACTION_DATE: format_date(self.transaction_date),
            ACCOUNT: self.account,
            STATUS: self.status,
            CREATED_TIME: self.created_time,
            PAYMENT_METHOD: self.payment_method,
            STATEMENT_PERIOD: self.statement_period,
        }


def same_period(a: str, b: str) -> bool:
    """Compare period tags by canonical key, falling back to text equality."""

    if a.strip().upper() == b.strip().upper():
        return True
    try:
        return canonical_period(a) == canonical_period(b)
    except ValidationError:
        return False


def composite_key(record: BudgetRecord) -> str:
    """Match key for records that share individual field values.

    Covers name, amount, category, criticality, account, created time and
    statement period.
    """

    row = record.to_row()
    return KEY_SEPARATOR.join(
        row[f]
        for f in (NAME, AMOUNT, CATEGORY, CRITICALITY, ACCOUNT, CREATED_TIME, STATEMENT_PERIOD)
    )


def new_record(
    kind: RecordKind,
    *,
    name: str,
    amount: str | Decimal,
    category: str = "",
    criticality: str | Criticality | None = None,
    transaction_date: str | date | None = None,
    account: str = "",
    status: str = "",
    created_time: str = "",
    payment_method: str = "",
    statement_period: str = "",
    require_account: bool = True,
) -> BudgetRecord:
    """Build a record from user input, validating every field strictly.

    Import rows pass ``require_account=False``; exports may leave the owner blank.
    """

    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    account = (account or "").strip()
    if require_account and not account:
        raise ValidationError("account is required")

    crit: Criticality | None
    if isinstance(criticality, Criticality):
        crit = criticality
    elif criticality is None or not str(criticality).strip():
        crit = None
    else:
        crit = Criticality.parse(criticality)

    tx_date: date | None
    if isinstance(transaction_date, date):
        tx_date = transaction_date
    elif transaction_date is None or not str(transaction_date).strip():
        tx_date = None
    else:
        tx_date = parse_date(transaction_date)

    period = (statement_period or "").strip()
    if period:
        period = canonical_period(period)

    return BudgetRecord(
        kind=kind,
        name=name,
        amount=parse_amount(amount),
        category=(category or "").strip(),
        criticality=crit,
        transaction_date=tx_date,
        account=account,
        status=(status or "").strip(),
        created_time=(created_time or "").strip(),
        payment_method=(payment_method or "").strip(),
        statement_period=period,
    )


def with_account(record: BudgetRecord, account: str, **changes: object) -> BudgetRecord:
    return replace(record, account=account, **changes)


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class BudgetRecordCodec:
    """Map ``BudgetRecord`` values to and from header-keyed CSV rows."""

    def __init__(self, kind: RecordKind, headers: tuple[str, ...] = RECORD_HEADERS) -> None:
        self.kind = kind
        self.headers = headers

    def to_row(self, record: BudgetRecord) -> dict[str, str]:
        return record.to_row()

    def from_row(self, row: Mapping[str, str]) -> BudgetRecord:
        def cell(key: str) -> str:
            return (row.get(key) or "").strip()

        raw_amount = cell(AMOUNT)
        try:
            amount = parse_amount(raw_amount)
        except ValidationError:
            _logger.warning(
                "stored amount unparseable; reading as zero name=%r amount=%r",
                cell(NAME),
                raw_amount,
            )
            amount = ZERO

        raw_date = cell(TRANSACTION_DATE)
        tx_date = try_parse_date(raw_date)
        if raw_date and tx_date is None:
            _logger.warning("stored date unparseable name=%r date=%r", cell(NAME), raw_date)

        raw_crit = cell(CRITICALITY)
        crit = Criticality.try_parse(raw_crit)
        if raw_crit and crit is None:
            _logger.warning("stored criticality unknown name=%r value=%r", cell(NAME), raw_crit)

        return BudgetRecord(
            kind=self.kind,
            name=cell(NAME),
            amount=amount,
            category=cell(CATEGORY),
            criticality=crit,
            transaction_date=tx_date,
            account=cell(ACCOUNT),
            status=cell(STATUS),
            created_time=cell(CREATED_TIME),
            payment_method=cell(PAYMENT_METHOD),
            statement_period=cell(STATEMENT_PERIOD),
        )

    def match_value(self, record: BudgetRecord, field: str) -> str:
        if field == COMPOSITE_KEY:
            return composite_key(record)
        return record.to_row().get(field, "")


__all__ = [
    "NAME",
    "AMOUNT",
    "CATEGORY",
    "CRITICALITY",
    "TRANSACTION_DATE",
    "ACCOUNT",
    "STATUS",
    "CREATED_TIME",
    "PAYMENT_METHOD",
    "STATEMENT_PERIOD",
    "COMPOSITE_KEY",
    "RECORD_HEADERS",
    "TRANSACTION_HEADERS",
    "PROJECTED_HEADERS",
    "JOINT_ACCOUNT",
    "SPLIT_MARKER",
    "UNCATEGORIZED",
    "RecordKind",
    "Criticality",
    "BudgetRecord",
    "BudgetRecordCodec",
    "same_period",
    "composite_key",
    "new_record",
    "with_account",
]
