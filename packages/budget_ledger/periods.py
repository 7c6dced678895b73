"""Statement periods: month-scoped budgeting cycles keyed as ``MONTHYYYY``.

The canonical key is the upper-case English month name followed by a 4-digit
year (``"SEPTEMBER2025"``). The display form ``"September 2025"`` is accepted
on input as well.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date

from .errors import ValidationError

_MONTHS: tuple[str, ...] = tuple(calendar.month_name[i].upper() for i in range(1, 13))
_PERIOD_RE = re.compile(r"^\s*([A-Za-z]+)\s*(\d{4})\s*$")

MIN_YEAR = 1900
MAX_YEAR = 3000


@dataclass(frozen=True, slots=True, order=True)
class StatementPeriod:
    """A (year, month) pair. Ordering is chronological."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValidationError(f"month out of range: {self.month}")
        if not MIN_YEAR <= self.year <= MAX_YEAR:
            raise ValidationError(f"year out of valid range: {self.year}")

    @classmethod
    def parse(cls, raw: str) -> StatementPeriod:
        m = _PERIOD_RE.match(raw or "")
        if not m:
            raise ValidationError(f"invalid statement period: {raw!r}")
        name, year = m.group(1).upper(), int(m.group(2))
        if name not in _MONTHS:
            raise ValidationError(f"invalid statement period month: {raw!r}")
        return cls(year=year, month=_MONTHS.index(name) + 1)

    @classmethod
    def containing(cls, day: date) -> StatementPeriod:
        return cls(year=day.year, month=day.month)

    @property
    def key(self) -> str:
        return f"{_MONTHS[self.month - 1]}{self.year}"

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def next(self) -> StatementPeriod:
        if self.month == 12:
            return StatementPeriod(year=self.year + 1, month=1)
        return StatementPeriod(year=self.year, month=self.month + 1)

    def __str__(self) -> str:
        return self.key


def is_valid_period(raw: str | None) -> bool:
    try:
        StatementPeriod.parse(raw or "")
    except ValidationError:
        return False
    return True


def canonical_period(raw: str) -> str:
    """Return the ``MONTHYYYY`` key for any accepted period spelling."""

    return StatementPeriod.parse(raw).key


__all__ = ["StatementPeriod", "is_valid_period", "canonical_period"]
