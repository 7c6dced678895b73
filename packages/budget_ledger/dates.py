"""Date and timestamp parsing for user input, import files and stored rows.

Transaction dates are stored canonically as ISO ``YYYY-MM-DD``. Input may use
any of :data:`DATE_INPUT_FORMATS`, tried in order; the first that parses wins.
"""

from __future__ import annotations

from datetime import date, datetime

from .errors import ValidationError

# Ordered: long month name, abbreviated month, ISO, numeric slash forms.
DATE_INPUT_FORMATS: tuple[str, ...] = (
    "%B %d, %Y",
    "%b %d, %Y",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
)

# Created-time stamps as exported by the budgeting workspace.
DATETIME_INPUT_FORMATS: tuple[str, ...] = (
    "%B %d, %Y %I:%M %p",
    "%B %d, %Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
)


def try_parse_date(raw: str | None) -> date | None:
    """Return the parsed date or ``None`` when no accepted pattern matches."""

    if raw is None:
        return None
    s = " ".join(str(raw).split())
    if not s:
        return None
    for fmt in DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    # Some exports append a time of day to the transaction date.
    dt = try_parse_datetime(s)
    return dt.date() if dt is not None else None


def parse_date(raw: str | None) -> date:
    """Strict variant of :func:`try_parse_date` for input contexts."""

    parsed = try_parse_date(raw)
    if parsed is None:
        raise ValidationError(f"invalid date: {raw!r}")
    return parsed


def try_parse_datetime(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    s = " ".join(str(raw).split())
    if not s:
        return None
    for fmt in DATETIME_INPUT_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def normalize_date_for_key(raw: str | None) -> str:
    """ISO form when parseable, else the lower-cased trimmed raw string."""

    parsed = try_parse_date(raw)
    if parsed is not None:
        return parsed.isoformat()
    return (raw or "").strip().lower()


def format_date(d: date | None) -> str:
    return d.isoformat() if d is not None else ""


__all__ = [
    "DATE_INPUT_FORMATS",
    "DATETIME_INPUT_FORMATS",
    "try_parse_date",
    "parse_date",
    "try_parse_datetime",
    "normalize_date_for_key",
    "format_date",
]
