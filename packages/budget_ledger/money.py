"""Amount parsing and formatting.

Amounts are ``Decimal`` values quantized to cents. The canonical text form is
``"$"`` followed by a two-decimal fixed number (``"$1200.00"``, ``"$-4.50"``).

Input contexts use :func:`parse_amount`, which raises
:class:`~budget_ledger.errors.ValidationError`. Display and aggregation
contexts use :func:`amount_or_zero`, which degrades to zero.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def parse_amount(raw: str | Decimal | int | float | None) -> Decimal:
    """Parse ``raw`` into a cents-quantized ``Decimal``.

    Accepts an optional leading sign, an optional ``$``, thousands separators,
    and accounting-style parentheses for negatives (``"($1,234.56)"``).
    """

    if raw is None:
        raise ValidationError("amount is required")
    if isinstance(raw, Decimal):
        return quantize(raw)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return quantize(Decimal(str(raw)))

    s = str(raw).strip()
    if not s:
        raise ValidationError("amount is empty")

    negative = False
    # Strip sign, currency symbol and parentheses in any order until stable.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = not negative
            s = s[1:].lstrip()
            changed = True
        if s.startswith("$"):
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").strip()
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValidationError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValidationError(f"invalid amount: {raw!r}")
    return quantize(-d if negative else d)


def amount_or_zero(raw: str | Decimal | None) -> Decimal:
    """Lenient variant of :func:`parse_amount` for display contexts."""

    try:
        return parse_amount(raw)
    except ValidationError:
        return ZERO


def quantize(d: Decimal) -> Decimal:
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def halve(d: Decimal) -> Decimal:
    """Half of ``d`` rounded to cents (half-up)."""

    return quantize(d / 2)


def format_amount(d: Decimal) -> str:
    """Canonical ``"$" + 2-decimal`` string."""

    return f"${quantize(d):.2f}"


def format_plain(d: Decimal) -> str:
    """Two-decimal string without the currency symbol (export files)."""

    return f"{quantize(d):.2f}"


__all__ = [
    "CENT",
    "ZERO",
    "parse_amount",
    "amount_or_zero",
    "quantize",
    "halve",
    "format_amount",
    "format_plain",
]
