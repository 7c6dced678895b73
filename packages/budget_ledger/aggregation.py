"""Joint splitting and summary aggregation.

Everything here is a pure function over lists of :class:`BudgetRecord`.
Synthesized split rows exist only in the returned lists and are never written
back to a repository.

Personalization for an owner yields the owner's own rows unchanged plus, for
each row on the joint account, a copy with the amount halved (cents,
half-up), the account set to the owner, and optionally the name suffixed with
:data:`~budget_ledger.records.SPLIT_MARKER`.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal

from .dates import try_parse_datetime
from .logging_setup import get_logger
from .money import ZERO, halve, quantize
from .records import (
    JOINT_ACCOUNT,
    SPLIT_MARKER,
    BudgetRecord,
    Criticality,
    with_account,
)

_logger = get_logger("budget_ledger.aggregation")

WEEK_DAYS = 7


def _total(records: Iterable[BudgetRecord]) -> Decimal:
    return quantize(sum((r.amount for r in records), ZERO))


def _same_text(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


# ---------------------------------------------------------------------------
# Personalization
# ---------------------------------------------------------------------------


def personalize(
    records: Iterable[BudgetRecord],
    owner: str,
    *,
    joint_account: str = JOINT_ACCOUNT,
    criticality: Criticality | None = None,
    category: str | None = None,
    payment_method: str | None = None,
    mark_split: bool = False,
) -> list[BudgetRecord]:
    """Return ``owner``'s effective records with joint rows split in half.

    Optional filters are applied to the source rows before splitting. The
    joint rows themselves are not part of the result.
    """

    out: list[BudgetRecord] = []
    for r in records:
        if criticality is not None and r.criticality is not criticality:
            continue
        if category is not None and not _same_text(r.category_label, category):
            continue
        if payment_method is not None and not _same_text(r.payment_method, payment_method):
            continue
        if r.is_owned_by(owner):
            out.append(r)
        elif r.is_owned_by(joint_account):
            name = r.name + SPLIT_MARKER if mark_split else r.name
            out.append(with_account(r, owner, amount=halve(r.amount), name=name))
    return out


def build_split_transactions(
    records: Iterable[BudgetRecord],
    owner: str,
    card: str,
    *,
    joint_account: str = JOINT_ACCOUNT,
) -> list[BudgetRecord]:
    """Personalized rows on one payment method, split rows marked by name."""

    return personalize(
        records, owner, joint_account=joint_account, payment_method=card, mark_split=True
    )


def joint_view(
    records: Iterable[BudgetRecord], *, joint_account: str = JOINT_ACCOUNT
) -> list[BudgetRecord]:
    """The joint account's own rows, unsplit."""

    return [r for r in records if r.is_owned_by(joint_account)]


def filter_for_period(records: Iterable[BudgetRecord], period: str) -> list[BudgetRecord]:
    return [r for r in records if r.in_period(period)]


def suppress_joint_duplicates(
    records: Sequence[BudgetRecord], *, joint_account: str = JOINT_ACCOUNT
) -> list[BudgetRecord]:
    """Drop unsplit joint rows that already have a split counterpart.

    A split row is one whose name carries the split marker; it matches a
    joint row with the same date, category, and base name.
    """

    split_keys = {
        (r.transaction_date, r.category_label.lower(), r.base_name.lower())
        for r in records
        if r.name.endswith(SPLIT_MARKER) and not r.is_owned_by(joint_account)
    }
    out: list[BudgetRecord] = []
    for r in records:
        key = (r.transaction_date, r.category_label.lower(), r.name.lower())
        if r.is_owned_by(joint_account) and key in split_keys:
            _logger.debug("suppressing joint row %r; split copy present", r.name)
            continue
        out.append(r)
    return out


# ---------------------------------------------------------------------------
# Category aggregation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryAggregate:
    """Parallel actual and projected totals for one category.

    A side is ``None`` when the category has no rows there.
    """

    category: str
    actual_total: Decimal | None = None
    projected_total: Decimal | None = None


@dataclass(frozen=True, slots=True)
class CategorySummary:
    rows: list[CategoryAggregate]
    actual_total: Decimal
    projected_total: Decimal

    @property
    def grand_total(self) -> Decimal:
        return quantize(self.actual_total + self.projected_total)


def totals_by_category(records: Iterable[BudgetRecord]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for r in records:
        label = r.category_label
        totals[label] = totals.get(label, ZERO) + r.amount
    return {k: quantize(v) for k, v in totals.items()}


def category_summary(
    actual: Iterable[BudgetRecord], projected: Iterable[BudgetRecord]
) -> CategorySummary:
    """Group both inputs by category; rows are sorted by category name.

    Callers pass personalized actual records and period-filtered projections.
    """

    actual_totals = totals_by_category(actual)
    projected_totals = totals_by_category(projected)
    names = sorted(set(actual_totals) | set(projected_totals), key=str.lower)
    rows = [
        CategoryAggregate(
            category=name,
            actual_total=actual_totals.get(name),
            projected_total=projected_totals.get(name),
        )
        for name in names
    ]
    return CategorySummary(
        rows=rows,
        actual_total=quantize(sum(actual_totals.values(), ZERO)),
        projected_total=quantize(sum(projected_totals.values(), ZERO)),
    )


# ---------------------------------------------------------------------------
# Weekly aggregation
# ---------------------------------------------------------------------------


def week_index(day: date, anchor: date) -> int:
    """1-based 7-day bucket of ``day`` counted from ``anchor``."""

    return (day - anchor).days // WEEK_DAYS + 1


@dataclass(frozen=True, slots=True)
class StatementWeek:
    index: int
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def statement_weeks(start: date, end: date) -> list[StatementWeek]:
    """Weeks anchored to the first of ``start``'s month; the last is clipped to ``end``."""

    if end < start:
        raise ValueError(f"statement end {end} precedes start {start}")
    anchor = start.replace(day=1)
    weeks: list[StatementWeek] = []
    for i in range(1, week_index(end, anchor) + 1):
        week_start = anchor + timedelta(days=(i - 1) * WEEK_DAYS)
        week_end = min(week_start + timedelta(days=WEEK_DAYS - 1), end)
        weeks.append(StatementWeek(index=i, start=week_start, end=week_end))
    return weeks


@dataclass(slots=True)
class WeeklyBucket:
    week: StatementWeek
    records: list[BudgetRecord] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return _total(self.records)


def weekly_breakdown(
    records: Iterable[BudgetRecord],
    start: date,
    end: date,
    *,
    owner: str | None = None,
    joint_account: str = JOINT_ACCOUNT,
) -> list[WeeklyBucket]:
    """Bucket dated records into statement weeks.

    With ``owner`` the records are personalized first (split rows marked).
    Without it the records are bucketed as given, except that a joint row is
    dropped when the set also holds its split copy (e.g. a list that mixes
    stored rows with :func:`build_split_transactions` output). Records without
    a date or dated outside ``[start, end]`` are left out and logged.
    """

    working = list(records)
    if owner is not None:
        working = personalize(working, owner, joint_account=joint_account, mark_split=True)
    else:
        working = suppress_joint_duplicates(working, joint_account=joint_account)

    buckets = [WeeklyBucket(week=w) for w in statement_weeks(start, end)]
    anchor = start.replace(day=1)
    for r in working:
        day = r.transaction_date
        if day is None:
            _logger.warning("weekly breakdown: %r has no transaction date; excluded", r.name)
            continue
        if not start <= day <= end:
            _logger.warning(
                "weekly breakdown: %r dated %s outside %s..%s; excluded", r.name, day, start, end
            )
            continue
        buckets[week_index(day, anchor) - 1].records.append(r)
    return buckets


# ---------------------------------------------------------------------------
# Payment-method aggregation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CardPaymentSummary:
    card: str
    owner_a_total: Decimal
    owner_b_total: Decimal

    @property
    def total(self) -> Decimal:
        return quantize(self.owner_a_total + self.owner_b_total)


@dataclass(frozen=True, slots=True)
class PaymentSummary:
    owners: tuple[str, str]
    cards: list[CardPaymentSummary]

    @property
    def owner_a_total(self) -> Decimal:
        return _total_of(c.owner_a_total for c in self.cards)

    @property
    def owner_b_total(self) -> Decimal:
        return _total_of(c.owner_b_total for c in self.cards)

    @property
    def grand_total(self) -> Decimal:
        return quantize(self.owner_a_total + self.owner_b_total)


def _total_of(values: Iterable[Decimal]) -> Decimal:
    return quantize(sum(values, ZERO))


def _owner_card_total(
    rows: Sequence[BudgetRecord], owner: str, joint_share: Decimal
) -> Decimal:
    if not owner:
        return ZERO
    direct = _total(r for r in rows if r.is_owned_by(owner))
    return quantize(direct + joint_share)


def payment_summary(
    records: Iterable[BudgetRecord],
    owners: Sequence[str],
    *,
    joint_account: str = JOINT_ACCOUNT,
) -> PaymentSummary:
    """Per-card totals for up to two owners: direct rows plus half the joint rows.

    Rows with a blank payment method are ignored. Cards are sorted by name.
    """

    if not owners or len(owners) > 2:
        raise ValueError("payment summary needs one or two owners")
    owner_a = owners[0]
    owner_b = owners[1] if len(owners) > 1 else ""

    by_card: dict[str, list[BudgetRecord]] = {}
    for r in records:
        card = r.payment_method.strip()
        if card:
            by_card.setdefault(card, []).append(r)

    cards: list[CardPaymentSummary] = []
    for card in sorted(by_card):
        rows = by_card[card]
        joint_share = halve(_total(r for r in rows if r.is_owned_by(joint_account)))
        cards.append(
            CardPaymentSummary(
                card=card,
                owner_a_total=_owner_card_total(rows, owner_a, joint_share),
                owner_b_total=_owner_card_total(rows, owner_b, joint_share),
            )
        )
    return PaymentSummary(owners=(owner_a, owner_b), cards=cards)


# ---------------------------------------------------------------------------
# Criticality and ordering
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CriticalityTotals:
    essential: Decimal
    non_essential: Decimal
    unclassified: Decimal

    @property
    def total(self) -> Decimal:
        return quantize(self.essential + self.non_essential + self.unclassified)


def criticality_totals(
    records: Iterable[BudgetRecord],
    owner: str,
    *,
    joint_account: str = JOINT_ACCOUNT,
) -> CriticalityTotals:
    rows = personalize(records, owner, joint_account=joint_account)
    return CriticalityTotals(
        essential=_total(r for r in rows if r.criticality is Criticality.ESSENTIAL),
        non_essential=_total(r for r in rows if r.criticality is Criticality.NON_ESSENTIAL),
        unclassified=_total(r for r in rows if r.criticality is None),
    )


def sort_newest_first(records: Iterable[BudgetRecord]) -> list[BudgetRecord]:
    """Order by created time, newest first; unparseable times go last."""

    dated: list[tuple[datetime, BudgetRecord]] = []
    undated: list[BudgetRecord] = []
    for r in records:
        created = try_parse_datetime(r.created_time)
        if created is None:
            undated.append(r)
        else:
            dated.append((created, r))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [r for _, r in dated] + undated


__all__ = [
    "personalize",
    "build_split_transactions",
    "joint_view",
    "filter_for_period",
    "suppress_joint_duplicates",
    "CategoryAggregate",
    "CategorySummary",
    "totals_by_category",
    "category_summary",
    "week_index",
    "StatementWeek",
    "statement_weeks",
    "WeeklyBucket",
    "weekly_breakdown",
    "CardPaymentSummary",
    "PaymentSummary",
    "payment_summary",
    "CriticalityTotals",
    "criticality_totals",
    "sort_newest_first",
]
