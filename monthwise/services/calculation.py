"""
Calculation Engine

Pure functions over integer cents. Nothing here touches storage, and nothing
here produces a fractional cent: sums are plain int addition, and the two
ratios (spent percentage, daily average) are rounded half-up exactly once, at
the end, using Decimal.

    spent = total_spent(expenses)                  # paid only
    summary = month_summary(2026, 3, month, 50_000, expenses)
    total_excess(summaries, excess_boundary(2026)) # months that have happened
"""

import calendar
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from monthwise.models.entities import AllowanceSource, Expense, Month
from monthwise.models.summary import CategoryTotal, MonthSummary


def _round_half_up(numerator: int, denominator: int) -> int:
    return int((Decimal(numerator) / Decimal(denominator)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _live(expenses: Iterable[Expense]) -> list[Expense]:
    return [e for e in expenses if e.deleted_at is None]


# =============================================================================
# ALLOWANCE
# =============================================================================

def total_allowance(sources: Iterable[AllowanceSource]) -> int:
    """Sum of active, non-deleted sources."""
    return sum(s.amount_cents for s in sources if s.is_active and s.deleted_at is None)


def monthly_allowance(month: Optional[Month], default_allowance_cents: int) -> int:
    """The month's override when it has one, otherwise the default allowance."""
    if month is not None and month.allowance_override_cents is not None:
        return month.allowance_override_cents
    return default_allowance_cents


# =============================================================================
# EXPENSES
# =============================================================================

def total_spent(expenses: Iterable[Expense]) -> int:
    """Paid, non-deleted expenses."""
    return sum(e.amount_cents for e in expenses if e.is_paid and e.deleted_at is None)


def total_balance(expenses: Iterable[Expense]) -> int:
    """Unpaid, non-deleted expenses: what is still owed."""
    return sum(e.amount_cents for e in expenses if not e.is_paid and e.deleted_at is None)


def remaining(allowance_cents: int, spent_cents: int) -> int:
    return allowance_cents - spent_cents


def category_breakdown(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """Per-category totals of non-deleted expenses, largest first."""
    totals: dict[int, list[int]] = {}
    for expense in _live(expenses):
        bucket = totals.setdefault(expense.category_id, [0, 0])
        bucket[0] += expense.amount_cents
        bucket[1] += 1

    ordered = sorted(totals.items(), key=lambda item: (-item[1][0], item[0]))
    return [
        CategoryTotal(category_id=category_id, total_cents=total, count=count)
        for category_id, (total, count) in ordered
    ]


# =============================================================================
# MONTH SUMMARY
# =============================================================================

def month_summary(
    year: int,
    month: int,
    month_record: Optional[Month],
    default_allowance_cents: int,
    expenses: Iterable[Expense],
) -> MonthSummary:
    live = _live(expenses)
    allowance_cents = monthly_allowance(month_record, default_allowance_cents)
    spent_cents = total_spent(live)

    return MonthSummary(
        year=year,
        month=month,
        month_id=month_record.id if month_record is not None else None,
        allowance_cents=allowance_cents,
        spent_cents=spent_cents,
        balance_cents=total_balance(live),
        remaining_cents=remaining(allowance_cents, spent_cents),
        expense_count=len(live),
        has_override=month_record is not None and month_record.has_override,
    )


# =============================================================================
# YEAR TOTALS
# =============================================================================

def excess_boundary(year: int, today: Optional[date] = None) -> int:
    """
    Last month (inclusive) whose surplus counts toward the year's excess.

    12 for a past year, 0 for a future year, the current month for this year.
    """
    today = today or date.today()
    if year < today.year:
        return 12
    if year > today.year:
        return 0
    return today.month


def total_excess(summaries: Iterable[MonthSummary], up_to_month: int = 12) -> int:
    """Sum of positive remainders for months up to and including up_to_month."""
    return sum(
        s.remaining_cents
        for s in summaries
        if s.month <= up_to_month and s.remaining_cents > 0
    )


def total_deficit(summaries: Iterable[MonthSummary], up_to_month: int = 12) -> int:
    """Overspending as a positive number."""
    return sum(
        -s.remaining_cents
        for s in summaries
        if s.month <= up_to_month and s.remaining_cents < 0
    )


def net_savings(summaries: Iterable[MonthSummary], up_to_month: int = 12) -> int:
    return sum(s.remaining_cents for s in summaries if s.month <= up_to_month)


def average_allowance(summaries: Sequence[MonthSummary]) -> int:
    if not summaries:
        return 0
    return _round_half_up(sum(s.allowance_cents for s in summaries), len(summaries))


# =============================================================================
# RATIOS
# =============================================================================

def spent_percentage(spent_cents: int, allowance_cents: int) -> Optional[int]:
    """Whole percent of the allowance spent, or None when there is no allowance."""
    if allowance_cents == 0:
        return None
    return _round_half_up(spent_cents * 100, allowance_cents)


def daily_average(spent_cents: int, days: int) -> int:
    if days <= 0:
        return 0
    return _round_half_up(spent_cents, days)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]
