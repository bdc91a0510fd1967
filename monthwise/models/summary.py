"""
Derived view records produced by the calculation engine and year overview.
All amounts are integer cents.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SummaryModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class MonthSummary(SummaryModel):
    """Money view of one calendar month."""

    year: int
    month: int = Field(..., ge=1, le=12)
    month_id: Optional[int] = Field(
        default=None,
        description="None when the month has never been opened"
    )
    allowance_cents: int
    spent_cents: int = Field(..., description="Paid expenses")
    balance_cents: int = Field(..., description="Unpaid expenses")
    remaining_cents: int = Field(..., description="Allowance minus spent; negative is a deficit")
    expense_count: int
    has_override: bool = False


class CategoryTotal(SummaryModel):
    category_id: int
    total_cents: int
    count: int


class YearOverview(SummaryModel):
    """Twelve month summaries plus the year-level totals."""

    profile_id: int
    year: int
    months: list[MonthSummary]
    default_allowance_cents: int
    avg_allowance_cents: int
    total_spent_cents: int
    total_balance_cents: int
    total_excess_cents: int
    excess_up_to_month: int = Field(..., ge=0, le=12)
