"""
Year Overview Service

Builds the twelve-month view of one profile's year: every calendar month gets
a summary, opened or not, and the year's excess only counts months that have
already happened.
"""

from datetime import date
from typing import Optional

import structlog

from monthwise.models.summary import MonthSummary, YearOverview
from monthwise.repositories.allowance import AllowanceSourceRepository
from monthwise.repositories.expense import ExpenseRepository
from monthwise.repositories.month import MonthRepository
from monthwise.services import calculation
from monthwise.storage.reference_data import DEFAULT_PROFILE_ID

logger = structlog.get_logger(__name__)


class YearOverviewService:
    def __init__(
        self,
        allowance_sources: AllowanceSourceRepository,
        months: MonthRepository,
        expenses: ExpenseRepository,
    ):
        self.allowance_sources = allowance_sources
        self.months = months
        self.expenses = expenses

    async def load_year(
        self,
        year: int,
        profile_id: int = DEFAULT_PROFILE_ID,
        today: Optional[date] = None,
    ) -> YearOverview:
        """
        Summarize a year.

        Args:
            year: Calendar year
            profile_id: Profile whose data is summarized
            today: Reference date for the excess boundary (defaults to today)
        """
        sources = await self.allowance_sources.find_active_by_year(year, profile_id)
        default_allowance = calculation.total_allowance(sources)

        records = {m.month: m for m in await self.months.find_by_year(year, profile_id)}

        summaries: list[MonthSummary] = []
        for month_number in range(1, 13):
            record = records.get(month_number)
            expenses = await self.expenses.find_by_month_id(record.id) if record else []
            summaries.append(
                calculation.month_summary(year, month_number, record, default_allowance, expenses)
            )

        boundary = calculation.excess_boundary(year, today)
        overview = YearOverview(
            profile_id=profile_id,
            year=year,
            months=summaries,
            default_allowance_cents=default_allowance,
            avg_allowance_cents=calculation.average_allowance(summaries),
            total_spent_cents=sum(s.spent_cents for s in summaries),
            total_balance_cents=sum(s.balance_cents for s in summaries),
            total_excess_cents=calculation.total_excess(summaries, boundary),
            excess_up_to_month=boundary,
        )
        logger.debug(
            "year_overview_loaded",
            profile_id=profile_id,
            year=year,
            months_with_data=len(records),
        )
        return overview
