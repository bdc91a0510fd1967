"""
Month Repository

Month rows are created lazily, the first time a (profile, year, month) is
looked at, and are never deleted on their own; they go away only with their
profile.
"""

from typing import Optional

import structlog

from monthwise.models.entities import Month
from monthwise.models.updates import MonthUpdate
from monthwise.repositories.base import BaseRepository
from monthwise.storage.errors import ConstraintError, NotFoundError
from monthwise.storage.handle import utc_now
from monthwise.storage.mappers import MonthMapper
from monthwise.storage.reference_data import DEFAULT_PROFILE_ID

logger = structlog.get_logger(__name__)


class MonthRepository(BaseRepository):
    mapper = MonthMapper

    async def find_by_id(self, month_id: int) -> Optional[Month]:
        db = await self._db()
        row = db.fetch_one("SELECT * FROM months WHERE id = ?", (month_id,))
        return MonthMapper.to_model(row) if row else None

    async def find_by_year_month(
        self, year: int, month: int, profile_id: int = DEFAULT_PROFILE_ID
    ) -> Optional[Month]:
        db = await self._db()
        row = db.fetch_one(
            "SELECT * FROM months WHERE year = ? AND month = ? AND profile_id = ?",
            (year, month, profile_id),
        )
        return MonthMapper.to_model(row) if row else None

    async def find_by_year(self, year: int, profile_id: int = DEFAULT_PROFILE_ID) -> list[Month]:
        db = await self._db()
        rows = db.fetch_all(
            "SELECT * FROM months WHERE year = ? AND profile_id = ? ORDER BY month ASC",
            (year, profile_id),
        )
        return [MonthMapper.to_model(row) for row in rows]

    async def find_all(self, profile_id: Optional[int] = None) -> list[Month]:
        """All months, or only those of one profile."""
        db = await self._db()
        if profile_id is None:
            rows = db.fetch_all("SELECT * FROM months ORDER BY year ASC, month ASC, id ASC")
        else:
            rows = db.fetch_all(
                "SELECT * FROM months WHERE profile_id = ? ORDER BY year ASC, month ASC",
                (profile_id,),
            )
        return [MonthMapper.to_model(row) for row in rows]

    async def get_years_with_data(self, profile_id: int = DEFAULT_PROFILE_ID) -> list[int]:
        """Years with a month row or an allowance source, newest first."""
        db = await self._db()
        rows = db.fetch_all(
            """
            SELECT year FROM months WHERE profile_id = ?
            UNION
            SELECT year FROM allowance_sources WHERE profile_id = ? AND deleted_at IS NULL
            ORDER BY year DESC
            """,
            (profile_id, profile_id),
        )
        return [row["year"] for row in rows]

    async def get_or_create(
        self, year: int, month: int, profile_id: int = DEFAULT_PROFILE_ID
    ) -> Month:
        """
        Return the month row, inserting it first if needed.

        Repeated calls with the same arguments return the same row and never
        fail on the unique key.

        Raises:
            ConstraintError: If month is outside 1..12 or the profile does not exist
        """
        if not 1 <= month <= 12:
            raise ConstraintError(f"Month must be between 1 and 12, got {month}")

        existing = await self.find_by_year_month(year, month, profile_id)
        if existing is not None:
            return existing

        db = await self._db()
        now = utc_now()
        cursor = db.execute(
            """
            INSERT OR IGNORE INTO months (profile_id, year, month, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (profile_id, year, month, now, now),
        )
        if cursor.rowcount:
            logger.debug("month_created", profile_id=profile_id, year=year, month=month)

        created = await self.find_by_year_month(year, month, profile_id)
        if created is None:
            raise ConstraintError(
                f"Could not create month {year}-{month:02d} for profile {profile_id}"
            )
        return created

    async def update(self, month_id: int, payload: MonthUpdate) -> Month:
        """
        Raises:
            NotFoundError: If the month does not exist
        """
        existing = await self._get(month_id)
        if payload.is_empty():
            return existing

        db = await self._db()
        if not self._update_columns(db, month_id, payload.supplied()):
            raise NotFoundError(f"Month not found: {month_id}")
        return await self._get(month_id)

    async def set_allowance_override(self, month_id: int, amount_cents: int) -> Month:
        return await self.update(month_id, MonthUpdate(allowance_override_cents=amount_cents))

    async def clear_allowance_override(self, month_id: int) -> Month:
        return await self.update(month_id, MonthUpdate(allowance_override_cents=None))

    async def _get(self, month_id: int) -> Month:
        month = await self.find_by_id(month_id)
        if month is None:
            raise NotFoundError(f"Month not found: {month_id}")
        return month
