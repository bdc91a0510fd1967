"""
Allowance Source Repository

Allowance sources belong to a profile and a year. The default monthly
allowance of a year is the integer sum of its active, non-deleted sources.
"""

from typing import Optional

import structlog

from monthwise.models.entities import AllowanceSource
from monthwise.models.updates import AllowanceSourceCreate, AllowanceSourceUpdate
from monthwise.repositories.base import BaseRepository
from monthwise.storage.errors import NotFoundError
from monthwise.storage.handle import utc_now
from monthwise.storage.mappers import AllowanceSourceMapper
from monthwise.storage.reference_data import DEFAULT_PROFILE_ID

logger = structlog.get_logger(__name__)


class AllowanceSourceRepository(BaseRepository):
    mapper = AllowanceSourceMapper

    async def find_by_id(self, source_id: int) -> Optional[AllowanceSource]:
        db = await self._db()
        row = db.fetch_one(
            "SELECT * FROM allowance_sources WHERE id = ? AND deleted_at IS NULL",
            (source_id,),
        )
        return AllowanceSourceMapper.to_model(row) if row else None

    async def find_active_by_year(
        self, year: int, profile_id: int = DEFAULT_PROFILE_ID
    ) -> list[AllowanceSource]:
        db = await self._db()
        rows = db.fetch_all(
            """
            SELECT * FROM allowance_sources
            WHERE year = ? AND profile_id = ? AND is_active = 1 AND deleted_at IS NULL
            ORDER BY id ASC
            """,
            (year, profile_id),
        )
        return [AllowanceSourceMapper.to_model(row) for row in rows]

    async def find_all(
        self,
        profile_id: int = DEFAULT_PROFILE_ID,
        year: Optional[int] = None,
    ) -> list[AllowanceSource]:
        """Non-deleted sources of a profile, active or not, optionally for one year."""
        db = await self._db()
        sql = "SELECT * FROM allowance_sources WHERE profile_id = ? AND deleted_at IS NULL"
        params: list = [profile_id]
        if year is not None:
            sql += " AND year = ?"
            params.append(year)
        sql += " ORDER BY year DESC, id ASC"
        return [AllowanceSourceMapper.to_model(row) for row in db.fetch_all(sql, params)]

    async def find_all_including_deleted(self) -> list[AllowanceSource]:
        db = await self._db()
        rows = db.fetch_all("SELECT * FROM allowance_sources ORDER BY id ASC")
        return [AllowanceSourceMapper.to_model(row) for row in rows]

    async def create(
        self,
        payload: AllowanceSourceCreate,
        profile_id: int = DEFAULT_PROFILE_ID,
    ) -> AllowanceSource:
        """
        Raises:
            ConstraintError: If the profile does not exist
        """
        db = await self._db()
        now = utc_now()
        cursor = db.execute(
            """
            INSERT INTO allowance_sources
                (profile_id, year, name, amount_cents, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                profile_id,
                payload.year,
                payload.name,
                payload.amount_cents,
                1 if payload.is_active else 0,
                now,
                now,
            ),
        )
        logger.info(
            "allowance_source_created",
            source_id=cursor.lastrowid,
            profile_id=profile_id,
            year=payload.year,
        )
        return await self._get(cursor.lastrowid)

    async def update(self, source_id: int, payload: AllowanceSourceUpdate) -> AllowanceSource:
        existing = await self._get(source_id)
        if payload.is_empty():
            return existing

        db = await self._db()
        if not self._update_columns(db, source_id, payload.supplied(), where="deleted_at IS NULL"):
            raise NotFoundError(f"Allowance source not found: {source_id}")
        return await self._get(source_id)

    async def soft_delete(self, source_id: int) -> None:
        db = await self._db()
        if not self._soft_delete(db, source_id):
            raise NotFoundError(f"Allowance source not found: {source_id}")
        logger.info("allowance_source_deleted", source_id=source_id)

    async def calculate_total_allowance(
        self, year: int, profile_id: int = DEFAULT_PROFILE_ID
    ) -> int:
        """Sum of active, non-deleted source amounts for the year, in cents."""
        db = await self._db()
        return db.fetch_value(
            """
            SELECT SUM(amount_cents) FROM allowance_sources
            WHERE year = ? AND profile_id = ? AND is_active = 1 AND deleted_at IS NULL
            """,
            (year, profile_id),
            default=0,
        )

    async def _get(self, source_id: int) -> AllowanceSource:
        source = await self.find_by_id(source_id)
        if source is None:
            raise NotFoundError(f"Allowance source not found: {source_id}")
        return source
