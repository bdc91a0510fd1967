"""
Expense Repository

Verification rule: an expense stops being verified when any of its
category, amount, note or date changes value, or when it goes from paid to
unpaid. Marking it paid never touches verification, and a write that sets
is_verified itself always wins.
"""

from collections.abc import Sequence
from datetime import date
from typing import Any, Optional

import structlog

from monthwise.models.entities import Expense
from monthwise.models.summary import CategoryTotal
from monthwise.models.updates import ExpenseCreate, ExpenseUpdate
from monthwise.repositories.base import BaseRepository
from monthwise.storage.errors import NotFoundError
from monthwise.storage.handle import placeholders, utc_now
from monthwise.storage.mappers import ExpenseMapper

logger = structlog.get_logger(__name__)

# Fields whose change of value clears is_verified
VERIFICATION_SENSITIVE_FIELDS = ("category_id", "amount_cents", "note", "expense_date")


def verification_reset_required(existing: Expense, changes: dict[str, Any]) -> bool:
    """Whether applying changes to existing must clear is_verified."""
    if "is_verified" in changes:
        return False
    for field in VERIFICATION_SENSITIVE_FIELDS:
        if field in changes and changes[field] != getattr(existing, field):
            return True
    return existing.is_paid and changes.get("is_paid") is False


class ExpenseRepository(BaseRepository):
    mapper = ExpenseMapper

    async def find_by_id(self, expense_id: int) -> Optional[Expense]:
        db = await self._db()
        row = db.fetch_one(
            "SELECT * FROM expenses WHERE id = ? AND deleted_at IS NULL",
            (expense_id,),
        )
        return ExpenseMapper.to_model(row) if row else None

    async def find_by_month_id(self, month_id: int) -> list[Expense]:
        db = await self._db()
        rows = db.fetch_all(
            """
            SELECT * FROM expenses
            WHERE month_id = ? AND deleted_at IS NULL
            ORDER BY expense_date DESC, created_at DESC, id DESC
            """,
            (month_id,),
        )
        return [ExpenseMapper.to_model(row) for row in rows]

    async def find_by_month_and_category(self, month_id: int, category_id: int) -> list[Expense]:
        db = await self._db()
        rows = db.fetch_all(
            """
            SELECT * FROM expenses
            WHERE month_id = ? AND category_id = ? AND deleted_at IS NULL
            ORDER BY expense_date DESC, created_at DESC, id DESC
            """,
            (month_id, category_id),
        )
        return [ExpenseMapper.to_model(row) for row in rows]

    async def find_all_including_deleted(self) -> list[Expense]:
        db = await self._db()
        rows = db.fetch_all("SELECT * FROM expenses ORDER BY id ASC")
        return [ExpenseMapper.to_model(row) for row in rows]

    # -------------------------------------------------------------------------
    # Aggregates (integer sums computed by SQLite)
    # -------------------------------------------------------------------------

    async def get_total_for_month(self, month_id: int) -> int:
        """Paid expenses of the month, in cents."""
        db = await self._db()
        return db.fetch_value(
            "SELECT SUM(amount_cents) FROM expenses "
            "WHERE month_id = ? AND deleted_at IS NULL AND is_paid = 1",
            (month_id,),
            default=0,
        )

    async def get_balance_for_month(self, month_id: int) -> int:
        """Unpaid expenses of the month, in cents."""
        db = await self._db()
        return db.fetch_value(
            "SELECT SUM(amount_cents) FROM expenses "
            "WHERE month_id = ? AND deleted_at IS NULL AND is_paid = 0",
            (month_id,),
            default=0,
        )

    async def get_category_breakdown(self, month_id: int) -> list[CategoryTotal]:
        db = await self._db()
        rows = db.fetch_all(
            """
            SELECT category_id, SUM(amount_cents) AS total, COUNT(*) AS count
            FROM expenses
            WHERE month_id = ? AND deleted_at IS NULL
            GROUP BY category_id
            ORDER BY total DESC, category_id ASC
            """,
            (month_id,),
        )
        return [
            CategoryTotal(category_id=row["category_id"], total_cents=row["total"], count=row["count"])
            for row in rows
        ]

    async def get_count_for_month(self, month_id: int) -> int:
        db = await self._db()
        return db.fetch_value(
            "SELECT COUNT(*) FROM expenses WHERE month_id = ? AND deleted_at IS NULL",
            (month_id,),
            default=0,
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, payload: ExpenseCreate) -> Expense:
        """
        Create an expense dated today unless expense_date is given.

        Raises:
            ConstraintError: If the month or category does not exist
        """
        db = await self._db()
        now = utc_now()
        expense_date = payload.expense_date or date.today()
        cursor = db.execute(
            """
            INSERT INTO expenses
                (month_id, category_id, amount_cents, note, expense_date,
                 is_paid, is_verified, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                payload.month_id,
                payload.category_id,
                payload.amount_cents,
                payload.note,
                expense_date.isoformat(),
                1 if payload.is_paid else 0,
                now,
                now,
            ),
        )
        logger.debug("expense_created", expense_id=cursor.lastrowid, month_id=payload.month_id)
        return await self._get(cursor.lastrowid)

    async def update(self, expense_id: int, payload: ExpenseUpdate) -> Expense:
        """
        Apply the supplied fields and the verification rule.

        Raises:
            NotFoundError: If the expense is missing or deleted
            ConstraintError: If the new category does not exist
        """
        existing = await self._get(expense_id)
        if payload.is_empty():
            return existing

        changes = payload.supplied()
        if verification_reset_required(existing, changes):
            changes["is_verified"] = False

        db = await self._db()
        if not self._update_columns(db, expense_id, changes, where="deleted_at IS NULL"):
            raise NotFoundError(f"Expense not found: {expense_id}")
        return await self._get(expense_id)

    async def soft_delete(self, expense_id: int) -> None:
        db = await self._db()
        if not self._soft_delete(db, expense_id):
            raise NotFoundError(f"Expense not found: {expense_id}")

    # -------------------------------------------------------------------------
    # Bulk writes: one statement each, no-ops on an empty id list
    # -------------------------------------------------------------------------

    async def bulk_update_paid_status(self, expense_ids: Sequence[int], is_paid: bool) -> int:
        """
        Mark expenses paid or unpaid. Unpaying clears verification on the
        rows that were paid. Returns the number of rows changed.
        """
        if not expense_ids:
            return 0
        if is_paid:
            sql = "UPDATE expenses SET is_paid = 1, updated_at = ?"
        else:
            sql = (
                "UPDATE expenses SET is_paid = 0, "
                "is_verified = CASE WHEN is_paid = 1 THEN 0 ELSE is_verified END, "
                "updated_at = ?"
            )
        return await self._bulk_update(sql, expense_ids, ())

    async def bulk_update_verified_status(
        self, expense_ids: Sequence[int], is_verified: bool
    ) -> int:
        if not expense_ids:
            return 0
        return await self._bulk_update(
            "UPDATE expenses SET is_verified = ?, updated_at = ?",
            expense_ids,
            (1 if is_verified else 0,),
        )

    async def bulk_delete(self, expense_ids: Sequence[int]) -> int:
        """Soft-delete expenses. Returns the number of rows deleted."""
        if not expense_ids:
            return 0
        now = utc_now()
        return await self._bulk_update(
            "UPDATE expenses SET deleted_at = ?, updated_at = ?",
            expense_ids,
            (now,),
        )

    async def verify_all_for_month(self, month_id: int) -> int:
        """Mark every live expense of the month verified."""
        db = await self._db()
        with db.transaction():
            cursor = db.execute(
                "UPDATE expenses SET is_verified = 1, updated_at = ? "
                "WHERE month_id = ? AND deleted_at IS NULL AND is_verified = 0",
                (utc_now(), month_id),
            )
        logger.info("expenses_verified", month_id=month_id, count=cursor.rowcount)
        return cursor.rowcount

    async def _bulk_update(
        self,
        set_clause: str,
        expense_ids: Sequence[int],
        leading_params: tuple,
    ) -> int:
        """set_clause must end with "updated_at = ?"; the timestamp is appended here."""
        ids = list(dict.fromkeys(expense_ids))
        sql = f"{set_clause} WHERE id IN ({placeholders(len(ids))}) AND deleted_at IS NULL"
        params = [*leading_params, utc_now(), *ids]

        db = await self._db()
        with db.transaction():
            cursor = db.execute(sql, params)
        logger.info("expenses_bulk_updated", requested=len(ids), changed=cursor.rowcount)
        return cursor.rowcount

    async def _get(self, expense_id: int) -> Expense:
        expense = await self.find_by_id(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return expense
