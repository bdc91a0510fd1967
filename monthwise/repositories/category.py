"""
Category Repository

Categories are global and soft-deleted. Names are unique case-insensitively
across all rows, deleted ones included. Expenses keep pointing at deleted
categories; resolve() turns those references into the "Unknown" sentinel.
"""

from collections.abc import Iterable
from typing import Optional

import structlog

from monthwise.models.entities import Category, unknown_category
from monthwise.models.updates import CategoryCreate, CategoryUpdate
from monthwise.repositories.base import BaseRepository
from monthwise.storage.errors import ConstraintError, NotFoundError
from monthwise.storage.handle import placeholders, utc_now
from monthwise.storage.mappers import CategoryMapper

logger = structlog.get_logger(__name__)


class CategoryRepository(BaseRepository):
    mapper = CategoryMapper

    async def find_by_id(self, category_id: int) -> Optional[Category]:
        db = await self._db()
        row = db.fetch_one(
            "SELECT * FROM categories WHERE id = ? AND deleted_at IS NULL",
            (category_id,),
        )
        return CategoryMapper.to_model(row) if row else None

    async def find_by_name(self, name: str) -> Optional[Category]:
        """Case-insensitive lookup among non-deleted categories."""
        db = await self._db()
        row = db.fetch_one(
            "SELECT * FROM categories WHERE name = ? COLLATE NOCASE AND deleted_at IS NULL",
            (name.strip(),),
        )
        return CategoryMapper.to_model(row) if row else None

    async def find_all(self) -> list[Category]:
        db = await self._db()
        rows = db.fetch_all(
            "SELECT * FROM categories WHERE deleted_at IS NULL ORDER BY sort_order ASC, id ASC"
        )
        return [CategoryMapper.to_model(row) for row in rows]

    async def find_all_including_deleted(self) -> list[Category]:
        db = await self._db()
        rows = db.fetch_all("SELECT * FROM categories ORDER BY sort_order ASC, id ASC")
        return [CategoryMapper.to_model(row) for row in rows]

    async def resolve(self, category_id: int) -> Category:
        """The category, or the "Unknown" sentinel if it is missing or deleted."""
        category = await self.find_by_id(category_id)
        return category if category is not None else unknown_category(category_id)

    async def resolve_many(self, category_ids: Iterable[int]) -> dict[int, Category]:
        ids = sorted(set(category_ids))
        if not ids:
            return {}
        db = await self._db()
        rows = db.fetch_all(
            f"SELECT * FROM categories WHERE id IN ({placeholders(len(ids))}) AND deleted_at IS NULL",
            ids,
        )
        found = {row["id"]: CategoryMapper.to_model(row) for row in rows}
        return {
            category_id: found.get(category_id) or unknown_category(category_id)
            for category_id in ids
        }

    async def create(self, payload: CategoryCreate) -> Category:
        """
        Create a category.

        Raises:
            ConstraintError: If the name is already used (case-insensitive)
        """
        db = await self._db()
        self._check_name_free(db, payload.name)

        sort_order = payload.sort_order
        if sort_order is None:
            sort_order = db.fetch_value("SELECT MAX(sort_order) FROM categories", default=-1) + 1

        now = utc_now()
        cursor = db.execute(
            "INSERT INTO categories (name, icon, color, sort_order, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (payload.name, payload.icon, payload.color, sort_order, now, now),
        )
        logger.info("category_created", category_id=cursor.lastrowid)
        return await self._get(cursor.lastrowid)

    async def update(self, category_id: int, payload: CategoryUpdate) -> Category:
        """
        Apply the supplied fields.

        Raises:
            NotFoundError: If the category is missing or deleted
            ConstraintError: If the new name is already used
        """
        existing = await self._get(category_id)
        if payload.is_empty():
            return existing

        db = await self._db()
        values = payload.supplied()
        if "name" in values and values["name"].lower() != existing.name.lower():
            self._check_name_free(db, values["name"])

        if not self._update_columns(db, category_id, values, where="deleted_at IS NULL"):
            raise NotFoundError(f"Category not found: {category_id}")
        return await self._get(category_id)

    async def soft_delete(self, category_id: int) -> None:
        db = await self._db()
        if not self._soft_delete(db, category_id):
            raise NotFoundError(f"Category not found: {category_id}")
        logger.info("category_deleted", category_id=category_id)

    async def _get(self, category_id: int) -> Category:
        category = await self.find_by_id(category_id)
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return category

    @staticmethod
    def _check_name_free(db, name: str) -> None:
        row = db.fetch_one(
            "SELECT id, deleted_at FROM categories WHERE name = ? COLLATE NOCASE",
            (name,),
        )
        if row is not None:
            state = " (deleted)" if row["deleted_at"] else ""
            raise ConstraintError(f"Category name already exists{state}: {name}")
