"""
Repository Base

Every repository receives the StorageEngine and opens it lazily on first use,
so constructing repositories never touches the disk.
"""

from typing import Any, Optional

from monthwise.storage.engine import StorageEngine
from monthwise.storage.handle import StorageHandle, utc_now
from monthwise.storage.mappers import RowMapper


class BaseRepository:
    mapper: type[RowMapper]

    def __init__(self, engine: StorageEngine):
        self._engine = engine

    async def _db(self) -> StorageHandle:
        return await self._engine.open()

    def _update_columns(
        self,
        db: StorageHandle,
        entity_id: int,
        values: dict[str, Any],
        where: Optional[str] = None,
    ) -> int:
        """
        UPDATE the given fields (by field name) plus updated_at on one row.

        Returns the number of rows changed.
        """
        assignments = []
        params: list[Any] = []
        for field, value in values.items():
            assignments.append(f"{self.mapper.column_for(field)} = ?")
            params.append(self.mapper.to_column_value(field, value))
        assignments.append("updated_at = ?")
        params.append(utc_now())
        params.append(entity_id)

        sql = f"UPDATE {self.mapper.table} SET {', '.join(assignments)} WHERE id = ?"
        if where:
            sql += f" AND {where}"
        return db.execute(sql, params).rowcount

    def _soft_delete(self, db: StorageHandle, entity_id: int) -> int:
        now = utc_now()
        return db.execute(
            f"UPDATE {self.mapper.table} SET deleted_at = ?, updated_at = ? "
            "WHERE id = ? AND deleted_at IS NULL",
            (now, now, entity_id),
        ).rowcount
