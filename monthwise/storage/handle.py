"""
Storage Handle

A thin wrapper around the one sqlite3 connection the engine owns. The
connection runs in autocommit mode: single statements are atomic on their own,
and multi-statement work goes through transaction().
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence, Union

import structlog

from monthwise.storage.errors import ConstraintError, TransactionError

logger = structlog.get_logger(__name__)

Params = Union[Sequence[Any], Mapping[str, Any]]


def utc_now() -> str:
    """Timestamp format used by every created_at/updated_at/deleted_at column."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def placeholders(count: int) -> str:
    """'?, ?, ?' for an IN (...) clause of the given size."""
    return ", ".join("?" for _ in range(count))


class StorageHandle:
    """Query surface over an open sqlite3 connection."""

    def __init__(self, connection: sqlite3.Connection):
        self._conn = connection

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        """
        Execute one statement.

        Raises:
            ConstraintError: On a UNIQUE, CHECK, NOT NULL or FOREIGN KEY violation
        """
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise ConstraintError(str(e)) from e

    def execute_many(self, sql: str, rows: Iterable[Params]) -> sqlite3.Cursor:
        try:
            return self._conn.executemany(sql, rows)
        except sqlite3.IntegrityError as e:
            raise ConstraintError(str(e)) from e

    def execute_script(self, script: str) -> None:
        self._conn.executescript(script)

    def fetch_one(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetch_all(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def fetch_value(self, sql: str, params: Params = (), default: Any = None) -> Any:
        """First column of the first row, or default when there is no row or it is NULL."""
        row = self.fetch_one(sql, params)
        if row is None or row[0] is None:
            return default
        return row[0]

    def table_columns(self, table: str) -> list[str]:
        return [row["name"] for row in self.fetch_all(f"PRAGMA table_info({table})")]

    @contextmanager
    def transaction(self) -> Iterator["StorageHandle"]:
        """
        Run the enclosed statements as one all-or-nothing unit.

        Any exception rolls back and is re-raised as TransactionError (the
        original error is chained). Nested use joins the outer transaction.
        """
        if self._conn.in_transaction:
            yield self
            return

        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self
        except Exception as e:
            self._conn.execute("ROLLBACK")
            logger.warning("transaction_rolled_back", error=str(e), error_type=type(e).__name__)
            raise TransactionError(f"Transaction rolled back: {e}") from e
        else:
            self._conn.execute("COMMIT")

    def close(self) -> None:
        self._conn.close()
