"""
Storage Engine

Owns the single SQLite connection of the application. The engine is created by
the composition root and injected into every repository; there is no module
level database global.

Opening is lazy and single-flight: every caller that arrives before the first
open has finished awaits the same future, so the file is connected, migrated
and seeded exactly once. A failed open clears the future so the next call
starts over. A close() that lands while an open is in flight wins: the
connection being opened is closed again and is never handed out.
"""

import asyncio
import sqlite3
from pathlib import Path
from typing import Optional, Union

import structlog

from monthwise.storage.errors import MigrationError, StorageError
from monthwise.storage.handle import StorageHandle, utc_now
from monthwise.storage.migrations import run_migrations
from monthwise.storage.reference_data import sync_reference_data
from monthwise.storage.schema import (
    CREATE_INDEXES,
    CREATE_TABLES,
    SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
)

logger = structlog.get_logger(__name__)


def read_schema_version(db: StorageHandle) -> int:
    """
    Stored schema version, 0 when there is none yet.

    On a fresh database the settings table may not exist; that is the one
    error treated as "version 0" rather than raised.
    """
    try:
        value = db.fetch_value(
            "SELECT value FROM app_settings WHERE key = ?",
            (SCHEMA_VERSION_KEY,),
        )
    except sqlite3.OperationalError:
        return 0
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        raise MigrationError(f"Stored schema version is not an integer: {value!r}")


def write_schema_version(db: StorageHandle, version: int) -> None:
    db.execute(
        "INSERT OR REPLACE INTO app_settings (key, value, updated_at) VALUES (?, ?, ?)",
        (SCHEMA_VERSION_KEY, str(version), utc_now()),
    )


class StorageEngine:
    """
    Lazily opened, migrated SQLite database.

    Usage:
        engine = StorageEngine(Path("monthwise.db"))
        db = await engine.open()
        ...
        await engine.close()
    """

    def __init__(
        self,
        database_path: Union[str, Path],
        target_version: int = SCHEMA_VERSION,
    ):
        """
        Args:
            database_path: SQLite file path, or ":memory:"
            target_version: Schema version to migrate to
        """
        self._path = str(database_path)
        self._target_version = target_version
        self._handle: Optional[StorageHandle] = None
        self._init_future: Optional[asyncio.Future] = None

    @property
    def database_path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    async def open(self) -> StorageHandle:
        """
        Get the open handle, initializing the database on first use.

        Raises:
            MigrationError: If the schema cannot be brought up to date
            StorageError: If close() was called while this open was in flight
            sqlite3.Error: If the database file cannot be opened
        """
        if self._handle is not None:
            return self._handle

        if self._init_future is None:
            self._init_future = asyncio.ensure_future(self._initialize())
        future = self._init_future

        try:
            handle = await asyncio.shield(future)
        except Exception:
            if self._init_future is future:
                self._init_future = None
            raise

        if self._init_future is not future:
            raise StorageError(f"Database was closed while opening: {self._path}")
        self._handle = handle
        return handle

    async def close(self) -> None:
        """
        Close the connection; the next open() starts from scratch.

        An open() still in flight is waited for and the connection it produces
        is closed as well; its callers get a StorageError.
        """
        # Let open() calls that are already scheduled register first.
        await asyncio.sleep(0)

        handle = self._handle
        pending = self._init_future
        self._handle = None
        self._init_future = None

        if handle is None and pending is not None:
            try:
                handle = await asyncio.shield(pending)
            except Exception:
                # Already logged by _initialize and raised to the open() callers
                handle = None

        if handle is not None:
            handle.close()
            logger.info("database_closed", path=self._path)

    async def _initialize(self) -> StorageHandle:
        connection = self._connect()
        db = StorageHandle(connection)
        try:
            self._prepare(db)
        except Exception as e:
            logger.error("database_initialization_failed", path=self._path, error=str(e))
            connection.close()
            raise
        return db

    def _connect(self) -> sqlite3.Connection:
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        # Autocommit; transactions are opened explicitly by StorageHandle.
        connection = sqlite3.connect(self._path, isolation_level=None)
        connection.row_factory = sqlite3.Row
        logger.debug("database_connected", path=self._path)
        return connection

    def _prepare(self, db: StorageHandle) -> None:
        db.execute("PRAGMA foreign_keys = ON")
        db.execute_script(CREATE_TABLES)

        stored_version = read_schema_version(db)
        run_migrations(db, stored_version, self._target_version)
        db.execute_script(CREATE_INDEXES)

        if stored_version > self._target_version:
            logger.warning(
                "schema_newer_than_app",
                stored_version=stored_version,
                app_version=self._target_version,
            )
        new_version = max(stored_version, self._target_version)
        if new_version != stored_version:
            write_schema_version(db, new_version)

        sync_reference_data(db)

        logger.info(
            "database_initialized",
            path=self._path,
            schema_version=new_version,
            previous_version=stored_version,
        )
