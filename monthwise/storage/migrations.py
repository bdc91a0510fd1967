"""
Schema Migrations

Forward-only. Every migration runs on every start, in order, and looks at the
live schema (PRAGMA table_info / index_list) before touching it. A database
left half-migrated by an interrupted run is therefore finished on the next
start instead of being skipped because of its stored version number.

Any failure other than "duplicate column name" is raised as MigrationError.
"""

import sqlite3
from dataclasses import dataclass
from typing import Callable

import structlog

from monthwise.storage.errors import MigrationError
from monthwise.storage.handle import StorageHandle
from monthwise.storage.schema import MONTHS_TABLE_V2

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Migration:
    """One inspect-then-mutate schema step."""

    version: int
    name: str
    apply: Callable[[StorageHandle], bool]


def _add_column(db: StorageHandle, table: str, column: str, definition: str) -> bool:
    """
    Add a column unless it is already there.

    Returns True if the column was added.
    """
    if column in db.table_columns(table):
        return False
    try:
        db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
    except sqlite3.OperationalError as e:
        if "duplicate column" in str(e).lower():
            return False
        raise
    logger.info("column_added", table=table, column=column)
    return True


def _unique_key_columns(db: StorageHandle, table: str) -> list[set[str]]:
    keys = []
    for index in db.fetch_all(f"PRAGMA index_list({table})"):
        if not index["unique"]:
            continue
        columns = db.fetch_all(f"PRAGMA index_info({index['name']})")
        keys.append({column["name"] for column in columns})
    return keys


def _has_nocase_unique_name(db: StorageHandle) -> bool:
    for index in db.fetch_all("PRAGMA index_list(categories)"):
        if not index["unique"]:
            continue
        keys = [
            column for column in db.fetch_all(f"PRAGMA index_xinfo({index['name']})")
            if column["key"]
        ]
        if len(keys) == 1 and keys[0]["name"] == "name" and keys[0]["coll"].upper() == "NOCASE":
            return True
    return False


def _add_profile_scope(db: StorageHandle) -> bool:
    # ALTER TABLE cannot add a REFERENCES column with a non-NULL default while
    # foreign keys are on, so the column is added bare.
    added_sources = _add_column(db, "allowance_sources", "profile_id", "INTEGER NOT NULL DEFAULT 1")
    added_months = _add_column(db, "months", "profile_id", "INTEGER NOT NULL DEFAULT 1")
    return added_sources or added_months


def _rebuild_months_unique_key(db: StorageHandle) -> bool:
    if {"year", "month"} not in _unique_key_columns(db, "months"):
        return False

    conn = db.connection
    # Dropping months with foreign keys on would cascade into expenses.
    conn.execute("PRAGMA foreign_keys = OFF")
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            conn.execute("DROP TABLE IF EXISTS months_rebuild")
            conn.execute(MONTHS_TABLE_V2)
            copied = conn.execute(
                "INSERT INTO months_rebuild "
                "(id, profile_id, year, month, allowance_override_cents, created_at, updated_at) "
                "SELECT id, profile_id, year, month, allowance_override_cents, created_at, updated_at "
                "FROM months"
            ).rowcount
            expected = conn.execute("SELECT COUNT(*) FROM months").fetchone()[0]
            if copied != expected:
                raise MigrationError(f"Months rebuild copied {copied} of {expected} rows")
            conn.execute("DROP TABLE months")
            conn.execute("ALTER TABLE months_rebuild RENAME TO months")
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
    finally:
        conn.execute("PRAGMA foreign_keys = ON")

    logger.info("months_unique_key_rebuilt")
    return True


def _add_paid_flag(db: StorageHandle) -> bool:
    return _add_column(db, "expenses", "is_paid", "INTEGER NOT NULL DEFAULT 0")


def _add_verified_flag(db: StorageHandle) -> bool:
    return _add_column(db, "expenses", "is_verified", "INTEGER NOT NULL DEFAULT 0")


def _add_profile_security(db: StorageHandle) -> bool:
    changed = _add_column(db, "profiles", "is_secured", "INTEGER NOT NULL DEFAULT 0")
    changed = _add_column(db, "profiles", "auth_password_hash", "TEXT") or changed
    if _add_column(db, "profiles", "updated_at", "TEXT NOT NULL DEFAULT ''"):
        db.execute("UPDATE profiles SET updated_at = created_at WHERE updated_at = ''")
        changed = True

    if not _has_nocase_unique_name(db):
        db.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_categories_name_nocase "
            "ON categories(name COLLATE NOCASE)"
        )
        changed = True
    return changed


MIGRATIONS: tuple[Migration, ...] = (
    Migration(2, "add_profile_scope", _add_profile_scope),
    Migration(2, "rebuild_months_unique_key", _rebuild_months_unique_key),
    Migration(3, "add_expense_paid_flag", _add_paid_flag),
    Migration(4, "add_expense_verified_flag", _add_verified_flag),
    Migration(5, "add_profile_security", _add_profile_security),
)


def run_migrations(db: StorageHandle, from_version: int, to_version: int) -> list[str]:
    """
    Bring the schema up to to_version.

    All migrations up to to_version are run regardless of from_version; each
    one is a no-op when its change is already present.

    Returns:
        Names of the migrations that changed something

    Raises:
        MigrationError: If inspecting or altering the schema fails
    """
    logger.info("migrations_started", from_version=from_version, to_version=to_version)

    applied = []
    for migration in MIGRATIONS:
        if migration.version > to_version:
            break
        try:
            if migration.apply(db):
                applied.append(migration.name)
        except MigrationError:
            logger.error("migration_failed", migration=migration.name)
            raise
        except Exception as e:
            logger.error("migration_failed", migration=migration.name, error=str(e))
            raise MigrationError(f"Migration {migration.name} failed: {e}") from e

    logger.info("migrations_finished", applied=applied)
    return applied
