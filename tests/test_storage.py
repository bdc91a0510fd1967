"""
Tests for the storage engine, migrations and reference data.
"""

import asyncio
import sqlite3

import pytest

from monthwise.storage import MigrationError, SCHEMA_VERSION, StorageEngine, StorageError
from monthwise.storage.engine import read_schema_version
from monthwise.storage.migrations import run_migrations
from monthwise.storage.reference_data import DEFAULT_CATEGORIES, sync_reference_data

LEGACY_V1_SCHEMA = """
CREATE TABLE allowance_sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    year INTEGER NOT NULL,
    name TEXT NOT NULL,
    amount_cents INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);
CREATE TABLE categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    icon TEXT,
    color TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);
CREATE TABLE months (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    year INTEGER NOT NULL,
    month INTEGER NOT NULL,
    allowance_override_cents INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(year, month)
);
CREATE TABLE expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    month_id INTEGER NOT NULL,
    category_id INTEGER NOT NULL,
    amount_cents INTEGER NOT NULL,
    note TEXT,
    expense_date TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT,
    FOREIGN KEY (month_id) REFERENCES months(id),
    FOREIGN KEY (category_id) REFERENCES categories(id)
);
CREATE TABLE app_settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
INSERT INTO app_settings VALUES ('schema_version', '1', '2024-01-01');
INSERT INTO categories (name, icon, color, sort_order, created_at, updated_at)
    VALUES ('Food', 'F', '#000000', 9, '2024-01-01', '2024-01-01');
INSERT INTO months (year, month, allowance_override_cents, created_at, updated_at)
    VALUES (2024, 1, 40000, '2024-01-01', '2024-01-01');
INSERT INTO allowance_sources (year, name, amount_cents, created_at, updated_at)
    VALUES (2024, 'Salary', 50000, '2024-01-01', '2024-01-01');
INSERT INTO expenses (month_id, category_id, amount_cents, note, expense_date, created_at, updated_at)
    VALUES (1, 1, 1234, 'groceries', '2024-01-05', '2024-01-05', '2024-01-05');
"""


def schema_snapshot(db):
    rows = db.fetch_all(
        "SELECT type, name, sql FROM sqlite_master WHERE name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    return [tuple(row) for row in rows]


def counting_connect(monkeypatch):
    calls = []
    real_connect = sqlite3.connect

    def connect(*args, **kwargs):
        calls.append(args)
        return real_connect(*args, **kwargs)

    monkeypatch.setattr(sqlite3, "connect", connect)
    return calls


class TestEngineOpen:
    """Tests for lazy, single-flight initialization."""

    def test_open_creates_schema_and_reference_data(self, engine, run):
        db = run(engine.open())

        assert read_schema_version(db) == SCHEMA_VERSION
        assert db.fetch_value("SELECT COUNT(*) FROM profiles") == 1
        assert db.fetch_value("SELECT COUNT(*) FROM categories") == len(DEFAULT_CATEGORIES)
        assert db.fetch_value("PRAGMA foreign_keys") == 1

    def test_open_is_idempotent(self, engine, run):
        assert run(engine.open()) is run(engine.open())

    def test_concurrent_open_coalesces(self, engine, run, monkeypatch):
        """Overlapping first calls share one physical open."""
        calls = counting_connect(monkeypatch)

        async def open_many():
            return await asyncio.gather(*(engine.open() for _ in range(5)))

        handles = run(open_many())

        assert len(calls) == 1
        assert all(handle is handles[0] for handle in handles)

    def test_failed_open_can_be_retried(self, engine, run, monkeypatch):
        """A failed initialization is forgotten; the next call starts over."""
        attempts = []
        original_prepare = StorageEngine._prepare

        def flaky_prepare(self, db):
            attempts.append(1)
            if len(attempts) == 1:
                raise MigrationError("simulated failure")
            return original_prepare(self, db)

        monkeypatch.setattr(StorageEngine, "_prepare", flaky_prepare)

        async def open_many():
            return await asyncio.gather(
                *(engine.open() for _ in range(3)),
                return_exceptions=True,
            )

        results = run(open_many())
        assert all(isinstance(r, MigrationError) for r in results)
        assert len(attempts) == 1
        assert not engine.is_open

        db = run(engine.open())
        assert engine.is_open
        assert read_schema_version(db) == SCHEMA_VERSION

    def test_close_then_reopen(self, engine, run, monkeypatch):
        first = run(engine.open())
        run(engine.close())
        assert not engine.is_open

        calls = counting_connect(monkeypatch)
        second = run(engine.open())
        assert second is not first
        assert len(calls) == 1

    def test_close_during_open_wins(self, engine, run, monkeypatch):
        """A close that lands mid-open closes that connection instead of losing it."""
        calls = counting_connect(monkeypatch)
        opened = []
        real_initialize = StorageEngine._initialize

        async def tracking_initialize(self):
            db = await real_initialize(self)
            opened.append(db)
            return db

        monkeypatch.setattr(StorageEngine, "_initialize", tracking_initialize)

        async def race():
            pending = asyncio.ensure_future(engine.open())
            await engine.close()
            results = await asyncio.gather(pending, return_exceptions=True)
            return results[0]

        outcome = run(race())

        assert isinstance(outcome, StorageError)
        assert not engine.is_open
        assert len(opened) == 1
        with pytest.raises(sqlite3.ProgrammingError):
            opened[0].fetch_value("SELECT 1")

        db = run(engine.open())
        assert engine.is_open
        assert db is not opened[0]
        assert len(calls) == 2

    def test_newer_stored_version_is_kept(self, engine, run):
        db = run(engine.open())
        db.execute("UPDATE app_settings SET value = '99' WHERE key = 'schema_version'")
        run(engine.close())

        db = run(engine.open())
        assert read_schema_version(db) == 99


class TestMigrations:
    """Tests for inspect-then-mutate migrations."""

    def test_migrations_are_idempotent(self, engine, run):
        """Running the migrations again changes neither schema nor data."""
        db = run(engine.open())
        db.execute(
            "INSERT INTO months (profile_id, year, month, created_at, updated_at) "
            "VALUES (1, 2026, 2, 't', 't')"
        )
        before_schema = schema_snapshot(db)
        before_rows = [tuple(r) for r in db.fetch_all("SELECT * FROM months")]

        assert run_migrations(db, 0, SCHEMA_VERSION) == []
        assert run_migrations(db, 0, SCHEMA_VERSION) == []

        assert schema_snapshot(db) == before_schema
        assert [tuple(r) for r in db.fetch_all("SELECT * FROM months")] == before_rows

    def test_legacy_database_is_upgraded(self, db_path, run):
        """A version 1 file gains profiles, flags and the new unique key without losing rows."""
        conn = sqlite3.connect(db_path)
        conn.executescript(LEGACY_V1_SCHEMA)
        conn.close()

        engine = StorageEngine(db_path)
        try:
            db = run(engine.open())

            assert read_schema_version(db) == SCHEMA_VERSION
            assert {"is_paid", "is_verified"} <= set(db.table_columns("expenses"))
            assert "profile_id" in db.table_columns("months")
            assert "profile_id" in db.table_columns("allowance_sources")

            month = db.fetch_one("SELECT * FROM months WHERE id = 1")
            assert (month["profile_id"], month["year"], month["allowance_override_cents"]) == (1, 2024, 40000)

            expense = db.fetch_one("SELECT * FROM expenses WHERE id = 1")
            assert expense["amount_cents"] == 1234
            assert expense["is_paid"] == 0

            # Same (year, month) is now allowed for another profile
            db.execute(
                "INSERT INTO profiles (id, name, is_secured, created_at, updated_at) "
                "VALUES (2, 'Second', 0, 't', 't')"
            )
            db.execute(
                "INSERT INTO months (profile_id, year, month, created_at, updated_at) "
                "VALUES (2, 2024, 1, 't', 't')"
            )

            # Legacy category renamed in place and brought in line
            category = db.fetch_one("SELECT * FROM categories WHERE id = 1")
            assert category["name"] == DEFAULT_CATEGORIES[0].name
            assert category["icon"] == DEFAULT_CATEGORIES[0].icon
            assert category["sort_order"] == 0
        finally:
            run(engine.close())

    def test_legacy_upgrade_survives_restart(self, db_path, run):
        conn = sqlite3.connect(db_path)
        conn.executescript(LEGACY_V1_SCHEMA)
        conn.close()

        for _ in range(2):
            engine = StorageEngine(db_path)
            db = run(engine.open())
            snapshot = schema_snapshot(db)
            run(engine.close())

        engine = StorageEngine(db_path)
        try:
            assert schema_snapshot(run(engine.open())) == snapshot
        finally:
            run(engine.close())

    def test_unexpected_failure_aborts_open(self, db_path, run):
        """A non-recoverable schema problem surfaces as MigrationError."""
        conn = sqlite3.connect(db_path)
        conn.executescript(LEGACY_V1_SCHEMA)
        conn.execute(
            "INSERT INTO categories (name, created_at, updated_at) VALUES ('food', 't', 't')"
        )
        conn.commit()
        conn.close()

        engine = StorageEngine(db_path)
        with pytest.raises(MigrationError):
            run(engine.open())
        assert not engine.is_open


class TestReferenceData:
    """Tests for canonical category synchronization."""

    def test_deleted_canonical_category_is_resurrected(self, engine, run):
        db = run(engine.open())
        name = DEFAULT_CATEGORIES[3].name
        db.execute(
            "UPDATE categories SET deleted_at = 't', color = '#123456', sort_order = 50 WHERE name = ?",
            (name,),
        )

        sync_reference_data(db)

        row = db.fetch_one("SELECT * FROM categories WHERE name = ?", (name,))
        assert row["deleted_at"] is None
        assert row["color"] == DEFAULT_CATEGORIES[3].color
        assert row["sort_order"] == 3

    def test_sync_does_not_duplicate(self, engine, run):
        db = run(engine.open())
        sync_reference_data(db)
        sync_reference_data(db)
        assert db.fetch_value("SELECT COUNT(*) FROM categories") == len(DEFAULT_CATEGORIES)

    def test_custom_categories_untouched(self, engine, run):
        db = run(engine.open())
        db.execute(
            "INSERT INTO categories (name, sort_order, created_at, updated_at) VALUES ('Pets', 40, 't', 't')"
        )
        sync_reference_data(db)
        assert db.fetch_value("SELECT sort_order FROM categories WHERE name = 'Pets'") == 40
