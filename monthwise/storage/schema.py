"""
Database Schema

CREATE_TABLES is the current (SCHEMA_VERSION) layout. Tables that already exist
are left alone; older layouts are brought forward by the migration runner.
Indexes are created only after migrations have run, since several of them
reference columns that older layouts lack.
"""

SCHEMA_VERSION = 5

SCHEMA_VERSION_KEY = "schema_version"

CREATE_TABLES = """
-- User profiles for data isolation
CREATE TABLE IF NOT EXISTS profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    is_secured INTEGER NOT NULL DEFAULT 0,
    auth_password_hash TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Allowance sources (salary, side income, ...) per year per profile
CREATE TABLE IF NOT EXISTS allowance_sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    profile_id INTEGER NOT NULL DEFAULT 1,
    year INTEGER NOT NULL,
    name TEXT NOT NULL,
    amount_cents INTEGER NOT NULL DEFAULT 0 CHECK(amount_cents >= 0),
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT,
    FOREIGN KEY (profile_id) REFERENCES profiles(id) ON DELETE CASCADE
);

-- Categories for expenses (global, not profile-bound)
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE COLLATE NOCASE,
    icon TEXT,
    color TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);

-- Months with optional allowance override per profile
CREATE TABLE IF NOT EXISTS months (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    profile_id INTEGER NOT NULL DEFAULT 1,
    year INTEGER NOT NULL,
    month INTEGER NOT NULL CHECK(month >= 1 AND month <= 12),
    allowance_override_cents INTEGER CHECK(allowance_override_cents >= 0),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(profile_id, year, month),
    FOREIGN KEY (profile_id) REFERENCES profiles(id) ON DELETE CASCADE
);

-- Individual expenses
CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    month_id INTEGER NOT NULL,
    category_id INTEGER NOT NULL,
    amount_cents INTEGER NOT NULL CHECK(amount_cents > 0),
    note TEXT,
    expense_date TEXT NOT NULL,
    is_paid INTEGER NOT NULL DEFAULT 0,
    is_verified INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT,
    FOREIGN KEY (month_id) REFERENCES months(id) ON DELETE CASCADE,
    FOREIGN KEY (category_id) REFERENCES categories(id)
);

-- App settings and metadata (global)
CREATE TABLE IF NOT EXISTS app_settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

CREATE_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_allowance_sources_year ON allowance_sources(year);
CREATE INDEX IF NOT EXISTS idx_allowance_sources_profile ON allowance_sources(profile_id);
CREATE INDEX IF NOT EXISTS idx_expenses_month_id ON expenses(month_id);
CREATE INDEX IF NOT EXISTS idx_expenses_category_id ON expenses(category_id);
CREATE INDEX IF NOT EXISTS idx_months_year ON months(year);
CREATE INDEX IF NOT EXISTS idx_months_profile ON months(profile_id);
"""

# Months table as it must look after the unique-key rebuild; used by the
# migration that replaces a (year, month) unique key.
MONTHS_TABLE_V2 = """
CREATE TABLE months_rebuild (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    profile_id INTEGER NOT NULL DEFAULT 1,
    year INTEGER NOT NULL,
    month INTEGER NOT NULL CHECK(month >= 1 AND month <= 12),
    allowance_override_cents INTEGER CHECK(allowance_override_cents >= 0),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(profile_id, year, month),
    FOREIGN KEY (profile_id) REFERENCES profiles(id) ON DELETE CASCADE
)
"""
