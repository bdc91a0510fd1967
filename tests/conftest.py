"""
Shared fixtures.

Every test gets its own database file under tmp_path. Async code is driven
with asyncio.run from plain synchronous tests; the engine keeps its handle
between runs, so several run() calls in one test share one database.
"""

import asyncio
from datetime import date

import pytest

from monthwise.models import ExpenseCreate
from monthwise.orchestrator import create_app_components
from monthwise.storage import StorageEngine


@pytest.fixture
def run():
    """Run a coroutine to completion."""
    return asyncio.run


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "monthwise.db"


@pytest.fixture
def engine(db_path, run):
    engine = StorageEngine(db_path)
    yield engine
    run(engine.close())


@pytest.fixture
def app(db_path, run):
    components = create_app_components(database_path=db_path, setup_logging=False)
    yield components
    run(components.close())


@pytest.fixture
def month(app, run):
    """January 2026 of the default profile."""
    return run(app.months.get_or_create(2026, 1))


@pytest.fixture
def category(app, run):
    """The first canonical category."""
    return run(app.categories.find_all())[0]


@pytest.fixture
def add_expense(app, month, category, run):
    """Create an expense in the month fixture."""

    def _add(amount_cents=1000, **fields):
        payload = ExpenseCreate(
            month_id=fields.pop("month_id", month.id),
            category_id=fields.pop("category_id", category.id),
            amount_cents=amount_cents,
            expense_date=fields.pop("expense_date", date(2026, 1, 15)),
            **fields,
        )
        return run(app.expenses.create(payload))

    return _add
