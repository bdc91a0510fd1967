"""
Row Mappers

One bidirectional mapper per entity: sqlite3.Row -> model and model -> column
dict. This is the only place that knows column names differ from field names
(auth_password_hash vs password_hash), that booleans are stored as 0/1 and that
dates are stored as ISO text.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from monthwise.models.entities import (
    AllowanceSource,
    Category,
    Expense,
    Month,
    Profile,
    Setting,
)

M = TypeVar("M", bound=BaseModel)


class RowMapper(Generic[M]):
    """Base mapper; subclasses declare the table and field -> column map."""

    model: ClassVar[type[BaseModel]]
    table: ClassVar[str]
    columns: ClassVar[dict[str, str]]
    bool_fields: ClassVar[frozenset[str]] = frozenset()

    @classmethod
    def to_model(cls, row: Mapping[str, Any]) -> M:
        values = {}
        for field, column in cls.columns.items():
            value = row[column]
            if field in cls.bool_fields:
                value = bool(value)
            values[field] = value
        return cls.model.model_validate(values)

    @classmethod
    def to_row(cls, entity: M) -> dict[str, Any]:
        row = {}
        for field, column in cls.columns.items():
            value = getattr(entity, field)
            if field in cls.bool_fields:
                value = 1 if value else 0
            elif isinstance(value, date):
                value = value.isoformat()
            row[column] = value
        return row

    @classmethod
    def column_for(cls, field: str) -> str:
        return cls.columns[field]

    @classmethod
    def to_column_value(cls, field: str, value: Any) -> Any:
        """Convert a single field value the way to_row would."""
        if field in cls.bool_fields and value is not None:
            return 1 if value else 0
        if isinstance(value, date):
            return value.isoformat()
        return value

    @classmethod
    def insert_sql(cls) -> str:
        """INSERT with every mapped column, ids included."""
        names = list(cls.columns.values())
        return (
            f"INSERT INTO {cls.table} ({', '.join(names)}) "
            f"VALUES ({', '.join(':' + name for name in names)})"
        )


class ProfileMapper(RowMapper[Profile]):
    model = Profile
    table = "profiles"
    columns = {
        "id": "id",
        "name": "name",
        "is_secured": "is_secured",
        "password_hash": "auth_password_hash",
        "created_at": "created_at",
        "updated_at": "updated_at",
    }
    bool_fields = frozenset({"is_secured"})


class CategoryMapper(RowMapper[Category]):
    model = Category
    table = "categories"
    columns = {
        "id": "id",
        "name": "name",
        "icon": "icon",
        "color": "color",
        "sort_order": "sort_order",
        "created_at": "created_at",
        "updated_at": "updated_at",
        "deleted_at": "deleted_at",
    }


class AllowanceSourceMapper(RowMapper[AllowanceSource]):
    model = AllowanceSource
    table = "allowance_sources"
    columns = {
        "id": "id",
        "profile_id": "profile_id",
        "year": "year",
        "name": "name",
        "amount_cents": "amount_cents",
        "is_active": "is_active",
        "created_at": "created_at",
        "updated_at": "updated_at",
        "deleted_at": "deleted_at",
    }
    bool_fields = frozenset({"is_active"})


class MonthMapper(RowMapper[Month]):
    model = Month
    table = "months"
    columns = {
        "id": "id",
        "profile_id": "profile_id",
        "year": "year",
        "month": "month",
        "allowance_override_cents": "allowance_override_cents",
        "created_at": "created_at",
        "updated_at": "updated_at",
    }


class ExpenseMapper(RowMapper[Expense]):
    model = Expense
    table = "expenses"
    columns = {
        "id": "id",
        "month_id": "month_id",
        "category_id": "category_id",
        "amount_cents": "amount_cents",
        "note": "note",
        "expense_date": "expense_date",
        "is_paid": "is_paid",
        "is_verified": "is_verified",
        "created_at": "created_at",
        "updated_at": "updated_at",
        "deleted_at": "deleted_at",
    }
    bool_fields = frozenset({"is_paid", "is_verified"})


class SettingMapper(RowMapper[Setting]):
    model = Setting
    table = "app_settings"
    columns = {
        "key": "key",
        "value": "value",
        "updated_at": "updated_at",
    }
