"""
Entity Models for MonthWise

One model per table. These are what repositories return and what the backup
document carries, so they serialize with camelCase aliases
(model_dump(by_alias=True)) while Python code uses snake_case attributes.

Money is StrictInt cents everywhere: a float never validates as an amount.
Timestamps stay as the ISO strings stored in the database so a backup round
trip reproduces them character for character.

Length and range limits live on the create/update payloads. Entity models
accept whatever a row holds, so data written by older versions still loads.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt
from pydantic.alias_generators import to_camel


class EntityModel(BaseModel):
    """Shared configuration: camelCase wire names, unknown fields rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


# =============================================================================
# PROFILES
# =============================================================================

class Profile(EntityModel):
    """An isolated namespace of allowance, month and expense data."""

    id: StrictInt
    name: str
    is_secured: StrictBool = False
    password_hash: Optional[str] = Field(
        default=None,
        description="One-way digest of the profile password"
    )
    created_at: str
    updated_at: str


class ProfileSecurity(BaseModel):
    """Security status of a profile, without exposing the digest."""

    profile_id: int
    is_secured: bool
    has_password: bool


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(EntityModel):
    """Expense category, shared across profiles."""

    id: StrictInt
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: StrictInt = 0
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


UNKNOWN_CATEGORY_NAME = "Unknown"
UNKNOWN_CATEGORY_ICON = "❓"
UNKNOWN_CATEGORY_COLOR = "#95A5A6"


def unknown_category(category_id: int) -> Category:
    """
    Stand-in for a category that no longer exists or was deleted.

    Keeps the original id so callers can still group by it.
    """
    return Category(
        id=category_id,
        name=UNKNOWN_CATEGORY_NAME,
        icon=UNKNOWN_CATEGORY_ICON,
        color=UNKNOWN_CATEGORY_COLOR,
        sort_order=2**31 - 1,
        created_at="",
        updated_at="",
    )


# =============================================================================
# ALLOWANCE / MONTHS / EXPENSES
# =============================================================================

class AllowanceSource(EntityModel):
    """One recurring income line for a profile and year."""

    id: StrictInt
    profile_id: StrictInt
    year: StrictInt
    name: str
    amount_cents: StrictInt
    is_active: StrictBool = True
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Month(EntityModel):
    """A calendar month of one profile, with an optional allowance override."""

    id: StrictInt
    profile_id: StrictInt
    year: StrictInt
    month: StrictInt = Field(..., ge=1, le=12)
    allowance_override_cents: Optional[StrictInt] = None
    created_at: str
    updated_at: str

    @property
    def has_override(self) -> bool:
        return self.allowance_override_cents is not None


class Expense(EntityModel):
    """A single expense inside one month."""

    id: StrictInt
    month_id: StrictInt
    category_id: StrictInt
    amount_cents: StrictInt
    note: Optional[str] = None
    expense_date: date
    is_paid: StrictBool = False
    is_verified: StrictBool = False
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Setting(EntityModel):
    """Process-wide key/value preference."""

    key: str = Field(..., min_length=1)
    value: str
    updated_at: str
