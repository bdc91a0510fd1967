"""
Create and Update Payloads

Updates are partial. The set of fields a caller actually passed is the field
mask (pydantic's model_fields_set), so "not supplied" and "explicitly None"
are different things:

    ExpenseUpdate(note=None)   -> clears the note
    ExpenseUpdate()            -> leaves the note alone

Fields listed in non_nullable reject an explicit None.
"""

from datetime import date
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, model_validator
from pydantic.alias_generators import to_camel


class Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


class PartialUpdate(Payload):
    """Base class for field-masked updates."""

    non_nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_for_required(self) -> "PartialUpdate":
        for name in sorted(self.model_fields_set & self.non_nullable):
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be set to null")
        return self

    def supplied(self) -> dict[str, Any]:
        """Only the fields the caller passed, with their values."""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def is_empty(self) -> bool:
        return not self.model_fields_set


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryCreate(Payload):
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: Optional[StrictInt] = Field(
        default=None,
        description="Defaults to one past the current maximum"
    )


class CategoryUpdate(PartialUpdate):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"name", "sort_order"})

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: Optional[StrictInt] = None


# =============================================================================
# ALLOWANCE SOURCES
# =============================================================================

class AllowanceSourceCreate(Payload):
    year: StrictInt = Field(..., ge=1900, le=9999)
    name: str = Field(..., min_length=1, max_length=100)
    amount_cents: StrictInt = Field(..., ge=0)
    is_active: StrictBool = True


class AllowanceSourceUpdate(PartialUpdate):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"name", "amount_cents", "is_active"})

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount_cents: Optional[StrictInt] = Field(default=None, ge=0)
    is_active: Optional[StrictBool] = None


# =============================================================================
# MONTHS
# =============================================================================

class MonthUpdate(PartialUpdate):
    allowance_override_cents: Optional[StrictInt] = Field(default=None, ge=0)


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseCreate(Payload):
    month_id: StrictInt
    category_id: StrictInt
    amount_cents: StrictInt = Field(..., gt=0)
    note: Optional[str] = Field(default=None, max_length=500)
    expense_date: Optional[date] = Field(
        default=None,
        description="Defaults to today"
    )
    is_paid: StrictBool = False


class ExpenseUpdate(PartialUpdate):
    """
    Partial expense update.

    Changing category, amount, note or date, or flipping is_paid from True to
    False, clears is_verified unless is_verified is part of the same update.
    """

    non_nullable: ClassVar[frozenset[str]] = frozenset(
        {"category_id", "amount_cents", "expense_date", "is_paid", "is_verified"}
    )

    category_id: Optional[StrictInt] = None
    amount_cents: Optional[StrictInt] = Field(default=None, gt=0)
    note: Optional[str] = Field(default=None, max_length=500)
    expense_date: Optional[date] = None
    is_paid: Optional[StrictBool] = None
    is_verified: Optional[StrictBool] = None
