"""
Data Models Package

Pydantic models for everything that crosses a module boundary: stored
entities, create/update payloads, derived summaries and the backup document.
"""

from monthwise.models.backup import (
    EXPORT_VERSION,
    BackupData,
    BackupDocument,
    ImportResult,
)
from monthwise.models.entities import (
    UNKNOWN_CATEGORY_NAME,
    AllowanceSource,
    Category,
    Expense,
    Month,
    Profile,
    ProfileSecurity,
    Setting,
    unknown_category,
)
from monthwise.models.summary import (
    CategoryTotal,
    MonthSummary,
    YearOverview,
)
from monthwise.models.updates import (
    AllowanceSourceCreate,
    AllowanceSourceUpdate,
    CategoryCreate,
    CategoryUpdate,
    ExpenseCreate,
    ExpenseUpdate,
    MonthUpdate,
    PartialUpdate,
)

__all__ = [
    # Entities
    "AllowanceSource",
    "Category",
    "Expense",
    "Month",
    "Profile",
    "ProfileSecurity",
    "Setting",
    "UNKNOWN_CATEGORY_NAME",
    "unknown_category",
    # Payloads
    "AllowanceSourceCreate",
    "AllowanceSourceUpdate",
    "CategoryCreate",
    "CategoryUpdate",
    "ExpenseCreate",
    "ExpenseUpdate",
    "MonthUpdate",
    "PartialUpdate",
    # Summaries
    "CategoryTotal",
    "MonthSummary",
    "YearOverview",
    # Backup
    "BackupData",
    "BackupDocument",
    "EXPORT_VERSION",
    "ImportResult",
]
