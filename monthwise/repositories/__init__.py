"""
Entity repositories. Each takes the injected StorageEngine.
"""

from monthwise.repositories.allowance import AllowanceSourceRepository
from monthwise.repositories.category import CategoryRepository
from monthwise.repositories.expense import ExpenseRepository, verification_reset_required
from monthwise.repositories.month import MonthRepository
from monthwise.repositories.profile import CURRENT_PROFILE_KEY, MAX_PROFILES, ProfileRepository
from monthwise.repositories.settings import CURRENCY_KEY, HIDE_CENTS_KEY, SettingsRepository

__all__ = [
    "AllowanceSourceRepository",
    "CategoryRepository",
    "ExpenseRepository",
    "MonthRepository",
    "ProfileRepository",
    "SettingsRepository",
    "verification_reset_required",
    "CURRENCY_KEY",
    "CURRENT_PROFILE_KEY",
    "HIDE_CENTS_KEY",
    "MAX_PROFILES",
]
