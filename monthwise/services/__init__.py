"""Services package."""

from monthwise.services import calculation
from monthwise.services.auth import ProfileSecurityService, hash_password, verify_password
from monthwise.services.backup import BackupService
from monthwise.services.money import format_cents, format_with_sign, parse_to_cents
from monthwise.services.overview import YearOverviewService

__all__ = [
    # Calculation engine (module of pure functions)
    "calculation",
    # Backup
    "BackupService",
    # Auth
    "ProfileSecurityService",
    "hash_password",
    "verify_password",
    # Money
    "format_cents",
    "format_with_sign",
    "parse_to_cents",
    # Overview
    "YearOverviewService",
]
