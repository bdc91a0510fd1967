"""
Storage Exceptions

Every failure the persistence layer reports is one of these. Repositories and
services raise them; they never return sentinel values for errors.
"""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found, or soft-deleted."""
    pass


class ConstraintError(StorageError):
    """Uniqueness, foreign-key or value-range violation."""
    pass


class MigrationError(StorageError):
    """
    Schema inspection or alteration failed.

    Fatal: the application must not continue with a half-migrated schema.
    """
    pass


class ImportValidationError(StorageError):
    """Backup document is malformed or from a newer app version."""
    pass


class TransactionError(StorageError):
    """A multi-statement transaction failed and was rolled back."""
    pass
