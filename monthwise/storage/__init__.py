"""
Storage Package

The SQLite engine, its schema and migrations, row mappers and the storage
exception hierarchy.
"""

from monthwise.storage.engine import StorageEngine
from monthwise.storage.errors import (
    ConstraintError,
    ImportValidationError,
    MigrationError,
    NotFoundError,
    StorageError,
    TransactionError,
)
from monthwise.storage.handle import StorageHandle, utc_now
from monthwise.storage.schema import SCHEMA_VERSION

__all__ = [
    # Engine
    "SCHEMA_VERSION",
    "StorageEngine",
    "StorageHandle",
    "utc_now",
    # Exceptions
    "ConstraintError",
    "ImportValidationError",
    "MigrationError",
    "NotFoundError",
    "StorageError",
    "TransactionError",
]
