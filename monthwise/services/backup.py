"""
Backup/Restore Service

Export writes every row, soft-deleted ones included, into a versioned JSON
document. Import is an exact replay of such a document: ids, timestamps, flags
and deleted_at markers are written back verbatim, inside one transaction that
either lands completely or leaves the database as it was.

Import order of checks:
    1. parse JSON
    2. version (a document from a newer app is rejected before its shape is
       looked at, since newer documents may legitimately carry new fields)
    3. structure (pydantic, unknown fields rejected; category timestamps and
       profile ids that older exports omit are filled in first)
    4. references (months/sources -> profiles, expenses -> months/categories)
    5. transaction: upsert profiles, delete children before parents, insert
"""

import json
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Union

import structlog
from pydantic import ValidationError

from monthwise.models.backup import EXPORT_VERSION, BackupData, BackupDocument, ImportResult
from monthwise.storage.engine import StorageEngine
from monthwise.storage.errors import ImportValidationError, TransactionError
from monthwise.storage.handle import StorageHandle, utc_now
from monthwise.storage.mappers import (
    AllowanceSourceMapper,
    CategoryMapper,
    ExpenseMapper,
    MonthMapper,
    ProfileMapper,
    RowMapper,
)
from monthwise.storage.reference_data import DEFAULT_PROFILE_ID

logger = structlog.get_logger(__name__)

# Children before parents
DELETE_ORDER = ("expenses", "months", "categories", "allowance_sources")

UPSERT_PROFILE_SQL = """
INSERT INTO profiles (id, name, is_secured, auth_password_hash, created_at, updated_at)
VALUES (:id, :name, :is_secured, :auth_password_hash, :created_at, :updated_at)
ON CONFLICT(id) DO UPDATE SET
    name = excluded.name,
    is_secured = excluded.is_secured,
    auth_password_hash = excluded.auth_password_hash,
    created_at = excluded.created_at,
    updated_at = excluded.updated_at
"""


def _duplicates(ids: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    dupes: set[int] = set()
    for entity_id in ids:
        (dupes if entity_id in seen else seen).add(entity_id)
    return sorted(dupes)


def _format_validation_error(error: ValidationError, limit: int = 3) -> str:
    parts = []
    for detail in error.errors()[:limit]:
        location = ".".join(str(p) for p in detail["loc"])
        parts.append(f"{location}: {detail['msg']}")
    more = error.error_count() - limit
    if more > 0:
        parts.append(f"and {more} more")
    return "; ".join(parts)


def _fill_missing_fields(raw: dict[str, Any], imported_at: str) -> dict[str, Any]:
    """
    Copy of a version 1 document with fields that older exports omit filled in.

    Categories written without timestamps get the import time; months and
    allowance sources written before profiles existed belong to the default
    profile, as they do after a schema upgrade.
    """
    data = raw.get("data")
    if not isinstance(data, dict):
        return raw

    defaults = {
        "categories": {"createdAt": imported_at, "updatedAt": imported_at},
        "months": {"profileId": DEFAULT_PROFILE_ID},
        "allowanceSources": {"profileId": DEFAULT_PROFILE_ID},
    }
    filled = dict(data)
    for key, missing in defaults.items():
        items = data.get(key)
        if isinstance(items, list):
            filled[key] = [
                {**missing, **item} if isinstance(item, dict) else item
                for item in items
            ]
    return {**raw, "data": filled}


class BackupService:
    """
    Full-dataset export and import.

    Usage:
        service = BackupService(engine, app_version="1.0.0")
        text = await service.export_json()
        result = await service.import_data(text)
    """

    def __init__(self, engine: StorageEngine, app_version: str = "unknown"):
        self._engine = engine
        self.app_version = app_version

    # =========================================================================
    # EXPORT
    # =========================================================================

    async def export_data(self) -> BackupDocument:
        db = await self._engine.open()
        data = BackupData(
            allowance_sources=self._read_all(db, AllowanceSourceMapper),
            categories=self._read_all(db, CategoryMapper),
            months=self._read_all(db, MonthMapper),
            expenses=self._read_all(db, ExpenseMapper),
            profiles=self._read_all(db, ProfileMapper),
        )
        document = BackupDocument(
            version=EXPORT_VERSION,
            exported_at=datetime.now(timezone.utc).isoformat(),
            app_version=self.app_version,
            data=data,
        )
        logger.info(
            "backup_exported",
            records=data.record_count,
            profiles=len(data.profiles),
        )
        return document

    async def export_json(self) -> str:
        return (await self.export_data()).to_json()

    @staticmethod
    def _read_all(db: StorageHandle, mapper: type[RowMapper]) -> list:
        rows = db.fetch_all(f"SELECT * FROM {mapper.table} ORDER BY id ASC")
        return [mapper.to_model(row) for row in rows]

    # =========================================================================
    # IMPORT
    # =========================================================================

    async def import_data(self, payload: Union[str, bytes, dict[str, Any]]) -> ImportResult:
        """
        Replace the dataset with the contents of a backup document.

        Profiles in the document are upserted; profiles not in it are kept.
        Everything else is replaced.

        Raises:
            ImportValidationError: Malformed document, newer version or
                dangling references (nothing was changed)
            TransactionError: Writing failed and was rolled back
        """
        document = self.parse_document(payload)
        db = await self._engine.open()
        self._check_references(db, document.data)

        data = document.data
        try:
            with db.transaction():
                if data.profiles:
                    db.execute_many(
                        UPSERT_PROFILE_SQL,
                        [ProfileMapper.to_row(p) for p in data.profiles],
                    )
                for table in DELETE_ORDER:
                    db.execute(f"DELETE FROM {table}")
                self._insert_all(db, CategoryMapper, data.categories)
                self._insert_all(db, AllowanceSourceMapper, data.allowance_sources)
                self._insert_all(db, MonthMapper, data.months)
                self._insert_all(db, ExpenseMapper, data.expenses)
        except TransactionError as e:
            logger.error("backup_import_failed", error=str(e.__cause__ or e))
            raise

        logger.info(
            "backup_imported",
            records=data.record_count,
            profiles=len(data.profiles),
            source_version=document.version,
            source_app_version=document.app_version,
        )
        return ImportResult(
            success=True,
            records_imported=data.record_count,
            profiles_restored=len(data.profiles),
            message=f"Successfully imported {data.record_count} records",
        )

    @staticmethod
    def parse_document(payload: Union[str, bytes, dict[str, Any]]) -> BackupDocument:
        """
        Parse and validate a backup document without touching the database.

        Raises:
            ImportValidationError: With a human-readable reason
        """
        if isinstance(payload, (str, bytes, bytearray)):
            try:
                raw = json.loads(payload)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise ImportValidationError("Invalid JSON format") from e
        else:
            raw = payload

        if not isinstance(raw, dict):
            raise ImportValidationError("Invalid backup file: expected a JSON object")

        version = raw.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise ImportValidationError("Invalid backup file: missing or invalid version")
        if version > EXPORT_VERSION:
            raise ImportValidationError(
                f"Backup version {version} was created by a newer app version "
                f"(this app supports up to version {EXPORT_VERSION}). Please update the app."
            )

        raw = _fill_missing_fields(raw, utc_now())
        try:
            return BackupDocument.model_validate(raw)
        except ValidationError as e:
            raise ImportValidationError(
                f"Invalid backup file: {_format_validation_error(e)}"
            ) from e

    @staticmethod
    def _check_references(db: StorageHandle, data: BackupData) -> None:
        for name, items in (
            ("profiles", data.profiles),
            ("categories", data.categories),
            ("allowance sources", data.allowance_sources),
            ("months", data.months),
            ("expenses", data.expenses),
        ):
            dupes = _duplicates(item.id for item in items)
            if dupes:
                raise ImportValidationError(f"Duplicate {name} ids: {dupes}")

        profile_ids = {p.id for p in data.profiles}
        profile_ids.update(row["id"] for row in db.fetch_all("SELECT id FROM profiles"))
        month_ids = {m.id for m in data.months}
        category_ids = {c.id for c in data.categories}

        missing_profiles = sorted(
            {s.profile_id for s in data.allowance_sources} | {m.profile_id for m in data.months}
        )
        missing_profiles = [pid for pid in missing_profiles if pid not in profile_ids]
        if missing_profiles:
            raise ImportValidationError(f"Backup references unknown profiles: {missing_profiles}")

        missing_months = sorted({e.month_id for e in data.expenses} - month_ids)
        if missing_months:
            raise ImportValidationError(f"Expenses reference unknown months: {missing_months}")

        missing_categories = sorted({e.category_id for e in data.expenses} - category_ids)
        if missing_categories:
            raise ImportValidationError(
                f"Expenses reference unknown categories: {missing_categories}"
            )

    @staticmethod
    def _insert_all(db: StorageHandle, mapper: type[RowMapper], entities: list) -> None:
        if entities:
            db.execute_many(mapper.insert_sql(), [mapper.to_row(e) for e in entities])
