"""
Reference Data

DEFAULT_CATEGORIES is the source of truth for the built-in categories. On every
start the database is brought in line with it: legacy names are renamed, then
each canonical row is inserted, corrected or un-deleted.
"""

from typing import NamedTuple

import structlog

from monthwise.storage.handle import StorageHandle, utc_now

logger = structlog.get_logger(__name__)

DEFAULT_PROFILE_ID = 1
DEFAULT_PROFILE_NAME = "Default"


class CategoryDefinition(NamedTuple):
    name: str
    icon: str
    color: str


DEFAULT_CATEGORIES: tuple[CategoryDefinition, ...] = (
    CategoryDefinition("Food & Dining", "🍔", "#FF6B6B"),
    CategoryDefinition("Transportation", "🚗", "#4ECDC4"),
    CategoryDefinition("Utilities", "💡", "#FFE66D"),
    CategoryDefinition("Entertainment", "🎬", "#95E1D3"),
    CategoryDefinition("Shopping", "🛒", "#DDA0DD"),
    CategoryDefinition("Healthcare", "🏥", "#87CEEB"),
    CategoryDefinition("Housing", "🏠", "#F4A460"),
    CategoryDefinition("Education", "📚", "#9B59B6"),
    CategoryDefinition("Personal Care", "💅", "#E91E63"),
    CategoryDefinition("Savings", "💰", "#27AE60"),
    CategoryDefinition("Other", "📦", "#95A5A6"),
)

# Old name -> current name
LEGACY_CATEGORY_NAMES: dict[str, str] = {
    "Food": "Food & Dining",
    "Transport": "Transportation",
    "Bills": "Utilities",
    "Health": "Healthcare",
    "Rent": "Housing",
    "Misc": "Other",
}


def ensure_default_profile(db: StorageHandle) -> bool:
    """Create the default profile when no profile exists. Returns True if created."""
    if db.fetch_value("SELECT COUNT(*) FROM profiles", default=0) > 0:
        return False
    now = utc_now()
    db.execute(
        "INSERT INTO profiles (id, name, is_secured, created_at, updated_at) VALUES (?, ?, 0, ?, ?)",
        (DEFAULT_PROFILE_ID, DEFAULT_PROFILE_NAME, now, now),
    )
    logger.info("default_profile_created", profile_id=DEFAULT_PROFILE_ID)
    return True


def rename_legacy_categories(db: StorageHandle) -> int:
    """Rename legacy category names whose current name is not already taken."""
    renamed = 0
    for old_name, new_name in LEGACY_CATEGORY_NAMES.items():
        if db.fetch_one("SELECT id FROM categories WHERE name = ? COLLATE NOCASE", (new_name,)):
            continue
        cursor = db.execute(
            "UPDATE categories SET name = ?, updated_at = ? WHERE name = ? COLLATE NOCASE",
            (new_name, utc_now(), old_name),
        )
        if cursor.rowcount:
            logger.info("category_renamed", old_name=old_name, new_name=new_name)
            renamed += cursor.rowcount
    return renamed


def sync_default_categories(db: StorageHandle) -> tuple[int, int]:
    """
    Upsert every canonical category.

    Missing rows are inserted. Existing rows (matched case-insensitively, deleted
    or not) get the canonical icon, color and sort order and are un-deleted.

    Returns:
        (inserted, corrected)
    """
    inserted = corrected = 0
    for sort_order, definition in enumerate(DEFAULT_CATEGORIES):
        now = utc_now()
        row = db.fetch_one(
            "SELECT id, icon, color, sort_order, deleted_at FROM categories WHERE name = ? COLLATE NOCASE",
            (definition.name,),
        )
        if row is None:
            db.execute(
                "INSERT INTO categories (name, icon, color, sort_order, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (definition.name, definition.icon, definition.color, sort_order, now, now),
            )
            inserted += 1
            continue

        in_sync = (
            row["icon"] == definition.icon
            and row["color"] == definition.color
            and row["sort_order"] == sort_order
            and row["deleted_at"] is None
        )
        if in_sync:
            continue
        db.execute(
            "UPDATE categories SET icon = ?, color = ?, sort_order = ?, deleted_at = NULL, updated_at = ? "
            "WHERE id = ?",
            (definition.icon, definition.color, sort_order, now, row["id"]),
        )
        corrected += 1

    if inserted or corrected:
        logger.info("default_categories_synced", inserted=inserted, corrected=corrected)
    return inserted, corrected


def sync_reference_data(db: StorageHandle) -> None:
    """Default profile, legacy renames, canonical categories; one transaction."""
    with db.transaction():
        ensure_default_profile(db)
        rename_legacy_categories(db)
        sync_default_categories(db)
