"""
Profile Repository

Profiles are hard-deleted, never soft-deleted: removing one removes its months,
their expenses and its allowance sources in a single transaction. The last
remaining profile cannot be removed.
"""

from typing import Optional

import structlog

from monthwise.models.entities import Profile, ProfileSecurity
from monthwise.repositories.base import BaseRepository
from monthwise.storage.engine import StorageEngine
from monthwise.storage.errors import ConstraintError, NotFoundError
from monthwise.storage.handle import utc_now
from monthwise.storage.mappers import ProfileMapper
from monthwise.storage.reference_data import DEFAULT_PROFILE_ID, DEFAULT_PROFILE_NAME

logger = structlog.get_logger(__name__)

MAX_PROFILES = 10
MAX_PROFILE_NAME_LENGTH = 100

CURRENT_PROFILE_KEY = "currentProfileId"


def _clean_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ConstraintError("Profile name cannot be empty")
    if len(name) > MAX_PROFILE_NAME_LENGTH:
        raise ConstraintError(
            f"Profile name cannot be longer than {MAX_PROFILE_NAME_LENGTH} characters"
        )
    return name


class ProfileRepository(BaseRepository):
    mapper = ProfileMapper

    def __init__(self, engine: StorageEngine, max_profiles: int = MAX_PROFILES):
        super().__init__(engine)
        self._max_profiles = max_profiles

    async def find_all(self) -> list[Profile]:
        db = await self._db()
        rows = db.fetch_all("SELECT * FROM profiles ORDER BY id ASC")
        return [ProfileMapper.to_model(row) for row in rows]

    async def find_by_id(self, profile_id: int) -> Optional[Profile]:
        db = await self._db()
        row = db.fetch_one("SELECT * FROM profiles WHERE id = ?", (profile_id,))
        return ProfileMapper.to_model(row) if row else None

    async def get(self, profile_id: int) -> Profile:
        """Like find_by_id, but raises NotFoundError."""
        profile = await self.find_by_id(profile_id)
        if profile is None:
            raise NotFoundError(f"Profile not found: {profile_id}")
        return profile

    async def count(self) -> int:
        db = await self._db()
        return db.fetch_value("SELECT COUNT(*) FROM profiles", default=0)

    async def create(self, name: str) -> Profile:
        """
        Create a profile.

        Raises:
            ConstraintError: If the name is blank or too long, or the profile
                limit is reached
        """
        name = _clean_name(name)

        db = await self._db()
        count = db.fetch_value("SELECT COUNT(*) FROM profiles", default=0)
        if count >= self._max_profiles:
            raise ConstraintError(f"Maximum of {self._max_profiles} profiles allowed")

        now = utc_now()
        cursor = db.execute(
            "INSERT INTO profiles (name, is_secured, created_at, updated_at) VALUES (?, 0, ?, ?)",
            (name, now, now),
        )
        logger.info("profile_created", profile_id=cursor.lastrowid)
        return await self.get(cursor.lastrowid)

    async def rename(self, profile_id: int, name: str) -> Profile:
        name = _clean_name(name)

        db = await self._db()
        if not self._update_columns(db, profile_id, {"name": name}):
            raise NotFoundError(f"Profile not found: {profile_id}")
        return await self.get(profile_id)

    async def delete(self, profile_id: int) -> None:
        """
        Delete a profile and everything it owns.

        Raises:
            NotFoundError: If the profile does not exist
            ConstraintError: If it is the last remaining profile
            TransactionError: If the cascade fails (nothing is removed)
        """
        db = await self._db()
        await self.get(profile_id)

        count = db.fetch_value("SELECT COUNT(*) FROM profiles", default=0)
        if count <= 1:
            raise ConstraintError("Cannot delete the last profile")

        with db.transaction():
            db.execute(
                "DELETE FROM expenses WHERE month_id IN (SELECT id FROM months WHERE profile_id = ?)",
                (profile_id,),
            )
            db.execute("DELETE FROM months WHERE profile_id = ?", (profile_id,))
            db.execute("DELETE FROM allowance_sources WHERE profile_id = ?", (profile_id,))
            db.execute(
                "DELETE FROM app_settings WHERE key = ? AND value = ?",
                (CURRENT_PROFILE_KEY, str(profile_id)),
            )
            db.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))

        logger.info("profile_deleted", profile_id=profile_id)

    async def ensure_default_exists(self) -> Profile:
        """Return the default profile, creating it if it is missing."""
        db = await self._db()
        row = db.fetch_one("SELECT * FROM profiles WHERE id = ?", (DEFAULT_PROFILE_ID,))
        if row:
            return ProfileMapper.to_model(row)

        now = utc_now()
        db.execute(
            "INSERT INTO profiles (id, name, is_secured, created_at, updated_at) VALUES (?, ?, 0, ?, ?)",
            (DEFAULT_PROFILE_ID, DEFAULT_PROFILE_NAME, now, now),
        )
        return await self.get(DEFAULT_PROFILE_ID)

    async def get_security_settings(self, profile_id: int) -> ProfileSecurity:
        profile = await self.get(profile_id)
        return ProfileSecurity(
            profile_id=profile.id,
            is_secured=profile.is_secured,
            has_password=profile.password_hash is not None,
        )

    async def set_security(
        self,
        profile_id: int,
        is_secured: bool,
        password_hash: Optional[str],
    ) -> Profile:
        db = await self._db()
        changed = self._update_columns(
            db,
            profile_id,
            {"is_secured": is_secured, "password_hash": password_hash},
        )
        if not changed:
            raise NotFoundError(f"Profile not found: {profile_id}")
        logger.info("profile_security_changed", profile_id=profile_id, is_secured=is_secured)
        return await self.get(profile_id)
