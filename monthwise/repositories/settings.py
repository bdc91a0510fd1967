"""
Settings Repository

Plain string key/value pairs shared by all profiles. The schema version marker
lives in the same table but is owned by the storage engine; it can be read
here but not written or deleted.
"""

from typing import Optional

from monthwise.models.entities import Setting
from monthwise.repositories.base import BaseRepository
from monthwise.repositories.profile import CURRENT_PROFILE_KEY
from monthwise.storage.errors import ConstraintError
from monthwise.storage.handle import utc_now
from monthwise.storage.mappers import SettingMapper
from monthwise.storage.schema import SCHEMA_VERSION_KEY

CURRENCY_KEY = "currency"
HIDE_CENTS_KEY = "hideCents"


class SettingsRepository(BaseRepository):
    mapper = SettingMapper

    @staticmethod
    def _check_writable(key: str) -> None:
        if key == SCHEMA_VERSION_KEY:
            raise ConstraintError(f"Setting '{key}' is managed by the storage engine")

    async def get(self, key: str) -> Optional[str]:
        db = await self._db()
        return db.fetch_value("SELECT value FROM app_settings WHERE key = ?", (key,))

    async def set(self, key: str, value: str) -> None:
        self._check_writable(key)
        db = await self._db()
        db.execute(
            """
            INSERT INTO app_settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, utc_now()),
        )

    async def delete(self, key: str) -> bool:
        self._check_writable(key)
        db = await self._db()
        return db.execute("DELETE FROM app_settings WHERE key = ?", (key,)).rowcount > 0

    async def get_all(self) -> list[Setting]:
        db = await self._db()
        rows = db.fetch_all("SELECT * FROM app_settings ORDER BY key ASC")
        return [SettingMapper.to_model(row) for row in rows]

    # -------------------------------------------------------------------------
    # Typed helpers for the recognized keys
    # -------------------------------------------------------------------------

    async def get_current_profile_id(self) -> Optional[int]:
        value = await self.get(CURRENT_PROFILE_KEY)
        if value is None or not value.strip().isdigit():
            return None
        return int(value)

    async def set_current_profile_id(self, profile_id: int) -> None:
        await self.set(CURRENT_PROFILE_KEY, str(profile_id))

    async def get_currency(self, default: str = "USD") -> str:
        value = await self.get(CURRENCY_KEY)
        return value or default

    async def set_currency(self, currency: str) -> None:
        await self.set(CURRENCY_KEY, currency.strip().upper())

    async def get_hide_cents(self) -> bool:
        return (await self.get(HIDE_CENTS_KEY)) == "true"

    async def set_hide_cents(self, hide: bool) -> None:
        await self.set(HIDE_CENTS_KEY, "true" if hide else "false")
