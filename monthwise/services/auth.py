"""
Profile Password Primitive

Digests are unsalted SHA-256 hex strings so that digests already stored in
existing databases keep verifying. See DESIGN.md for the salting gap.
There is no attempt limiting here; the caller owns lockout policy.
"""

import hashlib
import hmac

import structlog

from monthwise.repositories.profile import ProfileRepository
from monthwise.storage.errors import ConstraintError

logger = structlog.get_logger(__name__)


def hash_password(password: str) -> str:
    """One-way, deterministic digest of a password."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, stored_digest: str) -> bool:
    return hmac.compare_digest(hash_password(password), stored_digest)


class ProfileSecurityService:
    """Enable, disable and check password protection on a profile."""

    def __init__(self, profiles: ProfileRepository):
        self.profiles = profiles

    async def enable(self, profile_id: int, password: str) -> None:
        """
        Raises:
            ConstraintError: If the password is empty
            NotFoundError: If the profile does not exist
        """
        if not password:
            raise ConstraintError("Password cannot be empty")
        await self.profiles.set_security(profile_id, True, hash_password(password))

    async def disable(self, profile_id: int) -> None:
        await self.profiles.set_security(profile_id, False, None)

    async def is_secured(self, profile_id: int) -> bool:
        settings = await self.profiles.get_security_settings(profile_id)
        return settings.is_secured

    async def verify(self, profile_id: int, password: str) -> bool:
        """False when the profile has no stored password."""
        profile = await self.profiles.get(profile_id)
        if profile.password_hash is None:
            return False
        verified = verify_password(password, profile.password_hash)
        if not verified:
            logger.info("profile_password_rejected", profile_id=profile_id)
        return verified
