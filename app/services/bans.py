"""
Ban lifecycle — suspend and restore profiles.

ban() and unban() are single-field merge-writes of `status`. Nothing is
ever deleted: banning is the only suspension mechanism, and unbanning is the
only way back to active (recovery and sign-in paths never reactivate a
banned profile on their own).

Both operations are idempotent. Unlike the best-effort profile projection,
failures here are surfaced: an administrator must know when a ban did not
land.

This component does not know who is asking. The self-ban rule is policy of
the management surface: callers run ensure_not_self() first.
"""

import logging

from app.config import settings
from app.exceptions import ProfileNotFoundError, SelfBanError
from app.models.profile import USERS_COLLECTION, ProfileStatus
from app.store.documents import DocumentStore, bounded

logger = logging.getLogger(__name__)


def ensure_not_self(actor_uid: str, target_uid: str) -> None:
    """Raises SelfBanError when an admin targets their own profile."""
    if actor_uid == target_uid:
        raise SelfBanError()


class BanLifecycle:
    def __init__(self, store: DocumentStore, write_timeout: float | None = None):
        self._store = store
        self._write_timeout = write_timeout or settings.STORE_WRITE_TIMEOUT_SECONDS

    async def ban(self, uid: str) -> dict:
        return await self._set_status(uid, ProfileStatus.BANNED)

    async def unban(self, uid: str) -> dict:
        return await self._set_status(uid, ProfileStatus.ACTIVE)

    async def _set_status(self, uid: str, status: ProfileStatus) -> dict:
        """
        Raises:
            ProfileNotFoundError: No users/{uid} record exists.
            StoreTimeoutError / StoreUnavailableError: The read or the write
                did not complete.
        """
        profile = await bounded(
            self._store.get_document(USERS_COLLECTION, uid),
            self._write_timeout,
            "profile read",
        )
        if profile is None:
            raise ProfileNotFoundError(uid)
        if profile.get("status") == status.value:
            return profile

        updated = await bounded(
            self._store.merge_write(USERS_COLLECTION, uid, {"status": status.value}),
            self._write_timeout,
            f"set status {status.value}",
        )
        logger.info("Profile %s status set to %s", uid, status.value)
        return updated
