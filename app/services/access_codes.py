"""
Registration access code — the shared secret required to register an admin.

Stored as a single configuration record:

    settings/admin_config  ->  {"registrationKey": "<code>"}

When the record (or the key) is missing, the configured default
(DEFAULT_REGISTRATION_KEY) applies.

The code is always checked against a fresh read from the store at the
moment the registration request is handled. A rotation therefore takes
effect for every request that starts after it, and no client-held copy of
the code is ever trusted.
"""

import logging

from app.config import settings
from app.exceptions import AccessCodeTooShortError
from app.security import secrets_match
from app.store.documents import DocumentStore, bounded

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "settings"
ADMIN_CONFIG_ID = "admin_config"
REGISTRATION_KEY_FIELD = "registrationKey"

MIN_ACCESS_CODE_LENGTH = 5


class AccessCodeStore:
    def __init__(
        self,
        store: DocumentStore,
        default_code: str | None = None,
        write_timeout: float | None = None,
    ):
        self._store = store
        self._default_code = default_code or settings.DEFAULT_REGISTRATION_KEY
        self._write_timeout = write_timeout or settings.STORE_WRITE_TIMEOUT_SECONDS

    async def get(self) -> str:
        """
        Return the current registration code.

        Raises:
            StoreTimeoutError / StoreUnavailableError: The config record could
                not be read. A failed read never falls back to the default.
        """
        record = await bounded(
            self._store.get_document(SETTINGS_COLLECTION, ADMIN_CONFIG_ID),
            self._write_timeout,
            "access code read",
        )
        if record and record.get(REGISTRATION_KEY_FIELD):
            return record[REGISTRATION_KEY_FIELD]
        return self._default_code

    async def set(self, new_code: str) -> None:
        """
        Rotate the registration code.

        Raises:
            AccessCodeTooShortError: Fewer than 5 characters; nothing written.
            StoreTimeoutError / StoreUnavailableError: The write did not land.
        """
        if len(new_code) < MIN_ACCESS_CODE_LENGTH:
            raise AccessCodeTooShortError(MIN_ACCESS_CODE_LENGTH)

        await bounded(
            self._store.merge_write(
                SETTINGS_COLLECTION,
                ADMIN_CONFIG_ID,
                {REGISTRATION_KEY_FIELD: new_code},
            ),
            self._write_timeout,
            "access code rotation",
        )
        logger.info("Admin registration access code rotated")

    async def verify(self, supplied_code: str) -> bool:
        """Compare a supplied code with the stored one (constant time)."""
        return secrets_match(supplied_code, await self.get())
