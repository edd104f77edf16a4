"""
Profile projection — best-effort merge-write of users/{uid}.

The identity provider is authoritative for "this account exists". The
profile document is a denormalized projection of role and status on top of
it, so writing it must never block a registration that already succeeded
at the provider.

upsert() therefore races the store write against a timer
(PROFILE_WRITE_TIMEOUT_SECONDS, 5s by default). Whatever happens, the
caller gets a ProfileSync back instead of an exception:

    ProfileSync(synced=True,  profile={...})    the write landed
    ProfileSync(synced=False, error="...")      timed out or store failed

Callers surface `synced` as `profile_synced` so clients can tell "fully
succeeded" apart from "succeeded, profile reconciliation pending".
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from app.config import settings
from app.exceptions import StoreError
from app.identity.provider import Identity
from app.models.profile import USERS_COLLECTION
from app.store.documents import DocumentStore, bounded

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ProfileSync:
    synced: bool
    profile: dict[str, Any] | None = None
    error: str | None = None


class ProfileUpsert:
    def __init__(self, store: DocumentStore, timeout: float | None = None):
        self._store = store
        self._timeout = timeout if timeout is not None else settings.PROFILE_WRITE_TIMEOUT_SECONDS

    async def get(self, uid: str) -> dict[str, Any] | None:
        """
        Read the profile within the timeout.

        Store errors (StoreTimeoutError included) propagate: ban checks must
        fail closed.
        """
        return await bounded(
            self._store.get_document(USERS_COLLECTION, uid),
            self._timeout,
            "profile read",
        )

    async def upsert(
        self,
        identity: Identity,
        fields: dict[str, Any],
        is_recovery: bool = False,
    ) -> ProfileSync:
        """
        Merge `fields` into the identity's profile within the timeout.

        createdAt is only ever written when the stored profile lacks it.
        restoredAt is added on recovery paths and nowhere else.
        """
        now = utc_now_iso()
        payload = {"uid": identity.uid, "email": identity.email, **fields}
        if is_recovery:
            payload["restoredAt"] = now

        try:
            profile = await bounded(
                self._store.merge_write(
                    USERS_COLLECTION,
                    identity.uid,
                    payload,
                    defaults={"createdAt": now},
                ),
                self._timeout,
                "profile write",
            )
        except StoreError as exc:
            logger.warning(
                "Profile write for %s did not complete (%s); continuing without it",
                identity.uid, exc.detail,
            )
            return ProfileSync(synced=False, error=exc.detail)

        return ProfileSync(synced=True, profile=profile)
