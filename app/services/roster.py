"""
Admin roster — read side of the management surface.

Every call re-reads the store; nothing is cached between requests.
"""

from app.models.profile import USERS_COLLECTION, ProfileRole
from app.services.access_codes import AccessCodeStore
from app.store.documents import DocumentStore


class RosterView:
    def __init__(self, store: DocumentStore, access_codes: AccessCodeStore):
        self._store = store
        self._access_codes = access_codes

    async def list_admins(self) -> list[dict]:
        """All profiles with role admin, banned ones included. No pagination."""
        return await self._store.query_where(USERS_COLLECTION, "role", ProfileRole.ADMIN.value)

    async def current_access_code(self) -> str:
        return await self._access_codes.get()
