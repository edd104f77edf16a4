"""
FastAPI dependencies for service wiring, authentication and authorization.

Service wiring:
  Every service is built per request from the session factory, so tests
  only need to override get_session_factory (or a single service getter)
  to swap the backing store.

Authentication / authorization chain:

  get_current_auth (JWT + live session -> AuthContext)
      └── require_admin (profile role admin, not banned)
              └── require_elevated_admin (+ "elevated" claim from the panel unlock)

Role and ban status are read from the profile document on every request,
never from the token, so a ban takes effect immediately even for tokens
minted before it.
"""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import get_session_factory
from app.exceptions import AccountBannedError
from app.identity.provider import Identity, IdentityProvider
from app.models.profile import ProfileRole, is_banned
from app.security import decode_access_token
from app.services.access_codes import AccessCodeStore
from app.services.bans import BanLifecycle
from app.services.panel_gate import PrivilegedGate
from app.services.profiles import ProfileUpsert
from app.services.reconciler import IdentityReconciler
from app.services.roster import RosterView
from app.store.documents import DocumentStore


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------

def get_document_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> DocumentStore:
    return DocumentStore(session_factory)


def get_identity_provider(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> IdentityProvider:
    return IdentityProvider(session_factory)


def get_profile_upsert(store: DocumentStore = Depends(get_document_store)) -> ProfileUpsert:
    return ProfileUpsert(store)


def get_access_code_store(store: DocumentStore = Depends(get_document_store)) -> AccessCodeStore:
    return AccessCodeStore(store)


def get_reconciler(
    provider: IdentityProvider = Depends(get_identity_provider),
    profiles: ProfileUpsert = Depends(get_profile_upsert),
) -> IdentityReconciler:
    return IdentityReconciler(provider, profiles)


def get_ban_lifecycle(store: DocumentStore = Depends(get_document_store)) -> BanLifecycle:
    return BanLifecycle(store)


def get_roster(
    store: DocumentStore = Depends(get_document_store),
    access_codes: AccessCodeStore = Depends(get_access_code_store),
) -> RosterView:
    return RosterView(store, access_codes)


def get_privileged_gate() -> PrivilegedGate:
    return PrivilegedGate()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuthContext:
    """The caller behind a validated access token."""
    identity: Identity
    elevated: bool


async def get_current_auth(
    token: str = Depends(oauth2_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> AuthContext:
    """
    Validate the JWT and its auth session.

    Raises:
        HTTPException 401: Missing/invalid/expired token, revoked session,
            or an identity that no longer exists.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    uid = payload.get("sub")
    session_id = payload.get("sid")
    if not uid or not session_id:
        raise credentials_exception

    if not await provider.is_session_active(session_id):
        raise credentials_exception

    identity = await provider.get_identity(uid, session_id=session_id)
    if identity is None:
        raise credentials_exception

    return AuthContext(identity=identity, elevated=bool(payload.get("elevated")))


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

async def require_admin(
    auth: AuthContext = Depends(get_current_auth),
    profiles: ProfileUpsert = Depends(get_profile_upsert),
) -> AuthContext:
    """
    Require an active admin profile.

    Raises:
        AccountBannedError (403): The caller's profile is banned.
        HTTPException 403: The caller is not an admin.
    """
    profile = await profiles.get(auth.identity.uid)
    if is_banned(profile):
        raise AccountBannedError()
    if profile is None or profile.get("role") != ProfileRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return auth


async def require_elevated_admin(auth: AuthContext = Depends(require_admin)) -> AuthContext:
    """
    Require an admin who has passed the management panel gate.

    Raises:
        HTTPException 403: The token lacks the "elevated" claim.
    """
    if not auth.elevated:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Management panel is locked. Unlock it with the panel access code.",
        )
    return auth
