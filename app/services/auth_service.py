"""
Authentication service — rider registration, federated sign-in, fresh login.

This module contains the sign-in paths that are not admin reconciliation.
The router calls these functions and translates the results into HTTP
responses, so the logic can be tested without spinning up a web server.

Rider registration flow:
  1. Check password confirmation and length (no remote call on failure)
  2. Create the identity at the provider
  3. Best-effort profile write: role=user, status=active, createdAt
  Riders get no recovery branch: an existing email is a plain conflict.

Fresh login flow (riders and admins alike):
  1. Verify the credential at the provider (opens an auth session)
  2. Read the profile and refuse banned accounts, signing the session out
  3. Return a signed access token bound to the session

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
  - The ban check runs after the credential is verified and before any
    token is minted, on every sign-in
"""

import logging

from app.exceptions import (
    AccountBannedError,
    BadCredentialError,
    DuplicateEmailError,
    IdentityExistsError,
    InvalidCredentialsError,
    StoreError,
)
from app.identity.provider import Identity, IdentityProvider
from app.models.identity import AuthProvider
from app.models.profile import ProfileRole, ProfileStatus, is_banned
from app.security import create_access_token
from app.services.profiles import ProfileSync, ProfileUpsert
from app.services.reconciler import validate_passwords

logger = logging.getLogger(__name__)


def issue_token(identity: Identity, elevated: bool = False) -> str:
    """Mint an access token for the identity's current session."""
    return create_access_token(identity.uid, identity.session_id, elevated=elevated)


async def ensure_not_banned(
    provider: IdentityProvider,
    profiles: ProfileUpsert,
    identity: Identity,
) -> dict | None:
    """
    Ban check for a freshly signed-in identity.

    Signs the session out before raising, so a banned account never keeps
    a usable session. An unreadable profile is treated the same way the
    reconciler treats it: sign out and propagate the store error.

    Returns:
        The current profile (None when it does not exist yet).
    """
    try:
        profile = await profiles.get(identity.uid)
    except StoreError:
        await provider.sign_out(identity)
        raise

    if is_banned(profile):
        await provider.sign_out(identity)
        logger.warning("Banned identity %s denied sign-in", identity.uid)
        raise AccountBannedError()
    return profile


async def register_user(
    provider: IdentityProvider,
    profiles: ProfileUpsert,
    full_name: str,
    email: str,
    password: str,
    confirm_password: str,
    phone: str | None = None,
) -> tuple[Identity, ProfileSync]:
    """
    Register a rider.

    Raises:
        PasswordMismatchError / WeakPasswordError: Before any remote call.
        DuplicateEmailError: The email already has an identity.
        ProviderFailureError: Any other provider failure.
    """
    validate_passwords(password, confirm_password)

    try:
        identity = await provider.create_identity(email, password, display_name=full_name)
    except IdentityExistsError:
        raise DuplicateEmailError(email)

    sync = await profiles.upsert(
        identity,
        {
            "name": full_name or "User",
            "phone": phone or "",
            "role": ProfileRole.USER.value,
            "status": ProfileStatus.ACTIVE.value,
            "authProvider": AuthProvider.EMAIL.value,
        },
    )
    return identity, sync


async def federated_user_sign_in(
    provider: IdentityProvider,
    profiles: ProfileUpsert,
    credential: str,
) -> tuple[Identity, dict | None, ProfileSync | None]:
    """
    Rider sign-up/sign-in through the federated issuer.

    A profile is written only when none exists yet, so signing in with a
    federated credential never demotes an existing admin to rider.

    Returns:
        (identity, existing profile, ProfileSync). The profile is None on
        first sign-in; ProfileSync is None when the profile already existed.
    """
    identity = await provider.sign_in_federated(credential)
    profile = await ensure_not_banned(provider, profiles, identity)
    if profile is not None:
        return identity, profile, None

    sync = await profiles.upsert(
        identity,
        {
            "name": identity.display_name or "User",
            "phone": "",
            "role": ProfileRole.USER.value,
            "status": ProfileStatus.ACTIVE.value,
            "authProvider": AuthProvider.FEDERATED.value,
        },
    )
    return identity, None, sync


async def login(
    provider: IdentityProvider,
    profiles: ProfileUpsert,
    email: str,
    password: str,
) -> tuple[Identity, dict | None]:
    """
    Authenticate an email/password pair.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password.
        AccountBannedError: The profile is banned (session already revoked).
    """
    try:
        identity = await provider.login(email, password)
    except BadCredentialError:
        raise InvalidCredentialsError()

    profile = await ensure_not_banned(provider, profiles, identity)
    return identity, profile
