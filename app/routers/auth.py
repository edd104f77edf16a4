"""
Authentication router — registration, sign-in and sign-out.

These are the only public (unauthenticated) endpoints apart from /health.

Endpoints:
  POST /auth/register          — Register a rider
  POST /auth/federated         — Rider sign-in/sign-up with a federated credential
  POST /auth/login             — Email/password login (ban-checked)
  POST /auth/logout            — Revoke the caller's session
  POST /auth/admin/register    — Register an admin, or restore an existing one
  POST /auth/admin/federated   — Admin register/restore with a federated credential

Security audit notes:
  - Plaintext passwords and access codes exist only in memory during
    request processing and are never logged.
  - The admin access code is compared against a fresh read of
    settings/admin_config on every request; nothing client-side is trusted.
"""

from fastapi import APIRouter, Depends, status

from app.dependencies import (
    AuthContext,
    get_access_code_store,
    get_current_auth,
    get_identity_provider,
    get_profile_upsert,
    get_reconciler,
)
from app.identity.provider import IdentityProvider
from app.models.profile import ProfileRole
from app.schemas.auth import (
    AdminFederatedRequest,
    AdminRegisterRequest,
    FederatedSignInRequest,
    LoginRequest,
    RegistrationResponse,
    RiderRegisterRequest,
    TokenResponse,
)
from app.services import auth_service
from app.services.access_codes import AccessCodeStore
from app.services.profiles import ProfileUpsert
from app.services.reconciler import IdentityReconciler, ReconcileResult

router = APIRouter()


def _reconciled_response(result: ReconcileResult) -> RegistrationResponse:
    result.raise_for_outcome()
    identity = result.identity
    return RegistrationResponse(
        uid=identity.uid,
        email=identity.email,
        role=ProfileRole.ADMIN.value,
        outcome=result.outcome.value,
        profile_synced=result.profile_synced,
        token=auth_service.issue_token(identity),
    )


# ---------------------------------------------------------------------------
# Riders
# ---------------------------------------------------------------------------

@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a rider",
)
async def register_rider(
    request: RiderRegisterRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
    profiles: ProfileUpsert = Depends(get_profile_upsert),
):
    """
    Register a rider account.

    - **password** / **confirm_password**: must match, minimum 6 characters
    - An email that is already registered returns 409; riders are pointed
      to the login endpoint instead of being recovered
    """
    identity, sync = await auth_service.register_user(
        provider=provider,
        profiles=profiles,
        full_name=request.full_name,
        email=request.email,
        password=request.password,
        confirm_password=request.confirm_password,
        phone=request.phone,
    )
    return RegistrationResponse(
        uid=identity.uid,
        email=identity.email,
        role=ProfileRole.USER.value,
        outcome="created",
        profile_synced=sync.synced,
        token=auth_service.issue_token(identity),
    )


@router.post(
    "/federated",
    response_model=RegistrationResponse,
    summary="Rider sign-in with a federated credential",
)
async def federated_rider_sign_in(
    request: FederatedSignInRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
    profiles: ProfileUpsert = Depends(get_profile_upsert),
):
    """Create the rider profile on first use; banned accounts get 403."""
    identity, existing, sync = await auth_service.federated_user_sign_in(
        provider=provider,
        profiles=profiles,
        credential=request.credential,
    )
    role = (existing or {}).get("role", ProfileRole.USER.value)
    return RegistrationResponse(
        uid=identity.uid,
        email=identity.email,
        role=role,
        outcome="created" if sync is not None else "signed_in",
        profile_synced=sync.synced if sync is not None else True,
        token=auth_service.issue_token(identity),
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
    profiles: ProfileUpsert = Depends(get_profile_upsert),
):
    """
    Authenticate with email and password.

    Returns a bearer token for the Authorization header:

        Authorization: Bearer <token>

    Banned accounts receive 403 and their new session is revoked at once.
    """
    identity, profile = await auth_service.login(
        provider=provider,
        profiles=profiles,
        email=request.email,
        password=request.password,
    )
    return TokenResponse(
        token=auth_service.issue_token(identity),
        uid=identity.uid,
        role=(profile or {}).get("role"),
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke the current session",
)
async def logout(
    auth: AuthContext = Depends(get_current_auth),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Every token minted for this session (elevated ones included) stops working."""
    await provider.sign_out(auth.identity)


# ---------------------------------------------------------------------------
# Admins
# ---------------------------------------------------------------------------

@router.post(
    "/admin/register",
    response_model=RegistrationResponse,
    summary="Register or restore an admin",
)
async def register_admin(
    request: AdminRegisterRequest,
    access_codes: AccessCodeStore = Depends(get_access_code_store),
    reconciler: IdentityReconciler = Depends(get_reconciler),
):
    """
    Register a new admin, or repair the profile of an existing identity.

    - **access_code**: the current admin registration code
    - outcome **created**: a new identity was provisioned
    - outcome **restored**: the email existed, the password matched and the
      admin profile was repaired
    - 401: the email exists but the password did not match
    - 403: the account is banned (the session is revoked)
    """
    expected_code = await access_codes.get()
    result = await reconciler.register_or_recover(
        email=request.email,
        password=request.password,
        confirm_password=request.confirm_password,
        supplied_code=request.access_code,
        expected_code=expected_code,
    )
    return _reconciled_response(result)


@router.post(
    "/admin/federated",
    response_model=RegistrationResponse,
    summary="Register or restore an admin with a federated credential",
)
async def federated_admin_sign_in(
    request: AdminFederatedRequest,
    access_codes: AccessCodeStore = Depends(get_access_code_store),
    reconciler: IdentityReconciler = Depends(get_reconciler),
):
    """The access code is checked before the federated credential is looked at."""
    expected_code = await access_codes.get()
    result = await reconciler.federated_sign_in(
        credential=request.credential,
        supplied_code=request.access_code,
        expected_code=expected_code,
    )
    return _reconciled_response(result)
