"""
Admin router — the admin-management surface.

Entry is two-step: an admin first unlocks the panel with the panel access
code, which re-issues their token with the "elevated" claim. Every other
endpoint here requires that elevated token on top of an active admin
profile.

Endpoints:
  POST /admin/panel/unlock         — Panel code -> elevated token
  GET  /admin/admins               — Roster of every admin profile
  GET  /admin/access-code          — Current admin registration code
  PUT  /admin/access-code          — Rotate the admin registration code
  POST /admin/admins/{uid}/ban     — Ban another admin
  POST /admin/admins/{uid}/unban   — Unban another admin

An admin can never ban or unban their own profile.
"""

import logging

from fastapi import APIRouter, Depends

from app.dependencies import (
    AuthContext,
    get_access_code_store,
    get_ban_lifecycle,
    get_privileged_gate,
    get_roster,
    require_admin,
    require_elevated_admin,
)
from app.exceptions import PanelAccessDeniedError
from app.models.profile import ProfileStatus
from app.schemas.admin import (
    AccessCodeResponse,
    AccessCodeUpdateRequest,
    AdminRosterResponse,
    PanelUnlockRequest,
    PanelUnlockResponse,
)
from app.schemas.profile import ProfileResponse
from app.services import auth_service
from app.services.access_codes import AccessCodeStore
from app.services.bans import BanLifecycle, ensure_not_self
from app.services.panel_gate import PrivilegedGate
from app.services.roster import RosterView

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Panel gate
# ---------------------------------------------------------------------------

@router.post(
    "/panel/unlock",
    response_model=PanelUnlockResponse,
    summary="[Admin] Unlock the management panel",
)
async def unlock_panel(
    request: PanelUnlockRequest,
    admin: AuthContext = Depends(require_admin),
    gate: PrivilegedGate = Depends(get_privileged_gate),
):
    """
    Exchange the panel access code for an elevated token.

    The elevated token belongs to the caller's existing session (logging out
    revokes it too) and expires after ELEVATED_TOKEN_EXPIRE_MINUTES.
    """
    if not gate.verify(request.panel_code):
        logger.warning("Panel unlock refused for %s", admin.identity.uid)
        raise PanelAccessDeniedError()
    return PanelUnlockResponse(token=auth_service.issue_token(admin.identity, elevated=True))


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------

@router.get(
    "/admins",
    response_model=AdminRosterResponse,
    summary="[Admin] List all admins",
)
async def list_admins(
    admin: AuthContext = Depends(require_elevated_admin),
    roster: RosterView = Depends(get_roster),
):
    """Every profile with role admin, banned ones included."""
    admins = await roster.list_admins()
    active = sum(1 for a in admins if a.get("status") != ProfileStatus.BANNED.value)
    return AdminRosterResponse(
        admins=[ProfileResponse.model_validate(a) for a in admins],
        total=len(admins),
        active=active,
    )


@router.post(
    "/admins/{uid}/ban",
    response_model=ProfileResponse,
    summary="[Admin] Ban an admin",
)
async def ban_admin(
    uid: str,
    admin: AuthContext = Depends(require_elevated_admin),
    bans: BanLifecycle = Depends(get_ban_lifecycle),
):
    """Idempotent: banning a banned profile returns it unchanged."""
    ensure_not_self(admin.identity.uid, uid)
    profile = await bans.ban(uid)
    logger.info("Admin %s banned %s", admin.identity.uid, uid)
    return ProfileResponse.model_validate(profile)


@router.post(
    "/admins/{uid}/unban",
    response_model=ProfileResponse,
    summary="[Admin] Unban an admin",
)
async def unban_admin(
    uid: str,
    admin: AuthContext = Depends(require_elevated_admin),
    bans: BanLifecycle = Depends(get_ban_lifecycle),
):
    ensure_not_self(admin.identity.uid, uid)
    profile = await bans.unban(uid)
    logger.info("Admin %s unbanned %s", admin.identity.uid, uid)
    return ProfileResponse.model_validate(profile)


# ---------------------------------------------------------------------------
# Registration access code
# ---------------------------------------------------------------------------

@router.get(
    "/access-code",
    response_model=AccessCodeResponse,
    summary="[Admin] Current admin registration code",
)
async def get_access_code(
    admin: AuthContext = Depends(require_elevated_admin),
    roster: RosterView = Depends(get_roster),
):
    return AccessCodeResponse(access_code=await roster.current_access_code())


@router.put(
    "/access-code",
    response_model=AccessCodeResponse,
    summary="[Admin] Rotate the admin registration code",
)
async def rotate_access_code(
    request: AccessCodeUpdateRequest,
    admin: AuthContext = Depends(require_elevated_admin),
    access_codes: AccessCodeStore = Depends(get_access_code_store),
):
    """
    Replace the code required for new admin registrations.

    Codes shorter than 5 characters are rejected with 422. A store timeout
    or outage returns 503; the rotation never silently no-ops.
    """
    await access_codes.set(request.new_code)
    logger.info("Admin %s rotated the registration access code", admin.identity.uid)
    return AccessCodeResponse(access_code=request.new_code)
