"""
Profiles router — the caller's own profile document.

Endpoints:
  GET /profiles/me  — Get the authenticated caller's profile
"""

from fastapi import APIRouter, Depends

from app.dependencies import AuthContext, get_current_auth, get_profile_upsert
from app.exceptions import ProfileNotFoundError
from app.schemas.profile import ProfileResponse
from app.services.profiles import ProfileUpsert

router = APIRouter()


@router.get(
    "/me",
    response_model=ProfileResponse,
    summary="Get my profile",
)
async def get_my_profile(
    auth: AuthContext = Depends(get_current_auth),
    profiles: ProfileUpsert = Depends(get_profile_upsert),
):
    """
    Return the caller's users/{uid} document.

    404 when the identity exists but its profile was never written (a
    registration whose profile write timed out); re-running registration
    repairs it.
    """
    profile = await profiles.get(auth.identity.uid)
    if profile is None:
        raise ProfileNotFoundError(auth.identity.uid)
    return ProfileResponse.model_validate(profile)
