"""
Pydantic schemas for the admin-management endpoints.
"""

from pydantic import BaseModel

from app.schemas.profile import ProfileResponse


class PanelUnlockRequest(BaseModel):
    """Request body for POST /admin/panel/unlock."""
    panel_code: str


class PanelUnlockResponse(BaseModel):
    """Elevated access token, valid for ELEVATED_TOKEN_EXPIRE_MINUTES."""
    token: str
    token_type: str = "bearer"
    elevated: bool = True


class AccessCodeResponse(BaseModel):
    access_code: str


class AccessCodeUpdateRequest(BaseModel):
    """
    Request body for PUT /admin/access-code.

    The 5-character minimum is enforced by the service (AccessCodeTooShortError).
    """
    new_code: str


class AdminRosterResponse(BaseModel):
    admins: list[ProfileResponse]
    total: int
    active: int
