"""
Pydantic schemas for the sign-in and registration endpoints.

Password length and confirmation are deliberately NOT enforced here: the
service layer owns those rules so that they raise the same domain errors
(and error_type values) whether they are hit over HTTP or in-process.
"""

from pydantic import BaseModel, EmailStr, Field


class RiderRegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=32)
    password: str
    confirm_password: str


class AdminRegisterRequest(BaseModel):
    """Request body for POST /auth/admin/register."""
    access_code: str
    email: EmailStr
    password: str
    confirm_password: str


class FederatedSignInRequest(BaseModel):
    """Request body for POST /auth/federated."""
    credential: str = Field(min_length=1)


class AdminFederatedRequest(BaseModel):
    """Request body for POST /auth/admin/federated."""
    access_code: str
    credential: str = Field(min_length=1)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Response body for a successful login."""
    token: str
    token_type: str = "bearer"
    uid: str
    role: str | None = None


class RegistrationResponse(BaseModel):
    """
    Response body for registration and federated sign-in.

    profile_synced=False means the identity exists but the profile write
    timed out or failed; the profile will be repaired on the next
    registration or federated sign-in.
    """
    uid: str
    email: str
    role: str
    outcome: str
    profile_synced: bool
    token: str
    token_type: str = "bearer"
