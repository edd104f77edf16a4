"""
Pydantic schemas for profile documents.

Profiles are stored with camelCase keys (authProvider, createdAt, ...);
validation aliases map them onto snake_case response fields.
"""

from pydantic import BaseModel, Field


class ProfileResponse(BaseModel):
    uid: str
    email: str | None = None
    name: str | None = None
    phone: str | None = None
    role: str | None = None
    status: str | None = None
    auth_provider: str | None = Field(default=None, validation_alias="authProvider")
    created_at: str | None = Field(default=None, validation_alias="createdAt")
    restored_at: str | None = Field(default=None, validation_alias="restoredAt")
