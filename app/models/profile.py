"""
Profile document vocabulary.

Profiles are not ORM rows: they live in the document store as
users/{uid} records with camelCase keys:

    {uid, email, name, phone, role, status, authProvider, createdAt, restoredAt?}

This module names the collection and the enumerated values so services
don't scatter string literals around.
"""

import enum


USERS_COLLECTION = "users"


class ProfileRole(str, enum.Enum):
    """Role stored on the profile; decides which surfaces a user may reach."""
    USER = "user"      # Rider: books and tracks trips
    ADMIN = "admin"    # Dispatcher or administrator, reaches the management surface


class ProfileStatus(str, enum.Enum):
    ACTIVE = "active"
    BANNED = "banned"


def is_banned(profile: dict | None) -> bool:
    """Ban predicate. A missing profile is not banned."""
    return profile is not None and profile.get("status") == ProfileStatus.BANNED.value
