"""
IdentityAccount model — the identity provider's own record.

Each IdentityAccount is a login identity: an email, an Argon2 password hash
(absent for identities that only ever signed in through the federated
issuer) and, once linked, the federated subject.

IdentityAccount is owned exclusively by the identity provider
(app/identity/provider.py). Application data such as role and ban status
does NOT live here: it lives in the users/{uid} profile document, which
references the identity by uid and never duplicates it.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class AuthProvider(str, enum.Enum):
    """
    How an identity was first established.

    Inherits from str so the value serializes naturally into profile
    documents ("email" / "federated").
    """
    EMAIL = "email"
    FEDERATED = "federated"


class IdentityAccount(Base):
    __tablename__ = "identities"

    # Opaque uid handed to every other component
    uid: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # Unique: the provider refuses a second identity for the same email
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Argon2id hash; None for federated-only identities
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)

    provider: Mapped[AuthProvider] = mapped_column(
        Enum(AuthProvider),
        default=AuthProvider.EMAIL,
        nullable=False,
    )

    # "sub" claim of the federated credential, once linked
    federated_subject: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
