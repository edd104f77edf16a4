"""
Identity provider — credential creation, login, federated sign-in, sign-out.

The rest of the application treats this module as an external identity
service and only ever talks to it through five async calls:

    create_identity(email, password)   -> Identity | IdentityExistsError
    login(email, password)             -> Identity | BadCredentialError
    sign_in_federated(credential)      -> Identity | ProviderFailureError
    sign_out(identity)                 -> None
    is_session_active(session_id)      -> bool

Every call opens its own session and commits it before returning, just
like a round trip to a hosted identity service. A successful create, login
or federated sign-in also opens an AuthSession; the Identity returned
carries that session's id so sign_out revokes exactly that sign-in.

The provider knows nothing about roles, profiles or bans. Those belong to
the application's profile documents (see app/services/profiles.py).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import (
    BadCredentialError,
    IdentityExistsError,
    ProviderFailureError,
)
from app.models.auth_session import AuthSession
from app.models.identity import AuthProvider, IdentityAccount
from app.security import decode_federated_credential, hash_password, verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """An identity as handed out by the provider after a sign-in."""

    uid: str
    email: str
    display_name: str | None
    provider: AuthProvider
    session_id: str | None = None


def _to_identity(account: IdentityAccount, session_id: str | None) -> Identity:
    return Identity(
        uid=account.uid,
        email=account.email,
        display_name=account.display_name,
        provider=account.provider,
        session_id=session_id,
    )


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityProvider:
    """SQL-backed identity service."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _open_session(self, db: AsyncSession, account: IdentityAccount) -> str:
        auth_session = AuthSession(identity_uid=account.uid)
        db.add(auth_session)
        await db.flush()
        return auth_session.id

    async def create_identity(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> Identity:
        """
        Create an email/password identity and sign it in.

        Raises:
            IdentityExistsError: The email already has an identity. Also
                raised when a concurrent create wins the unique-constraint race.
            ProviderFailureError: Any other failure.
        """
        email = _normalize_email(email)
        try:
            async with self._session_factory() as db:
                existing = await db.execute(
                    select(IdentityAccount.uid).where(IdentityAccount.email == email)
                )
                if existing.scalar_one_or_none() is not None:
                    raise IdentityExistsError(email)

                account = IdentityAccount(
                    email=email,
                    display_name=display_name,
                    hashed_password=hash_password(password),
                    provider=AuthProvider.EMAIL,
                )
                db.add(account)
                await db.flush()
                session_id = await self._open_session(db, account)
                await db.commit()
        except IntegrityError:
            raise IdentityExistsError(email)
        except SQLAlchemyError as exc:
            logger.exception("create_identity failed for %s", email)
            raise ProviderFailureError(f"Identity service error: {exc.__class__.__name__}")

        logger.info("Created identity %s", account.uid)
        return _to_identity(account, session_id)

    async def login(self, email: str, password: str) -> Identity:
        """
        Verify an email/password pair and open a session.

        Raises:
            BadCredentialError: Unknown email, wrong password, or an identity
                without a password (federated-only).
            ProviderFailureError: Any other failure.
        """
        email = _normalize_email(email)
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(IdentityAccount).where(IdentityAccount.email == email)
                )
                account = result.scalar_one_or_none()

                # Same error for every case, prevents user enumeration
                if account is None or account.hashed_password is None:
                    raise BadCredentialError()
                if not verify_password(password, account.hashed_password):
                    raise BadCredentialError()

                session_id = await self._open_session(db, account)
                await db.commit()
        except SQLAlchemyError as exc:
            logger.exception("login failed for %s", email)
            raise ProviderFailureError(f"Identity service error: {exc.__class__.__name__}")

        return _to_identity(account, session_id)

    async def sign_in_federated(self, credential: str) -> Identity:
        """
        Sign in with a credential minted by the federated issuer.

        An existing identity with the same email is reused (and linked to the
        federated subject); otherwise a password-less identity is created.

        Raises:
            ProviderFailureError: The credential does not verify, lacks an
                email, or the identity service fails.
        """
        try:
            claims = decode_federated_credential(credential)
        except JWTError as exc:
            raise ProviderFailureError(f"Federated sign-in failed: {exc}")

        subject = claims.get("sub")
        email = claims.get("email")
        if not subject or not email:
            raise ProviderFailureError("Federated sign-in failed: credential lacks sub or email")
        email = _normalize_email(email)

        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(IdentityAccount).where(
                        (IdentityAccount.federated_subject == subject)
                        | (IdentityAccount.email == email)
                    )
                )
                account = result.scalars().first()

                if account is None:
                    account = IdentityAccount(
                        email=email,
                        display_name=claims.get("name"),
                        provider=AuthProvider.FEDERATED,
                        federated_subject=subject,
                    )
                    db.add(account)
                    await db.flush()
                    logger.info("Created federated identity %s", account.uid)
                elif account.federated_subject is None:
                    account.federated_subject = subject
                    if account.display_name is None:
                        account.display_name = claims.get("name")

                session_id = await self._open_session(db, account)
                await db.commit()
        except SQLAlchemyError as exc:
            logger.exception("federated sign-in failed for %s", email)
            raise ProviderFailureError(f"Identity service error: {exc.__class__.__name__}")

        return _to_identity(account, session_id)

    async def sign_out(self, identity: Identity) -> None:
        """Revoke the session the identity was signed in with."""
        if identity.session_id is None:
            return
        try:
            async with self._session_factory() as db:
                auth_session = await db.get(AuthSession, identity.session_id)
                if auth_session is not None and auth_session.revoked_at is None:
                    auth_session.revoked_at = datetime.now(timezone.utc)
                    await db.commit()
        except SQLAlchemyError as exc:
            logger.exception("sign_out failed for session %s", identity.session_id)
            raise ProviderFailureError(f"Identity service error: {exc.__class__.__name__}")

    async def is_session_active(self, session_id: str) -> bool:
        async with self._session_factory() as db:
            auth_session = await db.get(AuthSession, session_id)
            return auth_session is not None and auth_session.is_active

    async def get_identity(self, uid: str, session_id: str | None = None) -> Identity | None:
        async with self._session_factory() as db:
            account = await db.get(IdentityAccount, uid)
            if account is None:
                return None
            return _to_identity(account, session_id)
