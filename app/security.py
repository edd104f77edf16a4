"""
Security utilities: password hashing, access tokens, federated credentials.

This module centralizes all cryptographic operations so they're easy to
audit and update. Three concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Identity passwords are never stored in plaintext
   - passlib's CryptContext gives us Argon2id plus transparent migration
     to a future scheme ("deprecated='auto'")

2. ACCESS TOKENS (JWT)
   - After a successful sign-in the caller receives a signed JWT with
     "sub" (identity uid) and "sid" (auth session id)
   - The panel unlock re-issues the token with "elevated": true and a
     shorter lifetime; the management endpoints require that claim
   - Tokens are only as good as their session: signing out revokes the
     session and every token that references it

3. FEDERATED CREDENTIALS (JWT)
   - The federated issuer hands the client an HS256 token with "sub",
     "email" and "name"; we verify signature, issuer, audience and expiry
     before trusting any of those claims

The same constant-time comparison is used for every shared secret
(registration access code, panel code).
"""

import hmac
from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from app.config import settings


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").
    """
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored Argon2 hash."""
    return pwd_context.verify(plain_password, hashed_password)


def secrets_match(supplied: str, expected: str) -> bool:
    """Constant-time comparison for shared secrets (access code, panel code)."""
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


# ---------------------------------------------------------------------------
# 2. Access Tokens
# ---------------------------------------------------------------------------


def create_access_token(
    uid: str,
    session_id: str,
    elevated: bool = False,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed JWT access token for an auth session.

    Args:
        uid: Identity uid, stored as the "sub" claim.
        session_id: AuthSession id, stored as "sid".
        elevated: Whether the management panel gate was passed.
        expires_delta: Optional custom lifetime. Defaults to
                       ACCESS_TOKEN_EXPIRE_MINUTES, or
                       ELEVATED_TOKEN_EXPIRE_MINUTES for elevated tokens.
    """
    if expires_delta is None:
        minutes = (
            settings.ELEVATED_TOKEN_EXPIRE_MINUTES
            if elevated
            else settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
        expires_delta = timedelta(minutes=minutes)

    to_encode = {
        "sub": uid,
        "sid": session_id,
        "elevated": elevated,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        JWTError: If the token is expired, tampered with, or invalid.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ---------------------------------------------------------------------------
# 3. Federated Credentials
# ---------------------------------------------------------------------------


def decode_federated_credential(credential: str) -> dict:
    """
    Verify a credential minted by the federated issuer.

    Raises:
        JWTError: If the signature, issuer, audience or expiry is wrong.
    """
    return jwt.decode(
        credential,
        settings.FEDERATED_TOKEN_SECRET,
        algorithms=["HS256"],
        audience=settings.FEDERATED_AUDIENCE,
        issuer=settings.FEDERATED_ISSUER,
    )
