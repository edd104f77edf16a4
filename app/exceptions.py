"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (banned account, wrong
access code, store outage) without importing HTTP concepts. The handlers
registered here translate them into consistent JSON responses:

    {"detail": "...", "error_type": "..."}

Exception hierarchy:
    AccountsAPIError (base)
    ├── ValidationError              — rejected before any remote call
    │   ├── AccessCodeMismatchError  — wrong admin registration code
    │   ├── PasswordMismatchError    — password != confirmation
    │   ├── WeakPasswordError        — password shorter than 6 chars
    │   └── AccessCodeTooShortError  — rotated code shorter than 5 chars
    ├── ProviderError                — raised by the identity provider
    │   ├── IdentityExistsError      — email already has an identity
    │   ├── BadCredentialError       — password did not verify
    │   └── ProviderFailureError     — any other provider failure, surfaced verbatim
    ├── IncorrectCredentialError     — email taken, supplied password wrong
    ├── InvalidCredentialsError      — fresh login failed
    ├── DuplicateEmailError          — rider signup on an existing email
    ├── AccountBannedError           — profile status is banned
    ├── PanelAccessDeniedError       — wrong management panel code
    ├── SelfBanError                 — admin targeting their own profile
    ├── ProfileNotFoundError         — no users/{uid} document
    └── StoreError                   — document store failures
        ├── StoreTimeoutError
        └── StoreUnavailableError
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class AccountsAPIError(Exception):
    """Base exception for all Dispatch Accounts API domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Validation (never touches the network)
# ---------------------------------------------------------------------------

class ValidationError(AccountsAPIError):
    """Input rejected before any identity-provider or store call."""

    error_type = "validation_error"


class AccessCodeMismatchError(ValidationError):
    error_type = "access_code_mismatch"

    def __init__(self):
        super().__init__("Invalid Admin Access Code.")


class PasswordMismatchError(ValidationError):
    error_type = "password_mismatch"

    def __init__(self):
        super().__init__("Passwords do not match.")


class WeakPasswordError(ValidationError):
    error_type = "weak_password"

    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(f"Password must be at least {min_length} characters.")


class AccessCodeTooShortError(ValidationError):
    error_type = "access_code_too_short"

    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(f"Code is too short (min {min_length} chars).")


# ---------------------------------------------------------------------------
# Identity provider signals
# ---------------------------------------------------------------------------

class ProviderError(AccountsAPIError):
    """Base for errors raised by the identity provider."""


class IdentityExistsError(ProviderError):
    """
    Raised by create_identity when the email already has an identity.

    The reconciler treats this as the ConflictDetected signal and moves on
    to the recovery branch; it is never reported to a caller on its own.
    """

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Identity for {email} already exists")


class BadCredentialError(ProviderError):
    """Raised by login when the password does not verify."""

    def __init__(self):
        super().__init__("Credential rejected")


class ProviderFailureError(ProviderError):
    """Any other identity-provider failure, carrying the provider's message."""

    def __init__(self, detail: str):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Authentication outcomes
# ---------------------------------------------------------------------------

class IncorrectCredentialError(AccountsAPIError):
    """Admin registration hit an existing email and the password did not match."""

    def __init__(self):
        super().__init__(
            "This email is already registered, but the password was incorrect. "
            "Please Log In."
        )


class InvalidCredentialsError(AccountsAPIError):
    """Raised when login credentials are incorrect."""

    def __init__(self):
        super().__init__("Invalid email or password")


class DuplicateEmailError(AccountsAPIError):
    """Raised when a rider registers with an email that's already in use."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered. Please Log In.")


class AccountBannedError(AccountsAPIError):
    """Raised when a banned profile attempts any sign-in path."""

    def __init__(self):
        super().__init__("ACCESS DENIED: This account has been banned.")


# ---------------------------------------------------------------------------
# Management surface
# ---------------------------------------------------------------------------

class PanelAccessDeniedError(AccountsAPIError):
    def __init__(self):
        super().__init__("Access Denied: Invalid Code")


class SelfBanError(AccountsAPIError):
    def __init__(self):
        super().__init__("Administrators cannot ban or unban their own account")


class ProfileNotFoundError(AccountsAPIError):
    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"Profile {uid} not found")


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------

class StoreError(AccountsAPIError):
    """Base for document store failures."""


class StoreTimeoutError(StoreError):
    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Document store timed out after {timeout:g}s during {operation}")


class StoreUnavailableError(StoreError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Document store unavailable during {operation}")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_response(status_code: int, exc: AccountsAPIError, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.detail, "error_type": error_type},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps a domain exception to an HTTP status code and
    consistent JSON response format: {"detail": "error message"}

    This is called once during app startup in main.py.
    """

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        # 422: the request was well-formed but business rules reject it
        return _error_response(422, exc, exc.error_type)

    @app.exception_handler(IncorrectCredentialError)
    async def incorrect_credential_handler(
        request: Request, exc: IncorrectCredentialError
    ) -> JSONResponse:
        return _error_response(401, exc, "incorrect_credential")

    @app.exception_handler(InvalidCredentialsError)
    async def invalid_credentials_handler(
        request: Request, exc: InvalidCredentialsError
    ) -> JSONResponse:
        return _error_response(401, exc, "invalid_credentials")

    @app.exception_handler(AccountBannedError)
    async def account_banned_handler(request: Request, exc: AccountBannedError) -> JSONResponse:
        return _error_response(403, exc, "account_banned")

    @app.exception_handler(PanelAccessDeniedError)
    async def panel_access_denied_handler(
        request: Request, exc: PanelAccessDeniedError
    ) -> JSONResponse:
        return _error_response(403, exc, "panel_access_denied")

    @app.exception_handler(SelfBanError)
    async def self_ban_handler(request: Request, exc: SelfBanError) -> JSONResponse:
        return _error_response(403, exc, "self_ban_forbidden")

    @app.exception_handler(ProfileNotFoundError)
    async def profile_not_found_handler(
        request: Request, exc: ProfileNotFoundError
    ) -> JSONResponse:
        return _error_response(404, exc, "profile_not_found")

    @app.exception_handler(DuplicateEmailError)
    async def duplicate_email_handler(request: Request, exc: DuplicateEmailError) -> JSONResponse:
        return _error_response(409, exc, "duplicate_email")

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        return _error_response(503, exc, "store_unavailable")

    @app.exception_handler(ProviderFailureError)
    async def provider_failure_handler(
        request: Request, exc: ProviderFailureError
    ) -> JSONResponse:
        return _error_response(502, exc, "provider_failure")
