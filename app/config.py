"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This keeps secrets (JWT signing key, federated issuer secret,
panel code) out of source code.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from app.config import settings
    print(settings.PANEL_ACCESS_CODE)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Dispatch Accounts API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign access tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Dispatch Accounts API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # Backs both the identity provider tables and the document store
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/accounts.db"

    # --- Authentication ---
    # REQUIRED: No default, forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    # Tokens carrying the "elevated" claim (issued by the panel unlock) live shorter
    ELEVATED_TOKEN_EXPIRE_MINUTES: int = 10

    # --- Federated sign-in ---
    # Credentials are HS256 JWTs minted by the federated issuer
    FEDERATED_TOKEN_SECRET: str = "change-me-federated"
    FEDERATED_ISSUER: str = "https://accounts.dispatch.local"
    FEDERATED_AUDIENCE: str = "dispatch-accounts"

    # --- Access codes ---
    # Used when settings/admin_config has no registrationKey
    DEFAULT_REGISTRATION_KEY: str = "ADMIN2025"
    # Gate in front of the admin-management surface; never stored in the document store
    PANEL_ACCESS_CODE: str = "OPEN_2025"

    # --- Profile projection ---
    # Upper bound for the best-effort profile write during registration
    PROFILE_WRITE_TIMEOUT_SECONDS: float = 5.0
    # Upper bound for admin mutations (ban, unban, access-code rotation)
    STORE_WRITE_TIMEOUT_SECONDS: float = 10.0

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
