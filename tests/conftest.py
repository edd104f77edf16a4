"""
Test fixtures for the Dispatch Accounts API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh in-memory SQLite database per test
  - document_store / identity_provider: Real adapters bound to that database
  - client: Async HTTP test client (unauthenticated)
  - admin_token / elevated_admin_token: An admin registered through the real
    /auth/admin/register flow, before and after unlocking the panel
  - make_federated_credential: Mints credentials the way the federated
    issuer would
  - register_admin / unlock_panel / auth_headers: Request helpers bound to
    the test client

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) with a StaticPool, so every
    per-operation session of the provider and the store sees the same
    database. Each test gets a completely fresh database.
  - We override FastAPI's get_session_factory dependency, so the
    application code runs exactly as it does in production.
  - Tokens are passed per request (auth_headers) instead of mutating the
    client, because most tests need several users at once.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.config import settings
from app.database import Base, get_session_factory
from app.identity.provider import IdentityProvider
from app.main import app
from app.store.documents import DocumentStore


TEST_DATABASE_URL = "sqlite+aiosqlite://"

ADMIN_EMAIL = "dispatch.admin@example.com"
ADMIN_PASSWORD = "AdminPass123"


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def document_store(session_factory):
    return DocumentStore(session_factory)


@pytest_asyncio.fixture
async def identity_provider(session_factory):
    return IdentityProvider(session_factory)


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    Overrides get_session_factory so the identity provider and the document
    store behind every route hit the in-memory test database.
    """
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_federated_credential():
    """Factory for credentials signed like the federated issuer signs them."""

    def _make(
        subject: str,
        email: str,
        name: str | None = None,
        secret: str | None = None,
        audience: str | None = None,
        expires_in: timedelta = timedelta(minutes=5),
    ) -> str:
        claims = {
            "sub": subject,
            "email": email,
            "iss": settings.FEDERATED_ISSUER,
            "aud": audience or settings.FEDERATED_AUDIENCE,
            "exp": datetime.now(timezone.utc) + expires_in,
        }
        if name is not None:
            claims["name"] = name
        return jwt.encode(claims, secret or settings.FEDERATED_TOKEN_SECRET, algorithm="HS256")

    return _make


async def _register_admin(
    client: AsyncClient,
    email: str = ADMIN_EMAIL,
    password: str = ADMIN_PASSWORD,
    access_code: str | None = None,
):
    """POST /auth/admin/register with matching passwords."""
    return await client.post(
        "/auth/admin/register",
        json={
            "access_code": access_code or settings.DEFAULT_REGISTRATION_KEY,
            "email": email,
            "password": password,
            "confirm_password": password,
        },
    )


async def _unlock_panel(client: AsyncClient, token: str) -> str:
    response = await client.post(
        "/admin/panel/unlock",
        json={"panel_code": settings.PANEL_ACCESS_CODE},
        headers=_auth_headers(token),
    )
    assert response.status_code == 200, f"Unlock failed: {response.text}"
    return response.json()["token"]


@pytest_asyncio.fixture
async def admin_token(client):
    """Token of an admin provisioned through the real registration flow."""
    response = await _register_admin(client)
    assert response.status_code == 200, f"Admin registration failed: {response.text}"
    return response.json()["token"]


@pytest_asyncio.fixture
async def elevated_admin_token(client, admin_token):
    """Same admin after passing the management panel gate."""
    return await _unlock_panel(client, admin_token)


@pytest.fixture
def auth_headers():
    """Bearer header builder; tests juggle several tokens at once."""
    return _auth_headers


@pytest.fixture
def admin_credentials():
    """Email and password behind admin_token."""
    return {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}


@pytest.fixture
def register_admin(client):
    """POST /auth/admin/register bound to the test client."""

    async def _register(
        email: str = ADMIN_EMAIL,
        password: str = ADMIN_PASSWORD,
        access_code: str | None = None,
    ):
        return await _register_admin(client, email, password, access_code)

    return _register


@pytest.fixture
def unlock_panel(client):
    """Trade a token for its elevated twin through /admin/panel/unlock."""

    async def _unlock(token: str) -> str:
        return await _unlock_panel(client, token)

    return _unlock
