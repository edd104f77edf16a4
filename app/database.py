"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_session_factory(): FastAPI dependency handing out the session factory

Architecture note:
  The identity provider and the document store are modelled as remote
  services. Each of their operations opens its own short-lived session and
  commits it, the same way every call to a hosted identity service or
  document database is its own round trip. That is why routes receive the
  session *factory* rather than a per-request session: a profile write that
  times out mid-flight cannot leave the request's other operations holding a
  half-used session.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


# Create the async engine.
# echo=True in debug mode logs all SQL statements.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# expire_on_commit=False prevents lazy-load errors after commit,
# which would otherwise trigger a synchronous DB call in async context.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Provides metadata tracking so the lifespan hook (and tests) can
    create every table with Base.metadata.create_all.
    """
    pass


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    FastAPI dependency that provides the session factory.

    Tests override this to point every service at an in-memory database.
    """
    return AsyncSessionLocal
