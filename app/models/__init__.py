"""
SQLAlchemy ORM models package.

All ORM models are imported here so that Base.metadata knows every table
before create_all runs (lifespan hook and test fixtures).

Profiles and configuration records are documents, not ORM rows; see
app/models/profile.py for their vocabulary.
"""

from app.models.identity import IdentityAccount, AuthProvider  # noqa: F401
from app.models.auth_session import AuthSession  # noqa: F401
from app.models.document import Document  # noqa: F401
