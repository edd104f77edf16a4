"""
Management panel gate.

A second shared secret (PANEL_ACCESS_CODE) stands in front of the
admin-management surface. verify() is a pure comparison: it persists
nothing and opens no session.

The code comes from configuration and is never rotated through the API, so
anyone who can read the deployment's configuration can pass it. It is a
speed-bump, not an authorization boundary. The real checks on the
management endpoints are the admin role on an active profile plus the
"elevated" claim that the unlock endpoint adds to that admin's token (see
app/dependencies.py).
"""

from app.config import settings
from app.security import secrets_match


class PrivilegedGate:
    def __init__(self, panel_code: str | None = None):
        self._panel_code = panel_code or settings.PANEL_ACCESS_CODE

    def verify(self, supplied_code: str) -> bool:
        return secrets_match(supplied_code, self._panel_code)
