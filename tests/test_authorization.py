"""
Tests for authorization boundaries on the admin-management surface.

These tests verify three properties:

1. **Role enforcement**: riders cannot reach any /admin/* endpoint, and a
   banned admin loses access immediately, even with a token minted before
   the ban.

2. **Panel gate**: an admin must exchange the panel code for an elevated
   token before the roster, ban/unban and access-code endpoints respond.

3. **Ban lifecycle**: bans are idempotent, never self-inflicted, surface
   missing profiles, and decide whether admin recovery is DENIED or
   RESTORED.
"""

import asyncio

import pytest

from app.exceptions import ProfileNotFoundError, SelfBanError, StoreTimeoutError
from app.services.bans import BanLifecycle, ensure_not_self


async def second_admin(register_admin):
    response = await register_admin(email="second.admin@example.com", password="Second123")
    assert response.status_code == 200
    return response.json()


class TestRoleEnforcement:
    async def test_rider_cannot_unlock_panel(self, client, auth_headers):
        rider = await client.post(
            "/auth/register",
            json={
                "full_name": "Rider",
                "email": "rider@example.com",
                "password": "RiderPass1",
                "confirm_password": "RiderPass1",
            },
        )
        response = await client.post(
            "/admin/panel/unlock",
            json={"panel_code": "OPEN_2025"},
            headers=auth_headers(rider.json()["token"]),
        )
        assert response.status_code == 403

    async def test_unauthenticated_admin_routes_return_401(self, client):
        assert (await client.get("/admin/admins")).status_code == 401

    async def test_banned_admin_token_stops_working(
        self, client, elevated_admin_token, admin_token,
        register_admin, unlock_panel, auth_headers,
    ):
        other = await second_admin(register_admin)
        other_elevated = await unlock_panel(other["token"])

        # Second admin bans the first; the first admin's elevated token is now dead
        me = await client.get("/profiles/me", headers=auth_headers(admin_token))
        banned = await client.post(
            f"/admin/admins/{me.json()['uid']}/ban",
            headers=auth_headers(other_elevated),
        )
        assert banned.status_code == 200

        response = await client.get("/admin/admins", headers=auth_headers(elevated_admin_token))
        assert response.status_code == 403
        assert response.json()["error_type"] == "account_banned"


class TestPanelGate:
    async def test_wrong_panel_code(self, client, admin_token, auth_headers):
        response = await client.post(
            "/admin/panel/unlock",
            json={"panel_code": "guess"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 403
        assert response.json()["error_type"] == "panel_access_denied"

    async def test_roster_needs_elevation(self, client, admin_token, auth_headers):
        response = await client.get("/admin/admins", headers=auth_headers(admin_token))
        assert response.status_code == 403

    async def test_roster_after_unlock(
        self, client, elevated_admin_token, register_admin, auth_headers
    ):
        await second_admin(register_admin)
        await client.post(
            "/auth/register",
            json={
                "full_name": "Rider",
                "email": "rider@example.com",
                "password": "RiderPass1",
                "confirm_password": "RiderPass1",
            },
        )

        response = await client.get("/admin/admins", headers=auth_headers(elevated_admin_token))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["active"] == 2
        assert {a["role"] for a in data["admins"]} == {"admin"}

    async def test_logout_kills_elevated_token(
        self, client, admin_token, elevated_admin_token, auth_headers
    ):
        await client.post("/auth/logout", headers=auth_headers(admin_token))

        response = await client.get("/admin/admins", headers=auth_headers(elevated_admin_token))
        assert response.status_code == 401


class TestBanEndpoints:
    async def test_cannot_ban_self(
        self, client, admin_token, elevated_admin_token, auth_headers
    ):
        me = await client.get("/profiles/me", headers=auth_headers(admin_token))

        response = await client.post(
            f"/admin/admins/{me.json()['uid']}/ban",
            headers=auth_headers(elevated_admin_token),
        )

        assert response.status_code == 403
        assert response.json()["error_type"] == "self_ban_forbidden"

    async def test_cannot_unban_self(
        self, client, admin_token, elevated_admin_token, auth_headers
    ):
        me = await client.get("/profiles/me", headers=auth_headers(admin_token))

        response = await client.post(
            f"/admin/admins/{me.json()['uid']}/unban",
            headers=auth_headers(elevated_admin_token),
        )

        assert response.status_code == 403

    async def test_ban_blocks_recovery_and_unban_restores_it(
        self, client, elevated_admin_token, register_admin, auth_headers
    ):
        other = await second_admin(register_admin)
        headers = auth_headers(elevated_admin_token)

        banned = await client.post(f"/admin/admins/{other['uid']}/ban", headers=headers)
        assert banned.json()["status"] == "banned"

        denied = await register_admin(email="second.admin@example.com", password="Second123")
        assert denied.status_code == 403

        unbanned = await client.post(f"/admin/admins/{other['uid']}/unban", headers=headers)
        assert unbanned.json()["status"] == "active"

        restored = await register_admin(email="second.admin@example.com", password="Second123")
        assert restored.status_code == 200
        assert restored.json()["outcome"] == "restored"

    async def test_ban_unknown_profile(self, client, elevated_admin_token, auth_headers):
        response = await client.post(
            "/admin/admins/no-such-uid/ban",
            headers=auth_headers(elevated_admin_token),
        )
        assert response.status_code == 404

    async def test_roster_counts_banned_admins(
        self, client, elevated_admin_token, register_admin, auth_headers
    ):
        other = await second_admin(register_admin)
        headers = auth_headers(elevated_admin_token)
        await client.post(f"/admin/admins/{other['uid']}/ban", headers=headers)

        data = (await client.get("/admin/admins", headers=headers)).json()

        assert data["total"] == 2
        assert data["active"] == 1


class TestBanLifecycle:
    async def test_ban_is_idempotent(self, document_store):
        await document_store.merge_write("users", "uid-1", {"uid": "uid-1", "status": "active"})
        bans = BanLifecycle(document_store)

        first = await bans.ban("uid-1")
        second = await bans.ban("uid-1")

        assert first["status"] == second["status"] == "banned"

    async def test_unban_leaves_other_fields(self, document_store):
        await document_store.merge_write(
            "users", "uid-1", {"uid": "uid-1", "role": "admin", "status": "banned", "createdAt": "t0"}
        )

        profile = await BanLifecycle(document_store).unban("uid-1")

        assert profile == {"uid": "uid-1", "role": "admin", "status": "active", "createdAt": "t0"}

    async def test_missing_profile(self, document_store):
        with pytest.raises(ProfileNotFoundError):
            await BanLifecycle(document_store).ban("ghost")

    async def test_unresponsive_read_times_out(self):
        class FrozenStore:
            async def get_document(self, collection, doc_id):
                await asyncio.Event().wait()

        bans = BanLifecycle(FrozenStore(), write_timeout=0.05)

        with pytest.raises(StoreTimeoutError):
            await asyncio.wait_for(bans.ban("uid-1"), timeout=2)

    def test_self_check(self):
        with pytest.raises(SelfBanError):
            ensure_not_self("uid-1", "uid-1")
        ensure_not_self("uid-1", "uid-2")
