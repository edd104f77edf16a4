#!/usr/bin/env python3
"""
Demo seed script — populates the accounts service with sample data for demos.

!! NOT FOR PRODUCTION !!
This script creates admins and riders with known passwords, bans one admin
and optionally rotates the admin registration code. It is intended ONLY for
local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Rotate the admin registration code after seeding:
    python demo/seed.py --rotate-code DISPATCH-2026

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬────────┬─────────┐
    │ Email                        │ Password          │ Role   │ Status  │
    ├──────────────────────────────┼───────────────────┼────────┼─────────┤
    │ ops.lead@dispatch.local      │ OpsLead123!       │ admin  │ active  │
    │ night.shift@dispatch.local   │ NightShift123!    │ admin  │ banned  │
    │ alice.chen@example.com       │ AliceDemo123!     │ user   │ active  │
    │ bob.martinez@example.com     │ BobDemo123!       │ user   │ active  │
    │ carol.nguyen@example.com     │ CarolDemo123!     │ user   │ active  │
    └──────────────────────────────┴───────────────────┴────────┴─────────┘
"""

import argparse
import asyncio
import os
import sys

import httpx

BASE_URL = "http://localhost:8000"

# Defaults from app/config.py; override with the same environment variables
REGISTRATION_KEY = os.environ.get("DEFAULT_REGISTRATION_KEY", "ADMIN2025")
PANEL_ACCESS_CODE = os.environ.get("PANEL_ACCESS_CODE", "OPEN_2025")

# ---------------------------------------------------------------------------
# Demo users
# ---------------------------------------------------------------------------

LEAD_ADMIN = {
    "email": "ops.lead@dispatch.local",
    "password": "OpsLead123!",
}

BANNED_ADMIN = {
    "email": "night.shift@dispatch.local",
    "password": "NightShift123!",
}

RIDERS = [
    {
        "full_name": "Alice Chen",
        "email": "alice.chen@example.com",
        "phone": "+1-555-010-0001",
        "password": "AliceDemo123!",
    },
    {
        "full_name": "Bob Martinez",
        "email": "bob.martinez@example.com",
        "phone": "+1-555-010-0002",
        "password": "BobDemo123!",
    },
    {
        "full_name": "Carol Nguyen",
        "email": "carol.nguyen@example.com",
        "password": "CarolDemo123!",
    },
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register_admin(client: httpx.AsyncClient, admin: dict) -> dict:
    """Register-or-recover an admin; return the registration response body."""
    resp = await client.post(f"{BASE_URL}/auth/admin/register", json={
        "access_code": REGISTRATION_KEY,
        "email": admin["email"],
        "password": admin["password"],
        "confirm_password": admin["password"],
    })
    resp.raise_for_status()
    return resp.json()


async def register_rider(client: httpx.AsyncClient, rider: dict) -> dict | None:
    """Register a rider. Returns None when the email is already taken."""
    body = {**rider, "confirm_password": rider["password"]}
    resp = await client.post(f"{BASE_URL}/auth/register", json=body)
    if resp.status_code == 409:
        return None
    resp.raise_for_status()
    return resp.json()


async def unlock_panel(client: httpx.AsyncClient, token: str) -> str:
    """Trade the panel access code for an elevated token."""
    resp = await client.post(
        f"{BASE_URL}/admin/panel/unlock",
        json={"panel_code": PANEL_ACCESS_CODE},
        headers=auth_header(token),
    )
    resp.raise_for_status()
    return resp.json()["token"]


async def ban_admin(client: httpx.AsyncClient, elevated_token: str, uid: str) -> dict:
    resp = await client.post(
        f"{BASE_URL}/admin/admins/{uid}/ban",
        headers=auth_header(elevated_token),
    )
    resp.raise_for_status()
    return resp.json()


async def rotate_code(client: httpx.AsyncClient, elevated_token: str, new_code: str) -> None:
    resp = await client.put(
        f"{BASE_URL}/admin/access-code",
        json={"new_code": new_code},
        headers=auth_header(elevated_token),
    )
    resp.raise_for_status()


async def roster(client: httpx.AsyncClient, elevated_token: str) -> dict:
    resp = await client.get(f"{BASE_URL}/admin/admins", headers=auth_header(elevated_token))
    resp.raise_for_status()
    return resp.json()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str, new_code: str | None) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print(f"  Start the server first: uvicorn app.main:app --reload\n")
            sys.exit(1)

        # --- Admins ---
        print("Registering admins...")
        lead = await register_admin(client, LEAD_ADMIN)
        log(f"{LEAD_ADMIN['email']}: {lead['outcome']}")
        if not lead["profile_synced"]:
            log("  WARNING: profile write did not land, roster may be incomplete")

        # Re-running the seed on a banned admin would be DENIED; skip it
        night = await client.post(f"{BASE_URL}/auth/admin/register", json={
            "access_code": REGISTRATION_KEY,
            "email": BANNED_ADMIN["email"],
            "password": BANNED_ADMIN["password"],
            "confirm_password": BANNED_ADMIN["password"],
        })
        if night.status_code == 403:
            log(f"{BANNED_ADMIN['email']}: already banned")
            night_uid = None
        else:
            night.raise_for_status()
            night_uid = night.json()["uid"]
            log(f"{BANNED_ADMIN['email']}: {night.json()['outcome']}")

        # --- Riders ---
        print("\nRegistering riders...")
        for rider in RIDERS:
            result = await register_rider(client, rider)
            if result is None:
                log(f"{rider['email']}: already registered")
            else:
                log(f"{rider['email']}: created")

        # --- Management panel ---
        print("\nUnlocking the management panel...")
        elevated = await unlock_panel(client, lead["token"])

        if night_uid:
            banned = await ban_admin(client, elevated, night_uid)
            log(f"Banned {banned['email']}")

        if new_code:
            await rotate_code(client, elevated, new_code)
            log(f"Admin registration code rotated to {new_code}")

        summary = await roster(client, elevated)
        log(f"Roster: {summary['total']} admins, {summary['active']} active")

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<30s} {'Password':<20s} {'Role'}")
    print(f"  {'─' * 30} {'─' * 20} {'─' * 6}")
    print(f"  {LEAD_ADMIN['email']:<30s} {LEAD_ADMIN['password']:<20s} admin")
    print(f"  {BANNED_ADMIN['email']:<30s} {BANNED_ADMIN['password']:<20s} admin (banned)")
    for r in RIDERS:
        print(f"  {r['email']:<30s} {r['password']:<20s} user")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "accounts.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample admins and riders for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--rotate-code", default=None, metavar="CODE",
        help="Rotate the admin registration code after seeding (min 5 characters)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url, args.rotate_code)


if __name__ == "__main__":
    asyncio.run(main())
