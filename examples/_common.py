"""
Shared helpers for Marketwire examples.

Checks the backend is up and mints Bearer tokens the way the main
marketplace site does (same HS256 secret), so each example can focus on
its own flow. Run these scripts with the same MARKETWIRE_JWT_SECRET as
the server.
"""

import sys

import httpx

from marketwire.auth.jwt import create_access_token

BASE = "http://localhost:3001/api"


def check_backend() -> dict:
    """Verify the backend is reachable and healthy."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  marketwire serve --reload")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Backend health:")
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Online:   {health['realtime']['online_users']} chat users")

    if health["database"] != "ok":
        print(f"\nERROR: {health['database']}")
        sys.exit(1)
    return health


def create_client(user_id: int, role: str = "user") -> httpx.Client:
    """Check backend and return an httpx Client acting as `user_id`."""
    check_backend()
    token = create_access_token(user_id, role=role)
    print(f"  Auth:     ✓ (JWT for user {user_id})")
    return httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {token}"},
    )
