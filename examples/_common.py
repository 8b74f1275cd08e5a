"""
Shared helpers for Inkwell examples.

Handles account setup (register, falling back to login) so each example
can focus on its own workflow.
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"
DEMO_PASSWORD = "Demo-Password-123"


def check_backend() -> None:
    """Verify the backend is reachable (an unauthenticated call must answer 401)."""
    try:
        resp = httpx.get(f"{BASE}/auth/me", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  uvicorn inkwell.main:app --reload --port 8000")
        sys.exit(1)

    if resp.status_code != 401:
        print(f"ERROR: Unexpected response from backend: {resp.status_code}")
        sys.exit(1)


def authenticate(email: str | None = None) -> dict:
    """Register a user (or log in if it already exists) and return the token pair.

    Uses a unique email per run unless one is given, so examples are idempotent.
    """
    email = email or f"demo-{uuid.uuid4().hex[:8]}@example.com"

    resp = httpx.post(
        f"{BASE}/auth/register",
        json={"email": email, "display_name": "Demo Writer", "password": DEMO_PASSWORD},
        timeout=10,
    )
    if resp.status_code == 409:  # already exists
        resp = httpx.post(
            f"{BASE}/auth/login",
            json={"email": email, "password": DEMO_PASSWORD},
            timeout=10,
        )
    if resp.status_code not in (200, 201):
        print(f"ERROR: Authentication failed: {resp.status_code} {resp.text}")
        sys.exit(1)
    return resp.json()


def create_client(email: str | None = None) -> httpx.Client:
    """Check backend, authenticate, and return an httpx Client with auth headers."""
    check_backend()
    session = authenticate(email)
    print(f"  Signed in as {session['user']['email']}")
    return httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {session['access_token']}"},
    )
