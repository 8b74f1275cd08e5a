#!/usr/bin/env python3
"""
Ownership — two writers, one server.

Shows that an entry is invisible to anyone but its owner: the second
user gets 404 for every operation on the first user's entry (403 if the
server runs with INKWELL_REVEAL_FOREIGN_ENTRIES=true), and neither list
nor export ever includes it.

Run with: python examples/ownership.py
"""

from _common import create_client


def main():
    print("Signing in two users...")
    alice = create_client()
    bob = create_client()

    resp = alice.post("/entries", json={"title": "Private", "content": "For my eyes only."})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    entry_id = resp.json()["id"]
    print(f"\nAlice wrote entry {entry_id[:8]}...")

    print("\nBob tries to reach it:")
    for method, kwargs in [
        ("GET", {}),
        ("PATCH", {"json": {"title": "Mine now"}}),
        ("DELETE", {}),
    ]:
        resp = bob.request(method, f"/entries/{entry_id}", **kwargs)
        print(f"   {method:<6} → {resp.status_code}")

    print(f"\nBob's list total:  {bob.get('/entries').json()['total']}")
    print(f"Alice's list total: {alice.get('/entries').json()['total']}")


if __name__ == "__main__":
    main()
