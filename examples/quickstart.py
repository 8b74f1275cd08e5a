#!/usr/bin/env python3
"""
Inkwell Quickstart — an entry's full lifecycle in one script.

Register → write entries → list a page → edit → attach an insight →
export → delete. Every title and content is stored encrypted; the API
only ever shows plaintext to its owner.

Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

from _common import create_client


def main():
    print("Connecting...")
    client = create_client()

    # ── Write a few entries ───────────────────────────────────────
    print("\n1. Writing entries...")
    drafts = [
        ("Monday", "Started the new notebook.", "hopeful", ["habits"]),
        ("Tuesday", "Long walk, short rain.", "calm", ["walk"]),
        ("Wednesday", "Too many meetings.", "tired", ["work"]),
    ]
    entries = []
    for title, content, mood, tags in drafts:
        resp = client.post("/entries", json={
            "title": title, "content": content, "mood": mood, "tags": tags,
        })
        assert resp.status_code == 201, f"Failed: {resp.text}"
        entries.append(resp.json())
        print(f"   {title:<10} ({entries[-1]['id'][:8]}...)")

    # ── List ──────────────────────────────────────────────────────
    print("\n2. Listing page 1 (2 per page)...")
    page = client.get("/entries", params={"page": 1, "limit": 2}).json()
    print(f"   {page['total']} entries, {page['totalPages']} pages")
    for e in page["data"]:
        print(f"   - {e['title']}: {e['content']}")

    # ── Edit ──────────────────────────────────────────────────────
    print("\n3. Editing Wednesday...")
    wednesday = entries[2]
    resp = client.patch(f"/entries/{wednesday['id']}", json={
        "content": "Too many meetings, but a good dinner.",
        "mood": "content",
    })
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   Now: {resp.json()['content']}")

    # ── Insight ───────────────────────────────────────────────────
    print("\n4. Attaching an insight...")
    resp = client.put(f"/entries/{wednesday['id']}/insight", json={
        "summary": "A draining day that ended well.",
        "themes": ["work", "rest"],
    })
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   Summary: {resp.json()['summary']}")

    # ── Export ────────────────────────────────────────────────────
    print("\n5. Exporting as text...")
    resp = client.get("/entries/export", params={"format": "txt"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print("   " + resp.text.replace("\n", "\n   ")[:400])

    # ── Delete ────────────────────────────────────────────────────
    print("\n6. Deleting Monday...")
    resp = client.delete(f"/entries/{entries[0]['id']}")
    assert resp.status_code == 204, f"Failed: {resp.text}"
    remaining = client.get("/entries").json()["total"]
    print(f"   {remaining} entries left")

    print("\nDone.")


if __name__ == "__main__":
    main()
