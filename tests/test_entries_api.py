"""Journal entry API tests.

Learn: Tests cover:
1. CRUD through HTTP, always returning plaintext
2. Pagination envelope {data, total, page, limit, totalPages}
3. Foreign entries: 404 by default, 403 when revealing is switched on
4. Legacy plaintext rows served and upgraded through the API
5. Export (json / txt) and insights
"""

import json
import uuid

import pytest
from sqlalchemy import select

from inkwell.db.models import JournalEntry
from inkwell.services.entry_store import EntryStore


async def _create_entry(client, **overrides) -> dict:
    body = {
        "title": "Rainy Tuesday",
        "content": "Walked to the library in the rain.",
        "mood": "Reflective",
        "tags": ["walk", "rain"],
    }
    body.update(overrides)
    r = await client.post("/api/v1/entries", json=body)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture()
def foreign_entry(db_session, codec, other_user):
    """Factory for an entry owned by other_user."""
    async def _make():
        return await EntryStore(db_session, codec).create(
            other_user.id, "Not yours", "Someone else's diary"
        )
    return _make


# ═══════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_entry(client):
    entry = await _create_entry(client)
    assert entry["title"] == "Rainy Tuesday"
    assert entry["content"] == "Walked to the library in the rain."
    assert entry["mood"] == "reflective"
    assert entry["tags"] == ["walk", "rain"]
    assert "id" in entry
    assert "title_nonce" not in entry


@pytest.mark.asyncio
async def test_create_entry_validation(client):
    r = await client.post("/api/v1/entries", json={"title": "", "content": "x"})
    assert r.status_code == 422
    r = await client.post("/api/v1/entries", json={"title": "   ", "content": "x"})
    assert r.status_code == 422
    r = await client.post("/api/v1/entries", json={"title": "t", "content": "x" * 50_001})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_get_entry(client):
    created = await _create_entry(client)
    r = await client.get(f"/api/v1/entries/{created['id']}")
    assert r.status_code == 200
    assert r.json()["content"] == created["content"]


@pytest.mark.asyncio
async def test_get_missing_entry(client):
    r = await client.get(f"/api/v1/entries/{uuid.uuid4()}")
    assert r.status_code == 404
    assert r.json()["detail"] == "Entry not found"


@pytest.mark.asyncio
async def test_get_entry_bad_id(client):
    r = await client.get("/api/v1/entries/not-a-uuid")
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_update_entry(client):
    created = await _create_entry(client)
    r = await client.patch(
        f"/api/v1/entries/{created['id']}",
        json={"content": "Actually it stopped raining.", "tags": ["walk"]},
    )
    assert r.status_code == 200
    updated = r.json()
    assert updated["content"] == "Actually it stopped raining."
    assert updated["title"] == "Rainy Tuesday"
    assert updated["tags"] == ["walk"]


@pytest.mark.asyncio
async def test_update_missing_entry(client):
    r = await client.patch(f"/api/v1/entries/{uuid.uuid4()}", json={"title": "x"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_entry(client):
    created = await _create_entry(client)
    r = await client.delete(f"/api/v1/entries/{created['id']}")
    assert r.status_code == 204
    r = await client.get(f"/api/v1/entries/{created['id']}")
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Listing
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_entries_pagination(client):
    for i in range(23):
        await _create_entry(client, title=f"Entry {i}")

    r = await client.get("/api/v1/entries", params={"page": 3, "limit": 10})
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 23
    assert body["page"] == 3
    assert body["limit"] == 10
    assert body["totalPages"] == 3
    assert len(body["data"]) == 3


@pytest.mark.asyncio
async def test_list_entries_clamps_parameters(client):
    await _create_entry(client)
    r = await client.get("/api/v1/entries", params={"page": 0, "limit": 1000})
    body = r.json()
    assert body["page"] == 1
    assert body["limit"] == 100


@pytest.mark.asyncio
async def test_list_entries_defaults(client):
    first = await _create_entry(client, title="First")
    second = await _create_entry(client, title="Second")
    body = (await client.get("/api/v1/entries")).json()
    assert body["limit"] == 10
    assert [e["id"] for e in body["data"]] == [second["id"], first["id"]]


@pytest.mark.asyncio
async def test_list_entries_bad_sort(client):
    r = await client.get("/api/v1/entries", params={"sort_by": "title"})
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Foreign entries
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_foreign_entry_is_404(client, foreign_entry):
    theirs = await foreign_entry()
    for method, kwargs in [
        ("GET", {}),
        ("PATCH", {"json": {"title": "Mine now"}}),
        ("DELETE", {}),
        ("GET", {"url_suffix": "/insight"}),
    ]:
        suffix = kwargs.pop("url_suffix", "")
        r = await client.request(method, f"/api/v1/entries/{theirs.id}{suffix}", **kwargs)
        assert r.status_code == 404, method


@pytest.mark.asyncio
async def test_foreign_entry_not_listed(client, foreign_entry):
    await foreign_entry()
    body = (await client.get("/api/v1/entries")).json()
    assert body["total"] == 0


@pytest.mark.asyncio
async def test_foreign_entry_is_403_when_revealed(client, foreign_entry, reveal_foreign_entries):
    theirs = await foreign_entry()
    r = await client.get(f"/api/v1/entries/{theirs.id}")
    assert r.status_code == 403
    r = await client.patch(f"/api/v1/entries/{theirs.id}", json={"title": "x"})
    assert r.status_code == 403
    r = await client.delete(f"/api/v1/entries/{theirs.id}")
    assert r.status_code == 403
    # Missing ids are still 404
    r = await client.get(f"/api/v1/entries/{uuid.uuid4()}")
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Legacy rows
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_legacy_entry_served_and_upgraded(client, db_session, test_user):
    legacy = JournalEntry(
        owner_id=test_user.id,
        title="Written in 2019",
        content="Before encryption existed.",
        tags=[],
        encryption_version=0,
    )
    db_session.add(legacy)
    await db_session.commit()

    r = await client.get(f"/api/v1/entries/{legacy.id}")
    assert r.status_code == 200
    assert r.json()["title"] == "Written in 2019"

    raw = (
        await db_session.execute(
            select(JournalEntry.title, JournalEntry.title_nonce).where(
                JournalEntry.id == legacy.id
            )
        )
    ).one()
    assert raw.title != "Written in 2019"
    assert raw.title_nonce is not None


# ═══════════════════════════════════════════════════════════
# Export
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_export_json(client):
    await _create_entry(client, title="One")
    await _create_entry(client, title="Two")

    r = await client.get("/api/v1/entries/export", params={"format": "json"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/json")
    assert "attachment" in r.headers["content-disposition"]
    assert ".json" in r.headers["content-disposition"]
    entries = json.loads(r.text)
    assert sorted(e["title"] for e in entries) == ["One", "Two"]


@pytest.mark.asyncio
async def test_export_txt(client):
    await _create_entry(client, title="Plain text export", tags=["a", "b"])
    r = await client.get("/api/v1/entries/export", params={"format": "txt"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert "Title: Plain text export" in r.text
    assert "Tags: a, b" in r.text
    assert "Mood: reflective" in r.text


@pytest.mark.asyncio
async def test_export_unknown_format(client):
    r = await client.get("/api/v1/entries/export", params={"format": "pdf"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_export_excludes_foreign_entries(client, foreign_entry):
    await foreign_entry()
    r = await client.get("/api/v1/entries/export")
    assert json.loads(r.text) == []


# ═══════════════════════════════════════════════════════════
# Insights
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_insight_put_and_get(client):
    entry = await _create_entry(client)
    r = await client.put(
        f"/api/v1/entries/{entry['id']}/insight",
        json={"summary": "A quiet, rainy walk.", "themes": ["solitude"]},
    )
    assert r.status_code == 200
    assert r.json()["summary"] == "A quiet, rainy walk."

    r = await client.get(f"/api/v1/entries/{entry['id']}/insight")
    assert r.status_code == 200
    assert r.json()["themes"] == ["solitude"]
    assert r.json()["entry_id"] == entry["id"]


@pytest.mark.asyncio
async def test_insight_missing(client):
    entry = await _create_entry(client)
    r = await client.get(f"/api/v1/entries/{entry['id']}/insight")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_insight_on_foreign_entry(client, foreign_entry):
    theirs = await foreign_entry()
    r = await client.put(f"/api/v1/entries/{theirs.id}/insight", json={"summary": "Peek"})
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Stale tokens and request ordering
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_with_token_of_deleted_account_is_401(unauthenticated_client):
    """An access token outlives DELETE /users/me; using it must not 500."""
    password = "Quiet-Evening-7"
    r = await unauthenticated_client.post(
        "/api/v1/auth/register",
        json={"email": "leaving@example.com", "display_name": "Leaving", "password": password},
    )
    headers = {"Authorization": f"Bearer {r.json()['access_token']}"}

    r = await unauthenticated_client.request(
        "DELETE", "/api/v1/users/me", headers=headers, json={"password": password}
    )
    assert r.status_code == 204

    r = await unauthenticated_client.post(
        "/api/v1/entries", headers=headers, json={"title": "Ghost", "content": "Still here?"}
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "Account no longer exists"
    assert "invalid_token" in r.headers["WWW-Authenticate"]


@pytest.mark.asyncio
async def test_invalid_update_of_foreign_entry_is_404(client, foreign_entry):
    """Ownership is decided before the body is validated."""
    theirs = await foreign_entry()
    r = await client.patch(f"/api/v1/entries/{theirs.id}", json={"title": "   "})
    assert r.status_code == 404

    r = await client.patch(f"/api/v1/entries/{uuid.uuid4()}", json={"title": "   "})
    assert r.status_code == 404
