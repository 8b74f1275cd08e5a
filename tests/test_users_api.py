"""Profile API tests — PATCH/DELETE /users/me, password change."""

import pytest
from sqlalchemy import func, select

from inkwell.db.models import JournalEntry, User

PASSWORD = "Correct-Horse-9"


@pytest.mark.asyncio
async def test_update_display_name(client):
    r = await client.patch("/api/v1/users/me", json={"display_name": "Renamed"})
    assert r.status_code == 200
    assert r.json()["display_name"] == "Renamed"
    assert r.json()["email"] == "writer@example.com"


@pytest.mark.asyncio
async def test_update_email_taken(client, other_user):
    r = await client.patch("/api/v1/users/me", json={"email": other_user.email})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_update_email_invalid(client):
    r = await client.patch("/api/v1/users/me", json={"email": "nope"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_change_password(client, unauthenticated_client):
    r = await client.post(
        "/api/v1/users/me/password",
        json={"current_password": PASSWORD, "new_password": "Brand-New-Pass-3"},
    )
    assert r.status_code == 204

    r = await unauthenticated_client.post(
        "/api/v1/auth/login",
        json={"email": "writer@example.com", "password": "Brand-New-Pass-3"},
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_change_password_wrong_current(client):
    r = await client.post(
        "/api/v1/users/me/password",
        json={"current_password": "Not-My-Pass-1", "new_password": "Brand-New-Pass-3"},
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_change_password_weak(client):
    r = await client.post(
        "/api/v1/users/me/password",
        json={"current_password": PASSWORD, "new_password": "weakpassword"},
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_delete_account(client, db_session):
    r = await client.post("/api/v1/entries", json={"title": "Bye", "content": "Last entry"})
    assert r.status_code == 201

    r = await client.request("DELETE", "/api/v1/users/me", json={"password": PASSWORD})
    assert r.status_code == 204

    remaining = (
        await db_session.execute(select(func.count()).select_from(JournalEntry))
    ).scalar_one()
    assert remaining == 0


@pytest.mark.asyncio
async def test_delete_account_wrong_password(client, db_session):
    r = await client.request("DELETE", "/api/v1/users/me", json={"password": "Not-My-Pass-1"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Password is incorrect"

    users = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
    assert users == 1


@pytest.mark.asyncio
async def test_delete_account_without_password(client, db_session):
    r = await client.delete("/api/v1/users/me")
    assert r.status_code == 422
    r = await client.request("DELETE", "/api/v1/users/me", json={"password": ""})
    assert r.status_code == 422

    users = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
    assert users == 1
