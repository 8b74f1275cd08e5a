"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI without a server DB:

1. Each test gets its own engine on `sqlite+aiosqlite://` with StaticPool,
   so every session in the test shares the one in-memory connection.
2. The schema is created from the models (Base.metadata.create_all).
3. Foreign keys are switched on per connection so ON DELETE CASCADE
   behaves the way it does on Postgres.
4. The engine is disposed after the test — the database vanishes with it.

Environment is set BEFORE importing inkwell: settings, the encryption key
and the app are all built at import time.
"""

import base64
import os

TEST_ENCRYPTION_KEY = base64.b64encode(bytes(range(32))).decode("ascii")

os.environ["INKWELL_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["INKWELL_ENCRYPTION_KEY"] = TEST_ENCRYPTION_KEY
os.environ["INKWELL_JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["INKWELL_BCRYPT_ROUNDS"] = "4"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from inkwell.auth.password import hash_password  # noqa: E402
from inkwell.auth.tokens import SessionTokenService, TokenConfig  # noqa: E402
from inkwell.config import settings  # noqa: E402
from inkwell.crypto.codec import CipherConfig, EncryptionCodec  # noqa: E402
from inkwell.db.engine import get_db  # noqa: E402
from inkwell.db.models import Base, User  # noqa: E402
from inkwell.main import app  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "Correct-Horse-9"


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture()
def codec():
    return EncryptionCodec(CipherConfig.from_base64(TEST_ENCRYPTION_KEY))


@pytest.fixture()
def token_service():
    return SessionTokenService(TokenConfig.from_settings(settings))


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine):
    """Per-test session. Commits are real; the whole database is per test."""
    async with AsyncSession(db_engine, expire_on_commit=False) as session:
        yield session


async def _make_user(db_session, email: str, display_name: str) -> User:
    user = User(
        email=email,
        display_name=display_name,
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture()
async def test_user(db_session):
    return await _make_user(db_session, "writer@example.com", "Writer")


@pytest_asyncio.fixture()
async def other_user(db_session):
    return await _make_user(db_session, "neighbour@example.com", "Neighbour")


@pytest_asyncio.fixture()
async def client(db_session, test_user):
    """HTTP client with get_db and auth overridden for testing.

    Learn: We override get_current_user to return test_user's identity so
    protected routes work without minting tokens in every test. Auth tests
    that need the real token pipeline use `unauthenticated_client`.
    """
    from inkwell.auth.dependencies import CurrentIdentity, get_current_user

    async def override_get_db():
        yield db_session

    def override_get_current_user():
        return CurrentIdentity(user_id=str(test_user.id), email=test_user.email)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauthenticated_client(db_session):
    """HTTP client WITHOUT auth override — for testing real token flows.

    Learn: Only get_db is overridden (for DB isolation); bearer tokens go
    through the real SessionTokenService on app.state.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def reveal_foreign_entries():
    """Switch the 403-for-foreign-entries behaviour on for one test."""
    app.state.reveal_foreign_entries = True
    yield
    app.state.reveal_foreign_entries = False
