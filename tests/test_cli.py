"""inkwell-admin CLI tests."""

import base64

import pytest
from click.testing import CliRunner
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from inkwell.cli.main import assign_role, main, reencrypt_all
from inkwell.db.models import JournalEntry
from inkwell.errors import NotFoundError


def test_generate_key_is_valid_aes256_key():
    result = CliRunner().invoke(main, ["generate-key"])
    assert result.exit_code == 0
    key = base64.b64decode(result.output.strip(), validate=True)
    assert len(key) == 32


def test_generate_key_is_random():
    runner = CliRunner()
    first = runner.invoke(main, ["generate-key"]).output
    second = runner.invoke(main, ["generate-key"]).output
    assert first != second


def test_reencrypt_rejects_bad_batch_size():
    result = CliRunner().invoke(main, ["reencrypt", "--batch-size", "0"])
    assert result.exit_code != 0


@pytest.mark.asyncio
async def test_reencrypt_all_upgrades_legacy_rows(db_engine, db_session, codec, test_user):
    for i in range(3):
        db_session.add(
            JournalEntry(owner_id=test_user.id, title=f"Old {i}", content="plain", tags=[])
        )
    await db_session.commit()

    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    entries, insights = await reencrypt_all(factory, codec, batch_size=2)
    assert (entries, insights) == (3, 0)

    legacy = (
        await db_session.execute(
            select(func.count())
            .select_from(JournalEntry)
            .where(JournalEntry.content_nonce.is_(None))
        )
    ).scalar_one()
    assert legacy == 0


def test_set_role_rejects_unknown_role():
    result = CliRunner().invoke(main, ["set-role", "writer@example.com", "superuser"])
    assert result.exit_code != 0
    assert "superuser" in result.output


@pytest.mark.asyncio
async def test_assign_role_by_email(db_engine, test_user):
    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    user = await assign_role(factory, " Writer@Example.com ", "admin")
    assert user.id == test_user.id
    assert user.role == "admin"

    with pytest.raises(NotFoundError):
        await assign_role(factory, "nobody@example.com", "admin")
