"""inkwell-admin — operator commands for the journaling service.

Usage:
    inkwell-admin generate-key               # Print a fresh base64 AES-256 key
    inkwell-admin reencrypt                  # Encrypt every legacy plaintext field now
    inkwell-admin reencrypt --batch-size 500
    inkwell-admin set-role you@example.com admin   # Promote the first admin

Reads the same INKWELL_* environment as the API server.
"""

from __future__ import annotations

import asyncio
import base64
import concurrent.futures
import os
import sys

import click

from inkwell import __version__
from inkwell.crypto.codec import KEY_SIZE, CipherConfig, EncryptionCodec
from inkwell.db.models import ROLES
from inkwell.errors import EncryptionError, NotFoundError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. CliRunner inside an async test) by
    offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def generate_key() -> str:
    """A random 32-byte key, base64 encoded for INKWELL_ENCRYPTION_KEY."""
    return base64.b64encode(os.urandom(KEY_SIZE)).decode("ascii")


async def reencrypt_all(session_factory, codec: EncryptionCodec, batch_size: int) -> tuple[int, int]:
    """Upgrade every legacy entry and insight. Returns (entries, insights)."""
    from inkwell.services.entry_store import EntryStore, InsightStore

    async with session_factory() as session:
        entries = await EntryStore(session, codec).migrate_legacy(batch_size=batch_size)
        insights = await InsightStore(session, codec).migrate_legacy(batch_size=batch_size)
    return entries, insights


async def assign_role(session_factory, email: str, role: str):
    """Set the role of the account registered under `email`."""
    from inkwell.services.admin_service import AdminService

    async with session_factory() as session:
        return await AdminService(session).set_role_by_email(email, role)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="inkwell-admin")
def main():
    """Inkwell — operator tooling for keys and encryption upgrades."""


# ---------------------------------------------------------------------------
# inkwell-admin generate-key
# ---------------------------------------------------------------------------


@main.command("generate-key")
def generate_key_cmd():
    """Print a new encryption key.

    Changing the key of a deployment with existing data makes that data
    unreadable; this is for new deployments.
    """
    click.echo(generate_key())


# ---------------------------------------------------------------------------
# inkwell-admin reencrypt
# ---------------------------------------------------------------------------


@main.command()
@click.option("--batch-size", "-b", default=100, show_default=True,
              type=click.IntRange(min=1), help="Rows fetched per query")
def reencrypt(batch_size: int):
    """Encrypt all legacy plaintext fields instead of waiting for reads."""
    from inkwell.config import settings

    try:
        codec = EncryptionCodec(CipherConfig.from_settings(settings))
    except EncryptionError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    from inkwell.db.engine import async_session_factory, engine

    async def _go():
        try:
            return await reencrypt_all(async_session_factory, codec, batch_size)
        finally:
            await engine.dispose()

    entries, insights = _run(_go())
    click.secho(f"Upgraded {entries} entries and {insights} insights", fg="green")


# ---------------------------------------------------------------------------
# inkwell-admin set-role
# ---------------------------------------------------------------------------


@main.command("set-role")
@click.argument("email")
@click.argument("role", type=click.Choice(ROLES))
def set_role(email: str, role: str):
    """Change the role of an existing account (e.g. promote the first admin)."""
    from inkwell.db.engine import async_session_factory, engine

    async def _go():
        try:
            return await assign_role(async_session_factory, email, role)
        finally:
            await engine.dispose()

    try:
        user = _run(_go())
    except NotFoundError:
        click.secho(f"Error: no account registered as {email}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"{user.email} is now {user.role}", fg="green")
