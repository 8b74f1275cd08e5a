"""Service providers for route handlers.

Learn: The codec and token service are built once in create_app() and kept
on app.state; sessions are per request. These small factories combine the
two so handlers just declare `store: EntryStore = Depends(get_entry_store)`.
Tests override get_db (and nothing else) to point at their own database.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.auth.dependencies import get_token_service
from inkwell.auth.tokens import SessionTokenService
from inkwell.crypto.codec import EncryptionCodec
from inkwell.db.engine import get_db
from inkwell.services.account_service import AccountService
from inkwell.services.admin_service import AdminService
from inkwell.services.entry_store import EntryStore, InsightStore


def get_codec(request: Request) -> EncryptionCodec:
    return request.app.state.codec


def get_entry_store(
    db: AsyncSession = Depends(get_db),
    codec: EncryptionCodec = Depends(get_codec),
) -> EntryStore:
    return EntryStore(db, codec)


def get_insight_store(
    db: AsyncSession = Depends(get_db),
    codec: EncryptionCodec = Depends(get_codec),
) -> InsightStore:
    return InsightStore(db, codec)


def get_account_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
    tokens: SessionTokenService = Depends(get_token_service),
) -> AccountService:
    return AccountService(db, tokens, bcrypt_rounds=request.app.state.bcrypt_rounds)


def get_admin_service(db: AsyncSession = Depends(get_db)) -> AdminService:
    return AdminService(db)
