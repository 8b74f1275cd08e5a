"""Journal entry API routes.

Learn: Routes translate HTTP to EntryStore / InsightStore calls and map
results back to status codes. The store always decrypts; nothing here
sees ciphertext.

Foreign entries: the store keeps "missing" and "owned by someone else"
apart (NotFound vs OwnershipMismatch). By default both become 404 so an
attacker can't probe which ids exist. Operators can set
INKWELL_REVEAL_FOREIGN_ENTRIES=true to answer 403 for the latter.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from inkwell.api.deps import get_entry_store, get_insight_store
from inkwell.auth.dependencies import CurrentIdentity, get_current_user, unauthorized
from inkwell.errors import EncryptionError, NotFoundError, ValidationError
from inkwell.schemas.entry import (
    EntryCreate,
    EntryPage,
    EntryRead,
    EntryUpdate,
    InsightRead,
    InsightUpsert,
)
from inkwell.services.entry_store import (
    DEFAULT_PAGE_SIZE,
    EntryStore,
    Found,
    InsightStore,
    OwnershipMismatch,
)
from inkwell.services.export import render_export

router = APIRouter(prefix="/entries")


def _reveals_foreign(request: Request) -> bool:
    return bool(getattr(request.app.state, "reveal_foreign_entries", False))


def _not_found(request: Request, foreign: bool) -> HTTPException:
    if foreign and _reveals_foreign(request):
        return HTTPException(status_code=403, detail="Not allowed to access this entry")
    return HTTPException(status_code=404, detail="Entry not found")


async def _missing(request: Request, store: EntryStore, entry_id: uuid.UUID) -> HTTPException:
    """404/403 after a write that matched nothing."""
    foreign = _reveals_foreign(request) and await store.exists(entry_id)
    return _not_found(request, foreign)


def _undecryptable() -> HTTPException:
    return HTTPException(status_code=500, detail="Unable to decrypt entry")


# ═══════════════════════════════════════════════════════════
# Entries
# ═══════════════════════════════════════════════════════════


@router.post("", response_model=EntryRead, status_code=201)
async def create_entry(
    body: EntryCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    store: EntryStore = Depends(get_entry_store),
):
    """Create an entry. Title and content are encrypted before they hit the DB."""
    try:
        return await store.create(
            owner_id=identity.owner_id,
            title=body.title,
            content=body.content,
            mood=body.mood,
            tags=body.tags,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError:
        # Token still valid, account already deleted
        raise unauthorized("Account no longer exists", "invalid_token")


@router.get("", response_model=EntryPage)
async def list_entries(
    page: int = Query(1, description="1-based page number"),
    limit: int = Query(DEFAULT_PAGE_SIZE, description="Page size (clamped to 1..100)"),
    sort_by: str = Query("created_at", description="created_at or updated_at"),
    order: str = Query("desc", description="asc or desc"),
    identity: CurrentIdentity = Depends(get_current_user),
    store: EntryStore = Depends(get_entry_store),
):
    """List the caller's entries, newest first by default."""
    try:
        result = await store.list_by_owner(
            identity.owner_id,
            page=page,
            page_size=limit,
            sort_field=sort_by,
            order=order,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EncryptionError:
        raise _undecryptable()

    return EntryPage(
        data=[EntryRead.model_validate(r) for r in result.items],
        total=result.total,
        page=result.page,
        limit=result.page_size,
        total_pages=result.total_pages,
    )


@router.get("/export")
async def export_entries(
    format: str = Query("json", description="json or txt"),
    identity: CurrentIdentity = Depends(get_current_user),
    store: EntryStore = Depends(get_entry_store),
):
    """Download every entry of the caller as a single file."""
    try:
        records = await store.list_all_by_owner(identity.owner_id)
        export = render_export(records, format)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EncryptionError:
        raise _undecryptable()

    return Response(
        content=export.body,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@router.get("/{entry_id}", response_model=EntryRead)
async def get_entry(
    entry_id: uuid.UUID,
    request: Request,
    identity: CurrentIdentity = Depends(get_current_user),
    store: EntryStore = Depends(get_entry_store),
):
    try:
        result = await store.lookup(entry_id, identity.owner_id)
    except EncryptionError:
        raise _undecryptable()
    if not isinstance(result, Found):
        raise _not_found(request, isinstance(result, OwnershipMismatch))
    return result.record


@router.patch("/{entry_id}", response_model=EntryRead)
async def update_entry(
    entry_id: uuid.UUID,
    body: EntryUpdate,
    request: Request,
    identity: CurrentIdentity = Depends(get_current_user),
    store: EntryStore = Depends(get_entry_store),
):
    """Partial update — only fields present in the body are changed."""
    try:
        record = await store.update(
            entry_id,
            identity.owner_id,
            title=body.title,
            content=body.content,
            mood=body.mood,
            tags=body.tags,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EncryptionError:
        raise _undecryptable()
    if record is None:
        raise await _missing(request, store, entry_id)
    return record


@router.delete("/{entry_id}", status_code=204)
async def delete_entry(
    entry_id: uuid.UUID,
    request: Request,
    identity: CurrentIdentity = Depends(get_current_user),
    store: EntryStore = Depends(get_entry_store),
):
    if not await store.delete(entry_id, identity.owner_id):
        raise await _missing(request, store, entry_id)
    return Response(status_code=204)


# ═══════════════════════════════════════════════════════════
# Insights
# ═══════════════════════════════════════════════════════════


@router.put("/{entry_id}/insight", response_model=InsightRead)
async def put_insight(
    entry_id: uuid.UUID,
    body: InsightUpsert,
    request: Request,
    identity: CurrentIdentity = Depends(get_current_user),
    insights: InsightStore = Depends(get_insight_store),
    store: EntryStore = Depends(get_entry_store),
):
    """Create or replace the summary attached to an entry."""
    try:
        record = await insights.upsert(
            entry_id, identity.owner_id, summary=body.summary, themes=body.themes
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if record is None:
        raise await _missing(request, store, entry_id)
    return record


@router.get("/{entry_id}/insight", response_model=InsightRead)
async def get_insight(
    entry_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    insights: InsightStore = Depends(get_insight_store),
):
    try:
        record = await insights.get(entry_id, identity.owner_id)
    except EncryptionError:
        raise _undecryptable()
    if record is None:
        raise HTTPException(status_code=404, detail="Insight not found")
    return record
