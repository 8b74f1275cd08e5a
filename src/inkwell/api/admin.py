"""Admin API — account oversight, admin role only.

Learn: The whole router sits behind require_role(ROLE_ADMIN), which reads
the caller's role from the database on every request. Handlers that need
the caller's id declare the same `require_admin` dependency; FastAPI
resolves it once per request, so the role lookup is not repeated.

- GET    /admin/users             → paged list, ?search= on email/name
- GET    /admin/stats             → user/entry counts, users per role
- PUT    /admin/users/{id}/role   → change a role
- DELETE /admin/users/{id}        → delete another account (cascades)
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from inkwell.api.auth import UserRead
from inkwell.api.deps import get_admin_service
from inkwell.auth.dependencies import CurrentIdentity, require_role
from inkwell.db.models import ROLE_ADMIN
from inkwell.errors import NotFoundError, ValidationError
from inkwell.services.admin_service import AdminService
from inkwell.services.entry_store import DEFAULT_PAGE_SIZE

require_admin = require_role(ROLE_ADMIN)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


# ─── Schemas ─────────────────────────────────────────────


class UserPageRead(BaseModel):
    data: list[UserRead]
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")

    model_config = {"populate_by_name": True}


class StatsRead(BaseModel):
    total_users: int
    total_entries: int
    users_by_role: dict[str, int]

    model_config = {"from_attributes": True}


class RoleUpdate(BaseModel):
    role: str = Field(..., pattern=r"^(user|medical_professional|admin)$")


# ─── Routes ──────────────────────────────────────────────


@router.get("/users", response_model=UserPageRead)
async def list_users(
    page: int = Query(1, description="1-based page number"),
    limit: int = Query(DEFAULT_PAGE_SIZE, description="Page size (clamped to 1..100)"),
    search: Optional[str] = Query(None, description="Substring of email or display name"),
    svc: AdminService = Depends(get_admin_service),
):
    result = await svc.list_users(page=page, page_size=limit, search=search)
    return UserPageRead(
        data=[UserRead.model_validate(u) for u in result.items],
        total=result.total,
        page=result.page,
        limit=result.page_size,
        total_pages=result.total_pages,
    )


@router.get("/stats", response_model=StatsRead)
async def get_stats(svc: AdminService = Depends(get_admin_service)):
    return await svc.stats()


@router.put("/users/{user_id}/role", response_model=UserRead)
async def update_role(
    user_id: uuid.UUID,
    body: RoleUpdate,
    svc: AdminService = Depends(get_admin_service),
):
    try:
        return await svc.set_role(user_id, body.role)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    user_id: uuid.UUID,
    identity: CurrentIdentity = Depends(require_admin),
    svc: AdminService = Depends(get_admin_service),
):
    try:
        await svc.delete_user(identity.owner_id, user_id)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
