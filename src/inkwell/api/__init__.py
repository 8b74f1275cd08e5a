"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter, on top of the per-handler CurrentIdentity
dependency (FastAPI resolves it once per request). The auth router is
open; its /logout and /me handlers require a token themselves.
"""

from fastapi import APIRouter, Depends

from inkwell.api.admin import router as admin_router
from inkwell.api.auth import router as auth_router
from inkwell.api.entries import router as entries_router
from inkwell.api.users import router as users_router
from inkwell.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid access token
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
api_router.include_router(entries_router, tags=["entries"], dependencies=_auth)

# Admin routes — the router itself also requires the admin role
api_router.include_router(admin_router, tags=["admin"], dependencies=_auth)
