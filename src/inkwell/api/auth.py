"""Auth API — registration, login, token refresh, logout.

Learn: Routes for the session lifecycle:
- POST /auth/register → create an account, returns a token pair + user
- POST /auth/login → email/password → token pair + user
- POST /auth/refresh → refresh token → NEW access + refresh token (rotation)
- POST /auth/logout → advisory; the client discards its tokens
- GET /auth/me → current user info

Refresh failures are all 401, but the detail differs ("Refresh token has
expired" vs "Invalid token: ..." vs "Expected a refresh token") so the
client can decide between retrying and forcing a re-login.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from inkwell.api.deps import get_account_service
from inkwell.auth.dependencies import CurrentIdentity, get_current_user
from inkwell.auth.tokens import TokenPair
from inkwell.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from inkwell.services.account_service import AccountService

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    display_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    display_name: str
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(TokenResponse):
    user: UserRead


def _token_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    svc: AccountService = Depends(get_account_service),
):
    """Create a new account and sign it in."""
    try:
        result = await svc.register(body.email, body.display_name, body.password)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return AuthResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserRead.model_validate(result.user),
    )


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    svc: AccountService = Depends(get_account_service),
):
    """Login with email and password → token pair."""
    try:
        result = await svc.login(body.email, body.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))

    return AuthResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserRead.model_validate(result.user),
    )


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    svc: AccountService = Depends(get_account_service),
):
    """Exchange a refresh token for a new access + refresh token."""
    try:
        pair = await svc.refresh(body.refresh_token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _token_response(pair)


# ─── Logout ─────────────────────────────────────────────


@router.post("/logout")
async def logout(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    """Acknowledge logout. Tokens are stateless — the client drops them."""
    await svc.logout(identity.user_id)
    return {"success": True}


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    """Get the current authenticated user's info."""
    try:
        return await svc.get_profile(identity.user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
