"""Profile API — the signed-in user's own account.

Learn: Every route here acts on the caller only; there is no user id in
the path, so there is nothing to authorize beyond authentication.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from inkwell.api.auth import UserRead
from inkwell.api.deps import get_account_service
from inkwell.auth.dependencies import CurrentIdentity, get_current_user
from inkwell.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from inkwell.services.account_service import AccountService

router = APIRouter(prefix="/users")


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)


class AccountDeletion(BaseModel):
    password: str = Field(..., min_length=1)


@router.patch("/me", response_model=UserRead)
async def update_me(
    body: ProfileUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    try:
        return await svc.update_profile(
            identity.user_id, display_name=body.display_name, email=body.email
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/me/password", status_code=204)
async def change_password(
    body: PasswordChange,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    """Change password. Existing tokens stay valid until they expire."""
    try:
        await svc.change_password(identity.user_id, body.current_password, body.new_password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


@router.delete("/me", status_code=204)
async def delete_me(
    body: AccountDeletion,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    """Delete the account and, by cascade, all of its entries.

    Requires the current password in the body, not just a valid token.
    """
    try:
        await svc.delete_account(identity.user_id, body.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
