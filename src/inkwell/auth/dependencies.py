"""FastAPI auth dependencies — the request-boundary AuthGate.

Learn: These are used as Depends() in route handlers to extract
and validate the current identity from the request:

    Authorization: Bearer <access token>
        → SessionTokenService.verify_access()
        → CurrentIdentity(user_id, email)

Any failure becomes a 401 with `WWW-Authenticate: Bearer`. An expired
(but correctly signed) token is reported separately with
error_description="token_expired", so clients know to call /auth/refresh
instead of sending the user back to the login screen.

require_role(...) stacks on top of get_current_user for routes limited to
some roles. Roles are not carried in the token, so it reads the user row:
a role change applies to the very next request, and a deleted account
is a 401 rather than a 403.
"""

import uuid
from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.auth.tokens import SessionTokenService
from inkwell.db.engine import get_db
from inkwell.db.models import User
from inkwell.errors import AuthenticationError, TokenExpiredError

logger = structlog.get_logger()


class CurrentIdentity:
    """Represents the authenticated user making the request.

    Learn: All downstream code uses this to scope queries by owner.
    It is built from verified token claims only — no database hit.
    """

    def __init__(self, user_id: str, email: str, role: Optional[str] = None):
        self.user_id = user_id
        self.email = email
        self.role = role  # only filled in by require_role()

    @property
    def owner_id(self) -> uuid.UUID:
        return uuid.UUID(self.user_id)


def get_token_service(request: Request) -> SessionTokenService:
    """The SessionTokenService built once in create_app()."""
    return request.app.state.token_service


def unauthorized(message: str, error: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=message,
        headers={
            "WWW-Authenticate": f'Bearer error="invalid_token", error_description="{error}"'
        },
    )


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an `Authorization: Bearer <token>` header."""
    if not authorization:
        raise AuthenticationError("Missing authorization header", reason="missing")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise AuthenticationError("Invalid authorization header format", reason="invalid")
    return parts[1]


async def get_current_user(
    authorization: Optional[str] = Header(None),
    tokens: SessionTokenService = Depends(get_token_service),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if missing or invalid)."""
    try:
        token = extract_bearer_token(authorization)
        payload = tokens.verify_access(token)
    except TokenExpiredError as e:
        raise unauthorized(str(e), "token_expired")
    except AuthenticationError as e:
        if e.reason == "missing":
            raise HTTPException(
                status_code=401,
                detail="Authentication required",
                headers={"WWW-Authenticate": 'Bearer error_description="missing_token"'},
            )
        raise unauthorized(str(e), "invalid_token")

    try:
        uuid.UUID(payload.subject_id)
    except ValueError:
        raise unauthorized("Invalid token: malformed subject", "invalid_token")

    structlog.contextvars.bind_contextvars(user_id=payload.subject_id)
    return CurrentIdentity(user_id=payload.subject_id, email=payload.email)


def require_role(*allowed: str):
    """Dependency factory: the caller must hold one of the `allowed` roles.

    Usage:
        require_admin = require_role(ROLE_ADMIN)

        @router.get("/stats")
        async def stats(identity: CurrentIdentity = Depends(require_admin)): ...
    """

    async def _check_role(
        identity: CurrentIdentity = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> CurrentIdentity:
        user = await db.get(User, identity.owner_id)
        if user is None:
            raise unauthorized("Account no longer exists", "invalid_token")
        if user.role not in allowed:
            logger.info("auth.role_denied", role=user.role, required=list(allowed))
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. Required role: {' or '.join(allowed)}",
            )
        identity.role = user.role
        return identity

    return _check_role
