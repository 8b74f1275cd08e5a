"""Account service — registration, login, token refresh, profile.

Learn: Orchestrates three collaborators:
- the users table (via the session),
- bcrypt (auth/password.py), run in a worker thread so a ~100ms hash
  doesn't stall the event loop for every other request,
- SessionTokenService, which mints the access/refresh pair.

Refresh is rotation: each call returns a brand-new refresh token. The old
one is simply never handed out again — there is no blacklist, so until it
expires it would still verify. That is an accepted limitation of stateless
tokens (see DESIGN.md).
"""

import asyncio
import re
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.auth.password import (
    dummy_hash,
    hash_password,
    password_policy_error,
    verify_password,
)
from inkwell.auth.tokens import SessionTokenService, TokenPair
from inkwell.db.models import User
from inkwell.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 255
MAX_DISPLAY_NAME_LENGTH = 100


@dataclass(frozen=True)
class AuthResult:
    user: User
    tokens: TokenPair


def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email) or len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError("Invalid email format")
    return email


def _clean_display_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Display name cannot be empty")
    if len(name) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(
            f"Display name must be at most {MAX_DISPLAY_NAME_LENGTH} characters"
        )
    return name


class AccountService:
    """Business logic for accounts and session issuance."""

    def __init__(
        self,
        db: AsyncSession,
        tokens: SessionTokenService,
        bcrypt_rounds: int = 12,
    ):
        self.db = db
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds

    # ─── Register / login ────────────────────────────────

    async def register(self, email: str, display_name: str, password: str) -> AuthResult:
        email = normalize_email(email)
        display_name = _clean_display_name(display_name)
        policy_error = password_policy_error(password)
        if policy_error:
            raise ValidationError(policy_error)

        if await self._find_by_email(email):
            raise ConflictError("Email already registered")

        user = User(
            email=email,
            display_name=display_name,
            password_hash=await self._hash(password),
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            await self.db.rollback()
            raise ConflictError("Email already registered")

        logger.info("auth.registered", user_id=str(user.id))
        return AuthResult(user=user, tokens=self._issue(user))

    async def login(self, email: str, password: str) -> AuthResult:
        """Wrong email and wrong password are indistinguishable to the caller."""
        try:
            email = normalize_email(email)
        except ValidationError:
            raise AuthenticationError("Invalid email or password")

        user = await self._find_by_email(email)
        if user is None:
            # Same bcrypt cost as a wrong password, so timing does not reveal the email
            stand_in = await asyncio.to_thread(dummy_hash, self.bcrypt_rounds)
            await self._verify(password, stand_in)
        if user is None or not await self._verify(password, user.password_hash):
            logger.info("auth.login_failed")
            raise AuthenticationError("Invalid email or password")

        logger.info("auth.login", user_id=str(user.id))
        return AuthResult(user=user, tokens=self._issue(user))

    # ─── Session lifecycle ───────────────────────────────

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a brand-new pair.

        Raises TokenKindError / TokenExpiredError / InvalidTokenError from
        verification, or AuthenticationError if the account is gone.
        """
        payload = self.tokens.verify_refresh(refresh_token)
        user = await self._find_by_id(payload.subject_id)
        if user is None:
            raise AuthenticationError("Account no longer exists", reason="invalid")
        logger.info("auth.refreshed", user_id=str(user.id))
        return self._issue(user)

    async def logout(self, user_id: str) -> None:
        """Advisory only — the client discards its tokens."""
        logger.info("auth.logout", user_id=user_id)

    # ─── Profile ─────────────────────────────────────────

    async def get_profile(self, user_id: str) -> User:
        user = await self._find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_profile(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        user = await self.get_profile(user_id)

        if display_name is not None:
            user.display_name = _clean_display_name(display_name)

        if email is not None:
            email = normalize_email(email)
            if email != user.email:
                existing = await self._find_by_email(email)
                if existing and existing.id != user.id:
                    raise ConflictError("Email already in use")
                user.email = email

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Email already in use")
        await self.db.refresh(user)
        return user

    async def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> None:
        user = await self.get_profile(user_id)

        if not await self._verify(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        policy_error = password_policy_error(new_password)
        if policy_error:
            raise ValidationError(policy_error)
        if current_password == new_password:
            raise ValidationError("New password must be different from current password")

        user.password_hash = await self._hash(new_password)
        await self.db.commit()
        logger.info("auth.password_changed", user_id=str(user.id))

    async def delete_account(self, user_id: str, password: str) -> None:
        """Delete the user; entries and insights go with it (ON DELETE CASCADE).

        The password is checked again: a stolen access token alone is not
        enough to destroy the account.
        """
        if not password:
            raise ValidationError("Password is required")
        user = await self.get_profile(user_id)
        if not await self._verify(password, user.password_hash):
            logger.info("auth.account_delete_refused", user_id=user_id)
            raise AuthenticationError("Password is incorrect")
        await self.db.delete(user)
        await self.db.commit()
        logger.info("auth.account_deleted", user_id=user_id)

    # ─── Internals ───────────────────────────────────────

    def _issue(self, user: User) -> TokenPair:
        return self.tokens.issue_pair(str(user.id), user.email)

    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)

    async def _verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(verify_password, password, password_hash)

    async def _find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def _find_by_id(self, user_id: str) -> Optional[User]:
        try:
            uid = uuid.UUID(str(user_id))
        except ValueError:
            return None
        return await self.db.get(User, uid)
