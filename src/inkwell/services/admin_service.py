"""Admin service — account oversight for operators.

Learn: Everything here works on accounts, never on entry content. The
stats count entries but cannot read them: the admin role gets no key
material and no route to another user's plaintext. Deleting a user goes
through the same ON DELETE CASCADE as self-service account deletion.
"""

import math
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.db.models import ROLES, JournalEntry, User
from inkwell.errors import NotFoundError, ValidationError
from inkwell.services.entry_store import DEFAULT_PAGE_SIZE, clamp_page

logger = structlog.get_logger()


@dataclass(frozen=True)
class UserPage:
    items: list[User]
    total: int
    page: int
    page_size: int
    total_pages: int


@dataclass(frozen=True)
class SystemStats:
    total_users: int
    total_entries: int
    users_by_role: dict[str, int]


class AdminService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_users(
        self,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
    ) -> UserPage:
        """Newest accounts first, optionally filtered by email or name."""
        page, page_size = clamp_page(page, page_size)

        query = select(User)
        count_query = select(func.count()).select_from(User)
        search = (search or "").strip()
        if search:
            match = or_(
                User.email.icontains(search, autoescape=True),
                User.display_name.icontains(search, autoescape=True),
            )
            query = query.where(match)
            count_query = count_query.where(match)

        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(
            query.order_by(User.created_at.desc(), User.id)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return UserPage(
            items=list(result.scalars().all()),
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
        )

    async def stats(self) -> SystemStats:
        total_users = (
            await self.db.execute(select(func.count()).select_from(User))
        ).scalar_one()
        total_entries = (
            await self.db.execute(select(func.count()).select_from(JournalEntry))
        ).scalar_one()

        by_role = dict.fromkeys(ROLES, 0)
        rows = await self.db.execute(select(User.role, func.count()).group_by(User.role))
        for role, count in rows.all():
            by_role[role] = count

        return SystemStats(
            total_users=total_users,
            total_entries=total_entries,
            users_by_role=by_role,
        )

    async def set_role(self, user_id: uuid.UUID, role: str) -> User:
        if role not in ROLES:
            raise ValidationError(f"Invalid role. Must be one of: {', '.join(ROLES)}")
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        previous = user.role
        user.role = role
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(
            "admin.role_changed", target_id=str(user_id), previous=previous, role=role
        )
        return user

    async def set_role_by_email(self, email: str, role: str) -> User:
        """Used by the CLI to bootstrap the first admin."""
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        user = result.scalars().first()
        if user is None:
            raise NotFoundError("User not found")
        return await self.set_role(user.id, role)

    async def delete_user(self, actor_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Delete another account. Admins remove themselves via DELETE /users/me."""
        if actor_id == user_id:
            raise ValidationError("Cannot delete your own account")
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        await self.db.delete(user)
        await self.db.commit()
        logger.info("admin.user_deleted", target_id=str(user_id))
