"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Relationships, constraints, and indexes defined here.
Alembic migrations in db/migrations track the same schema.

Key concepts:
- UUID primary keys (generic Uuid type: native on Postgres, CHAR(32) elsewhere)
- Encryptable fields are three columns: ciphertext, nonce, tag (base64 text).
  Legacy rows written before encryption have nonce/tag NULL and plaintext in
  the first column — see services/entry_store.py for the lazy upgrade.
- JSONB for tag/theme lists on Postgres (plain JSON on other dialects)
- ON DELETE CASCADE from users → entries → insights
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on Postgres, JSON everywhere else (tests run on SQLite)
JSONList = JSON().with_variant(JSONB(), "postgresql")

CURRENT_ENCRYPTION_VERSION = 1

# Account roles. Every registration starts as a plain user; only an admin
# (or the set-role CLI command) can change a role.
ROLE_USER = "user"
ROLE_MEDICAL_PROFESSIONAL = "medical_professional"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_MEDICAL_PROFESSIONAL, ROLE_ADMIN)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class User(Base):
    """An account holder. Owns journal entries.

    Learn: `id` never changes once created; email and display name are
    editable through the profile endpoints. Deleting a user cascades to
    every entry and insight they own. The role is not in the token; it is
    read from this row whenever a route requires one.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ROLE_USER, server_default=ROLE_USER
    )  # user, medical_professional, admin
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    entries: Mapped[list["JournalEntry"]] = relationship(
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class JournalEntry(Base):
    """One journal entry. Title and content are encrypted at rest.

    Learn: `title`/`content` hold base64 ciphertext when the matching
    `*_nonce`/`*_tag` columns are set, and legacy plaintext when they are
    NULL. The three columns of a field are always written together.
    """

    __tablename__ = "journal_entries"
    __table_args__ = (
        Index("ix_journal_entries_owner_created", "owner_id", "created_at"),
        Index("ix_journal_entries_owner_updated", "owner_id", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    title_nonce: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    title_tag: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_nonce: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    content_tag: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    mood: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    tags: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    encryption_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=CURRENT_ENCRYPTION_VERSION, server_default="1"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    owner: Mapped["User"] = relationship(back_populates="entries")


class EntryInsight(Base):
    """A summary of one entry (plus extracted themes).

    Learn: The summary is derived from the entry text, so it is as sensitive
    as the entry itself and gets the same envelope treatment. Themes stay
    plaintext like tags. One insight per entry (unique entry_id).
    """

    __tablename__ = "entry_insights"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    summary: Mapped[str] = mapped_column(Text, nullable=False)
    summary_nonce: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    summary_tag: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    themes: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
