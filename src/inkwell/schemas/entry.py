"""Pydantic schemas for journal entries and insights.

Learn: Separate schemas for create/update/read keeps the API clean.
- EntryCreate: what you POST to create an entry
- EntryUpdate: what you PATCH to modify an entry (all optional)
- EntryRead: what the API returns — always decrypted plaintext
- EntryPage: the pagination envelope {data, total, page, limit, totalPages}

These only check shape and rough bounds; EntryStore re-checks (blank
strings, trimmed lengths) at its own boundary.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Entries ─────────────────────────────────────────────

class EntryCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1, max_length=50_000)
    mood: Optional[str] = Field(None, max_length=50)
    tags: list[str] = Field(default_factory=list, max_length=20)


class EntryUpdate(BaseModel):
    """Partial update — only non-None fields are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1, max_length=50_000)
    mood: Optional[str] = Field(None, max_length=50)
    tags: Optional[list[str]] = Field(None, max_length=20)


class EntryRead(BaseModel):
    id: uuid.UUID
    title: str
    content: str
    mood: Optional[str]
    tags: list[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EntryPage(BaseModel):
    data: list[EntryRead]
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")

    model_config = {"populate_by_name": True}


# ─── Insights ────────────────────────────────────────────

class InsightUpsert(BaseModel):
    summary: str = Field(..., min_length=1, max_length=5_000)
    themes: list[str] = Field(default_factory=list, max_length=20)


class InsightRead(BaseModel):
    entry_id: uuid.UUID
    summary: str
    themes: list[str]
    created_at: datetime

    model_config = {"from_attributes": True}
