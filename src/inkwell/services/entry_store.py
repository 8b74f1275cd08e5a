"""Entry store — owner-scoped persistence of encrypted journal entries.

Learn: This is the CORE of the service. Every entry read or write goes
through here, and three rules hold on every path:

1. Ownership: an entry is only visible to its owner. An entry owned by
   someone else looks exactly like a missing one (get → None, delete → False).
   lookup() keeps the distinction as a tagged result for callers that
   deliberately want it.
2. Encryption: title and content are sealed into fresh AES-GCM envelopes
   on every write. An update never patches an old envelope.
3. Lazy migration: rows written before encryption existed still hold
   plaintext with NULL nonce/tag. The first read of such a row
   re-encrypts the legacy fields and writes them back before returning,
   so the table converges to fully encrypted without a batch job.

The upgrade is per field and idempotent. Two concurrent reads of the same
legacy row may both attempt the write-back; the UPDATE is guarded on the
field still being legacy, so the later one matches no rows and reports
that it migrated nothing. No locks are taken.
The write-back is the only thing this module retries.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.crypto.codec import EncryptionCodec
from inkwell.db.models import (
    CURRENT_ENCRYPTION_VERSION,
    EntryInsight,
    JournalEntry,
    utcnow,
)
from inkwell.errors import EncryptionError, NotFoundError, ValidationError

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════
# Limits & constants
# ═══════════════════════════════════════════════════════════

MAX_TITLE_LENGTH = 255
MAX_CONTENT_LENGTH = 50_000
MAX_MOOD_LENGTH = 50
MAX_TAGS = 20
MAX_TAG_LENGTH = 50
MAX_SUMMARY_LENGTH = 5_000

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

SORT_FIELDS = {
    "created_at": JournalEntry.created_at,
    "updated_at": JournalEntry.updated_at,
}
SORT_ORDERS = ("asc", "desc")

ENTRY_FIELDS = ("title", "content")

# First attempt + one retry for the idempotent re-encryption write
MIGRATION_WRITE_ATTEMPTS = 2


# ═══════════════════════════════════════════════════════════
# Result types
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class JournalRecord:
    """Decrypted view of one entry, as handed to callers."""

    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    content: str
    mood: Optional[str]
    tags: list[str]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Page:
    items: list[JournalRecord]
    total: int
    page: int
    page_size: int
    total_pages: int


@dataclass(frozen=True)
class Found:
    record: JournalRecord
    migrated: bool = False


@dataclass(frozen=True)
class NotFound:
    entry_id: uuid.UUID


@dataclass(frozen=True)
class OwnershipMismatch:
    entry_id: uuid.UUID


LookupResult = Union[Found, NotFound, OwnershipMismatch]


@dataclass
class _Upgrade:
    """Pending write-back of legacy fields for one row (plain values only)."""

    model: type
    row_id: uuid.UUID
    owner_id: uuid.UUID
    plaintexts: dict[str, str] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════


def clamp_page(page: int, page_size: int) -> tuple[int, int]:
    """1-indexed page (min 1), page size clamped to [1, MAX_PAGE_SIZE]."""
    return max(1, page), min(max(1, page_size), MAX_PAGE_SIZE)


def _clean_text(value: str, name: str, max_length: int) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} is required and cannot be empty")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{name} must be at most {max_length} characters")
    return value


def _clean_mood(mood: Optional[str]) -> Optional[str]:
    if mood is None:
        return None
    mood = mood.strip().lower()
    if len(mood) > MAX_MOOD_LENGTH:
        raise ValidationError(f"Mood must be at most {MAX_MOOD_LENGTH} characters")
    return mood or None


def _clean_labels(labels: Optional[list[str]], name: str) -> list[str]:
    if not labels:
        return []
    if len(labels) > MAX_TAGS:
        raise ValidationError(f"At most {MAX_TAGS} {name} are allowed")
    cleaned = []
    for label in labels:
        if not isinstance(label, str) or not label.strip():
            raise ValidationError(f"{name.capitalize()} must be non-empty strings")
        label = label.strip()
        if len(label) > MAX_TAG_LENGTH:
            raise ValidationError(
                f"Each of the {name} must be at most {MAX_TAG_LENGTH} characters"
            )
        cleaned.append(label)
    return cleaned


# ═══════════════════════════════════════════════════════════
# Shared envelope plumbing
# ═══════════════════════════════════════════════════════════


class _EnvelopeStore:
    """Decrypt-or-passthrough and write-back shared by both stores."""

    def __init__(self, db: AsyncSession, codec: EncryptionCodec):
        self.db = db
        self.codec = codec

    def _sealed_columns(self, field_name: str, plaintext: str) -> dict[str, str]:
        ciphertext, nonce, tag = self.codec.seal(plaintext)
        return {
            field_name: ciphertext,
            f"{field_name}_nonce": nonce,
            f"{field_name}_tag": tag,
        }

    def _open_fields(self, row, field_names) -> tuple[dict[str, str], list[str]]:
        """Decrypt every encryptable field of a row.

        Returns ({field: plaintext}, [legacy field names]).
        """
        plaintexts: dict[str, str] = {}
        legacy: list[str] = []
        for name in field_names:
            try:
                value, was_legacy = self.codec.open(
                    getattr(row, name),
                    getattr(row, f"{name}_nonce"),
                    getattr(row, f"{name}_tag"),
                )
            except EncryptionError:
                logger.error(
                    "envelope.decrypt_failed",
                    table=row.__tablename__,
                    row_id=str(row.id),
                    field=name,
                )
                raise
            plaintexts[name] = value
            if was_legacy:
                legacy.append(name)
        return plaintexts, legacy

    async def _persist_upgrades(
        self, upgrades: list[_Upgrade], raise_on_failure: bool = False
    ) -> int:
        """Write re-encrypted legacy fields back, keyed by id + owner.

        Each attempt seals fresh envelopes, so a retry never reuses a nonce
        from a rolled-back attempt. Returns how many rows this call actually
        changed: rows another writer upgraded first don't count, and 0 is
        returned if every attempt failed.
        """
        if not upgrades:
            return 0

        for attempt in range(1, MIGRATION_WRITE_ATTEMPTS + 1):
            changed: list[_Upgrade] = []
            try:
                for up in upgrades:
                    matched = 0
                    for name, plaintext in up.plaintexts.items():
                        result = await self.db.execute(
                            self._upgrade_statement(up, name, plaintext)
                        )
                        matched += result.rowcount
                    if matched > 0:
                        changed.append(up)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.warning(
                    "envelope.migration_write_failed",
                    attempt=attempt,
                    row_ids=[str(up.row_id) for up in upgrades],
                    error=type(e).__name__,
                )
                if attempt == MIGRATION_WRITE_ATTEMPTS and raise_on_failure:
                    raise
                continue

            for up in changed:
                logger.info(
                    "envelope.migrated",
                    table=up.model.__tablename__,
                    row_id=str(up.row_id),
                    fields=sorted(up.plaintexts),
                )
            return len(changed)
        return 0

    def _upgrade_statement(self, up: _Upgrade, name: str, plaintext: str):
        """UPDATE one field of one row, only while that field is still legacy.

        The IS NULL guard turns a duplicate write from a concurrent reader into
        a no-op, and keeps a stale legacy value from overwriting an edit that
        landed in between.
        """
        model = up.model
        values = self._sealed_columns(name, plaintext)
        if hasattr(model, "updated_at"):
            # A format upgrade is not an edit — keep updated_at as is
            values["updated_at"] = model.updated_at
        if hasattr(model, "encryption_version"):
            values["encryption_version"] = CURRENT_ENCRYPTION_VERSION
        nonce_col = getattr(model, f"{name}_nonce")
        tag_col = getattr(model, f"{name}_tag")
        return (
            update(model)
            .where(
                model.id == up.row_id,
                model.owner_id == up.owner_id,
                or_(nonce_col.is_(None), tag_col.is_(None)),
            )
            .values(**values)
        )


# ═══════════════════════════════════════════════════════════
# Entries
# ═══════════════════════════════════════════════════════════


class EntryStore(_EnvelopeStore):
    """Owner-scoped CRUD for journal entries with lazy field migration."""

    # ─── Create ──────────────────────────────────────────

    async def create(
        self,
        owner_id: uuid.UUID,
        title: str,
        content: str,
        mood: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> JournalRecord:
        """Encrypt title and content, then persist. Mood/tags stay plaintext.

        Raises NotFoundError if the owner no longer exists (an access token
        outlives the account it was issued for).
        """
        title = _clean_text(title, "Title", MAX_TITLE_LENGTH)
        content = _clean_text(content, "Content", MAX_CONTENT_LENGTH)
        mood = _clean_mood(mood)
        tags = _clean_labels(tags, "tags")

        entry = JournalEntry(
            owner_id=owner_id,
            mood=mood,
            tags=tags,
            encryption_version=CURRENT_ENCRYPTION_VERSION,
            **self._sealed_columns("title", title),
            **self._sealed_columns("content", content),
        )
        self.db.add(entry)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning("entry.owner_missing", owner_id=str(owner_id))
            raise NotFoundError("Owner no longer exists")

        logger.info("entry.created", entry_id=str(entry.id), owner_id=str(owner_id))
        return JournalRecord(
            id=entry.id,
            owner_id=entry.owner_id,
            title=title,
            content=content,
            mood=entry.mood,
            tags=list(entry.tags or []),
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    # ─── Read ────────────────────────────────────────────

    async def lookup(self, entry_id: uuid.UUID, owner_id: uuid.UUID) -> LookupResult:
        """Fetch one entry, keeping absence and foreign ownership distinct.

        On success the record is decrypted and any legacy field has been
        re-encrypted and written back (Found.migrated tells whether that
        happened on this call).
        """
        entry = await self._load(entry_id)
        if entry is None:
            return NotFound(entry_id)
        if entry.owner_id != owner_id:
            return OwnershipMismatch(entry_id)

        record, upgrade = self._open(entry)
        migrated = False
        if upgrade:
            migrated = await self._persist_upgrades([upgrade]) > 0
        return Found(record=record, migrated=migrated)

    async def get(
        self, entry_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Optional[JournalRecord]:
        """Fetch one entry. Missing and not-yours both return None."""
        result = await self.lookup(entry_id, owner_id)
        if isinstance(result, Found):
            return result.record
        return None

    async def exists(self, entry_id: uuid.UUID) -> bool:
        """Whether the entry exists for ANY owner.

        Only for boundaries that intentionally reveal existence (403 vs 404).
        """
        result = await self.db.execute(
            select(JournalEntry.id).where(JournalEntry.id == entry_id)
        )
        return result.first() is not None

    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort_field: str = "created_at",
        order: str = "desc",
    ) -> Page:
        """One page of the owner's entries, decrypted.

        Learn: The count and the page are two queries with the same filter,
        not one snapshot. Under concurrent writes `total` and `items` can
        disagree for a moment — acceptable for a personal journal.
        """
        if sort_field not in SORT_FIELDS:
            raise ValidationError(
                f"sort_field must be one of: {', '.join(SORT_FIELDS)}"
            )
        if order not in SORT_ORDERS:
            raise ValidationError("order must be 'asc' or 'desc'")

        page, page_size = clamp_page(page, page_size)
        offset = (page - 1) * page_size

        total = (
            await self.db.execute(
                select(func.count())
                .select_from(JournalEntry)
                .where(JournalEntry.owner_id == owner_id)
            )
        ).scalar_one()

        column = SORT_FIELDS[sort_field]
        ordering = column.asc() if order == "asc" else column.desc()
        result = await self.db.execute(
            select(JournalEntry)
            .where(JournalEntry.owner_id == owner_id)
            .order_by(ordering, JournalEntry.id)
            .limit(page_size)
            .offset(offset)
        )
        items = await self._open_many(list(result.scalars().all()))

        return Page(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
        )

    async def list_all_by_owner(self, owner_id: uuid.UUID) -> list[JournalRecord]:
        """Every entry of the owner, newest first (used by export)."""
        result = await self.db.execute(
            select(JournalEntry)
            .where(JournalEntry.owner_id == owner_id)
            .order_by(JournalEntry.created_at.desc(), JournalEntry.id)
        )
        return await self._open_many(list(result.scalars().all()))

    # ─── Update ──────────────────────────────────────────

    async def update(
        self,
        entry_id: uuid.UUID,
        owner_id: uuid.UUID,
        title: Optional[str] = None,
        content: Optional[str] = None,
        mood: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> Optional[JournalRecord]:
        """Partially update an entry. Returns None if missing or not yours.

        Learn: Every provided title/content gets a brand-new envelope —
        GCM can't safely re-encrypt part of a ciphertext. The write is keyed
        by id AND owner, so if the row vanished between the ownership check
        and the write, rowcount is 0 and the caller sees a normal not-found.
        Ownership is checked before the body is validated or sealed, so a
        missing or foreign id is never reported as a validation error.
        """
        entry = await self._load(entry_id)
        if entry is None or entry.owner_id != owner_id:
            return None

        values: dict = {}
        if title is not None:
            values.update(
                self._sealed_columns("title", _clean_text(title, "Title", MAX_TITLE_LENGTH))
            )
        if content is not None:
            values.update(
                self._sealed_columns(
                    "content", _clean_text(content, "Content", MAX_CONTENT_LENGTH)
                )
            )
        if mood is not None:
            values["mood"] = _clean_mood(mood)
        if tags is not None:
            values["tags"] = _clean_labels(tags, "tags")

        if values:
            values["encryption_version"] = CURRENT_ENCRYPTION_VERSION
            values["updated_at"] = utcnow()
            result = await self.db.execute(
                update(JournalEntry)
                .where(JournalEntry.id == entry_id, JournalEntry.owner_id == owner_id)
                .values(**values)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                return None
            await self.db.commit()
            logger.info(
                "entry.updated",
                entry_id=str(entry_id),
                fields=sorted(k for k in values if k in ("title", "content", "mood", "tags")),
            )

        # Re-read: decrypts the new envelopes and upgrades any untouched legacy field
        found = await self.lookup(entry_id, owner_id)
        return found.record if isinstance(found, Found) else None

    # ─── Delete ──────────────────────────────────────────

    async def delete(self, entry_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
        """Delete an entry. False (not an error) if missing or not yours."""
        entry = await self._load(entry_id)
        if entry is None or entry.owner_id != owner_id:
            return False

        await self.db.delete(entry)
        await self.db.commit()
        logger.info("entry.deleted", entry_id=str(entry_id))
        return True

    # ─── Batch migration ─────────────────────────────────

    async def migrate_legacy(self, batch_size: int = 100) -> int:
        """Upgrade every legacy row. Returns the number of rows upgraded.

        Same per-field, idempotent upgrade as the read path; walks the table
        in id order so each row is visited once.
        """
        upgraded = 0
        last_id: Optional[uuid.UUID] = None
        legacy_filter = or_(
            JournalEntry.title_nonce.is_(None),
            JournalEntry.title_tag.is_(None),
            JournalEntry.content_nonce.is_(None),
            JournalEntry.content_tag.is_(None),
        )
        while True:
            query = select(JournalEntry).where(legacy_filter).order_by(JournalEntry.id)
            if last_id is not None:
                query = query.where(JournalEntry.id > last_id)
            rows = list((await self.db.execute(query.limit(batch_size))).scalars().all())
            if not rows:
                return upgraded

            upgrades = []
            for row in rows:
                _, upgrade = self._open(row)
                if upgrade:
                    upgrades.append(upgrade)
            last_id = rows[-1].id

            upgraded += await self._persist_upgrades(upgrades, raise_on_failure=True)

    # ─── Internals ───────────────────────────────────────

    async def _load(self, entry_id: uuid.UUID) -> Optional[JournalEntry]:
        result = await self.db.execute(
            select(JournalEntry).where(JournalEntry.id == entry_id)
        )
        return result.scalars().first()

    def _open(self, entry: JournalEntry) -> tuple[JournalRecord, Optional[_Upgrade]]:
        """Decrypt a row and describe the write-back its legacy fields need."""
        plaintexts, legacy = self._open_fields(entry, ENTRY_FIELDS)
        record = JournalRecord(
            id=entry.id,
            owner_id=entry.owner_id,
            title=plaintexts["title"],
            content=plaintexts["content"],
            mood=entry.mood,
            tags=list(entry.tags or []),
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )
        if not legacy:
            return record, None
        return record, _Upgrade(
            model=JournalEntry,
            row_id=entry.id,
            owner_id=entry.owner_id,
            plaintexts={name: plaintexts[name] for name in legacy},
        )

    async def _open_many(self, entries: list[JournalEntry]) -> list[JournalRecord]:
        records = []
        upgrades = []
        for entry in entries:
            record, upgrade = self._open(entry)
            records.append(record)
            if upgrade:
                upgrades.append(upgrade)
        await self._persist_upgrades(upgrades)
        return records


# ═══════════════════════════════════════════════════════════
# Insights
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class InsightRecord:
    entry_id: uuid.UUID
    summary: str
    themes: list[str]
    created_at: datetime


class InsightStore(_EnvelopeStore):
    """Encrypted per-entry summaries. Same envelope and migration rules."""

    async def upsert(
        self,
        entry_id: uuid.UUID,
        owner_id: uuid.UUID,
        summary: str,
        themes: Optional[list[str]] = None,
    ) -> Optional[InsightRecord]:
        """Create or replace the insight of an entry the caller owns."""
        summary = _clean_text(summary, "Summary", MAX_SUMMARY_LENGTH)
        themes = _clean_labels(themes, "themes")

        owner = (
            await self.db.execute(
                select(JournalEntry.owner_id).where(JournalEntry.id == entry_id)
            )
        ).scalar_one_or_none()
        if owner is None or owner != owner_id:
            return None

        sealed = self._sealed_columns("summary", summary)
        insight = await self._load(entry_id, owner_id)
        if insight is None:
            insight = EntryInsight(
                entry_id=entry_id, owner_id=owner_id, themes=themes, **sealed
            )
            self.db.add(insight)
        else:
            for column, value in sealed.items():
                setattr(insight, column, value)
            insight.themes = themes
        try:
            await self.db.commit()
        except IntegrityError:
            # The entry (or its owner) was deleted after the ownership check
            await self.db.rollback()
            return None

        logger.info("insight.saved", entry_id=str(entry_id))
        return InsightRecord(
            entry_id=entry_id,
            summary=summary,
            themes=list(themes),
            created_at=insight.created_at,
        )

    async def get(
        self, entry_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Optional[InsightRecord]:
        insight = await self._load(entry_id, owner_id)
        if insight is None:
            return None
        record, upgrade = self._open(insight)
        if upgrade:
            await self._persist_upgrades([upgrade])
        return record

    async def migrate_legacy(self, batch_size: int = 100) -> int:
        upgraded = 0
        last_id: Optional[uuid.UUID] = None
        legacy_filter = or_(
            EntryInsight.summary_nonce.is_(None), EntryInsight.summary_tag.is_(None)
        )
        while True:
            query = select(EntryInsight).where(legacy_filter).order_by(EntryInsight.id)
            if last_id is not None:
                query = query.where(EntryInsight.id > last_id)
            rows = list((await self.db.execute(query.limit(batch_size))).scalars().all())
            if not rows:
                return upgraded

            upgrades = [upgrade for _, upgrade in map(self._open, rows) if upgrade]
            last_id = rows[-1].id
            upgraded += await self._persist_upgrades(upgrades, raise_on_failure=True)

    async def _load(
        self, entry_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Optional[EntryInsight]:
        result = await self.db.execute(
            select(EntryInsight).where(
                EntryInsight.entry_id == entry_id, EntryInsight.owner_id == owner_id
            )
        )
        return result.scalars().first()

    def _open(self, insight: EntryInsight) -> tuple[InsightRecord, Optional[_Upgrade]]:
        plaintexts, legacy = self._open_fields(insight, ("summary",))
        record = InsightRecord(
            entry_id=insight.entry_id,
            summary=plaintexts["summary"],
            themes=list(insight.themes or []),
            created_at=insight.created_at,
        )
        if not legacy:
            return record, None
        return record, _Upgrade(
            model=EntryInsight,
            row_id=insight.id,
            owner_id=insight.owner_id,
            plaintexts={"summary": plaintexts["summary"]},
        )
