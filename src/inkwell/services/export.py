"""Render a user's decrypted entries as a downloadable file.

Learn: Export is the one place plaintext leaves the service in bulk, so it
only ever works on JournalRecord values that EntryStore already decrypted
for the requesting owner.
"""

import json
from dataclasses import dataclass
from datetime import date

from inkwell.errors import ValidationError
from inkwell.services.entry_store import JournalRecord

EXPORT_FORMATS = ("json", "txt")


@dataclass(frozen=True)
class ExportFile:
    filename: str
    media_type: str
    body: str


def _entry_dict(record: JournalRecord) -> dict:
    return {
        "id": str(record.id),
        "title": record.title,
        "content": record.content,
        "mood": record.mood,
        "tags": list(record.tags),
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
    }


def _entry_text(record: JournalRecord) -> str:
    lines = [
        f"Date: {record.created_at.isoformat(sep=' ', timespec='minutes')}",
        f"Title: {record.title}",
    ]
    if record.mood:
        lines.append(f"Mood: {record.mood}")
    if record.tags:
        lines.append(f"Tags: {', '.join(record.tags)}")
    lines += ["", record.content, "", "---", ""]
    return "\n".join(lines)


def render_export(records: list[JournalRecord], fmt: str, today: date | None = None) -> ExportFile:
    """Build the export file for `records` in the requested format."""
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")

    stamp = (today or date.today()).isoformat()
    if fmt == "json":
        return ExportFile(
            filename=f"inkwell-entries-{stamp}.json",
            media_type="application/json",
            body=json.dumps([_entry_dict(r) for r in records], indent=2, ensure_ascii=False),
        )
    return ExportFile(
        filename=f"inkwell-entries-{stamp}.txt",
        media_type="text/plain",
        body="\n".join(_entry_text(r) for r in records),
    )
