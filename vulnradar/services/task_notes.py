"""Task note attribution and the legacy '--- author (timestamp) ---' text format."""

import re
from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel

from vulnradar.services.access import is_admin

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"
BLOCK_SEPARATOR = "\n\n"

# The timestamp is the last parenthesized group before the closing dashes, so "Admin (email)" stays whole.
DELIMITER_PATTERN = re.compile(
    r"^---[ \t]*(?P<author>.+?)[ \t]*\((?P<timestamp>[^()\n]*)\)[ \t]*---[ \t]*$",
    re.MULTILINE,
)


class LegacyNote(BaseModel):
    """One parsed block. author is None for text that preceded the first delimiter."""

    author: str | None = None
    timestamp: str | None = None
    body: str


def note_author(email: str, role: str | None) -> str:
    if is_admin(role):
        return f"Admin ({email})"
    return email


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def format_note_block(author: str, created_at: datetime, body: str) -> str:
    return f"--- {author} ({format_timestamp(created_at)}) ---\n{body}"


def format_legacy_notes(notes: Iterable) -> str:
    """Render note records (anything with author, created_at, body) as delimited blocks."""
    return BLOCK_SEPARATOR.join(
        format_note_block(note.author, note.created_at, note.body) for note in notes
    )


def parse_legacy_notes(text: str | None) -> list[LegacyNote]:
    """Split concatenated legacy notes into blocks."""
    if not text or not text.strip():
        return []
    matches = list(DELIMITER_PATTERN.finditer(text))
    if not matches:
        return [LegacyNote(body=text.strip())]

    entries: list[LegacyNote] = []
    leading = text[: matches[0].start()].strip()
    if leading:
        entries.append(LegacyNote(body=leading))
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        entries.append(
            LegacyNote(
                author=match.group("author").strip(),
                timestamp=match.group("timestamp").strip(),
                body=text[match.end() : end].strip(),
            )
        )
    return entries
