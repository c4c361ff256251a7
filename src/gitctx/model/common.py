"""Identifier generation, UTC timestamps and text matching helpers."""

from __future__ import annotations

import secrets
from collections.abc import Iterable
from datetime import datetime, timezone

# Storage format for every timestamp. Second precision, always UTC.
TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

ID_BYTES = 6


def generate_id() -> str:
    """Random fixed-width hex token (12 chars)."""
    return secrets.token_hex(ID_BYTES)


def utcnow() -> datetime:
    """Current UTC time truncated to the storage precision."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIME_FORMAT)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a stored timestamp back into an aware UTC datetime.

    YAML front matter may already hand us a datetime; naive values are
    assumed to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.strptime(value, TIME_FORMAT)
        except ValueError:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Strip and de-duplicate tags, keeping first-seen order."""
    seen: list[str] = []
    for tag in tags or ():
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def matches_text(query: str, *fields: str) -> bool:
    """Case-insensitive substring match against any of the fields."""
    q = query.lower()
    return any(q in (field or "").lower() for field in fields)
