"""Memory entries: titled freeform notes."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from gitctx.model.common import generate_id, matches_text, normalize_tags, utcnow


@dataclass
class Memory:
    """A context note (decision, plan, explanation).

    `shared` reflects which backend returned the entry; it is rewritten on
    every read and is not authoritative in storage.
    """

    id: str
    title: str
    content: str = ""
    author: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    shared: bool = False

    @classmethod
    def create(
        cls,
        title: str,
        content: str,
        author: str,
        *,
        tags: Iterable[str] | None = None,
        shared: bool = False,
        now: datetime | None = None,
    ) -> Memory:
        ts = now or utcnow()
        return cls(
            id=generate_id(),
            title=title.strip() or "Untitled",
            content=content.strip(),
            author=author,
            tags=normalize_tags(tags),
            created_at=ts,
            updated_at=ts,
            shared=shared,
        )

    def edit(
        self,
        *,
        content: str | None = None,
        title: str | None = None,
        tags: Iterable[str] | None = None,
        now: datetime | None = None,
    ) -> None:
        """Replace the given fields and bump `updated_at`."""
        if content is not None:
            self.content = content.strip()
        if title is not None and title.strip():
            self.title = title.strip()
        if tags is not None:
            self.tags = normalize_tags(tags)
        self.updated_at = max(now or utcnow(), self.created_at)

    def matches(self, query: str) -> bool:
        return matches_text(query, self.title, self.content)
