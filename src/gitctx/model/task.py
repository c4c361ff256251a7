"""Tasks: work items with ownership, dependencies and a comment thread."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from gitctx.model.common import generate_id, matches_text, utcnow

TASK_ID_PREFIX = "task-"


class TaskStatus(str, Enum):
    OPEN = "open"
    CLAIMED = "claimed"
    DONE = "done"


@dataclass
class Comment:
    """One entry in a task's append-only comment thread."""

    author: str
    content: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Task:
    """A unit of coordinated work.

    Invariants kept by the transition methods:
    - `owner` is non-empty only while status is CLAIMED
    - `done_at` is set only while status is DONE
    """

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.OPEN
    owner: str = ""
    created_by: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    done_at: datetime | None = None
    blocked_by: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    shared: bool = False

    @classmethod
    def create(
        cls,
        title: str,
        description: str,
        author: str,
        *,
        shared: bool = False,
        now: datetime | None = None,
    ) -> Task:
        ts = now or utcnow()
        return cls(
            id=TASK_ID_PREFIX + generate_id(),
            title=title.strip(),
            description=description.strip(),
            created_by=author,
            created_at=ts,
            updated_at=ts,
            shared=shared,
        )

    @property
    def is_done(self) -> bool:
        return self.status is TaskStatus.DONE

    def _touch(self, now: datetime | None) -> datetime:
        ts = max(now or utcnow(), self.created_at)
        self.updated_at = ts
        return ts

    # ── Transitions ──────────────────────────────────────────

    def claim(self, owner: str, now: datetime | None = None) -> None:
        self.owner = owner
        self.status = TaskStatus.CLAIMED
        self._touch(now)

    def drop(self, now: datetime | None = None) -> None:
        self.owner = ""
        self.status = TaskStatus.OPEN
        self._touch(now)

    def done(self, now: datetime | None = None) -> None:
        self.status = TaskStatus.DONE
        self.owner = ""
        self.done_at = self._touch(now)

    def add_comment(self, author: str, content: str, now: datetime | None = None) -> Comment:
        ts = self._touch(now)
        comment = Comment(author=author, content=content.strip(), created_at=ts)
        self.comments.append(comment)
        return comment

    # ── Dependencies ─────────────────────────────────────────

    def add_blocker(self, task_id: str, now: datetime | None = None) -> None:
        if task_id not in self.blocked_by:
            self.blocked_by.append(task_id)
            self._touch(now)

    def remove_blocker(self, task_id: str, now: datetime | None = None) -> None:
        if task_id in self.blocked_by:
            self.blocked_by.remove(task_id)
            self._touch(now)

    def add_dependent(self, task_id: str, now: datetime | None = None) -> None:
        if task_id not in self.blocks:
            self.blocks.append(task_id)
            self._touch(now)

    def remove_dependent(self, task_id: str, now: datetime | None = None) -> None:
        if task_id in self.blocks:
            self.blocks.remove(task_id)
            self._touch(now)

    def is_blocked(self, tasks: Mapping[str, Task]) -> bool:
        """True if any known blocker is not done. Unknown ids do not block."""
        for blocker_id in self.blocked_by:
            blocker = tasks.get(blocker_id)
            if blocker is not None and not blocker.is_done:
                return True
        return False

    def matches(self, query: str) -> bool:
        return matches_text(query, self.title, self.description)
