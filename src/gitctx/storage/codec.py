"""Entity <-> plain dict conversion used by both backends and --json output.

Key names are camelCase, matching the JSON records already found under
existing `.git/context/` directories.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any

from gitctx.model import Comment, Lock, Memory, Task, TaskStatus
from gitctx.model.common import format_timestamp, parse_timestamp

# Exceptions that mean "the record is there but does not decode".
DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)

_SAFE_ID = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


def is_safe_id(entity_id: str) -> bool:
    """Identifiers become file names; reject anything that could escape."""
    return bool(_SAFE_ID.fullmatch(entity_id)) and ".." not in entity_id


def lock_digest(target: str) -> str:
    """Fixed-length file key for a lock target (first 8 bytes of sha256)."""
    return hashlib.sha256(target.encode("utf-8")).hexdigest()[:16]


# ── Memory ───────────────────────────────────────────────────


def memory_meta(memory: Memory) -> dict[str, Any]:
    """Metadata record without the content body."""
    return {
        "id": memory.id,
        "title": memory.title,
        "author": memory.author,
        "tags": list(memory.tags),
        "createdAt": format_timestamp(memory.created_at),
        "updatedAt": format_timestamp(memory.updated_at),
        "shared": memory.shared,
    }


def memory_from_meta(meta: dict[str, Any], content: str, *, shared: bool) -> Memory:
    return Memory(
        id=str(meta["id"]),
        title=str(meta.get("title", "")),
        content=content,
        author=str(meta.get("author", "")),
        tags=[str(t) for t in meta.get("tags") or []],
        created_at=parse_timestamp(meta["createdAt"]),
        updated_at=parse_timestamp(meta["updatedAt"]),
        shared=shared,
    )


def memory_to_dict(memory: Memory) -> dict[str, Any]:
    data = memory_meta(memory)
    data["content"] = memory.content
    return data


# ── Task ─────────────────────────────────────────────────────


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "owner": task.owner,
        "createdBy": task.created_by,
        "createdAt": format_timestamp(task.created_at),
        "updatedAt": format_timestamp(task.updated_at),
        "doneAt": format_timestamp(task.done_at) if task.done_at else None,
        "blockedBy": list(task.blocked_by),
        "blocks": list(task.blocks),
        "comments": [
            {
                "author": c.author,
                "content": c.content,
                "createdAt": format_timestamp(c.created_at),
            }
            for c in task.comments
        ],
        "shared": task.shared,
    }


def task_from_dict(data: dict[str, Any], *, shared: bool) -> Task:
    done_at = data.get("doneAt")
    return Task(
        id=str(data["id"]),
        title=str(data.get("title", "")),
        description=str(data.get("description") or ""),
        status=TaskStatus(data.get("status", TaskStatus.OPEN.value)),
        owner=str(data.get("owner") or ""),
        created_by=str(data.get("createdBy") or ""),
        created_at=parse_timestamp(data["createdAt"]),
        updated_at=parse_timestamp(data["updatedAt"]),
        done_at=parse_timestamp(done_at) if done_at else None,
        blocked_by=[str(i) for i in data.get("blockedBy") or []],
        blocks=[str(i) for i in data.get("blocks") or []],
        comments=[
            Comment(
                author=str(c.get("author", "")),
                content=str(c.get("content", "")),
                created_at=parse_timestamp(c["createdAt"]),
            )
            for c in data.get("comments") or []
        ],
        shared=shared,
    )


# ── Lock ─────────────────────────────────────────────────────


def lock_to_dict(lock: Lock) -> dict[str, Any]:
    return {
        "target": lock.target,
        "lockedBy": lock.holder,
        "lockedAt": format_timestamp(lock.acquired_at),
        "expiresAt": format_timestamp(lock.expires_at),
    }


def lock_from_dict(data: dict[str, Any], *, shared: bool) -> Lock:
    return Lock(
        target=str(data["target"]),
        holder=str(data["lockedBy"]),
        acquired_at=parse_timestamp(data["lockedAt"]),
        expires_at=parse_timestamp(data["expiresAt"]),
        shared=shared,
    )
