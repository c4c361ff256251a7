"""Plain-text tables, detail views and JSON output for the CLI."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from gitctx.model import Lock, Memory, Task, format_timestamp
from gitctx.storage import codec

RULE = "═" * 60


def origin_label(shared: bool) -> str:
    return "[shared]" if shared else "[local]"


def truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Left-aligned columns separated by two spaces, with a dashed rule."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    rule = ["-" * len(h) for h in headers]
    lines = []
    for row in [list(headers), rule, *rows]:
        lines.append("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
    return "\n".join(lines)


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


# ── Memories ─────────────────────────────────────────────────


def memory_table(memories: Sequence[Memory]) -> str:
    rows = [[m.id, truncate(m.title, 45), origin_label(m.shared), m.author] for m in memories]
    return table(["ID", "TITLE", "TYPE", "AUTHOR"], rows)


def search_table(query: str, memories: Sequence[Memory]) -> str:
    rows = [[m.id, truncate(m.title, 50), origin_label(m.shared)] for m in memories]
    header = f'Found {len(memories)} results for "{query}":'
    return header + "\n\n" + table(["ID", "TITLE", "TYPE"], rows)


def memory_json(memory: Memory) -> dict[str, Any]:
    return codec.memory_to_dict(memory)


def memory_detail(memory: Memory) -> str:
    origin = "shared" if memory.shared else "local"
    lines = [
        RULE,
        f"  {memory.title}",
        f"  by {memory.author} • {format_timestamp(memory.created_at)} • [{origin}]",
    ]
    if memory.tags:
        lines.append(f"  tags: {', '.join(memory.tags)}")
    lines += [RULE, "", memory.content]
    return "\n".join(lines)


# ── Tasks ────────────────────────────────────────────────────


def task_table(tasks: Sequence[Task], blocked: set[str] | None = None) -> str:
    blocked = blocked or set()
    rows = []
    for t in tasks:
        status = f"[{t.status.value}]" + (" (blocked)" if t.id in blocked else "")
        rows.append([t.id, truncate(t.title, 35), status, origin_label(t.shared), t.owner or "-"])
    return table(["ID", "TITLE", "STATUS", "TYPE", "OWNER"], rows)


def task_detail(task: Task, *, is_blocked: bool = False) -> str:
    origin = "shared" if task.shared else "local"
    lines = [
        RULE,
        f"  {task.title}",
        f"  Status: {task.status.value} • Type: {origin} • Created by: {task.created_by}",
        RULE,
    ]
    if task.description:
        lines += ["", task.description]
    if task.owner:
        lines += ["", f"Owner: {task.owner}"]
    if task.done_at:
        lines += ["", f"Done: {format_timestamp(task.done_at)}"]
    if task.blocked_by:
        suffix = "" if is_blocked else " (all done)"
        lines += ["", f"Blocked by: {', '.join(task.blocked_by)}{suffix}"]
    if task.blocks:
        lines += ["", f"Blocks: {', '.join(task.blocks)}"]
    if task.comments:
        lines += ["", "Comments:"]
        for c in task.comments:
            lines.append(f"  [{c.created_at.strftime('%Y-%m-%d')}] {c.author}: {c.content}")
    return "\n".join(lines)


def task_json(task: Task, *, is_blocked: bool = False) -> dict[str, Any]:
    data = codec.task_to_dict(task)
    data["blocked"] = is_blocked
    return data


# ── Locks ────────────────────────────────────────────────────


def lock_table(locks: Sequence[Lock]) -> str:
    rows = [
        [lock.target, lock.holder, lock.expires_at.strftime("%H:%M"), origin_label(lock.shared)]
        for lock in locks
    ]
    return table(["TARGET", "LOCKED BY", "EXPIRES", "TYPE"], rows)


def lock_json(lock: Lock) -> dict[str, Any]:
    data = codec.lock_to_dict(lock)
    data["shared"] = lock.shared
    data["expired"] = lock.is_expired()
    return data
