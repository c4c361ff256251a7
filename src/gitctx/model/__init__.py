"""Entity model: memories, tasks (with comments) and advisory locks.

Pure dataclasses and transition methods. Nothing in this package touches the
filesystem or raises policy errors; ownership and lock checks happen in
`gitctx.core`.
"""

from gitctx.model.common import format_timestamp, generate_id, parse_timestamp, utcnow
from gitctx.model.lock import DEFAULT_LOCK_EXPIRY, Lock
from gitctx.model.memory import Memory
from gitctx.model.task import TASK_ID_PREFIX, Comment, Task, TaskStatus

__all__ = [
    "DEFAULT_LOCK_EXPIRY",
    "TASK_ID_PREFIX",
    "Comment",
    "Lock",
    "Memory",
    "Task",
    "TaskStatus",
    "format_timestamp",
    "generate_id",
    "parse_timestamp",
    "utcnow",
]
