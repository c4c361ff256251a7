"""Backend protocol shared by the local and shared stores."""

from __future__ import annotations

from collections.abc import Callable
from typing import Literal, Protocol, runtime_checkable

from gitctx.model import Lock, Memory, Task

Origin = Literal["local", "shared"]
Scope = Literal["local", "shared", "all"]

# Mutation applied by update_task(); raising aborts the write.
TaskMutator = Callable[[Task], None]


@runtime_checkable
class Backend(Protocol):
    """Contract every storage backend implements.

    read/delete raise NotFoundError for a missing id (MalformedRecordError
    for an unparseable record); list returns [] when nothing was stored yet.
    Reading back a written entity gives an equal entity, except that the
    shared backend trims leading and trailing whitespace from bodies.
    """

    @property
    def origin(self) -> Origin: ...

    # Memory operations
    def write_memory(self, memory: Memory) -> None: ...

    def read_memory(self, memory_id: str) -> Memory: ...

    def list_memories(self) -> list[Memory]: ...

    def delete_memory(self, memory_id: str) -> None: ...

    def search_memories(self, query: str) -> list[Memory]: ...

    # Task operations
    def write_task(self, task: Task) -> None: ...

    def read_task(self, task_id: str) -> Task: ...

    def list_tasks(self) -> list[Task]: ...

    def update_task(self, task_id: str, mutator: TaskMutator) -> Task:
        """Read, mutate and write back. Not atomic across processes."""
        ...

    def delete_task(self, task_id: str) -> None: ...

    def search_tasks(self, query: str) -> list[Task]: ...

    # Lock operations
    def write_lock(self, lock: Lock) -> None: ...

    def read_lock(self, target: str) -> Lock: ...

    def list_locks(self) -> list[Lock]: ...

    def delete_lock(self, target: str) -> None: ...
