"""Dual-store router: one local and one shared backend per invocation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from gitctx.errors import NotFoundError
from gitctx.model import Lock, Memory, Task
from gitctx.storage.base import Backend, Origin, Scope
from gitctx.storage.local import LocalBackend
from gitctx.storage.shared import SharedBackend

logger = logging.getLogger(__name__)

LOCAL_DIRNAME = "context"
SHARED_DIRNAME = "context-shared"

T = TypeVar("T", Memory, Task, Lock)


class DualStore:
    """Routes writes to one backend and fans reads out over both.

    Lookups by identifier probe local first, then shared; the first hit
    wins. Results are tagged with their origin through the `shared` flag.
    """

    def __init__(self, local: Backend, shared: Backend) -> None:
        self.local = local
        self.shared = shared

    @classmethod
    def open(cls, git_dir: Path) -> DualStore:
        return cls(
            LocalBackend(git_dir / LOCAL_DIRNAME),
            SharedBackend(git_dir / SHARED_DIRNAME),
        )

    # ── Selection ────────────────────────────────────────────

    def select(self, shared: bool) -> Backend:
        """Backend for write-path operations."""
        return self.shared if shared else self.local

    def backend(self, origin: Origin) -> Backend:
        return self.shared if origin == "shared" else self.local

    def _scoped(self, scope: Scope) -> list[Backend]:
        if scope == "local":
            return [self.local]
        if scope == "shared":
            return [self.shared]
        return [self.local, self.shared]

    # ── Fan-out reads ────────────────────────────────────────

    def _gather(self, scope: Scope, fetch: Callable[[Backend], list[T]]) -> list[T]:
        results: list[T] = []
        for backend in self._scoped(scope):
            for entity in fetch(backend):
                entity.shared = backend.origin == "shared"
                results.append(entity)
        return results

    def list_memories(self, scope: Scope = "local") -> list[Memory]:
        return self._gather(scope, lambda b: b.list_memories())

    def search_memories(self, query: str, scope: Scope = "all") -> list[Memory]:
        return self._gather(scope, lambda b: b.search_memories(query))

    def list_tasks(self, scope: Scope = "local") -> list[Task]:
        return self._gather(scope, lambda b: b.list_tasks())

    def search_tasks(self, query: str, scope: Scope = "all") -> list[Task]:
        return self._gather(scope, lambda b: b.search_tasks(query))

    def list_locks(self, scope: Scope = "local") -> list[Lock]:
        return self._gather(scope, lambda b: b.list_locks())

    # ── Lookup by identifier ─────────────────────────────────

    def _probe(self, key: str, read: Callable[[Backend, str], T], missing: str) -> tuple[T, Origin]:
        for backend in (self.local, self.shared):
            try:
                entity = read(backend, key)
            except NotFoundError as e:
                logger.debug("%s not in %s backend: %s", key, backend.origin, e)
                continue
            entity.shared = backend.origin == "shared"
            return entity, backend.origin
        raise NotFoundError(missing)

    def find_memory(self, memory_id: str) -> tuple[Memory, Origin]:
        return self._probe(memory_id, lambda b, k: b.read_memory(k), f"not found: {memory_id}")

    def find_task(self, task_id: str) -> tuple[Task, Origin]:
        return self._probe(task_id, lambda b, k: b.read_task(k), f"not found: {task_id}")

    def find_lock(self, target: str) -> tuple[Lock, Origin]:
        return self._probe(target, lambda b, k: b.read_lock(k), f"not locked: {target}")

    def memory_exists(self, memory_id: str) -> bool:
        try:
            self.find_memory(memory_id)
        except NotFoundError:
            return False
        return True

    def task_exists(self, task_id: str) -> bool:
        try:
            self.find_task(task_id)
        except NotFoundError:
            return False
        return True
