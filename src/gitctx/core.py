"""GitContext: the per-invocation context every command runs against.

Responsibilities:
1. Discover the git directory and build the local/shared DualStore
2. Resolve the acting user once
3. Enforce ownership and lock policy (ConflictError) on top of the pure model
4. Route by-id operations to whichever backend holds the entity
5. Hand shared-area push/pull to GitSync
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from gitctx import identity
from gitctx.config import GitCtxConfig, load_config
from gitctx.errors import ConflictError, GitCtxError, NotFoundError, SyncError
from gitctx.git import find_git_dir
from gitctx.model import Lock, Memory, Task, TaskStatus, format_timestamp
from gitctx.storage.base import Origin, Scope, TaskMutator
from gitctx.storage.router import SHARED_DIRNAME, DualStore
from gitctx.sync import GitSync, SyncResult

logger = logging.getLogger(__name__)

# Attempts at drawing an identifier not already used in either backend.
MAX_ID_ATTEMPTS = 5


class GitContext:
    """Explicit context object: storage, acting user and configuration."""

    def __init__(
        self,
        store: DualStore,
        actor: str,
        config: GitCtxConfig | None = None,
        sync: GitSync | None = None,
    ) -> None:
        self.store = store
        self.actor = actor
        self.config = config or GitCtxConfig()
        self.sync = sync

    @classmethod
    def open(cls, config: GitCtxConfig | None = None, cwd: Path | None = None) -> GitContext:
        config = config or load_config()
        git_dir = find_git_dir(cwd)
        actor = identity.author_name(cwd, override=config.user)
        sync = GitSync(
            git_dir,
            git_dir / SHARED_DIRNAME,
            remote=config.sync.remote,
            ref=config.sync.ref,
            author_name=actor,
            author_email=identity.author_email(cwd),
        )
        logger.debug("Opened context at %s as %s", git_dir, actor)
        return cls(DualStore.open(git_dir), actor, config, sync)

    # ── Memories ─────────────────────────────────────────────

    def add_memory(
        self,
        title: str,
        content: str,
        *,
        tags: Iterable[str] | None = None,
        shared: bool = False,
    ) -> Memory:
        for _ in range(MAX_ID_ATTEMPTS):
            memory = Memory.create(title, content, self.actor, tags=tags, shared=shared)
            if not self.store.memory_exists(memory.id):
                break
        else:
            raise ConflictError("could not allocate a unique memory id")
        self.store.select(shared).write_memory(memory)
        logger.info("Created memory %s (%s)", memory.id, _origin(shared))
        return memory

    def show_memory(self, memory_id: str) -> Memory:
        memory, _ = self.store.find_memory(memory_id)
        return memory

    def edit_memory(
        self,
        memory_id: str,
        *,
        content: str | None = None,
        title: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> Memory:
        memory, origin = self.store.find_memory(memory_id)
        memory.edit(content=content, title=title, tags=tags)
        self.store.backend(origin).write_memory(memory)
        logger.info("Updated memory %s (%s)", memory_id, origin)
        return memory

    def remove_memory(self, memory_id: str) -> Origin:
        _, origin = self.store.find_memory(memory_id)
        self.store.backend(origin).delete_memory(memory_id)
        logger.info("Removed memory %s (%s)", memory_id, origin)
        return origin

    def list_memories(self, scope: Scope = "local") -> list[Memory]:
        return sorted(self.store.list_memories(scope), key=lambda m: m.created_at)

    def search_memories(self, query: str, scope: Scope = "all") -> list[Memory]:
        return sorted(self.store.search_memories(query, scope), key=lambda m: m.created_at)

    # ── Tasks ────────────────────────────────────────────────

    def add_task(
        self,
        title: str,
        description: str = "",
        *,
        shared: bool = False,
        blocked_by: Iterable[str] = (),
    ) -> Task:
        for _ in range(MAX_ID_ATTEMPTS):
            task = Task.create(title, description, self.actor, shared=shared)
            if not self.store.task_exists(task.id):
                break
        else:
            raise ConflictError("could not allocate a unique task id")
        blockers = list(blocked_by)
        for blocker_id in blockers:
            self.store.find_task(blocker_id)
        self.store.select(shared).write_task(task)
        logger.info("Created task %s (%s)", task.id, _origin(shared))
        for blocker_id in blockers:
            task = self.block_task(task.id, blocker_id)
        return task

    def show_task(self, task_id: str) -> Task:
        task, _ = self.store.find_task(task_id)
        return task

    def list_tasks(self, scope: Scope = "local", status: TaskStatus | None = None) -> list[Task]:
        tasks = self.store.list_tasks(scope)
        if status is not None:
            tasks = [t for t in tasks if t.status is status]
        return sorted(tasks, key=lambda t: t.created_at)

    def search_tasks(self, query: str, scope: Scope = "all") -> list[Task]:
        return sorted(self.store.search_tasks(query, scope), key=lambda t: t.created_at)

    def is_blocked(self, task: Task) -> bool:
        """Derived state: resolves blockers across both backends."""
        if not task.blocked_by:
            return False
        known = {t.id: t for t in self.store.list_tasks("all")}
        return task.is_blocked(known)

    def blocked_ids(self, tasks: Iterable[Task]) -> set[str]:
        """Ids of the given tasks that still wait on an open blocker."""
        tasks = [t for t in tasks if t.blocked_by]
        if not tasks:
            return set()
        known = {t.id: t for t in self.store.list_tasks("all")}
        return {t.id for t in tasks if t.is_blocked(known)}

    def _update_task(self, task_id: str, mutator: TaskMutator) -> Task:
        _, origin = self.store.find_task(task_id)
        task = self.store.backend(origin).update_task(task_id, mutator)
        task.shared = origin == "shared"
        return task

    def claim_task(self, task_id: str) -> Task:
        def claim(task: Task) -> None:
            if task.is_done:
                raise ConflictError(f"task already done: {task.id}")
            if task.status is TaskStatus.CLAIMED and task.owner != self.actor:
                raise ConflictError(f"already claimed by {task.owner}")
            task.claim(self.actor)

        task = self._update_task(task_id, claim)
        logger.info("Claimed %s as %s", task_id, self.actor)
        return task

    def drop_task(self, task_id: str) -> Task:
        def drop(task: Task) -> None:
            if task.owner != self.actor:
                owner = task.owner or "nobody"
                raise ConflictError(f"not owned by you (owner: {owner})")
            task.drop()

        task = self._update_task(task_id, drop)
        logger.info("Dropped %s", task_id)
        return task

    def complete_task(self, task_id: str) -> Task:
        task = self._update_task(task_id, lambda t: t.done())
        logger.info("Completed %s", task_id)
        return task

    def comment_task(self, task_id: str, message: str) -> Task:
        return self._update_task(task_id, lambda t: t.add_comment(self.actor, message))

    def block_task(self, task_id: str, blocker_id: str) -> Task:
        """Record that `task_id` depends on `blocker_id` on both tasks."""
        if task_id == blocker_id:
            raise ConflictError(f"task cannot block itself: {task_id}")
        self.store.find_task(blocker_id)
        task = self._update_task(task_id, lambda t: t.add_blocker(blocker_id))
        self._update_task(blocker_id, lambda t: t.add_dependent(task_id))
        logger.info("%s now blocked by %s", task_id, blocker_id)
        return task

    def unblock_task(self, task_id: str, blocker_id: str) -> Task:
        task = self._update_task(task_id, lambda t: t.remove_blocker(blocker_id))
        try:
            self._update_task(blocker_id, lambda t: t.remove_dependent(task_id))
        except NotFoundError:
            logger.debug("Blocker %s no longer exists", blocker_id)
        return task

    def remove_task(self, task_id: str) -> Origin:
        _, origin = self.store.find_task(task_id)
        self.store.backend(origin).delete_task(task_id)
        logger.info("Removed task %s (%s)", task_id, origin)
        return origin

    # ── Locks ────────────────────────────────────────────────

    def lock(self, target: str, *, shared: bool = False) -> Lock:
        """Acquire an advisory lock. Check-then-write, not atomic."""
        wanted = _origin(shared)
        for backend in (self.store.local, self.store.shared):
            try:
                existing = backend.read_lock(target)
            except NotFoundError:
                continue
            if existing.is_expired():
                continue
            if not existing.is_held_by(self.actor):
                raise ConflictError(
                    f"already locked by {existing.holder} "
                    f"(expires: {existing.expires_at.strftime('%H:%M')})"
                )
            if backend.origin != wanted:
                raise ConflictError(f"already locked by you in {backend.origin} storage")

        lock = Lock.create(target, self.actor, expiry=self.config.lock.expiry, shared=shared)
        self.store.select(shared).write_lock(lock)
        logger.info("Locked %s (%s) until %s", target, wanted, format_timestamp(lock.expires_at))
        return lock

    def unlock(self, target: str) -> Origin:
        lock, origin = self.store.find_lock(target)
        if not lock.is_held_by(self.actor):
            raise ConflictError(f"cannot unlock: owned by {lock.holder}")
        self.store.backend(origin).delete_lock(target)
        logger.info("Unlocked %s (%s)", target, origin)
        return origin

    def unlock_all(self) -> list[Lock]:
        """Release every lock held by the actor; keeps going past failures."""
        released = []
        for lock in self.store.list_locks("all"):
            if not lock.is_held_by(self.actor):
                continue
            try:
                self.store.select(lock.shared).delete_lock(lock.target)
            except GitCtxError as e:
                logger.warning("Failed to release %s: %s", lock.target, e)
                continue
            released.append(lock)
        logger.info("Released %d lock(s)", len(released))
        return released

    def list_locks(self, scope: Scope = "local", *, include_expired: bool = False) -> list[Lock]:
        locks = self.store.list_locks(scope)
        if not include_expired:
            locks = [lock for lock in locks if not lock.is_expired()]
        return sorted(locks, key=lambda lock: lock.acquired_at)

    # ── Sync ─────────────────────────────────────────────────

    def _require_sync(self) -> GitSync:
        if self.sync is None:
            raise SyncError("sync is not configured for this context")
        return self.sync

    def push(self) -> SyncResult:
        return self._require_sync().push()

    def pull(self) -> SyncResult:
        return self._require_sync().pull()


def _origin(shared: bool) -> Origin:
    return "shared" if shared else "local"
