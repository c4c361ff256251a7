"""Shared backend: markdown files with YAML front matter.

Lives under <git-dir>/context-shared/ and is the only area `gitctx.sync`
snapshots for push/pull. One file per entity: structured fields go into the
front matter, the free text (memory content, task description) into the
body, so a pulled entry is still readable with any markdown viewer.

Bodies lose leading and trailing whitespace on the way through front matter;
everything between, CRLF line endings included, is kept as written.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import frontmatter
import yaml

from gitctx.errors import MalformedRecordError, NotFoundError, StorageIOError
from gitctx.model import Lock, Memory, Task
from gitctx.storage import codec
from gitctx.storage.base import Origin, TaskMutator

logger = logging.getLogger(__name__)

SUFFIX = ".md"


class SharedBackend:
    """Read/write access to <git-dir>/context-shared/."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def origin(self) -> Origin:
        return "shared"

    # ── Front matter I/O ─────────────────────────────────────

    def _path(self, kind: str, key: str) -> Path:
        if not codec.is_safe_id(key):
            raise NotFoundError(f"not found: {key}")
        return self.root / kind / f"{key}{SUFFIX}"

    def _dump(self, path: Path, metadata: dict[str, Any], body: str = "") -> None:
        post = frontmatter.Post(body)
        post.metadata.update(metadata)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(frontmatter.dumps(post) + "\n", encoding="utf-8", newline="")
        except OSError as e:
            raise StorageIOError(f"failed to write {path}: {e}") from e

    def _load(self, path: Path, what: str) -> tuple[dict[str, Any], str]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"not found: {what}") from None
        except OSError as e:
            raise StorageIOError(f"failed to read {path}: {e}") from e
        try:
            post = frontmatter.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, yaml.YAMLError) as e:
            raise MalformedRecordError(f"malformed record for {what}: {e}") from e
        if not post.metadata:
            raise MalformedRecordError(f"malformed record for {what}: no front matter")
        return dict(post.metadata), post.content.strip()

    def _keys(self, kind: str) -> list[str]:
        directory = self.root / kind
        try:
            entries = sorted(directory.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageIOError(f"failed to list {directory}: {e}") from e
        return [p.stem for p in entries if p.is_file() and p.suffix == SUFFIX]

    def _unlink(self, path: Path, missing: str) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(missing) from None
        except OSError as e:
            raise StorageIOError(f"failed to delete {path}: {e}") from e

    # ── Memory ───────────────────────────────────────────────

    def write_memory(self, memory: Memory) -> None:
        self._dump(self._path("memory", memory.id), codec.memory_meta(memory), memory.content)
        logger.debug("Wrote shared memory %s", memory.id)

    def read_memory(self, memory_id: str) -> Memory:
        meta, body = self._load(self._path("memory", memory_id), memory_id)
        try:
            return codec.memory_from_meta(meta, body, shared=True)
        except codec.DECODE_ERRORS as e:
            raise MalformedRecordError(f"malformed record for {memory_id}: {e}") from e

    def list_memories(self) -> list[Memory]:
        memories = []
        for key in self._keys("memory"):
            try:
                memories.append(self.read_memory(key))
            except NotFoundError as e:
                logger.warning("Skipping shared memory %s: %s", key, e)
        return memories

    def delete_memory(self, memory_id: str) -> None:
        self._unlink(self._path("memory", memory_id), f"not found: {memory_id}")
        logger.debug("Deleted shared memory %s", memory_id)

    def search_memories(self, query: str) -> list[Memory]:
        return [m for m in self.list_memories() if m.matches(query)]

    # ── Task ─────────────────────────────────────────────────

    def write_task(self, task: Task) -> None:
        data = codec.task_to_dict(task)
        description = data.pop("description")
        self._dump(self._path("tasks", task.id), data, description)
        logger.debug("Wrote shared task %s", task.id)

    def read_task(self, task_id: str) -> Task:
        data, body = self._load(self._path("tasks", task_id), task_id)
        data["description"] = body
        try:
            return codec.task_from_dict(data, shared=True)
        except codec.DECODE_ERRORS as e:
            raise MalformedRecordError(f"malformed record for {task_id}: {e}") from e

    def list_tasks(self) -> list[Task]:
        tasks = []
        for key in self._keys("tasks"):
            try:
                tasks.append(self.read_task(key))
            except NotFoundError as e:
                logger.warning("Skipping shared task %s: %s", key, e)
        return tasks

    def update_task(self, task_id: str, mutator: TaskMutator) -> Task:
        task = self.read_task(task_id)
        mutator(task)
        self.write_task(task)
        return task

    def delete_task(self, task_id: str) -> None:
        self._unlink(self._path("tasks", task_id), f"not found: {task_id}")
        logger.debug("Deleted shared task %s", task_id)

    def search_tasks(self, query: str) -> list[Task]:
        return [t for t in self.list_tasks() if t.matches(query)]

    # ── Lock ─────────────────────────────────────────────────

    def write_lock(self, lock: Lock) -> None:
        self._dump(self._path("locks", codec.lock_digest(lock.target)), codec.lock_to_dict(lock))
        logger.debug("Wrote shared lock on %s", lock.target)

    def read_lock(self, target: str) -> Lock:
        data, _ = self._load(self._path("locks", codec.lock_digest(target)), target)
        try:
            return codec.lock_from_dict(data, shared=True)
        except codec.DECODE_ERRORS as e:
            raise MalformedRecordError(f"malformed lock for {target}: {e}") from e

    def list_locks(self) -> list[Lock]:
        locks = []
        for key in self._keys("locks"):
            try:
                data, _ = self._load(self._path("locks", key), key)
                locks.append(codec.lock_from_dict(data, shared=True))
            except (NotFoundError, *codec.DECODE_ERRORS) as e:
                logger.warning("Skipping shared lock %s: %s", key, e)
        return locks

    def delete_lock(self, target: str) -> None:
        self._unlink(self._path("locks", codec.lock_digest(target)), f"not locked: {target}")
        logger.debug("Deleted shared lock on %s", target)
