"""Local backend: private JSON files under <git-dir>/context/.

Never synchronized. Memories are split into a metadata record and a raw
content file so the body stays readable outside the tool; tasks are one
self-contained record; locks are keyed by a digest of their target so any
path can be locked without touching the layout.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any

from gitctx.errors import MalformedRecordError, NotFoundError, StorageIOError
from gitctx.model import Lock, Memory, Task
from gitctx.storage import codec
from gitctx.storage.base import Origin, TaskMutator

logger = logging.getLogger(__name__)

META_FILE = "meta.json"
CONTENT_FILE = "content.md"


class LocalBackend:
    """Read/write access to <git-dir>/context/."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def origin(self) -> Origin:
        return "local"

    @property
    def memory_dir(self) -> Path:
        return self.root / "memory"

    @property
    def tasks_dir(self) -> Path:
        return self.root / "tasks"

    @property
    def locks_dir(self) -> Path:
        return self.root / "locks"

    # ── File helpers ─────────────────────────────────────────

    def _write_json(self, path: Path, data: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        except OSError as e:
            raise StorageIOError(f"failed to write {path}: {e}") from e

    def _read_json(self, path: Path, what: str) -> dict[str, Any]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"not found: {what}") from None
        except OSError as e:
            raise StorageIOError(f"failed to read {path}: {e}") from e
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise MalformedRecordError(f"malformed record for {what}: {e}") from e
        if not isinstance(data, dict):
            raise MalformedRecordError(f"malformed record for {what}: not an object")
        return data

    def _entries(self, directory: Path) -> list[Path]:
        """Directory listing; a missing directory means nothing stored yet."""
        try:
            return sorted(directory.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageIOError(f"failed to list {directory}: {e}") from e

    @staticmethod
    def _require_id(entity_id: str) -> None:
        if not codec.is_safe_id(entity_id):
            raise NotFoundError(f"not found: {entity_id}")

    # ── Memory ───────────────────────────────────────────────

    def write_memory(self, memory: Memory) -> None:
        self._require_id(memory.id)
        entry_dir = self.memory_dir / memory.id
        self._write_json(entry_dir / META_FILE, codec.memory_meta(memory))
        try:
            (entry_dir / CONTENT_FILE).write_text(memory.content, encoding="utf-8", newline="")
        except OSError as e:
            raise StorageIOError(f"failed to write content for {memory.id}: {e}") from e
        logger.debug("Wrote local memory %s", memory.id)

    def read_memory(self, memory_id: str) -> Memory:
        self._require_id(memory_id)
        entry_dir = self.memory_dir / memory_id
        meta = self._read_json(entry_dir / META_FILE, memory_id)
        try:
            raw = (entry_dir / CONTENT_FILE).read_bytes()
        except FileNotFoundError:
            raise MalformedRecordError(f"malformed record for {memory_id}: content missing") from None
        except OSError as e:
            raise StorageIOError(f"failed to read content for {memory_id}: {e}") from e
        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRecordError(f"malformed record for {memory_id}: {e}") from e
        try:
            return codec.memory_from_meta(meta, content, shared=False)
        except codec.DECODE_ERRORS as e:
            raise MalformedRecordError(f"malformed record for {memory_id}: {e}") from e

    def list_memories(self) -> list[Memory]:
        memories = []
        for entry in self._entries(self.memory_dir):
            if not entry.is_dir():
                continue
            try:
                memories.append(self.read_memory(entry.name))
            except NotFoundError as e:
                logger.warning("Skipping local memory %s: %s", entry.name, e)
        return memories

    def delete_memory(self, memory_id: str) -> None:
        self._require_id(memory_id)
        entry_dir = self.memory_dir / memory_id
        if not entry_dir.is_dir():
            raise NotFoundError(f"not found: {memory_id}")
        try:
            shutil.rmtree(entry_dir)
        except OSError as e:
            raise StorageIOError(f"failed to delete {memory_id}: {e}") from e
        logger.debug("Deleted local memory %s", memory_id)

    def search_memories(self, query: str) -> list[Memory]:
        return [m for m in self.list_memories() if m.matches(query)]

    # ── Task ─────────────────────────────────────────────────

    def _task_path(self, task_id: str) -> Path:
        self._require_id(task_id)
        return self.tasks_dir / f"{task_id}.json"

    def write_task(self, task: Task) -> None:
        self._write_json(self._task_path(task.id), codec.task_to_dict(task))
        logger.debug("Wrote local task %s", task.id)

    def read_task(self, task_id: str) -> Task:
        data = self._read_json(self._task_path(task_id), task_id)
        try:
            return codec.task_from_dict(data, shared=False)
        except codec.DECODE_ERRORS as e:
            raise MalformedRecordError(f"malformed record for {task_id}: {e}") from e

    def list_tasks(self) -> list[Task]:
        tasks = []
        for entry in self._entries(self.tasks_dir):
            if not entry.is_file() or entry.suffix != ".json":
                continue
            try:
                tasks.append(self.read_task(entry.stem))
            except NotFoundError as e:
                logger.warning("Skipping local task %s: %s", entry.stem, e)
        return tasks

    def update_task(self, task_id: str, mutator: TaskMutator) -> Task:
        task = self.read_task(task_id)
        mutator(task)
        self.write_task(task)
        return task

    def delete_task(self, task_id: str) -> None:
        path = self._task_path(task_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(f"not found: {task_id}") from None
        except OSError as e:
            raise StorageIOError(f"failed to delete {task_id}: {e}") from e
        logger.debug("Deleted local task %s", task_id)

    def search_tasks(self, query: str) -> list[Task]:
        return [t for t in self.list_tasks() if t.matches(query)]

    # ── Lock ─────────────────────────────────────────────────

    def _lock_path(self, target: str) -> Path:
        return self.locks_dir / f"{codec.lock_digest(target)}.json"

    def write_lock(self, lock: Lock) -> None:
        self._write_json(self._lock_path(lock.target), codec.lock_to_dict(lock))
        logger.debug("Wrote local lock on %s", lock.target)

    def read_lock(self, target: str) -> Lock:
        data = self._read_json(self._lock_path(target), target)
        try:
            return codec.lock_from_dict(data, shared=False)
        except codec.DECODE_ERRORS as e:
            raise MalformedRecordError(f"malformed lock for {target}: {e}") from e

    def list_locks(self) -> list[Lock]:
        locks = []
        for entry in self._entries(self.locks_dir):
            if not entry.is_file() or entry.suffix != ".json":
                continue
            try:
                data = self._read_json(entry, entry.stem)
                locks.append(codec.lock_from_dict(data, shared=False))
            except (NotFoundError, *codec.DECODE_ERRORS) as e:
                logger.warning("Skipping local lock %s: %s", entry.name, e)
        return locks

    def delete_lock(self, target: str) -> None:
        try:
            self._lock_path(target).unlink()
        except FileNotFoundError:
            raise NotFoundError(f"not locked: {target}") from None
        except OSError as e:
            raise StorageIOError(f"failed to unlock {target}: {e}") from e
        logger.debug("Deleted local lock on %s", target)
