"""Tests for the local (JSON) and shared (front matter) backends."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import frontmatter
import pytest

from gitctx.errors import MalformedRecordError, NotFoundError
from gitctx.model import Lock, Memory, Task, utcnow
from gitctx.storage.base import Backend
from gitctx.storage.codec import lock_digest
from gitctx.storage.local import LocalBackend
from gitctx.storage.shared import SharedBackend


@pytest.fixture(params=["local", "shared"])
def backend(request, tmp_path: Path) -> Backend:
    if request.param == "local":
        return LocalBackend(tmp_path / "context")
    return SharedBackend(tmp_path / "context-shared")


def _shared(backend: Backend) -> bool:
    return backend.origin == "shared"


class TestProtocol:
    def test_backends_satisfy_protocol(self, tmp_path: Path):
        assert isinstance(LocalBackend(tmp_path), Backend)
        assert isinstance(SharedBackend(tmp_path), Backend)


class TestMemories:
    def test_round_trip(self, backend: Backend):
        m = Memory.create(
            "Why JWT: a decision",
            "We chose JWT.\n\n- stateless\n- simple",
            "alice",
            tags=["auth", "security"],
            shared=_shared(backend),
        )
        backend.write_memory(m)
        assert backend.read_memory(m.id) == m

    def test_overwrite_keeps_single_entry(self, backend: Backend):
        m = Memory.create("Title", "v1", "alice", shared=_shared(backend))
        backend.write_memory(m)
        m.edit(content="v2")
        backend.write_memory(m)
        assert [x.content for x in backend.list_memories()] == ["v2"]

    def test_delete(self, backend: Backend):
        m = Memory.create("Title", "body", "alice", shared=_shared(backend))
        backend.write_memory(m)
        backend.delete_memory(m.id)
        assert m.id not in [x.id for x in backend.list_memories()]
        with pytest.raises(NotFoundError):
            backend.delete_memory(m.id)
        with pytest.raises(NotFoundError):
            backend.read_memory(m.id)

    def test_list_empty_area(self, backend: Backend):
        assert backend.list_memories() == []
        assert backend.list_tasks() == []
        assert backend.list_locks() == []

    def test_search(self, backend: Backend):
        backend.write_memory(Memory.create("Why JWT", "stateless", "alice", shared=_shared(backend)))
        backend.write_memory(Memory.create("Caching", "redis", "alice", shared=_shared(backend)))
        assert [m.title for m in backend.search_memories("jwt")] == ["Why JWT"]
        assert backend.search_memories("nothing-matches") == []

    def test_crlf_body_round_trip(self, backend: Backend):
        m = Memory.create("Windows note", "line one\r\nline two\r\n\r\nend", "alice", shared=_shared(backend))
        backend.write_memory(m)
        loaded = backend.read_memory(m.id)
        assert loaded.content == "line one\r\nline two\r\n\r\nend"
        assert loaded == m

    def test_unsafe_id_is_not_found(self, backend: Backend):
        with pytest.raises(NotFoundError):
            backend.read_memory("../../etc")


class TestTasks:
    def test_crlf_description_round_trip(self, backend: Backend):
        t = Task.create("Ship", "step one\r\nstep two", "alice", shared=_shared(backend))
        backend.write_task(t)
        assert backend.read_task(t.id).description == "step one\r\nstep two"

    def test_round_trip_with_comments(self, backend: Backend):
        t = Task.create("Implement auth", "Use JWT middleware", "alice", shared=_shared(backend))
        t.claim("bob")
        t.add_comment("bob", "on it")
        t.add_comment("alice", "thanks: ping me")
        t.add_blocker("task-000000000000")
        backend.write_task(t)
        assert backend.read_task(t.id) == t

    def test_done_round_trip(self, backend: Backend):
        t = Task.create("Ship", "", "alice", shared=_shared(backend))
        t.done()
        backend.write_task(t)
        loaded = backend.read_task(t.id)
        assert loaded.done_at == t.done_at
        assert loaded.is_done

    def test_update_task(self, backend: Backend):
        t = Task.create("Ship", "", "alice", shared=_shared(backend))
        backend.write_task(t)
        updated = backend.update_task(t.id, lambda task: task.claim("carol"))
        assert updated.owner == "carol"
        assert backend.read_task(t.id).owner == "carol"

    def test_update_missing_task(self, backend: Backend):
        with pytest.raises(NotFoundError):
            backend.update_task("task-missing", lambda task: task.claim("carol"))

    def test_delete(self, backend: Backend):
        t = Task.create("Ship", "", "alice", shared=_shared(backend))
        backend.write_task(t)
        backend.delete_task(t.id)
        assert backend.list_tasks() == []
        with pytest.raises(NotFoundError):
            backend.delete_task(t.id)


class TestLocks:
    def test_round_trip(self, backend: Backend):
        lock = Lock.create("src/auth/", "alice", shared=_shared(backend))
        backend.write_lock(lock)
        assert backend.read_lock("src/auth/") == lock
        assert backend.list_locks() == [lock]

    def test_expired_lock_still_stored(self, backend: Backend):
        lock = Lock.create("task-1", "alice", shared=_shared(backend), now=utcnow() - timedelta(hours=5))
        backend.write_lock(lock)
        assert backend.read_lock("task-1").is_expired()

    def test_delete(self, backend: Backend):
        backend.write_lock(Lock.create("task-1", "alice", shared=_shared(backend)))
        backend.delete_lock("task-1")
        with pytest.raises(NotFoundError, match="not locked: task-1"):
            backend.delete_lock("task-1")


class TestLocalLayout:
    def test_memory_files(self, tmp_path: Path):
        backend = LocalBackend(tmp_path)
        m = Memory.create("Title", "raw body", "alice")
        backend.write_memory(m)
        meta = json.loads((tmp_path / "memory" / m.id / "meta.json").read_text())
        assert meta["title"] == "Title"
        assert meta["createdAt"].endswith("Z")
        assert (tmp_path / "memory" / m.id / "content.md").read_text() == "raw body"

    def test_content_file_keeps_line_endings(self, tmp_path: Path):
        backend = LocalBackend(tmp_path)
        m = Memory.create("Title", "a\r\nb", "alice")
        backend.write_memory(m)
        assert (tmp_path / "memory" / m.id / "content.md").read_bytes() == b"a\r\nb"

    def test_non_utf8_content_is_malformed(self, tmp_path: Path):
        backend = LocalBackend(tmp_path)
        m = Memory.create("Title", "body", "alice")
        backend.write_memory(m)
        (tmp_path / "memory" / m.id / "content.md").write_bytes(b"caf\xe9")
        assert backend.list_memories() == []
        with pytest.raises(MalformedRecordError):
            backend.read_memory(m.id)

    def test_task_uses_camel_case_keys(self, tmp_path: Path):
        backend = LocalBackend(tmp_path)
        t = Task.create("Ship", "", "alice")
        backend.write_task(t)
        data = json.loads((tmp_path / "tasks" / f"{t.id}.json").read_text())
        assert data["createdBy"] == "alice"
        assert data["blockedBy"] == []
        assert data["doneAt"] is None

    def test_lock_file_keyed_by_digest(self, tmp_path: Path):
        backend = LocalBackend(tmp_path)
        backend.write_lock(Lock.create("src/auth/", "alice"))
        path = tmp_path / "locks" / f"{lock_digest('src/auth/')}.json"
        assert json.loads(path.read_text())["lockedBy"] == "alice"

    def test_malformed_task_skipped(self, tmp_path: Path):
        backend = LocalBackend(tmp_path)
        backend.write_task(Task.create("Good", "", "alice"))
        (tmp_path / "tasks" / "task-bad.json").write_text("{not json")
        assert [t.title for t in backend.list_tasks()] == ["Good"]
        with pytest.raises(MalformedRecordError):
            backend.read_task("task-bad")

    def test_memory_without_content_is_malformed(self, tmp_path: Path):
        backend = LocalBackend(tmp_path)
        m = Memory.create("Title", "body", "alice")
        backend.write_memory(m)
        (tmp_path / "memory" / m.id / "content.md").unlink()
        assert backend.list_memories() == []
        with pytest.raises(MalformedRecordError):
            backend.read_memory(m.id)


class TestSharedLayout:
    def test_memory_is_markdown_with_front_matter(self, tmp_path: Path):
        backend = SharedBackend(tmp_path)
        m = Memory.create("Why JWT", "Stateless tokens", "alice", tags=["auth"], shared=True)
        backend.write_memory(m)
        post = frontmatter.load(str(tmp_path / "memory" / f"{m.id}.md"))
        assert post["title"] == "Why JWT"
        assert post["tags"] == ["auth"]
        assert post.content.strip() == "Stateless tokens"

    def test_task_description_in_body(self, tmp_path: Path):
        backend = SharedBackend(tmp_path)
        t = Task.create("Implement auth", "Use JWT middleware", "alice", shared=True)
        backend.write_task(t)
        post = frontmatter.load(str(tmp_path / "tasks" / f"{t.id}.md"))
        assert "description" not in post.metadata
        assert post.content.strip() == "Use JWT middleware"

    def test_file_without_front_matter_is_malformed(self, tmp_path: Path):
        backend = SharedBackend(tmp_path)
        (tmp_path / "tasks").mkdir()
        (tmp_path / "tasks" / "task-bad.md").write_text("just some text\n")
        assert backend.list_tasks() == []
        with pytest.raises(MalformedRecordError):
            backend.read_task("task-bad")

    def test_invalid_yaml_is_malformed(self, tmp_path: Path):
        backend = SharedBackend(tmp_path)
        (tmp_path / "memory").mkdir()
        (tmp_path / "memory" / "abc.md").write_text("---\ntitle: [unclosed\n---\nbody\n")
        with pytest.raises(MalformedRecordError):
            backend.read_memory("abc")

    def test_body_whitespace_trimmed(self, tmp_path: Path):
        backend = SharedBackend(tmp_path)
        backend.write_memory(Memory(id="abc", title="Code", content="    indented code\n", shared=True))
        backend.write_task(Task(id="task-abc", title="Ship", description="line\n\n", shared=True))
        assert backend.read_memory("abc").content == "indented code"
        assert backend.read_task("task-abc").description == "line"

    def test_non_utf8_file_is_malformed(self, tmp_path: Path):
        backend = SharedBackend(tmp_path)
        (tmp_path / "memory").mkdir()
        (tmp_path / "memory" / "abc.md").write_bytes(b"---\ntitle: caf\xe9\n---\n")
        assert backend.list_memories() == []
        with pytest.raises(MalformedRecordError):
            backend.read_memory("abc")
