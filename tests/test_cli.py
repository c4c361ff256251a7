"""End-to-end tests for the git-ctx command line."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import init_repo, requires_git

from gitctx.cli import build_parser, main

pytestmark = requires_git


@pytest.fixture
def repo(tmp_path: Path, monkeypatch) -> Path:
    path = init_repo(tmp_path / "repo")
    monkeypatch.chdir(path)
    monkeypatch.setenv("GITCTX_USER", "alice")
    return path


def run(capsys, *argv: str) -> tuple[int, str, str]:
    code = main(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


def created_id(out: str) -> str:
    return out.strip().rsplit(": ", 1)[1]


class TestParser:
    def test_scope_defaults(self):
        parser = build_parser()
        assert parser.parse_args(["list"]).scope == "local"
        assert parser.parse_args(["search", "q"]).scope == "all"
        assert parser.parse_args(["task", "list", "--shared"]).scope == "shared"

    def test_scope_flags_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["list", "--local", "--all"])


class TestMemoryCommands:
    def test_add_list_show(self, repo: Path, capsys):
        code, out, _ = run(capsys, "add", "Why", "JWT", "-m", "Stateless tokens", "--tag", "auth")
        assert code == 0
        assert out.startswith("Created (local): ")
        memory_id = created_id(out)

        code, out, _ = run(capsys, "list", "--json")
        assert code == 0
        data = json.loads(out)
        assert [m["id"] for m in data] == [memory_id]
        assert data[0]["title"] == "Why JWT"
        assert data[0]["author"] == "alice"
        assert data[0]["tags"] == ["auth"]

        code, out, _ = run(capsys, "list", "--shared", "--json")
        assert json.loads(out) == []

        code, out, _ = run(capsys, "show", memory_id)
        assert code == 0
        assert "Why JWT" in out
        assert "[local]" in out
        assert "Stateless tokens" in out

    def test_list_table(self, repo: Path, capsys):
        run(capsys, "add", "-t", "Shared plan", "-m", "body", "--shared")
        code, out, _ = run(capsys, "list", "--all")
        lines = out.splitlines()
        assert lines[0].split() == ["ID", "TITLE", "TYPE", "AUTHOR"]
        assert "[shared]" in lines[2]

    def test_edit_and_rm(self, repo: Path, capsys):
        _, out, _ = run(capsys, "add", "Draft", "-m", "v1")
        memory_id = created_id(out)

        code, out, _ = run(capsys, "edit", memory_id, "-m", "v2", "-t", "Final")
        assert code == 0
        assert out.strip() == f"Updated: {memory_id}"
        _, out, _ = run(capsys, "show", memory_id, "--json")
        assert json.loads(out)["content"] == "v2"
        assert json.loads(out)["title"] == "Final"

        code, out, _ = run(capsys, "rm", memory_id)
        assert out.strip() == f"Removed (local): {memory_id}"
        code, _, err = run(capsys, "rm", memory_id)
        assert code == 3
        assert err.strip() == f"Error: not found: {memory_id}"

    def test_edit_opens_editor(self, repo: Path, capsys):
        _, out, _ = run(capsys, "add", "Draft", "-m", "v1")
        memory_id = created_id(out)
        with patch("gitctx.cli.edit_text", return_value="from editor\n") as editor:
            assert run(capsys, "edit", memory_id)[0] == 0
        assert editor.call_args.args == ("v1", "vim")
        _, out, _ = run(capsys, "show", memory_id, "--json")
        assert json.loads(out)["content"] == "from editor"

    def test_search(self, repo: Path, capsys):
        run(capsys, "add", "Why JWT", "-m", "stateless")
        run(capsys, "add", "JWT rotation", "-m", "keys", "--shared")

        code, out, _ = run(capsys, "search", "jwt")
        assert code == 0
        assert 'Found 2 results for "jwt":' in out

        code, out, _ = run(capsys, "search", "graphql")
        assert out.strip() == "No results for: graphql"


class TestTaskCommands:
    def test_claim_conflict_exit_code(self, repo: Path, capsys, monkeypatch):
        _, out, _ = run(capsys, "task", "add", "Implement", "auth", "--shared")
        assert out.startswith("Created (shared): task-")
        task_id = created_id(out)

        code, out, _ = run(capsys, "task", "claim", task_id)
        assert code == 0
        assert out.strip() == f"Claimed: {task_id}"

        monkeypatch.setenv("GITCTX_USER", "bob")
        code, _, err = run(capsys, "task", "claim", task_id)
        assert code == 4
        assert err.strip() == "Error: already claimed by alice"

        code, _, err = run(capsys, "task", "drop", task_id)
        assert code == 4
        assert "not owned by you (owner: alice)" in err

    def test_task_lifecycle(self, repo: Path, capsys):
        _, out, _ = run(capsys, "task", "add", "Design", "schema")
        schema = created_id(out)
        _, out, _ = run(capsys, "task", "add", "Build API", "-d", "REST endpoints", "--blocked-by", schema)
        api = created_id(out)

        _, out, _ = run(capsys, "task", "show", api, "--json")
        data = json.loads(out)
        assert data["blockedBy"] == [schema]
        assert data["blocked"] is True
        assert data["description"] == "REST endpoints"

        assert run(capsys, "task", "comment", api, "waiting", "on", "schema")[1].strip() == f"Comment added to: {api}"
        assert run(capsys, "task", "done", schema)[1].strip() == f"Done: {schema}"

        _, out, _ = run(capsys, "task", "show", api)
        assert "alice: waiting on schema" in out
        assert "(all done)" in out

        _, out, _ = run(capsys, "task", "list", "--status", "done", "--json")
        assert [t["id"] for t in json.loads(out)] == [schema]

    def test_show_missing_task(self, repo: Path, capsys):
        code, _, err = run(capsys, "task", "show", "task-nope")
        assert code == 3
        assert err.strip() == "Error: not found: task-nope"


class TestLockCommands:
    def test_lock_unlock(self, repo: Path, capsys, monkeypatch):
        code, out, _ = run(capsys, "lock", "src/auth/")
        assert code == 0
        assert out.strip() == "Locked (local): src/auth/"

        _, out, _ = run(capsys, "locks", "--json")
        [lock] = json.loads(out)
        assert lock["target"] == "src/auth/"
        assert lock["lockedBy"] == "alice"
        assert lock["expired"] is False

        monkeypatch.setenv("GITCTX_USER", "bob")
        code, _, err = run(capsys, "lock", "src/auth/")
        assert code == 4
        assert err.startswith("Error: already locked by alice (expires: ")
        code, _, err = run(capsys, "unlock", "src/auth/")
        assert code == 4
        assert err.strip() == "Error: cannot unlock: owned by alice"

        monkeypatch.setenv("GITCTX_USER", "alice")
        assert run(capsys, "unlock", "src/auth/")[1].strip() == "Unlocked (local): src/auth/"
        assert run(capsys, "locks")[1].strip() == "No active locks"

    def test_unlock_all(self, repo: Path, capsys):
        run(capsys, "lock", "a")
        run(capsys, "lock", "b", "--shared")
        _, out, _ = run(capsys, "unlock")
        assert sorted(out.strip().splitlines()) == ["Unlocked (local): a", "Unlocked (shared): b"]
        assert run(capsys, "unlock")[1].strip() == "No locks to release"

    def test_unlock_missing(self, repo: Path, capsys):
        code, _, err = run(capsys, "unlock", "nothing")
        assert code == 3
        assert err.strip() == "Error: not locked: nothing"


class TestErrors:
    def test_outside_repository(self, tmp_path: Path, capsys, monkeypatch):
        empty = tmp_path / "empty"
        empty.mkdir()
        monkeypatch.chdir(empty)
        code, _, err = run(capsys, "list")
        assert code == 1
        assert err.strip() == "Error: not a git repository"

    def test_push_without_remote(self, repo: Path, capsys):
        run(capsys, "add", "Plan", "-m", "body", "--shared")
        code, _, err = run(capsys, "push")
        assert code == 1
        assert "push to origin rejected" in err

    def test_malformed_config(self, repo: Path, capsys):
        (repo / "gitctx.toml").write_text("user = \n")
        code, out, err = run(capsys, "list")
        assert code == 1
        assert out == ""
        assert err.startswith("Error: invalid config ")

    def test_bad_lock_hours(self, repo: Path, capsys, monkeypatch):
        monkeypatch.setenv("GITCTX_LOCK_HOURS", "soon")
        code, _, err = run(capsys, "lock", "src/")
        assert code == 1
        assert err.strip() == "Error: lock expiry must be a number of hours, got 'soon'"
