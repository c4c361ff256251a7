"""Shared fixtures: keep user git config and GITCTX_* settings out of tests."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from gitctx.storage.router import DualStore

GITCTX_ENV = [
    "GITCTX_LOCK_HOURS",
    "GITCTX_REMOTE",
    "GITCTX_SYNC_REF",
    "GITCTX_EDITOR",
    "GITCTX_USER",
    "GITCTX_LOG_LEVEL",
    "EDITOR",
]

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    gitconfig = home / ".gitconfig"
    gitconfig.write_text("")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    for key in GITCTX_ENV:
        monkeypatch.delenv(key, raising=False)


def git(*args: str, cwd: Path) -> str:
    proc = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    return proc.stdout


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git("init", "-q", cwd=path)
    return path


@pytest.fixture
def store(tmp_path: Path) -> DualStore:
    return DualStore.open(tmp_path / "git")
