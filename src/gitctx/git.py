"""Thin subprocess wrapper around the git CLI."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from gitctx.errors import GitError, NotARepositoryError

logger = logging.getLogger(__name__)


def _as_text(data: str | bytes | None) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data or ""


def run_git(
    args: Sequence[str],
    *,
    git_dir: Path | None = None,
    cwd: Path | None = None,
    input: str | bytes | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
    text: bool = True,
) -> subprocess.CompletedProcess:
    """Run git and capture its output.

    Output is decoded as UTF-8 unless text=False, in which case stdout and
    stderr are raw bytes. Undecodable output raises GitError. With
    check=True a non-zero exit raises GitError carrying the command, exit
    code and captured output.
    """
    cmd = ["git"]
    if git_dir is not None:
        cmd += ["--git-dir", str(git_dir)]
    cmd += list(args)
    logger.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            input=input,
            env=dict(env) if env is not None else None,
            check=False,
            capture_output=True,
            encoding="utf-8" if text else None,
        )
    except FileNotFoundError as e:
        raise GitError("git executable not found on PATH") from e
    except UnicodeDecodeError as e:
        raise GitError(f"{' '.join(cmd)} produced output that is not UTF-8") from e
    if check and proc.returncode != 0:
        out = _as_text(proc.stdout).strip()
        err = _as_text(proc.stderr).strip()
        msg = f"{' '.join(cmd)} failed (exit {proc.returncode})"
        if out:
            msg += f"\nstdout:\n{out}"
        if err:
            msg += f"\nstderr:\n{err}"
        raise GitError(msg)
    return proc


def find_git_dir(cwd: Path | None = None) -> Path:
    """Absolute path of the repository's git directory."""
    try:
        proc = run_git(["rev-parse", "--absolute-git-dir"], cwd=cwd)
    except GitError as e:
        raise NotARepositoryError("not a git repository") from e
    return Path(proc.stdout.strip())
