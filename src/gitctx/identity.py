"""Acting user's display name, read from git config."""

from __future__ import annotations

import logging
from pathlib import Path

from gitctx.errors import GitError
from gitctx.git import run_git

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown"


def git_config(key: str, cwd: Path | None = None) -> str:
    """Value of a git config key, or "" when unset or git is unavailable."""
    try:
        proc = run_git(["config", "--get", key], cwd=cwd, check=False)
    except GitError as e:
        logger.debug("git config %s unavailable: %s", key, e)
        return ""
    if proc.returncode != 0:
        return ""
    return proc.stdout.strip()


def author_name(cwd: Path | None = None, override: str | None = None) -> str:
    """Short form used for attribution and lock/task ownership."""
    if override:
        return override
    return git_config("user.name", cwd) or UNKNOWN_AUTHOR


def author_email(cwd: Path | None = None) -> str:
    return git_config("user.email", cwd)


def author_long(cwd: Path | None = None, override: str | None = None) -> str:
    """Name followed by <email> when an email is configured."""
    name = author_name(cwd, override)
    email = author_email(cwd)
    return f"{name} <{email}>" if email else name
