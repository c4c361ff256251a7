"""Configuration loading from environment variables and gitctx.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import timedelta

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

from gitctx.errors import ConfigError

_CONFIG_FILENAME = "gitctx.toml"
_DEFAULT_EDITOR = "vim"


@dataclass
class LockConfig:
    """Advisory lock settings."""

    expiry_hours: float = 4.0

    @property
    def expiry(self) -> timedelta:
        return timedelta(hours=self.expiry_hours)


@dataclass
class SyncConfig:
    """Remote synchronization of shared context."""

    remote: str = "origin"
    ref: str = "refs/context/shared"


@dataclass
class GitCtxConfig:
    """Top-level git-context configuration."""

    lock: LockConfig = field(default_factory=LockConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    editor: str = _DEFAULT_EDITOR
    user: str | None = None
    log_level: str = "WARNING"


def load_config(config_path: Path | None = None) -> GitCtxConfig:
    """Load configuration from environment variables and optional gitctx.toml.

    Priority: environment variables > gitctx.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = _read_toml(config_path)
    else:
        # Search current dir and ~/.gitctx/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".gitctx" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = _read_toml(candidate)
                break

    lock_data = file_data.get("lock", {})
    sync_data = file_data.get("sync", {})

    config = GitCtxConfig(
        lock=LockConfig(
            expiry_hours=_hours(os.getenv("GITCTX_LOCK_HOURS", lock_data.get("expiry_hours", 4.0))),
        ),
        sync=SyncConfig(
            remote=os.getenv("GITCTX_REMOTE", sync_data.get("remote", "origin")),
            ref=os.getenv("GITCTX_SYNC_REF", sync_data.get("ref", "refs/context/shared")),
        ),
        editor=(
            os.getenv("GITCTX_EDITOR")
            or file_data.get("editor")
            or os.getenv("EDITOR")
            or _DEFAULT_EDITOR
        ),
        user=os.getenv("GITCTX_USER", file_data.get("user")),
        log_level=os.getenv("GITCTX_LOG_LEVEL", file_data.get("log_level", "WARNING")),
    )
    return config


def _read_toml(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"invalid config {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e


def _hours(value) -> float:
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"lock expiry must be a number of hours, got {value!r}") from None
    if hours <= 0:
        raise ConfigError(f"lock expiry must be positive, got {value!r}")
    return hours
