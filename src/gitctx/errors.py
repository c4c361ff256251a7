"""Exception hierarchy shared by storage, sync and the CLI boundary."""

from __future__ import annotations


class GitCtxError(Exception):
    """Base class for every failure surfaced to the user."""

    exit_code = 1


class NotFoundError(GitCtxError):
    """Requested identifier or lock target is absent."""

    exit_code = 3


class MalformedRecordError(NotFoundError):
    """A persisted record exists but could not be parsed.

    Subclasses NotFoundError so callers that only care about presence keep
    treating a corrupt record as missing.
    """


class ConflictError(GitCtxError):
    """An application-level precondition was violated (ownership, locks)."""

    exit_code = 4


class StorageIOError(GitCtxError):
    """The storage medium could not be read or written."""


class NotARepositoryError(GitCtxError):
    """No git directory could be discovered."""


class GitError(GitCtxError):
    """A git subprocess failed."""


class SyncError(GitError):
    """Push or pull of shared context failed."""


class EditorError(GitCtxError):
    """The external editor could not be run or exited with an error."""


class ConfigError(GitCtxError):
    """gitctx.toml or a GITCTX_* variable holds an unusable value."""
