"""Push/pull of shared context through a git ref.

The shared area (<git-dir>/context-shared/) is snapshotted into a commit on
`refs/context/shared` with plumbing commands (hash-object, mktree,
commit-tree), so nothing touches the user's index, branches or working
tree. Pull is additive: it adds and fast-forwards entries but never deletes
local shared files, and keeps local edits made since the last sync.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from gitctx.errors import GitError, SyncError
from gitctx.git import run_git

logger = logging.getLogger(__name__)

_FALLBACK_EMAIL = "gitctx@localhost"
_REMOTE_NAME = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*(\.[A-Za-z0-9_-]+)*")


@dataclass
class SyncResult:
    """Outcome of a push or pull."""

    commit: str | None = None
    pushed: bool = False
    added: int = 0
    updated: int = 0
    conflicts: list[str] = field(default_factory=list)


class GitSync:
    """Snapshot the shared area into a ref and exchange it with a remote."""

    def __init__(
        self,
        git_dir: Path,
        shared_root: Path,
        *,
        remote: str = "origin",
        ref: str = "refs/context/shared",
        author_name: str = "Unknown",
        author_email: str = "",
    ) -> None:
        self.git_dir = git_dir
        self.shared_root = shared_root
        self.remote = remote
        self.ref = ref
        self.author_name = author_name
        self.author_email = author_email or _FALLBACK_EMAIL

    @property
    def tracking_ref(self) -> str:
        """Local ref holding the last fetched remote head.

        Named remotes keep their name; URLs and paths are keyed by digest.
        """
        key = self.remote
        if not _REMOTE_NAME.fullmatch(key) or key.endswith(".lock"):
            key = "url-" + hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
        return f"refs/context/remotes/{key}/shared"

    def _git(
        self,
        *args: str,
        input: str | None = None,
        env: dict | None = None,
        check: bool = True,
        text: bool = True,
    ):
        return run_git(args, git_dir=self.git_dir, input=input, env=env, check=check, text=text)

    # ── Object helpers ───────────────────────────────────────

    def _resolve(self, ref: str) -> str | None:
        proc = self._git("rev-parse", "--verify", "-q", f"{ref}^{{commit}}", check=False)
        sha = proc.stdout.strip()
        return sha if proc.returncode == 0 and sha else None

    def _tree_of(self, commit: str) -> str:
        return self._git("rev-parse", f"{commit}^{{tree}}").stdout.strip()

    def _is_ancestor(self, ancestor: str, descendant: str) -> bool:
        proc = self._git("merge-base", "--is-ancestor", ancestor, descendant, check=False)
        return proc.returncode == 0

    def _merge_base(self, a: str | None, b: str) -> str | None:
        if not a:
            return None
        proc = self._git("merge-base", a, b, check=False)
        sha = proc.stdout.strip()
        return sha if proc.returncode == 0 and sha else None

    def _write_tree(self, directory: Path) -> str | None:
        """Recursively store `directory` as a tree object. None if empty."""
        entries = []
        for child in sorted(directory.iterdir()):
            if child.is_dir():
                subtree = self._write_tree(child)
                if subtree:
                    entries.append(f"040000 tree {subtree}\t{child.name}")
            elif child.is_file():
                blob = self._git("hash-object", "-w", "--no-filters", "--", str(child)).stdout.strip()
                entries.append(f"100644 blob {blob}\t{child.name}")
        if not entries:
            return None
        return self._git("mktree", input="\n".join(entries) + "\n").stdout.strip()

    def _write_root_tree(self) -> str:
        tree = self._write_tree(self.shared_root) if self.shared_root.is_dir() else None
        return tree or self._git("mktree", input="").stdout.strip()

    def _commit(self, tree: str, parents: list[str], message: str) -> str:
        env = {
            **os.environ,
            "GIT_AUTHOR_NAME": self.author_name,
            "GIT_AUTHOR_EMAIL": self.author_email,
            "GIT_COMMITTER_NAME": self.author_name,
            "GIT_COMMITTER_EMAIL": self.author_email,
        }
        args = ["commit-tree", tree]
        for parent in parents:
            args += ["-p", parent]
        args += ["-m", message]
        return self._git(*args, env=env).stdout.strip()

    def _update_ref(self, new: str, old: str | None) -> None:
        args = ["update-ref", self.ref, new]
        if old:
            args.append(old)
        self._git(*args)

    def _blob_entries(self, commit: str | None) -> dict[str, str]:
        """path -> blob sha for every file in a commit's tree."""
        if not commit:
            return {}
        out = self._git("ls-tree", "-r", "-z", commit).stdout
        entries = {}
        for record in out.split("\0"):
            if not record:
                continue
            info, path = record.split("\t", 1)
            _mode, kind, sha = info.split()
            if kind == "blob":
                entries[path] = sha
        return entries

    def _destination(self, rel: str) -> Path | None:
        parts = PurePosixPath(rel).parts
        if not parts or any(p in ("", ".", "..") for p in parts) or PurePosixPath(rel).is_absolute():
            return None
        return self.shared_root.joinpath(*parts)

    def _hash_file(self, path: Path) -> str:
        return self._git("hash-object", "--no-filters", "--", str(path)).stdout.strip()

    def _checkout_blob(self, sha: str, dest: Path) -> None:
        content = self._git("cat-file", "blob", sha, text=False).stdout
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(content)

    # ── Snapshot ─────────────────────────────────────────────

    def snapshot(self, message: str = "gitctx: update shared context") -> str:
        """Commit the shared area onto the ref if it changed; return the head."""
        tree = self._write_root_tree()
        head = self._resolve(self.ref)
        if head and self._tree_of(head) == tree:
            return head
        commit = self._commit(tree, [head] if head else [], message)
        self._update_ref(commit, head)
        logger.info("Snapshot %s -> %s", self.ref, commit[:12])
        return commit

    # ── Push / pull ──────────────────────────────────────────

    def push(self) -> SyncResult:
        """Snapshot and push the shared ref to the remote."""
        head = self.snapshot()
        proc = self._git("push", self.remote, f"{self.ref}:{self.ref}", check=False)
        if proc.returncode != 0:
            detail = (proc.stderr or "").strip()
            raise SyncError(f"push to {self.remote} rejected; run pull first\n{detail}".rstrip())
        logger.info("Pushed %s to %s", self.ref, self.remote)
        return SyncResult(commit=head, pushed=True)

    def pull(self) -> SyncResult:
        """Fetch the remote shared ref and merge its entries additively."""
        try:
            listing = self._git("ls-remote", self.remote, self.ref).stdout.strip()
        except GitError as e:
            raise SyncError(f"cannot reach remote {self.remote}: {e}") from e
        if not listing:
            logger.info("Remote %s has no shared context yet", self.remote)
            return SyncResult(commit=self._resolve(self.ref))

        try:
            self._git("fetch", self.remote, f"+{self.ref}:{self.tracking_ref}")
        except GitError as e:
            raise SyncError(f"fetch from {self.remote} failed: {e}") from e
        remote_head = self._resolve(self.tracking_ref)
        if remote_head is None:
            raise SyncError(f"fetched {self.tracking_ref} does not resolve to a commit")

        head = self._resolve(self.ref)
        # Base is the last common sync point; the local head may already
        # carry edits from a rejected push.
        try:
            result = self._materialize(remote_head, self._merge_base(head, remote_head))
        except GitError as e:
            raise SyncError(f"cannot merge shared context from {self.remote}: {e}") from e

        if head and self._is_ancestor(remote_head, head):
            result.commit = head
            return result

        tree = self._write_root_tree()
        if head is None or self._is_ancestor(head, remote_head):
            if tree == self._tree_of(remote_head):
                self._update_ref(remote_head, head)
                result.commit = remote_head
            else:
                result.commit = self._commit(tree, [remote_head], "gitctx: pull shared context")
                self._update_ref(result.commit, head)
        else:
            result.commit = self._commit(tree, [head, remote_head], "gitctx: merge shared context")
            self._update_ref(result.commit, head)
        logger.info(
            "Pulled %s: %d added, %d updated, %d kept local",
            self.remote,
            result.added,
            result.updated,
            len(result.conflicts),
        )
        return result

    def _materialize(self, remote_head: str, base: str | None) -> SyncResult:
        """Write remote entries into the shared area.

        A file is replaced only when it still matches the last synced
        snapshot; otherwise the local version wins and is reported.
        """
        remote_entries = self._blob_entries(remote_head)
        base_entries = self._blob_entries(base)
        result = SyncResult()
        for rel, sha in sorted(remote_entries.items()):
            dest = self._destination(rel)
            if dest is None:
                logger.warning("Ignoring unsafe path from remote: %s", rel)
                continue
            if dest.exists():
                local_sha = self._hash_file(dest)
                if local_sha == sha:
                    continue
                if base_entries.get(rel) == local_sha:
                    self._checkout_blob(sha, dest)
                    result.updated += 1
                else:
                    result.conflicts.append(rel)
            elif base_entries.get(rel) != sha:
                self._checkout_blob(sha, dest)
                result.added += 1
        return result
