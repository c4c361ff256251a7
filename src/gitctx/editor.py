"""Compose entry bodies in the user's $EDITOR."""

from __future__ import annotations

import logging
import shlex
import subprocess
import tempfile
from pathlib import Path

from gitctx.errors import EditorError

logger = logging.getLogger(__name__)


def edit_text(initial: str, editor: str) -> str:
    """Open `initial` in the editor and return what the user saved."""
    with tempfile.NamedTemporaryFile(
        "w", prefix="git-ctx-", suffix=".md", delete=False, encoding="utf-8"
    ) as f:
        f.write(initial)
        path = Path(f.name)
    try:
        cmd = [*shlex.split(editor), str(path)]
        logger.debug("Running editor: %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, check=False)
        except FileNotFoundError as e:
            raise EditorError(f"editor not found: {editor}") from e
        if proc.returncode != 0:
            raise EditorError(f"editor failed (exit {proc.returncode})")
        return path.read_text(encoding="utf-8")
    finally:
        path.unlink(missing_ok=True)
