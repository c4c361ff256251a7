"""Storage backends for memories, tasks and locks.

Local layout (private, never synchronized):
    <git-dir>/context/
    ├── memory/<id>/meta.json          # Metadata (id, title, author, tags, timestamps)
    ├── memory/<id>/content.md         # Raw body, no envelope
    ├── tasks/<id>.json                # Whole task incl. comments
    └── locks/<digest>.json            # Keyed by sha256(target)[:16]

Shared layout (snapshotted to refs/context/shared for push/pull):
    <git-dir>/context-shared/
    ├── memory/<id>.md                 # YAML front matter + body
    ├── tasks/<id>.md                  # YAML front matter + description
    └── locks/<digest>.md

`DualStore` in `gitctx.storage.router` pairs one of each.
"""
