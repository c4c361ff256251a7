"""Entry point: python -m gitctx <command>"""

from __future__ import annotations

import sys

from gitctx.cli import main

if __name__ == "__main__":
    sys.exit(main())
