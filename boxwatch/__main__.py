"""Entry point for `python -m boxwatch`.

Usage:
    python -m boxwatch
    uv run python -m boxwatch
"""

from __future__ import annotations

import asyncio

from boxwatch.app import main

asyncio.run(main())
