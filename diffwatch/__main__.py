"""Entry point for `python -m diffwatch`.

Usage:
    python -m diffwatch
    uv run python -m diffwatch
"""

from __future__ import annotations

from diffwatch.app import run

run()
