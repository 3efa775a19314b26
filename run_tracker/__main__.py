"""Module entry point: python -m run_tracker ..."""

from __future__ import annotations

from run_tracker.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
