"""Command line interface (python -m course_import.cli)."""

from .__main__ import main

__all__ = ["main"]
