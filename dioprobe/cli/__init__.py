"""CLI package for dioprobe."""

from __future__ import annotations

from dioprobe.cli.main import cli, main

__all__ = ["cli", "main"]
