"""CLI commands for CoreDrift.

This package provides the command-line interface for CoreDrift,
including accounts, trades, imports, the recycle bin and statistics.
"""

from coredrift.cli.main import cli, main

__all__ = ["cli", "main"]
