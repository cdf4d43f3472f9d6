"""
CLI module for Arcella.

Provides the command-line interface using Click.
"""

from arcella.cli.main import cli, main

__all__ = ["main", "cli"]
