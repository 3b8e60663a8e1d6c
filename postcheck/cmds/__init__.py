"""Command modules for the postcheck CLI.

This module exports the command groups (Typer apps) that are registered
with the main application. The top-level ``run`` and ``scenarios``
commands live in :mod:`postcheck.cmds.run`.
"""

from .config import app as config_app

__all__ = [
    "config_app",
]
