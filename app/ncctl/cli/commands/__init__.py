"""CLI commands for ncctl.

This package contains all command implementations.
"""

from ncctl.cli.commands import backup, lifecycle, maintenance, status, update

__all__ = ["backup", "lifecycle", "maintenance", "status", "update"]
