"""Themed Rich consoles and one-line status messages.

Regular output goes to :data:`console` (stdout); warnings and errors go
to :data:`err_console` (stderr), which the log handler shares.
"""

import sys

from rich.console import Console
from rich.markup import escape

from ncctl.core.theme import get_theme


def _color_system() -> str | None:
    # Theme colors are hex, so a TTY gets truecolor; pipes get plain text
    return "truecolor" if sys.stdout.isatty() else None


console = Console(theme=get_theme(), color_system=_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_color_system())


def print_info(message: str) -> None:
    console.print(f"[info]{escape(message)}[/]")


def print_success(message: str) -> None:
    console.print(f"[success]{escape(message)}[/]")


def print_warning(message: str) -> None:
    """Print ``Warning: <message>`` to stderr."""
    err_console.print(f"[warning]Warning:[/] {escape(message)}")


def print_error(message: str) -> None:
    """Print ``Error: <message>`` to stderr."""
    err_console.print(f"[error]Error:[/] {escape(message)}")
