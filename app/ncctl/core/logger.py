"""Logging setup for ncctl.

All modules log through ``logging.getLogger(__name__)``. This module is
the single place where handlers are attached: a Rich console handler on
stderr and a plain-text file handler, both below the ``ncctl`` logger so
one level setting filters console and file alike.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import NoReturn

from rich.logging import RichHandler

from ncctl.core.errors import NcctlError, StepFailedError
from ncctl.utils.formatting import err_console

ROOT_LOGGER = "ncctl"
FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
REDACTED = "********"

logger = logging.getLogger(__name__)


class SecretRedactingFilter(logging.Filter):
    """Mask registered secret values in every log record."""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: set[str] = set()

    def register(self, value: str) -> None:
        """Add a value that must never appear in log output."""
        if value:
            self._secrets.add(value)

    def redact(self, text: str) -> str:
        """Return text with every registered secret replaced."""
        # Longest first so a secret containing another is fully masked
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if self._secrets:
            record.msg = self.redact(record.getMessage())
            record.args = None
        return True


_redactor = SecretRedactingFilter()


def register_secret(value: str) -> None:
    """Register a credential so it is masked in all log output."""
    _redactor.register(value)


def redact(text: str) -> str:
    """Mask every registered credential in text."""
    return _redactor.redact(text)


def default_log_file(log_dir: Path) -> Path:
    """Build a timestamped log file path inside log_dir."""
    return log_dir / f"ncctl-{datetime.now().strftime('%Y%m%d%H%M%S')}.log"


def _open_log_file(log_file: Path) -> Path:
    """Create the log file with mode 0640, falling back to the temp dir."""
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True, mode=0o750)
        log_file.touch(mode=0o640, exist_ok=True)
        return log_file
    except OSError:
        fallback = Path(tempfile.gettempdir()) / log_file.name
        fallback.touch(mode=0o640, exist_ok=True)
        return fallback


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    *,
    console_output: bool = True,
) -> Path | None:
    """Configure the ncctl logger hierarchy.

    Calling this again replaces previously attached handlers.

    Args:
        level: Minimum level for both console and file output.
        log_file: File to append to. None disables file logging.
        console_output: Attach the Rich stderr handler.

    Returns:
        The log file actually in use (may be a temp-dir fallback), or None.
    """
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.setLevel(level.upper())
    root.propagate = False

    if console_output:
        console_handler = RichHandler(
            console=err_console,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        console_handler.addFilter(_redactor)
        root.addHandler(console_handler)

    used_file: Path | None = None
    if log_file is not None:
        used_file = _open_log_file(log_file)
        file_handler = logging.FileHandler(used_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        file_handler.addFilter(_redactor)
        root.addHandler(file_handler)
        if used_file != log_file:
            logger.warning("Log directory not writable, logging to %s", used_file)
        try:
            os.chmod(used_file, 0o640)
        except OSError as e:
            logger.debug("Could not set log file mode on %s: %s", used_file, e)

    return used_file


def log_section(log: logging.Logger, title: str) -> None:
    """Log a section banner at INFO."""
    log.info("==== %s ====", title)


def log_success(log: logging.Logger, message: str, *args: object) -> None:
    """Log a completed step at INFO."""
    log.info("OK: " + message, *args)


def log_error(
    log: logging.Logger,
    message: str,
    *args: object,
    error_cls: type[NcctlError] = StepFailedError,
) -> NoReturn:
    """Log at ERROR and stop the calling step.

    Raises:
        NcctlError: Always; ``error_cls`` carries the formatted message.
    """
    text = message % args if args else message
    log.error(text)
    raise error_cls(text)
