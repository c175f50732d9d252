"""Shared types and helpers for CLI commands.

This module provides the choice enums used by several commands and the
lazy runtime bootstrap (settings + logging) every command goes through.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import typer

from ncctl.components.base import ComponentContext
from ncctl.core.config import Settings, load_settings
from ncctl.core.errors import ConfigError, InsufficientPrivilegeError
from ncctl.core.logger import default_log_file, setup_logging
from ncctl.utils.formatting import print_error

logger = logging.getLogger(__name__)

# Exit code for invalid arguments or configuration (nothing attempted)
EXIT_USAGE = 2


class ComponentChoice(str, Enum):
    """Components selectable on the command line."""

    ALL = "all"
    SYSTEM = "system"
    PHP = "php"
    APACHE = "apache"
    MARIADB = "mariadb"
    REDIS = "redis"
    NEXTCLOUD = "nextcloud"
    CERTBOT = "certbot"
    CRON = "cron"

    def names(self) -> list[str] | None:
        """Component names to process, None meaning every component."""
        return None if self is ComponentChoice.ALL else [self.value]


class BackupChoice(str, Enum):
    """Backup kinds selectable on the command line."""

    FULL = "full"
    DB = "db"
    FILES = "files"


@dataclass(frozen=True, slots=True)
class Runtime:
    """Settings and logging state shared by one CLI invocation."""

    settings: Settings
    config_path: Path | None
    log_file: Path | None

    def component_context(self) -> ComponentContext:
        return ComponentContext.create(self.settings)


def ensure_root() -> None:
    """Require root for commands that change the system.

    Raises:
        InsufficientPrivilegeError: If the effective user is not root.
    """
    if os.geteuid() != 0:
        raise InsufficientPrivilegeError("This command must be run as root (try sudo)")


def bootstrap(ctx: typer.Context) -> Runtime:
    """Load settings and configure logging from the global options.

    Exits with code 2 when the configuration is invalid.
    """
    options = ctx.obj or {}
    try:
        settings, config_path = load_settings(options.get("config"))
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_USAGE) from e

    level = settings.log_level
    if options.get("verbose"):
        level = "DEBUG"
    elif options.get("quiet"):
        level = "WARNING"

    log_file = options.get("log_file") or default_log_file(settings.log_dir)
    used = setup_logging(level, log_file)
    logger.debug("Settings loaded from %s", config_path or "defaults")
    return Runtime(settings=settings, config_path=config_path, log_file=used)
