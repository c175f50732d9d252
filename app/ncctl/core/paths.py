"""Filesystem locations used by ncctl.

System-wide defaults live under /etc, /var/log and /var/backups because
ncctl manages a server as root. Each default can be overridden through
the configuration file (see :mod:`ncctl.core.config`).
"""

import os
from importlib import resources
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "ncctl"

DEFAULT_CONFIG_PATH = Path("/etc/ncctl/install-config.conf")
DEFAULT_SECRETS_PATH = Path("/etc/ncctl/secrets.env")
DEFAULT_LOG_DIR = Path("/var/log/ncctl")
DEFAULT_BACKUP_DIR = Path("/var/backups/nextcloud")

# Environment variable that points at an alternative config file
CONFIG_ENV_VAR = "NCCTL_CONFIG"


def get_user_config_dir() -> Path:
    """Get the per-user configuration directory.

    Returns:
        Path to ~/.config/ncctl/ (or XDG_CONFIG_HOME/ncctl/).
    """
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_config_candidates() -> list[Path]:
    """Get config file locations in lookup order.

    Returns:
        $NCCTL_CONFIG (if set), ./.env, then /etc/ncctl/install-config.conf.
    """
    candidates: list[Path] = []
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        candidates.append(Path(override))
    candidates.append(Path.cwd() / ".env")
    candidates.append(DEFAULT_CONFIG_PATH)
    return candidates


def get_templates_dir() -> Path:
    """Get the bundled configuration templates directory."""
    return Path(str(resources.files("ncctl.data").joinpath("templates")))
