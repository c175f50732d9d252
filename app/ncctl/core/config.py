"""Installation settings.

Settings are read once at startup from a key=value file (``.env`` or
``install-config.conf``) plus matching environment variables, validated
with Pydantic, and then passed by reference into every workflow. The
model is frozen: nothing mutates configuration during a run.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Literal

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ncctl.core.errors import ConfigError
from ncctl.core.paths import (
    DEFAULT_BACKUP_DIR,
    DEFAULT_LOG_DIR,
    DEFAULT_SECRETS_PATH,
    get_config_candidates,
)

logger = logging.getLogger(__name__)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

DEFAULT_DOWNLOAD_URL = "https://download.nextcloud.com/server/releases/latest.tar.bz2"


class Settings(BaseModel):
    """Immutable configuration for one ncctl run.

    Field names are the lower-case form of the recognized file keys,
    e.g. ``DB_NAME`` populates :attr:`db_name`.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Nextcloud
    domain: str = "localhost"
    nextcloud_root: Path = Path("/var/www/nextcloud")
    nextcloud_data_dir: Path = Path("/var/nextcloud/data")
    nextcloud_user: str = "www-data"
    nextcloud_download_url: str = DEFAULT_DOWNLOAD_URL
    admin_user: str = "admin"

    # Database
    db_host: str = "localhost"
    db_port: Annotated[int, Field(ge=1, le=65535)] = 3306
    db_name: str = "nextcloud"
    db_user: str = "nextcloud"

    # PHP
    php_version: Annotated[str, Field(pattern=r"^\d+\.\d+$")] = "8.3"
    php_memory_limit: str = "512M"
    php_upload_max: str = "10G"
    php_post_max_size: str = "10G"
    php_max_execution_time: Annotated[int, Field(ge=30)] = 3600

    # Redis
    redis_host: str = "localhost"
    redis_port: Annotated[int, Field(ge=1, le=65535)] = 6379
    redis_timeout: Annotated[float, Field(gt=0)] = 1.5
    redis_maxmemory: str = "512mb"

    # TLS
    ssl_enabled: bool = True
    ssl_email: str = ""

    # System
    swappiness: Annotated[int, Field(ge=0, le=100)] = 10

    # Backups
    backup_dir: Path = DEFAULT_BACKUP_DIR
    backup_remote: str | None = None
    retain_days: Annotated[int, Field(ge=0)] = 7

    # ncctl itself
    log_level: LogLevel = "INFO"
    log_dir: Path = DEFAULT_LOG_DIR
    secrets_file: Path = DEFAULT_SECRETS_PATH
    command_timeout: Annotated[float, Field(gt=0)] = 120.0
    install_timeout: Annotated[float, Field(gt=0)] = 900.0
    retry_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    retry_delay: Annotated[float, Field(ge=0)] = 5.0

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept log levels in any case."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("backup_remote", mode="before")
    @classmethod
    def empty_remote_is_none(cls, v: object) -> object:
        """Treat an empty BACKUP_REMOTE as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def php_fpm_service(self) -> str:
        """systemd unit name of the PHP-FPM service."""
        return f"php{self.php_version}-fpm"

    @property
    def php_fpm_socket(self) -> Path:
        """Unix socket the Nextcloud FPM pool listens on."""
        return Path(f"/run/php/php{self.php_version}-fpm-nextcloud.sock")

    @property
    def occ_path(self) -> Path:
        """Path to Nextcloud's occ script."""
        return self.nextcloud_root / "occ"

    @property
    def certificates_wanted(self) -> bool:
        """Whether a Let's Encrypt certificate should be requested."""
        return self.ssl_enabled and self.domain not in ("localhost", "127.0.0.1")


def _field_keys() -> set[str]:
    return {name.upper() for name in Settings.model_fields}


def _collect(values: Mapping[str, str | None], source: str) -> dict[str, str]:
    known = _field_keys()
    data: dict[str, str] = {}
    for key, value in values.items():
        if value is None:
            continue
        if key.upper() in known:
            data[key.lower()] = value
        else:
            logger.debug("Ignoring unknown key %s from %s", key, source)
    return data


def find_config_file() -> Path | None:
    """Return the first existing config file among the default candidates."""
    for candidate in get_config_candidates():
        if candidate.is_file():
            return candidate
    return None


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[Settings, Path | None]:
    """Load settings from a config file and the environment.

    Args:
        path: Explicit config file. If None, the default candidates are
            searched and a missing file simply means "use defaults".
        environ: Environment mapping to read overrides from. Defaults to
            ``os.environ``; only recognized keys are used.

    Returns:
        Tuple of the validated Settings and the config file that was read
        (None if defaults were used).

    Raises:
        ConfigError: If an explicit file is missing or any value is invalid.
    """
    if path is not None and not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    config_path = path or find_config_file()
    data: dict[str, str] = {}

    if config_path is not None:
        try:
            data.update(_collect(dotenv_values(config_path), str(config_path)))
        except OSError as e:
            raise ConfigError(f"Failed to read config file {config_path}: {e}") from e

    env = os.environ if environ is None else environ
    known = _field_keys()
    data.update({key.lower(): value for key, value in env.items() if key in known})

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    return settings, config_path
