"""Nextcloud ``occ`` operator.

Every subcommand runs as the Nextcloud system user from the Nextcloud
root, ``sudo -u <user> php <root>/occ <subcommand>``.
"""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ncctl.core.errors import DeterministicExecutionError
from ncctl.core.runner import ProcessRunner, classify_failure
from ncctl.utils.shell import CommandResult

logger = logging.getLogger(__name__)

# Older Nextcloud releases exit 3 when there is nothing to upgrade
_UPGRADE_UP_TO_DATE = 3


class Occ:
    """Runs Nextcloud's administration CLI.

    Attributes:
        runner: Process runner used for every invocation.
        root: Nextcloud installation directory.
        user: System user that owns the installation.
        php: PHP CLI binary.
        long_timeout: Timeout for upgrades, installs and migrations.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        root: Path,
        user: str = "www-data",
        php: str = "php",
        long_timeout: float = 900.0,
    ) -> None:
        self.runner = runner
        self.root = root
        self.user = user
        self.php = php
        self.long_timeout = long_timeout

    def _args(self, *args: str) -> list[str]:
        return ProcessRunner.as_user(self.user, [self.php, str(self.root / "occ"), *args])

    def is_present(self) -> bool:
        """Check whether the occ script exists."""
        return (self.root / "occ").is_file()

    def run(self, *args: str, timeout: float | None = None) -> CommandResult:
        """Run an occ subcommand and raise a classified error on failure."""
        return self.runner.check(self._args(*args), timeout=timeout, cwd=str(self.root))

    def query(self, *args: str) -> CommandResult:
        """Run a read-only occ subcommand without raising."""
        return self.runner.run(self._args(*args), cwd=str(self.root))

    def status(self) -> dict[str, Any] | None:
        """Return ``occ status`` as a dict, or None if occ cannot report it."""
        if not self.is_present():
            return None
        result = self.query("status", "--output=json", "--no-warnings")
        if not result.success:
            return None
        # occ may print warnings before the JSON document
        start = result.stdout.find("{")
        if start < 0:
            return None
        try:
            data = json.loads(result.stdout[start:])
        except json.JSONDecodeError:
            logger.debug("Unparseable occ status output: %s", result.stdout)
            return None
        return data if isinstance(data, dict) else None

    def is_installed(self) -> bool:
        status = self.status()
        return bool(status and status.get("installed"))

    def in_maintenance(self) -> bool:
        status = self.status()
        return bool(status and status.get("maintenance"))

    def maintenance_mode(self, enable: bool) -> None:
        """Switch maintenance mode on or off."""
        logger.info("Turning maintenance mode %s", "on" if enable else "off")
        self.run("maintenance:mode", "--on" if enable else "--off")

    @contextmanager
    def maintenance(self) -> Iterator[None]:
        """Hold maintenance mode for the duration of the block.

        Maintenance mode is switched off again however the block exits.
        """
        self.maintenance_mode(True)
        try:
            yield
        finally:
            self.maintenance_mode(False)

    def maintenance_install(
        self,
        *,
        db_name: str,
        db_user: str,
        db_password: str,
        db_host: str,
        admin_user: str,
        admin_password: str,
        data_dir: Path,
    ) -> None:
        """Run the first-time Nextcloud installation against MariaDB."""
        logger.info("Running Nextcloud maintenance:install")
        self.run(
            "maintenance:install",
            "--database=mysql",
            f"--database-name={db_name}",
            f"--database-host={db_host}",
            f"--database-user={db_user}",
            f"--database-pass={db_password}",
            f"--admin-user={admin_user}",
            f"--admin-pass={admin_password}",
            f"--data-dir={data_dir}",
            timeout=self.long_timeout,
        )

    def upgrade(self) -> None:
        """Run pending Nextcloud core migrations."""
        result = self.runner.run(
            self._args("upgrade", "--no-interaction"),
            timeout=self.long_timeout,
            cwd=str(self.root),
        )
        if result.returncode == _UPGRADE_UP_TO_DATE:
            logger.info("Nextcloud is already up to date")
            return
        if not result.success:
            args = self._args("upgrade", "--no-interaction")
            raise classify_failure(result)(
                f"occ upgrade exited with {result.returncode}", command=args, result=result
            )

    def add_missing_indices(self) -> None:
        self.run("db:add-missing-indices", timeout=self.long_timeout)

    def convert_filecache_bigint(self) -> None:
        self.run("db:convert-filecache-bigint", "--no-interaction", timeout=self.long_timeout)

    def app_update_all(self) -> None:
        self.run("app:update", "--all", timeout=self.long_timeout)

    def repair(self) -> None:
        self.run("maintenance:repair", timeout=self.long_timeout)

    def files_scan_all(self) -> None:
        """Rebuild the file cache for every user."""
        self.run("files:scan", "--all", timeout=self.long_timeout)

    def preview_repair(self) -> None:
        self.run("preview:repair", "--no-interaction", timeout=self.long_timeout)

    def update_htaccess(self) -> None:
        self.run("maintenance:update:htaccess")

    def data_fingerprint(self) -> None:
        """Tell sync clients that server data was restored."""
        self.run("maintenance:data-fingerprint")

    def background_cron(self) -> None:
        """Switch background jobs to system cron."""
        self.run("background:cron")

    def config_system_set(
        self,
        key: str,
        *index: str | int,
        value: str | int | float | bool,
        value_type: str | None = None,
    ) -> None:
        """Set a config.php value, e.g. ``trusted_domains 0 --value=cloud.example``.

        Args:
            key: Top-level config.php key.
            *index: Nested indices below the key.
            value: Value to store.
            value_type: occ value type (string, integer, boolean, ...).
        """
        if isinstance(value, bool):
            value = "true" if value else "false"
            value_type = value_type or "boolean"
        args = ["config:system:set", key, *(str(i) for i in index), f"--value={value}"]
        if value_type:
            args.append(f"--type={value_type}")
        self.run(*args)

    def config_system_get(self, key: str, *index: str | int) -> str | None:
        """Read a config.php value, or None if the key is not set."""
        result = self.query("config:system:get", key, *(str(i) for i in index))
        if not result.success:
            return None
        return result.stdout.strip()

    def trusted_domains(self) -> list[str]:
        """Return the configured trusted domains."""
        value = self.config_system_get("trusted_domains")
        return value.split() if value else []

    def require_installed(self) -> None:
        """Raise if Nextcloud is not installed and usable."""
        if not self.is_installed():
            raise DeterministicExecutionError(
                f"Nextcloud is not installed at {self.root}",
                command=self._args("status"),
            )
