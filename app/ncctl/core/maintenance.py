"""Database optimization and Nextcloud repair.

Both operate on an installed instance. Every step is attempted even when
an earlier one fails; the result lists what succeeded and what did not.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ncctl.components.mariadb import quote_identifier
from ncctl.core.config import Settings
from ncctl.core.credentials import DB_PASSWORD, CredentialStore
from ncctl.core.errors import DeterministicExecutionError, ExecutionError
from ncctl.core.logger import log_section, log_success
from ncctl.core.runner import ProcessRunner
from ncctl.operators.occ import Occ

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MaintenanceResult:
    """Names of the tables or steps processed by a maintenance run."""

    done: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def optimize_errors(output: str) -> list[str]:
    """Extract error rows from batch-mode ``OPTIMIZE TABLE`` output.

    Each row is ``Table  Op  Msg_type  Msg_text`` separated by tabs.
    """
    errors: list[str] = []
    for line in output.splitlines():
        columns = line.split("\t")
        if len(columns) >= 4 and columns[2].strip().lower() == "error":
            errors.append(columns[3].strip())
    return errors


class MaintenanceWorkflow:
    """Runs database optimization and occ repair commands.

    Attributes:
        settings: Database connection settings.
        runner: Process runner for the MariaDB client.
        occ: Nextcloud CLI.
        credentials: Source of the database password.
    """

    def __init__(
        self,
        settings: Settings,
        runner: ProcessRunner,
        occ: Occ,
        credentials: CredentialStore,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.occ = occ
        self.credentials = credentials

    def _client(self, sql: str) -> list[str]:
        s = self.settings
        return [
            "mariadb",
            f"--user={s.db_user}",
            f"--host={s.db_host}",
            f"--port={s.db_port}",
            "--batch",
            "--skip-column-names",
            f"--execute={sql}",
            s.db_name,
        ]

    def tables(self, env: dict[str, str]) -> list[str]:
        """List the tables of the Nextcloud database."""
        result = self.runner.check(self._client("SHOW TABLES"), env=env)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def optimize_database(self) -> MaintenanceResult:
        """Run ``OPTIMIZE TABLE`` on every table of the Nextcloud database.

        Raises:
            DeterministicExecutionError: If no database password is stored.
            ExecutionError: If the table list cannot be read.
        """
        password = self.credentials.get(DB_PASSWORD)
        if not password:
            raise DeterministicExecutionError(
                f"No database password stored in {self.credentials.path}"
            )
        env = {"MYSQL_PWD": password}

        log_section(logger, f"Optimizing database {self.settings.db_name}")
        result = MaintenanceResult()
        for table in self.tables(env):
            logger.debug("Optimizing table %s", table)
            sql = f"OPTIMIZE TABLE {quote_identifier(table)}"
            outcome = self.runner.run(
                self._client(sql), env=env, timeout=self.settings.install_timeout, fatal=True
            )
            errors = optimize_errors(outcome.stdout)
            if outcome.success and not errors:
                result.done.append(table)
            else:
                logger.warning("Failed to optimize table %s: %s", table, "; ".join(errors))
                result.failed.append(table)

        log_success(logger, "Optimized %d table(s)", len(result.done))
        return result

    def repair(self) -> MaintenanceResult:
        """Run the occ repair, index, file-scan and preview steps.

        Maintenance mode is held for the run unless it was already on, in
        which case it is left on.

        Raises:
            DeterministicExecutionError: If Nextcloud is not installed.
        """
        self.occ.require_installed()
        steps: list[tuple[str, Callable[[], None]]] = [
            ("maintenance:repair", self.occ.repair),
            ("db:add-missing-indices", self.occ.add_missing_indices),
            ("files:scan", self.occ.files_scan_all),
            ("preview:repair", self.occ.preview_repair),
        ]

        log_section(logger, "Repairing Nextcloud")
        was_in_maintenance = self.occ.in_maintenance()
        if not was_in_maintenance:
            self.occ.maintenance_mode(True)

        result = MaintenanceResult()
        try:
            for name, step in steps:
                logger.info("Running occ %s", name)
                try:
                    step()
                except ExecutionError as e:
                    logger.error("occ %s failed: %s", name, e)
                    result.failed.append(name)
                else:
                    result.done.append(name)
        finally:
            if not was_in_maintenance:
                self.occ.maintenance_mode(False)

        if result.ok:
            log_success(logger, "Repair complete")
        return result
