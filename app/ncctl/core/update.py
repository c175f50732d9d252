"""Nextcloud update workflow.

Optionally upgrades system packages, then upgrades Nextcloud core and
apps inside a maintenance window. Maintenance mode is always switched
off again, even when a step fails.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ncctl.core.logger import log_section, log_success
from ncctl.operators.apt import AptOperator
from ncctl.operators.occ import Occ

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UpdateResult:
    """Steps an update run completed, in order."""

    steps: list[str] = field(default_factory=list)
    system_upgraded: bool = False


class UpdateWorkflow:
    """Runs the system and Nextcloud upgrade sequence.

    Attributes:
        apt: Package operator for the optional system upgrade.
        occ: Nextcloud CLI.
    """

    def __init__(self, apt: AptOperator, occ: Occ) -> None:
        self.apt = apt
        self.occ = occ

    def run(self, *, system: bool = False) -> UpdateResult:
        """Execute the update.

        Args:
            system: Also run ``apt-get update`` and ``apt-get upgrade`` first.

        Raises:
            ExecutionError: If any step fails; later steps are not run.
        """
        result = UpdateResult()

        if system:
            log_section(logger, "System packages")
            self.apt.update()
            self.apt.upgrade()
            result.system_upgraded = True
            result.steps.append("system-upgrade")

        self.occ.require_installed()

        log_section(logger, "Nextcloud")
        steps: list[tuple[str, Callable[[], None]]] = [
            ("upgrade", self.occ.upgrade),
            ("db:add-missing-indices", self.occ.add_missing_indices),
            ("db:convert-filecache-bigint", self.occ.convert_filecache_bigint),
            ("app:update", self.occ.app_update_all),
            ("maintenance:repair", self.occ.repair),
        ]
        with self.occ.maintenance():
            for name, step in steps:
                logger.info("Running occ %s", name)
                step()
                result.steps.append(name)

        log_success(logger, "Nextcloud update complete")
        return result
