"""systemd service operator."""

import logging

from ncctl.core.runner import ProcessRunner

logger = logging.getLogger(__name__)


class SystemdOperator:
    """Queries and controls systemd units through systemctl.

    Query methods are read-only and never raise; control methods raise a
    classified ExecutionError when systemctl fails.
    """

    def __init__(self, runner: ProcessRunner) -> None:
        self.runner = runner

    def is_active(self, unit: str) -> bool:
        """Check whether a unit is currently active."""
        return self.runner.succeeds(["systemctl", "is-active", "--quiet", unit])

    def enable_now(self, unit: str) -> None:
        """Enable a unit and start it immediately."""
        logger.info("Enabling %s", unit)
        self.runner.check(["systemctl", "enable", "--now", unit])

    def restart(self, unit: str) -> None:
        logger.info("Restarting %s", unit)
        self.runner.check(["systemctl", "restart", unit])

    def reload(self, unit: str) -> None:
        logger.info("Reloading %s", unit)
        self.runner.check(["systemctl", "reload", unit])

    def daemon_reload(self) -> None:
        """Make systemd re-read unit files."""
        self.runner.check(["systemctl", "daemon-reload"])
