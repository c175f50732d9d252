"""APT package operator.

Installs and upgrades packages with apt-get and answers "is this package
installed?" from dpkg's database.
"""

import logging

from ncctl.core.runner import ProcessRunner
from ncctl.utils.shell import CommandResult

logger = logging.getLogger(__name__)

# Keeps apt-get from prompting about config files or restarts
APT_ENV: dict[str, str] = {
    "DEBIAN_FRONTEND": "noninteractive",
    "NEEDRESTART_MODE": "a",
}


class AptOperator:
    """Operator for APT/dpkg packages.

    Every mutating call goes through :meth:`ProcessRunner.check`, so a
    failure raises a classified ExecutionError (lock contention and
    network errors come out as transient).

    Attributes:
        runner: Process runner used for every command.
        timeout: Timeout for install and upgrade transactions.
    """

    def __init__(self, runner: ProcessRunner, timeout: float = 900.0) -> None:
        self.runner = runner
        self.timeout = timeout

    def update(self) -> CommandResult:
        """Refresh the package index."""
        logger.info("Updating APT package index")
        return self.runner.check(["apt-get", "update"], timeout=self.timeout, env=APT_ENV)

    def install(self, packages: list[str]) -> CommandResult | None:
        """Install packages in a single apt-get transaction.

        Args:
            packages: Package names to install.

        Returns:
            CommandResult of apt-get, or None if the list was empty.
        """
        if not packages:
            return None
        logger.info("Installing packages: %s", ", ".join(packages))
        return self.runner.check(
            ["apt-get", "install", "-y", "--no-install-recommends", *packages],
            timeout=self.timeout,
            env=APT_ENV,
        )

    def upgrade(self) -> CommandResult:
        """Upgrade all installed packages, keeping existing config files."""
        logger.info("Upgrading system packages")
        return self.runner.check(
            [
                "apt-get",
                "upgrade",
                "-y",
                "-o",
                "Dpkg::Options::=--force-confdef",
                "-o",
                "Dpkg::Options::=--force-confold",
            ],
            timeout=self.timeout,
            env=APT_ENV,
        )

    def add_ppa(self, ppa: str) -> CommandResult:
        """Add a Launchpad PPA (e.g. ``ppa:ondrej/php``) and refresh the index."""
        logger.info("Adding repository %s", ppa)
        result = self.runner.check(
            ["add-apt-repository", "-y", ppa], timeout=self.timeout, env=APT_ENV
        )
        self.update()
        return result

    def is_installed(self, package: str) -> bool:
        """Check whether dpkg reports a package as fully installed."""
        result = self.runner.run(["dpkg-query", "-W", "-f=${Status}", package])
        return result.success and result.stdout.strip() == "install ok installed"

    def missing(self, packages: list[str]) -> list[str]:
        """Return the subset of packages that are not installed, in order."""
        return [p for p in packages if not self.is_installed(p)]

    def all_installed(self, packages: list[str]) -> bool:
        """Check that every package in the list is installed."""
        return not self.missing(packages)
