"""Base operating system component: packages, kernel tuning, firewall."""

import logging

from ncctl.components.base import Component, ComponentContext, ManagedFile, ProbeResult
from ncctl.core.renderer import FileClass

logger = logging.getLogger(__name__)

BASE_PACKAGES = [
    "ca-certificates",
    "curl",
    "gnupg",
    "software-properties-common",
    "unzip",
    "bzip2",
    "rsync",
    "sudo",
    "cron",
    "fail2ban",
    "ufw",
]

FIREWALL_RULES = ["OpenSSH", "80/tcp", "443/tcp"]
SERVICES = ["cron", "fail2ban"]
SYSCTL_FILE = "/etc/sysctl.d/99-nextcloud.conf"


class SystemComponent(Component):
    """Base packages, sysctl tuning, ufw and the cron/fail2ban services."""

    name = "system"

    def packages(self, ctx: ComponentContext) -> list[str]:
        return list(BASE_PACKAGES)

    def managed_files(self, ctx: ComponentContext) -> list[ManagedFile]:
        template = ctx.templates.get(
            "sysctl-nextcloud.conf",
            ctx.path(SYSCTL_FILE),
            file_class=FileClass.PUBLIC,
        )
        return [ManagedFile(template, {"SWAPPINESS": ctx.settings.swappiness})]

    def _firewall_active(self, ctx: ComponentContext) -> bool:
        result = ctx.runner.run(["ufw", "status"])
        return result.success and "Status: active" in result.stdout

    def probe(self, ctx: ComponentContext) -> ProbeResult:
        return ProbeResult(
            installed=self.packages_installed(ctx),
            configured=self.files_current(ctx) and self._firewall_active(ctx),
            running=all(ctx.systemd.is_active(s) for s in SERVICES),
        )

    def install(self, ctx: ComponentContext) -> None:
        ctx.apt.update()
        self.install_packages(ctx)

    def configure(self, ctx: ComponentContext) -> None:
        self.write_files(ctx)
        ctx.runner.check(["sysctl", "--system"])

        for rule in FIREWALL_RULES:
            ctx.runner.check(["ufw", "allow", rule])
        ctx.runner.check(["ufw", "--force", "enable"])

        for service in SERVICES:
            ctx.systemd.enable_now(service)
