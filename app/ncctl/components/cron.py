"""Background job component: a systemd timer running Nextcloud's cron.php."""

import logging

from ncctl.components.base import Component, ComponentContext, ManagedFile, ProbeResult
from ncctl.core.renderer import FileClass

logger = logging.getLogger(__name__)

UNIT_DIR = "/etc/systemd/system"
SERVICE_UNIT = "nextcloud-cron.service"
TIMER_UNIT = "nextcloud-cron.timer"


class CronComponent(Component):
    """systemd timer that runs Nextcloud background jobs every 5 minutes."""

    name = "cron"
    depends_on = ("nextcloud",)

    def packages(self, ctx: ComponentContext) -> list[str]:
        return ["cron"]

    def managed_files(self, ctx: ComponentContext) -> list[ManagedFile]:
        s = ctx.settings
        service = ctx.templates.get(
            SERVICE_UNIT, ctx.path(f"{UNIT_DIR}/{SERVICE_UNIT}"), file_class=FileClass.PUBLIC
        )
        timer = ctx.templates.get(
            TIMER_UNIT, ctx.path(f"{UNIT_DIR}/{TIMER_UNIT}"), file_class=FileClass.PUBLIC
        )
        service_vars = {
            "NEXTCLOUD_USER": s.nextcloud_user,
            "NEXTCLOUD_ROOT": s.nextcloud_root,
            "PHP_VERSION": s.php_version,
        }
        return [ManagedFile(service, service_vars), ManagedFile(timer, {})]

    def probe(self, ctx: ComponentContext) -> ProbeResult:
        return ProbeResult(
            installed=self.packages_installed(ctx),
            configured=self.files_current(ctx),
            running=ctx.systemd.is_active(TIMER_UNIT),
        )

    def install(self, ctx: ComponentContext) -> None:
        self.install_packages(ctx)

    def configure(self, ctx: ComponentContext) -> None:
        self.write_files(ctx)
        ctx.systemd.daemon_reload()
        ctx.systemd.enable_now(TIMER_UNIT)
        ctx.occ.background_cron()
