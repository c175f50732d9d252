"""Apache HTTP server component proxying PHP to the FPM pool."""

import logging

from ncctl.components.base import Component, ComponentContext, ManagedFile, ProbeResult
from ncctl.core.renderer import FileClass

logger = logging.getLogger(__name__)

SERVICE = "apache2"
SITE_NAME = "nextcloud"
VHOST_FILE = f"/etc/apache2/sites-available/{SITE_NAME}.conf"
ENABLED_LINK = f"/etc/apache2/sites-enabled/{SITE_NAME}.conf"

MODULES = ["rewrite", "headers", "env", "dir", "mime", "setenvif", "ssl", "proxy_fcgi", "http2"]


class ApacheComponent(Component):
    """Apache with the Nextcloud virtual host."""

    name = "apache"
    depends_on = ("system", "php")

    def packages(self, ctx: ComponentContext) -> list[str]:
        return ["apache2"]

    def managed_files(self, ctx: ComponentContext) -> list[ManagedFile]:
        s = ctx.settings
        template = ctx.templates.get(
            "apache-vhost.conf", ctx.path(VHOST_FILE), file_class=FileClass.PUBLIC
        )
        return [
            ManagedFile(
                template,
                {
                    "DOMAIN": s.domain,
                    "NEXTCLOUD_ROOT": s.nextcloud_root,
                    "PHP_FPM_SOCKET": s.php_fpm_socket,
                },
            )
        ]

    def _modules_loaded(self, ctx: ComponentContext) -> bool:
        result = ctx.runner.run(["apache2ctl", "-M"])
        if not result.success:
            return False
        return all(f"{module}_module" in result.stdout for module in MODULES)

    def probe(self, ctx: ComponentContext) -> ProbeResult:
        configured = (
            self.files_current(ctx)
            and ctx.path(ENABLED_LINK).exists()
            and self._modules_loaded(ctx)
        )
        return ProbeResult(
            installed=self.packages_installed(ctx),
            configured=configured,
            running=ctx.systemd.is_active(SERVICE),
        )

    def install(self, ctx: ComponentContext) -> None:
        self.install_packages(ctx)

    def configure(self, ctx: ComponentContext) -> None:
        ctx.runner.check(["a2enmod", "-q", *MODULES])
        ctx.runner.check(["a2enconf", "-q", ctx.settings.php_fpm_service])
        self.write_files(ctx)
        ctx.runner.check(["a2ensite", "-q", SITE_NAME])
        ctx.runner.run(["a2dissite", "-q", "000-default"])
        ctx.runner.check(["apache2ctl", "configtest"])

        if ctx.systemd.is_active(SERVICE):
            ctx.systemd.reload(SERVICE)
        else:
            ctx.systemd.enable_now(SERVICE)
