"""Redis component used by Nextcloud for file locking and caching."""

import logging

from ncctl.components.base import Component, ComponentContext, ManagedFile, ProbeResult
from ncctl.core.credentials import REDIS_PASSWORD
from ncctl.core.renderer import FileClass

logger = logging.getLogger(__name__)

SERVICE = "redis-server"
CONFIG_FILE = "/etc/redis/redis.conf"


class RedisComponent(Component):
    """Password-protected Redis reachable by the PHP-FPM pool."""

    name = "redis"
    depends_on = ("system", "php")

    def packages(self, ctx: ComponentContext) -> list[str]:
        return ["redis-server", f"php{ctx.settings.php_version}-redis"]

    def _password(self, ctx: ComponentContext, create: bool) -> str | None:
        if create:
            return ctx.credentials.get_or_create(REDIS_PASSWORD)
        try:
            return ctx.credentials.get(REDIS_PASSWORD)
        except OSError as e:
            logger.debug("Cannot read credentials: %s", e)
            return None

    def _files(self, ctx: ComponentContext, password: str | None) -> list[ManagedFile]:
        s = ctx.settings
        template = ctx.templates.get(
            "redis.conf",
            ctx.path(CONFIG_FILE),
            file_class=FileClass.SECRET,
            owner="redis",
            group="redis",
        )
        variables = {
            "REDIS_PORT": s.redis_port,
            "REDIS_PASSWORD": password,
            "REDIS_MAXMEMORY": s.redis_maxmemory,
        }
        return [ManagedFile(template, variables)]

    def managed_files(self, ctx: ComponentContext) -> list[ManagedFile]:
        return self._files(ctx, self._password(ctx, create=False))

    def _authenticated_ping(self, ctx: ComponentContext) -> bool:
        password = self._password(ctx, create=False)
        if not password:
            return False
        s = ctx.settings
        result = ctx.runner.run(
            ["redis-cli", "-h", s.redis_host, "-p", str(s.redis_port), "ping"],
            env={"REDISCLI_AUTH": password},
        )
        return result.success and result.stdout.strip() == "PONG"

    def probe(self, ctx: ComponentContext) -> ProbeResult:
        active = ctx.systemd.is_active(SERVICE)
        return ProbeResult(
            installed=self.packages_installed(ctx),
            configured=self.files_current(ctx),
            running=active and self._authenticated_ping(ctx),
        )

    def install(self, ctx: ComponentContext) -> None:
        self.install_packages(ctx)

    def configure(self, ctx: ComponentContext) -> None:
        s = ctx.settings
        password = self._password(ctx, create=True)
        for managed in self._files(ctx, password):
            ctx.renderer.render(managed.template, managed.variables)

        # Lets the FPM pool use the unix socket
        ctx.runner.check(["usermod", "-a", "-G", "redis", s.nextcloud_user])
        ctx.systemd.restart(SERVICE)
        ctx.systemd.enable_now(SERVICE)
        ctx.systemd.restart(s.php_fpm_service)
