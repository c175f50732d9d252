"""PHP-FPM component with the extensions Nextcloud needs."""

import logging
from pathlib import Path

from ncctl.components.base import Component, ComponentContext, ManagedFile, ProbeResult
from ncctl.core.renderer import FileClass

logger = logging.getLogger(__name__)

PPA = "ppa:ondrej/php"
APT_SOURCES_DIR = "/etc/apt/sources.list.d"

# php<version>-<ext> packages
EXTENSIONS = [
    "fpm",
    "cli",
    "common",
    "mysql",
    "gd",
    "curl",
    "mbstring",
    "intl",
    "xml",
    "zip",
    "bcmath",
    "gmp",
    "bz2",
    "apcu",
    "imagick",
]

INI_NAME = "90-nextcloud.ini"


class PhpComponent(Component):
    """PHP-FPM with a dedicated Nextcloud pool and ini overrides."""

    name = "php"
    depends_on = ("system",)

    def packages(self, ctx: ComponentContext) -> list[str]:
        version = ctx.settings.php_version
        return [f"php{version}-{ext}" for ext in EXTENSIONS]

    def managed_files(self, ctx: ComponentContext) -> list[ManagedFile]:
        s = ctx.settings
        base = Path(f"/etc/php/{s.php_version}")
        limits = {
            "PHP_MEMORY_LIMIT": s.php_memory_limit,
            "PHP_UPLOAD_MAX": s.php_upload_max,
            "PHP_POST_MAX_SIZE": s.php_post_max_size,
            "PHP_MAX_EXECUTION_TIME": s.php_max_execution_time,
        }
        pool = ctx.templates.get("php-fpm-pool.conf", ctx.path(base / "fpm/pool.d/nextcloud.conf"))
        pool_vars = {
            **limits,
            "NEXTCLOUD_USER": s.nextcloud_user,
            "PHP_FPM_SOCKET": s.php_fpm_socket,
        }
        return [
            ManagedFile(pool, pool_vars),
            ManagedFile(
                ctx.templates.get(
                    "php-overrides.ini",
                    ctx.path(base / "fpm/conf.d" / INI_NAME),
                    file_class=FileClass.PUBLIC,
                ),
                limits,
            ),
            ManagedFile(
                ctx.templates.get(
                    "php-overrides.ini",
                    ctx.path(base / "cli/conf.d" / INI_NAME),
                    file_class=FileClass.PUBLIC,
                ),
                limits,
            ),
        ]

    def _ppa_present(self, ctx: ComponentContext) -> bool:
        sources = ctx.path(APT_SOURCES_DIR)
        return sources.is_dir() and any(sources.glob("ondrej-*php*"))

    def probe(self, ctx: ComponentContext) -> ProbeResult:
        socket = ctx.path(ctx.settings.php_fpm_socket)
        return ProbeResult(
            installed=self.packages_installed(ctx),
            configured=self.files_current(ctx),
            running=ctx.systemd.is_active(ctx.settings.php_fpm_service) and socket.exists(),
        )

    def install(self, ctx: ComponentContext) -> None:
        if not self._ppa_present(ctx):
            ctx.apt.add_ppa(PPA)
        self.install_packages(ctx)

    def configure(self, ctx: ComponentContext) -> None:
        self.write_files(ctx)
        ctx.runner.check([f"php-fpm{ctx.settings.php_version}", "-t"])
        ctx.systemd.restart(ctx.settings.php_fpm_service)
