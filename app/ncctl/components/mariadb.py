"""MariaDB component: server tuning plus the Nextcloud database and user."""

import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from ncctl.components.base import Component, ComponentContext, ManagedFile, ProbeResult
from ncctl.core.credentials import DB_PASSWORD
from ncctl.core.renderer import FileClass

logger = logging.getLogger(__name__)

SERVICE = "mariadb"
TUNING_FILE = "/etc/mysql/mariadb.conf.d/90-nextcloud.cnf"


def quote_identifier(name: str) -> str:
    """Quote a database or table name for MariaDB."""
    return "`" + name.replace("`", "``") + "`"


def quote_string(value: str) -> str:
    """Quote a string literal for MariaDB."""
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


def provisioning_sql(db_name: str, db_user: str, password: str) -> str:
    """Build the idempotent SQL that creates the database and its owner."""
    db = quote_identifier(db_name)
    user = f"{quote_string(db_user)}@'localhost'"
    secret = quote_string(password)
    return "\n".join(
        [
            f"CREATE DATABASE IF NOT EXISTS {db} CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci;",
            f"CREATE USER IF NOT EXISTS {user} IDENTIFIED BY {secret};",
            f"ALTER USER {user} IDENTIFIED BY {secret};",
            f"GRANT ALL PRIVILEGES ON {db}.* TO {user};",
            "FLUSH PRIVILEGES;",
            "",
        ]
    )


class MariadbComponent(Component):
    """MariaDB server with a dedicated Nextcloud database."""

    name = "mariadb"
    depends_on = ("system",)

    def packages(self, ctx: ComponentContext) -> list[str]:
        return ["mariadb-server", "mariadb-client"]

    def managed_files(self, ctx: ComponentContext) -> list[ManagedFile]:
        template = ctx.templates.get(
            "mariadb-nextcloud.cnf", ctx.path(TUNING_FILE), file_class=FileClass.PUBLIC
        )
        return [ManagedFile(template, {"DB_PORT": ctx.settings.db_port})]

    def _user_can_connect(self, ctx: ComponentContext) -> bool:
        s = ctx.settings
        try:
            password = ctx.credentials.get(DB_PASSWORD)
        except OSError as e:
            logger.debug("Cannot read credentials: %s", e)
            return False
        if not password:
            return False
        args = [
            "mariadb",
            f"--user={s.db_user}",
            f"--host={s.db_host}",
            f"--port={s.db_port}",
            "--execute",
            f"USE {quote_identifier(s.db_name)}",
        ]
        return ctx.runner.succeeds(args, env={"MYSQL_PWD": password})

    def probe(self, ctx: ComponentContext) -> ProbeResult:
        return ProbeResult(
            installed=self.packages_installed(ctx),
            configured=self.files_current(ctx) and self._user_can_connect(ctx),
            running=ctx.systemd.is_active(SERVICE),
        )

    def install(self, ctx: ComponentContext) -> None:
        self.install_packages(ctx)

    def configure(self, ctx: ComponentContext) -> None:
        rendered = self.write_files(ctx)
        if any(r.changed for r in rendered) or not ctx.systemd.is_active(SERVICE):
            ctx.systemd.restart(SERVICE)
        ctx.systemd.enable_now(SERVICE)

        s = ctx.settings
        password = ctx.credentials.get_or_create(DB_PASSWORD)
        self._execute_sql(ctx, provisioning_sql(s.db_name, s.db_user, password))
        logger.info("Database %s ready for user %s", s.db_name, s.db_user)

    def _execute_sql(self, ctx: ComponentContext, sql: str) -> None:
        """Feed SQL to the root client on stdin so secrets stay out of argv."""
        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="w", prefix="ncctl-", suffix=".sql", delete=False, encoding="utf-8"
            ) as f:
                tmp_path = Path(f.name)
                os.chmod(tmp_path, 0o600)
                f.write(sql)
            ctx.runner.check(["mariadb", "--user=root"], stdin_path=tmp_path)
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
