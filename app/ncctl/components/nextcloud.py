"""Nextcloud application component.

Install downloads the release tarball, verifies it against the published
SHA-256 and unpacks it into NEXTCLOUD_ROOT. Configure runs the first-time
``occ maintenance:install`` when needed and then sets every config.php
value through ``occ config:system:set``.
"""

import logging
import shutil
import tarfile
import tempfile
from pathlib import Path

from ncctl.components.base import Component, ComponentContext, ProbeResult
from ncctl.core.credentials import ADMIN_PASSWORD, DB_PASSWORD, REDIS_PASSWORD
from ncctl.core.errors import ChecksumMismatchError, DeterministicExecutionError
from ncctl.utils.files import sha256_file

logger = logging.getLogger(__name__)

APCU_CACHE = r"\OC\Memcache\APCu"
REDIS_CACHE = r"\OC\Memcache\Redis"


def parse_checksum_line(text: str) -> str:
    """Extract the digest from ``sha256sum`` output (``<hex>  <name>``).

    Raises:
        ChecksumMismatchError: If the text holds no digest.
    """
    fields = text.split()
    if not fields or len(fields[0]) != 64:
        raise ChecksumMismatchError("Checksum file does not contain a SHA-256 digest")
    return fields[0].lower()


class NextcloudComponent(Component):
    """The Nextcloud server itself."""

    name = "nextcloud"
    depends_on = ("apache", "php", "mariadb", "redis")

    def probe(self, ctx: ComponentContext) -> ProbeResult:
        root = ctx.settings.nextcloud_root
        installed = ctx.occ.is_present() and (root / "apps").is_dir()
        status = ctx.occ.status() if installed else None
        set_up = bool(status and status.get("installed"))

        configured = (
            set_up
            and ctx.occ.config_system_get("memcache.locking") == REDIS_CACHE
            and ctx.settings.domain in ctx.occ.trusted_domains()
        )
        return ProbeResult(
            installed=installed,
            configured=configured,
            running=set_up and not bool(status and status.get("maintenance")),
        )

    def install(self, ctx: ComponentContext) -> None:
        s = ctx.settings
        with tempfile.TemporaryDirectory(prefix="ncctl-nextcloud-") as tmp:
            workdir = Path(tmp)
            archive = workdir / "nextcloud.tar.bz2"
            checksum = workdir / "nextcloud.tar.bz2.sha256"

            logger.info("Downloading %s", s.nextcloud_download_url)
            self._download(ctx, s.nextcloud_download_url, archive)
            self._download(ctx, f"{s.nextcloud_download_url}.sha256", checksum)

            expected = parse_checksum_line(checksum.read_text(encoding="utf-8"))
            actual = sha256_file(archive)
            if actual != expected:
                raise ChecksumMismatchError(
                    f"Downloaded archive checksum {actual} does not match {expected}"
                )

            staging = workdir / "extract"
            with tarfile.open(archive, "r:bz2") as tar:
                tar.extractall(staging, filter="data")

            source = staging / "nextcloud"
            if not (source / "occ").is_file():
                raise DeterministicExecutionError("Release archive has no nextcloud/occ")

            self._place(source, s.nextcloud_root)

        s.nextcloud_data_dir.mkdir(parents=True, exist_ok=True)
        s.nextcloud_data_dir.chmod(0o750)
        for path in (s.nextcloud_root, s.nextcloud_data_dir):
            ctx.runner.check(["chown", "-R", f"{s.nextcloud_user}:{s.nextcloud_user}", str(path)])
        logger.info("Nextcloud unpacked into %s", s.nextcloud_root)

    def _download(self, ctx: ComponentContext, url: str, target: Path) -> None:
        ctx.runner.check(
            ["curl", "-fsSL", "--retry", "2", "-o", str(target), url],
            timeout=ctx.settings.install_timeout,
        )

    def _place(self, source: Path, root: Path) -> None:
        """Move the unpacked release into root, keeping an existing config/."""
        if root.exists():
            for entry in source.iterdir():
                target = root / entry.name
                if entry.name == "config" and target.exists():
                    continue
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                elif target.exists():
                    target.unlink()
                shutil.move(str(entry), str(target))
        else:
            root.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(root))

    def configure(self, ctx: ComponentContext) -> None:
        s = ctx.settings
        occ = ctx.occ
        db_password = ctx.credentials.get_or_create(DB_PASSWORD)
        redis_password = ctx.credentials.get_or_create(REDIS_PASSWORD)

        if not occ.is_installed():
            occ.maintenance_install(
                db_name=s.db_name,
                db_user=s.db_user,
                db_password=db_password,
                db_host=f"{s.db_host}:{s.db_port}",
                admin_user=s.admin_user,
                admin_password=ctx.credentials.get_or_create(ADMIN_PASSWORD),
                data_dir=s.nextcloud_data_dir,
            )

        occ.config_system_set("trusted_domains", 0, value="localhost")
        occ.config_system_set("trusted_domains", 1, value=s.domain)
        scheme = "https" if s.certificates_wanted else "http"
        occ.config_system_set("overwrite.cli.url", value=f"{scheme}://{s.domain}")
        occ.config_system_set("htaccess.RewriteBase", value="/")

        occ.config_system_set("memcache.local", value=APCU_CACHE)
        occ.config_system_set("memcache.distributed", value=REDIS_CACHE)
        occ.config_system_set("memcache.locking", value=REDIS_CACHE)
        occ.config_system_set("redis", "host", value=s.redis_host)
        occ.config_system_set("redis", "port", value=s.redis_port, value_type="integer")
        occ.config_system_set("redis", "password", value=redis_password)
        occ.config_system_set("redis", "timeout", value=s.redis_timeout, value_type="float")

        occ.update_htaccess()
        occ.add_missing_indices()
