"""Backup, restore and retention for a Nextcloud instance.

Archives are ``nextcloud-<kind>-<YYYYmmddTHHMMSSZ>.tar.gz`` files in
BACKUP_DIR, each with a ``.sha256`` sidecar in ``sha256sum`` format.
Restore is checksum-then-act: the sidecar is verified before anything on
the system is touched.
"""

from __future__ import annotations

import contextlib
import io
import logging
import os
import re
import shutil
import tarfile
import tempfile
import tomllib
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path, PurePosixPath
from typing import IO

import tomli_w
from pydantic import ValidationError

from ncctl import __version__
from ncctl.core.config import Settings
from ncctl.core.credentials import DB_PASSWORD, CredentialStore
from ncctl.core.errors import BackupError, ChecksumMismatchError
from ncctl.core.logger import log_error
from ncctl.core.runner import ProcessRunner
from ncctl.models.backup import (
    ArchiveInspection,
    BackupArchive,
    BackupKind,
    BackupManifest,
)
from ncctl.operators.occ import Occ
from ncctl.utils.files import sha256_file

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"
ARCHIVE_PATTERN = re.compile(r"^nextcloud-(full|db|files)-(\d{8}T\d{6}Z)\.tar\.gz$")
CHECKSUM_SUFFIX = ".sha256"
DB_DUMP_NAME = "nextcloud-db.sql"
MANIFEST_NAME = "backup-manifest.toml"

# mysqldump banner and the default Nextcloud table prefix
DUMP_HEADER = re.compile(r"^-- (?:MySQL|MariaDB) dump")
DUMP_HEADER_LINES = 10
NEXTCLOUD_TABLE = re.compile(r"^CREATE TABLE (?:IF NOT EXISTS )?`?oc_")

# Per-user subtrees of the data directory that are caches or recoverable
EXCLUDED_DATA_DIRS = frozenset({"cache", "files_trashbin", "files_versions", "uploads"})


def is_excluded_data_path(relative: PurePosixPath) -> bool:
    """Check whether a path below the data directory is left out of backups.

    Only ``<user>/<excluded dir>``, ``appdata_*/preview`` and top-level
    ``.trash-*`` entries match; folders of the same name inside a user's
    ``files`` are kept.

    Args:
        relative: Path relative to the data directory root.
    """
    parts = relative.parts
    if not parts:
        return False
    if parts[0].startswith(".trash-"):
        return True
    if len(parts) < 2:
        return False
    if parts[0].startswith("appdata_"):
        return parts[1] == "preview"
    return parts[1] in EXCLUDED_DATA_DIRS


def archive_name(kind: BackupKind, created: datetime) -> str:
    """Build the archive file name for a backup."""
    return f"nextcloud-{kind.value}-{created.strftime(TIMESTAMP_FORMAT)}.tar.gz"


def parse_archive_name(name: str) -> tuple[BackupKind, datetime] | None:
    """Parse kind and timestamp from an archive file name, or None."""
    match = ARCHIVE_PATTERN.match(name)
    if match is None:
        return None
    created = datetime.strptime(match.group(2), TIMESTAMP_FORMAT).replace(tzinfo=UTC)
    return BackupKind(match.group(1)), created


def checksum_path(archive: Path) -> Path:
    """Sidecar path holding an archive's checksum."""
    return archive.with_name(archive.name + CHECKSUM_SUFFIX)


def read_checksum(archive: Path) -> str | None:
    """Read the digest recorded in an archive's sidecar, or None if absent."""
    sidecar = checksum_path(archive)
    if not sidecar.is_file():
        return None
    fields = sidecar.read_text(encoding="utf-8").split()
    return fields[0].lower() if fields else None


def _scan_dump(stream: IO[bytes], warnings: list[str]) -> int:
    """Count Nextcloud tables in a SQL dump, noting anything odd in ``warnings``."""
    tables = 0
    text = io.TextIOWrapper(stream, encoding="utf-8", errors="replace")
    header_ok = False
    for number, line in enumerate(text):
        if number < DUMP_HEADER_LINES and DUMP_HEADER.match(line):
            header_ok = True
        if NEXTCLOUD_TABLE.match(line):
            tables += 1
    if not header_ok:
        warnings.append(f"{DB_DUMP_NAME} does not start with a mysqldump header")
    if tables == 0:
        warnings.append(f"{DB_DUMP_NAME} creates no Nextcloud (oc_) tables")
    return tables


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BackupManager:
    """Creates, lists, prunes, verifies and restores backup archives.

    Attributes:
        settings: Run configuration (paths, database, remote).
        runner: Process runner for mysqldump, mariadb, chown and rclone.
        occ: Nextcloud CLI for maintenance mode.
        credentials: Source of the database password.
    """

    def __init__(
        self,
        settings: Settings,
        runner: ProcessRunner,
        occ: Occ,
        credentials: CredentialStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.occ = occ
        self.credentials = credentials
        self._clock = clock

    @property
    def backup_dir(self) -> Path:
        return self.settings.backup_dir

    def _db_env(self) -> dict[str, str]:
        password = self.credentials.get(DB_PASSWORD)
        if not password:
            raise BackupError(f"No database password stored in {self.credentials.path}")
        return {"MYSQL_PWD": password}

    def _db_args(self, client: str) -> list[str]:
        s = self.settings
        return [client, f"--user={s.db_user}", f"--host={s.db_host}", f"--port={s.db_port}"]

    @contextlib.contextmanager
    def _maintenance(self) -> Iterator[None]:
        if self.occ.is_installed():
            with self.occ.maintenance():
                yield
        else:
            logger.warning("Nextcloud is not installed; continuing without maintenance mode")
            yield
            # A restored config.php may carry the maintenance flag of its source
            if self.occ.in_maintenance():
                self.occ.maintenance_mode(False)

    # -- create -----------------------------------------------------------

    def create(self, kind: BackupKind) -> BackupArchive:
        """Create a backup archive and its checksum sidecar.

        Nextcloud is in maintenance mode while the archive is written.

        Raises:
            BackupError: If an input is missing or the archive cannot be written.
            ExecutionError: If mysqldump or rclone fails.
        """
        s = self.settings
        created = self._clock().replace(microsecond=0)
        self.backup_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        target = self.backup_dir / archive_name(kind, created)
        logger.info("Creating %s backup %s", kind.value, target)

        manifest = BackupManifest(
            created=created,
            kind=kind.value,
            includes=kind.parts,
            ncctl_version=__version__,
            nextcloud_version=self._nextcloud_version(),
            domain=s.domain,
            db_name=s.db_name if kind.includes_database else None,
        )

        with tempfile.TemporaryDirectory(dir=self.backup_dir, prefix=".backup-") as tmp:
            staging = Path(tmp)
            partial = staging / target.name
            try:
                with self._maintenance(), tarfile.open(partial, "w:gz") as tar:
                    if kind.includes_files:
                        self._add_files(tar)
                    if kind.includes_database:
                        dump = staging / DB_DUMP_NAME
                        self._dump_database(dump)
                        tar.add(dump, arcname=DB_DUMP_NAME)
                    manifest_file = staging / MANIFEST_NAME
                    manifest_file.write_bytes(
                        tomli_w.dumps(manifest.model_dump(mode="json", exclude_none=True)).encode()
                    )
                    tar.add(manifest_file, arcname=MANIFEST_NAME)
                os.chmod(partial, 0o600)
                os.replace(partial, target)
            except (OSError, tarfile.TarError) as e:
                raise BackupError(f"Cannot write {target.name}: {e}") from e

        digest = sha256_file(target)
        sidecar = checksum_path(target)
        sidecar.write_text(f"{digest}  {target.name}\n", encoding="utf-8")
        os.chmod(sidecar, 0o600)
        logger.info("Backup written: %s (sha256 %s)", target, digest)

        remote = self._upload(target, sidecar)
        return BackupArchive(
            path=target,
            kind=kind,
            created=created,
            checksum=digest,
            size=target.stat().st_size,
            remote_location=remote,
        )

    def _nextcloud_version(self) -> str | None:
        status = self.occ.status()
        return status.get("versionstring") if status else None

    def _add_files(self, tar: tarfile.TarFile) -> None:
        s = self.settings
        sources = {
            "config": s.nextcloud_root / "config",
            "data": s.nextcloud_data_dir,
            "apps": s.nextcloud_root / "apps",
        }
        for arcname, source in sources.items():
            if not source.is_dir():
                raise BackupError(f"Cannot back up {arcname}: {source} is not a directory")
            logger.info("Adding %s from %s", arcname, source)
            if arcname == "data":
                tar.add(source, arcname=arcname, filter=self._data_filter)
            else:
                tar.add(source, arcname=arcname)

    @staticmethod
    def _data_filter(info: tarfile.TarInfo) -> tarfile.TarInfo | None:
        relative = PurePosixPath(info.name).relative_to("data")
        if is_excluded_data_path(relative):
            logger.debug("Excluding %s", info.name)
            return None
        return info

    def _dump_database(self, target: Path) -> None:
        s = self.settings
        logger.info("Dumping database %s", s.db_name)
        args = [
            *self._db_args("mysqldump"),
            "--single-transaction",
            "--quick",
            "--lock-tables=false",
            f"--result-file={target}",
            s.db_name,
        ]
        self.runner.check(args, env=self._db_env(), timeout=s.install_timeout)

    def _upload(self, archive: Path, sidecar: Path) -> str | None:
        remote = self.settings.backup_remote
        if not remote:
            return None
        logger.info("Copying backup to %s", remote)
        for path in (archive, sidecar):
            self.runner.check(
                ["rclone", "copy", str(path), remote], timeout=self.settings.install_timeout
            )
        return f"{remote.rstrip('/')}/{archive.name}"

    # -- list / prune -----------------------------------------------------

    def list(self) -> list[BackupArchive]:
        """List archives in BACKUP_DIR, newest first."""
        if not self.backup_dir.is_dir():
            return []
        archives: list[BackupArchive] = []
        for path in self.backup_dir.glob("nextcloud-*.tar.gz"):
            parsed = parse_archive_name(path.name)
            if parsed is None or not path.is_file():
                continue
            kind, created = parsed
            archives.append(
                BackupArchive(
                    path=path,
                    kind=kind,
                    created=created,
                    checksum=read_checksum(path),
                    size=path.stat().st_size,
                )
            )
        archives.sort(key=lambda a: a.created, reverse=True)
        return archives

    def prune(self, retain_days: int | None = None) -> list[Path]:
        """Delete archives (and sidecars) older than the retention window.

        Args:
            retain_days: Days to keep; defaults to RETAIN_DAYS.

        Returns:
            Archive paths that were deleted.
        """
        days = self.settings.retain_days if retain_days is None else retain_days
        cutoff = self._clock() - timedelta(days=days)
        removed: list[Path] = []
        for archive in self.list():
            if archive.created >= cutoff:
                continue
            archive.path.unlink()
            checksum_path(archive.path).unlink(missing_ok=True)
            logger.info("Pruned %s", archive.path.name)
            removed.append(archive.path)
        return removed

    # -- verify / restore -------------------------------------------------

    def verify(self, archive: Path) -> str:
        """Check an archive against its sidecar checksum.

        Returns:
            The verified hex digest.

        Raises:
            ChecksumMismatchError: If the sidecar is missing or does not match.
        """
        if not archive.is_file():
            raise BackupError(f"Backup archive not found: {archive}")
        try:
            expected = read_checksum(archive)
            if expected is None:
                raise ChecksumMismatchError(f"No checksum file for {archive.name}")
            actual = sha256_file(archive)
        except OSError as e:
            raise BackupError(f"Cannot read {archive}: {e}") from e
        if actual != expected:
            raise ChecksumMismatchError(
                f"{archive.name}: checksum {actual} does not match recorded {expected}"
            )
        logger.info("Checksum verified for %s", archive.name)
        return actual

    def read_manifest(self, archive: Path) -> BackupManifest:
        """Read the manifest stored inside an archive.

        Raises:
            BackupError: If the manifest is missing or invalid.
        """
        try:
            with tarfile.open(archive, "r:gz") as tar:
                member = tar.extractfile(MANIFEST_NAME)
                if member is None:
                    raise BackupError(f"{archive.name} has no {MANIFEST_NAME}")
                data = tomllib.loads(member.read().decode("utf-8"))
        except KeyError as e:
            raise BackupError(f"{archive.name} has no {MANIFEST_NAME}") from e
        except (tarfile.TarError, tomllib.TOMLDecodeError, OSError) as e:
            raise BackupError(f"Cannot read manifest from {archive.name}: {e}") from e

        try:
            return BackupManifest.model_validate(data)
        except ValidationError as e:
            raise BackupError(f"Invalid manifest in {archive.name}: {e}") from e

    def inspect(self, archive: Path) -> ArchiveInspection:
        """Check an archive thoroughly without restoring anything.

        Verifies the checksum and manifest, then looks for every part the
        manifest lists. A database dump is scanned for the mysqldump
        banner and for Nextcloud tables; problems there are warnings.

        Raises:
            ChecksumMismatchError: If the archive fails verification.
            BackupError: If the archive or its manifest cannot be read.
        """
        digest = self.verify(archive)
        manifest = self.read_manifest(archive)
        inspection = ArchiveInspection(path=archive, checksum=digest, manifest=manifest)

        try:
            with tarfile.open(archive, "r:gz") as tar:
                names = set(tar.getnames())
                top_level = {PurePosixPath(n).parts[0] for n in names if PurePosixPath(n).parts}
                for part in manifest.includes:
                    member = DB_DUMP_NAME if part == "database" else part
                    if member not in top_level:
                        logger.error("%s is missing %s", archive.name, member)
                        inspection.missing.append(part)

                if "config" in top_level and "config/config.php" not in names:
                    inspection.warnings.append("config/config.php not found in archive")

                if "database" in manifest.includes and DB_DUMP_NAME in names:
                    dump = tar.extractfile(DB_DUMP_NAME)
                    if dump is None:
                        inspection.missing.append("database")
                    else:
                        inspection.tables = _scan_dump(dump, inspection.warnings)
        except (tarfile.TarError, OSError) as e:
            raise BackupError(f"Cannot read {archive.name}: {e}") from e

        for warning in inspection.warnings:
            logger.warning("%s: %s", archive.name, warning)
        return inspection

    def restore(self, archive: Path) -> BackupManifest:
        """Restore an archive over the current installation.

        The checksum is verified first; on mismatch nothing is modified.
        Existing directories are kept as ``<dir>.pre-restore-<timestamp>``.

        Raises:
            ChecksumMismatchError: If the archive fails verification.
            BackupError: If the archive is unusable.
            ExecutionError: If the database import or chown fails.
        """
        self.verify(archive)
        manifest = self.read_manifest(archive)
        s = self.settings
        stamp = self._clock().strftime(TIMESTAMP_FORMAT)

        self.backup_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        with tempfile.TemporaryDirectory(dir=self.backup_dir, prefix=".restore-") as tmp:
            staging = Path(tmp)
            logger.info("Extracting %s", archive.name)
            try:
                with tarfile.open(archive, "r:gz") as tar:
                    tar.extractall(staging, filter="data")
            except (tarfile.TarError, OSError) as e:
                raise BackupError(f"Cannot extract {archive.name}: {e}") from e

            targets = {
                "config": s.nextcloud_root / "config",
                "data": s.nextcloud_data_dir,
                "apps": s.nextcloud_root / "apps",
            }
            with self._maintenance():
                for part, target in targets.items():
                    if part in manifest.includes:
                        self._swap_in(staging / part, target, stamp)

                if "database" in manifest.includes:
                    self._import_database(staging / DB_DUMP_NAME)

                if "data" in manifest.includes or "config" in manifest.includes:
                    owner = f"{s.nextcloud_user}:{s.nextcloud_user}"
                    for path in (s.nextcloud_root, s.nextcloud_data_dir):
                        self.runner.check(["chown", "-R", owner, str(path)])

                if self.occ.is_present():
                    self.occ.data_fingerprint()

        logger.info("Restore of %s complete", archive.name)
        return manifest

    def _swap_in(self, source: Path, target: Path, stamp: str) -> None:
        if not source.is_dir():
            log_error(logger, "Archive is missing %s/", source.name, error_cls=BackupError)
        if target.exists():
            aside = target.with_name(f"{target.name}.pre-restore-{stamp}")
            logger.info("Moving %s aside to %s", target, aside)
            target.rename(aside)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(target))
        logger.info("Restored %s", target)

    def _import_database(self, dump: Path) -> None:
        if not dump.is_file():
            log_error(logger, "Archive is missing %s", DB_DUMP_NAME, error_cls=BackupError)
        s = self.settings
        logger.info("Importing database dump into %s", s.db_name)
        self.runner.check(
            [*self._db_args("mariadb"), s.db_name],
            env=self._db_env(),
            stdin_path=dump,
            timeout=s.install_timeout,
        )
