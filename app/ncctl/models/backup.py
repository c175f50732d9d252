"""Backup models.

This module defines the backup kinds, the manifest stored inside every
archive and the archive record the backup workflow hands back.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class BackupKind(Enum):
    """What a backup captures.

    Attributes:
        FULL: config, data, apps and a database dump.
        DB: Database dump only.
        FILES: config, data and apps without the database.
    """

    FULL = "full"
    DB = "db"
    FILES = "files"

    @property
    def includes_files(self) -> bool:
        """Check if the backup captures the config, data and apps directories."""
        return self in (BackupKind.FULL, BackupKind.FILES)

    @property
    def includes_database(self) -> bool:
        """Check if the backup captures a database dump."""
        return self in (BackupKind.FULL, BackupKind.DB)

    @property
    def parts(self) -> list[str]:
        """Names of the parts the backup contains."""
        parts = ["config", "data", "apps"] if self.includes_files else []
        if self.includes_database:
            parts.append("database")
        return parts


BackupPart = Literal["config", "data", "apps", "database"]


class BackupManifest(BaseModel):
    """Metadata stored as ``backup-manifest.toml`` inside an archive.

    Attributes:
        version: Manifest schema version.
        created: UTC timestamp of the backup.
        kind: Backup kind value.
        includes: Parts contained in the archive.
        ncctl_version: Version of the tool that wrote the archive.
        nextcloud_version: Nextcloud version string, when known.
        domain: Domain of the backed-up instance.
        db_name: Database the dump was taken from.
    """

    model_config = ConfigDict(extra="ignore")

    version: Annotated[str, Field(description="Manifest schema version")] = "1"
    created: Annotated[datetime, Field(description="UTC timestamp of the backup")]
    kind: Annotated[Literal["full", "db", "files"], Field(description="Backup kind")]
    includes: Annotated[list[BackupPart], Field(description="Parts in the archive")]
    ncctl_version: str
    nextcloud_version: str | None = None
    domain: str | None = None
    db_name: str | None = None


@dataclass(frozen=True, slots=True)
class BackupArchive:
    """A backup archive on disk.

    Attributes:
        path: Archive file.
        kind: What the archive captures.
        created: Creation timestamp (UTC) parsed from the file name.
        checksum: SHA-256 hex digest from the sidecar, None if it is missing.
        size: Archive size in bytes.
        remote_location: Remote copy target, when one was made.
    """

    path: Path
    kind: BackupKind
    created: datetime
    checksum: str | None
    size: int
    remote_location: str | None = None


@dataclass(slots=True)
class ArchiveInspection:
    """Findings of a verify run over one archive.

    Attributes:
        path: Archive file.
        checksum: Verified SHA-256 hex digest.
        manifest: Manifest read from the archive.
        missing: Parts listed in the manifest but absent from the archive.
        warnings: Suspicious but non-fatal findings.
        tables: Nextcloud tables created by the database dump, if one was checked.
    """

    path: Path
    checksum: str
    manifest: BackupManifest
    missing: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    tables: int | None = None

    @property
    def ok(self) -> bool:
        """Check if every part the manifest lists is present."""
        return not self.missing
