"""Backup, restore, backups and prune command implementations."""

from pathlib import Path
from typing import Annotated

import typer

from ncctl.cli.display import create_backups_table
from ncctl.cli.types import BackupChoice, Runtime, bootstrap, ensure_root
from ncctl.core.backup import BackupManager
from ncctl.core.errors import ChecksumMismatchError, NcctlError
from ncctl.models.backup import BackupKind
from ncctl.utils.formatting import (
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)


def _manager(runtime: Runtime) -> BackupManager:
    component_ctx = runtime.component_context()
    return BackupManager(
        runtime.settings,
        component_ctx.runner,
        component_ctx.occ,
        component_ctx.credentials,
    )


def _fail(runtime: Runtime, message: str) -> typer.Exit:
    print_error(message)
    if runtime.log_file is not None:
        print_info(f"Log file: {runtime.log_file}")
    return typer.Exit(code=1)


def backup(
    ctx: typer.Context,
    kind: Annotated[
        BackupChoice,
        typer.Argument(help="What to back up: full, db or files.", case_sensitive=False),
    ] = BackupChoice.FULL,
) -> None:
    """Create a checksummed backup archive in BACKUP_DIR.

    Examples:
        ncctl backup             # config, data, apps and database
        ncctl backup db          # database dump only
    """
    runtime = bootstrap(ctx)
    try:
        ensure_root()
        archive = _manager(runtime).create(BackupKind(kind.value))
    except NcctlError as e:
        raise _fail(runtime, f"Backup failed: {e}") from e

    print_success(f"Backup created: {archive.path}")
    print_info(f"SHA-256: {archive.checksum}")
    if archive.remote_location:
        print_info(f"Copied to {archive.remote_location}")


def restore(
    ctx: typer.Context,
    archive: Annotated[
        Path,
        typer.Argument(help="Backup archive to restore.", exists=True, dir_okay=False),
    ],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt and proceed."),
    ] = False,
) -> None:
    """Restore a backup archive after verifying its checksum.

    Current config, data and apps directories are moved aside as
    <dir>.pre-restore-<timestamp> rather than deleted.
    """
    runtime = bootstrap(ctx)
    try:
        ensure_root()
        manager = _manager(runtime)
        manager.verify(archive)
        manifest = manager.read_manifest(archive)
    except ChecksumMismatchError as e:
        raise _fail(runtime, f"Refusing to restore: {e}") from e
    except NcctlError as e:
        raise _fail(runtime, f"Cannot restore: {e}") from e

    includes = ", ".join(manifest.includes)
    print_info(f"Archive from {manifest.created:%Y-%m-%d %H:%M:%S} contains: {includes}")
    if manifest.domain and manifest.domain != runtime.settings.domain:
        print_warning(
            f"Archive was taken on {manifest.domain}; this server is {runtime.settings.domain}"
        )
    if not yes and not typer.confirm("Overwrite the current installation?", default=False):
        print_info("Aborted.")
        raise typer.Exit(code=0)

    try:
        manager.restore(archive)
    except NcctlError as e:
        raise _fail(runtime, f"Restore failed: {e}") from e

    print_success(f"Restored {archive.name}")


def verify(
    ctx: typer.Context,
    archive: Annotated[
        Path,
        typer.Argument(help="Backup archive to check.", exists=True, dir_okay=False),
    ],
) -> None:
    """Check a backup archive without restoring it.

    Verifies the checksum and manifest, confirms every listed part is in
    the archive and sanity-checks the database dump.
    """
    runtime = bootstrap(ctx)
    try:
        inspection = _manager(runtime).inspect(archive)
    except NcctlError as e:
        raise _fail(runtime, f"Verification failed: {e}") from e

    manifest = inspection.manifest
    print_info(
        f"Archive from {manifest.created:%Y-%m-%d %H:%M:%S} contains: "
        + ", ".join(manifest.includes)
    )
    print_info(f"SHA-256: {inspection.checksum}")
    if inspection.tables is not None:
        print_info(f"Database dump creates {inspection.tables} Nextcloud table(s)")
    for warning in inspection.warnings:
        print_warning(warning)
    if not inspection.ok:
        raise _fail(runtime, f"{archive.name} is missing: {', '.join(inspection.missing)}")

    print_success(f"{archive.name} is intact")


def backups(ctx: typer.Context) -> None:
    """List backup archives, newest first."""
    runtime = bootstrap(ctx)
    archives = _manager(runtime).list()
    if not archives:
        print_info(f"No backups in {runtime.settings.backup_dir}")
        return
    console.print(create_backups_table(archives))


def prune(
    ctx: typer.Context,
    days: Annotated[
        int | None,
        typer.Option(
            "--days", "-d", min=0, help="Keep backups newer than this. Default: RETAIN_DAYS."
        ),
    ] = None,
) -> None:
    """Delete backups older than the retention window."""
    runtime = bootstrap(ctx)
    try:
        ensure_root()
        removed = _manager(runtime).prune(days)
    except NcctlError as e:
        raise _fail(runtime, f"Prune failed: {e}") from e

    if removed:
        print_success(f"Removed {len(removed)} backup(s).")
    else:
        print_info("Nothing to prune.")
