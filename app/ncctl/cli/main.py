"""Main CLI application entry point.

Defines the Typer application and global options.
"""

from pathlib import Path
from typing import Annotated

import typer

from ncctl import __version__
from ncctl.cli.commands import backup, lifecycle, maintenance, status, update

# Create main Typer app
app = typer.Typer(
    name="ncctl",
    help="Install, configure, back up and restore a Nextcloud server on Ubuntu.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"ncctl version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file (KEY=value). Default: $NCCTL_CONFIG, ./.env or "
            "/etc/ncctl/install-config.conf.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log at DEBUG level.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Only log warnings and errors.",
        ),
    ] = False,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            help="Log file path. Default: LOG_DIR/ncctl-<timestamp>.log.",
        ),
    ] = None,
) -> None:
    """ncctl - Nextcloud server lifecycle management.

    Components are processed in a fixed order: system, php, apache,
    mariadb, redis, nextcloud, certbot, cron.
    """
    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["log_file"] = log_file


# Register commands
app.command("install")(lifecycle.install)
app.command("configure")(lifecycle.configure)
app.command("status")(status.status)
app.command("update")(update.update)
app.command("backup")(backup.backup)
app.command("restore")(backup.restore)
app.command("verify")(backup.verify)
app.command("backups")(backup.backups)
app.command("prune")(backup.prune)
app.add_typer(maintenance.app, name="maintenance")


if __name__ == "__main__":
    app()
