"""Shared Rich display functions for component runs, status and backups.

Provides table builders and summary printers used by the install,
configure, status and backup commands.
"""

from rich.markup import escape
from rich.table import Table

from ncctl.components.base import ProbeResult
from ncctl.models.backup import BackupArchive
from ncctl.models.run import ComponentState, RunReport
from ncctl.utils.formatting import console, print_error, print_info, print_success

STATE_STYLES: dict[ComponentState, str] = {
    ComponentState.SUCCEEDED: "state.succeeded",
    ComponentState.SKIPPED: "state.skipped",
    ComponentState.FAILED: "state.failed",
    ComponentState.PENDING: "state.pending",
}


def _flag(value: bool) -> str:
    return "[success]yes[/success]" if value else "[error]no[/error]"


def _size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"


def create_run_table(report: RunReport) -> Table:
    """Create a Rich table with one row per component result.

    Args:
        report: Report of an install or configure run.

    Returns:
        Rich Table with Component, State, Action, Attempts, Time and Message columns.
    """
    table = Table(
        title=f"{report.mode.value.capitalize()} results",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Component", no_wrap=True)
    table.add_column("State", width=10)
    table.add_column("Action", width=9)
    table.add_column("Attempts", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Message")

    for result in report.results:
        style = STATE_STYLES.get(result.state, "muted")
        message = result.message
        if result.error_kind:
            message = f"{result.error_kind}: {message}"
        table.add_row(
            result.name,
            f"[{style}]{result.state.value}[/{style}]",
            result.action.value if result.action else "",
            str(result.attempts) if result.attempts else "",
            f"{result.duration:.1f}s" if result.state != ComponentState.PENDING else "",
            f"[muted]{escape(message)}[/muted]",
        )

    return table


def print_run_summary(report: RunReport) -> None:
    """Print the outcome of a run, including where a halted run stopped."""
    failure = report.failure
    if failure is not None:
        action = failure.action.value if failure.action else "none"
        print_error(
            f"Run halted: component={failure.name} action={action} "
            f"error={failure.error_kind}: {failure.message}"
        )
        for line in failure.log_excerpt[-5:]:
            console.print(f"  [muted]{escape(line)}[/muted]")
    elif report.cancelled:
        print_error("Run cancelled; remaining components were not processed.")
    else:
        succeeded = report.count(ComponentState.SUCCEEDED)
        skipped = report.count(ComponentState.SKIPPED)
        print_success(f"Done: {succeeded} succeeded, {skipped} already satisfied or disabled.")

    if report.log_file is not None:
        print_info(f"Log file: {report.log_file}")


def create_status_table(rows: list[tuple[str, ProbeResult | None]]) -> Table:
    """Create a Rich table of probe results.

    Args:
        rows: (component name, probe result) pairs; None marks a disabled component.

    Returns:
        Rich Table with Installed, Configured and Running columns.
    """
    table = Table(
        title="Component status",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Component", no_wrap=True)
    table.add_column("Installed", justify="center")
    table.add_column("Configured", justify="center")
    table.add_column("Running", justify="center")

    for name, probe in rows:
        if probe is None:
            disabled = "[muted]disabled[/muted]"
            table.add_row(name, disabled, disabled, disabled)
        else:
            table.add_row(
                name,
                _flag(probe.installed),
                _flag(probe.configured),
                _flag(probe.running),
            )

    return table


def create_backups_table(archives: list[BackupArchive]) -> Table:
    """Create a Rich table listing backup archives, newest first."""
    table = Table(
        title="Backups",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Created (UTC)", no_wrap=True)
    table.add_column("Kind", width=6)
    table.add_column("Size", justify="right")
    table.add_column("Checksum", width=10)
    table.add_column("File")

    for archive in archives:
        checksum = archive.checksum[:8] if archive.checksum else "[warning]missing[/warning]"
        table.add_row(
            archive.created.strftime("%Y-%m-%d %H:%M:%S"),
            archive.kind.value,
            _size(archive.size),
            checksum,
            f"[muted]{escape(archive.path.name)}[/muted]",
        )

    return table
