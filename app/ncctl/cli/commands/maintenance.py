"""Maintenance commands for database optimization and occ repair."""

import typer

from ncctl.cli.types import Runtime, bootstrap, ensure_root
from ncctl.core.errors import NcctlError
from ncctl.core.maintenance import MaintenanceResult, MaintenanceWorkflow
from ncctl.utils.formatting import print_error, print_info, print_success

app = typer.Typer(
    name="maintenance",
    help="Optimize the database or repair a Nextcloud installation.",
    no_args_is_help=True,
)


def _workflow(runtime: Runtime) -> MaintenanceWorkflow:
    component_ctx = runtime.component_context()
    return MaintenanceWorkflow(
        runtime.settings,
        component_ctx.runner,
        component_ctx.occ,
        component_ctx.credentials,
    )


def _exit_failed(runtime: Runtime, message: str) -> typer.Exit:
    print_error(message)
    if runtime.log_file is not None:
        print_info(f"Log file: {runtime.log_file}")
    return typer.Exit(code=1)


def _report(runtime: Runtime, result: MaintenanceResult, what: str) -> None:
    if not result.ok:
        raise _exit_failed(runtime, f"{what} failed for: {', '.join(result.failed)}")


@app.command()
def optimize(ctx: typer.Context) -> None:
    """Run OPTIMIZE TABLE on every table of the Nextcloud database.

    A table that cannot be optimized is reported and the rest are still
    processed.
    """
    runtime = bootstrap(ctx)
    try:
        ensure_root()
        result = _workflow(runtime).optimize_database()
    except NcctlError as e:
        raise _exit_failed(runtime, f"Optimize failed: {e}") from e

    _report(runtime, result, "Optimize")
    print_success(f"Optimized {len(result.done)} table(s).")


@app.command()
def repair(ctx: typer.Context) -> None:
    """Repair the installation inside a maintenance window.

    Runs occ maintenance:repair, db:add-missing-indices, files:scan --all
    and preview:repair.
    """
    runtime = bootstrap(ctx)
    try:
        ensure_root()
        result = _workflow(runtime).repair()
    except NcctlError as e:
        raise _exit_failed(runtime, f"Repair failed: {e}") from e

    _report(runtime, result, "Repair")
    print_success(f"Repair complete ({len(result.done)} steps).")
