"""Update command implementation."""

from typing import Annotated

import typer

from ncctl.cli.types import bootstrap, ensure_root
from ncctl.core.errors import NcctlError
from ncctl.core.update import UpdateWorkflow
from ncctl.utils.formatting import print_error, print_info, print_success


def update(
    ctx: typer.Context,
    system: Annotated[
        bool,
        typer.Option("--system", help="Also upgrade system packages with apt-get first."),
    ] = False,
) -> None:
    """Upgrade Nextcloud core and apps inside a maintenance window.

    Runs occ upgrade, db:add-missing-indices, db:convert-filecache-bigint,
    app:update --all and maintenance:repair. Maintenance mode is always
    switched off afterwards.
    """
    runtime = bootstrap(ctx)
    try:
        ensure_root()
        component_ctx = runtime.component_context()
        result = UpdateWorkflow(component_ctx.apt, component_ctx.occ).run(system=system)
    except NcctlError as e:
        print_error(f"Update failed: {e}")
        if runtime.log_file is not None:
            print_info(f"Log file: {runtime.log_file}")
        raise typer.Exit(code=1) from e

    print_success(f"Update complete ({len(result.steps)} steps).")
