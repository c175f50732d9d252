"""Status command implementation.

Probes every component read-only and shows installed/configured/running.
"""

import typer

from ncctl.cli.display import create_status_table
from ncctl.cli.types import bootstrap
from ncctl.components.base import ProbeResult
from ncctl.components.registry import default_registry
from ncctl.utils.formatting import console


def status(ctx: typer.Context) -> None:
    """Show the installed, configured and running state of every component.

    Does not change anything on the system and does not require root,
    although some checks can only succeed as root.
    """
    runtime = bootstrap(ctx)
    component_ctx = runtime.component_context()

    rows: list[tuple[str, ProbeResult | None]] = []
    for component in default_registry():
        if not component.is_enabled(component_ctx):
            rows.append((component.name, None))
            continue
        rows.append((component.name, component.probe(component_ctx)))

    console.print(create_status_table(rows))
