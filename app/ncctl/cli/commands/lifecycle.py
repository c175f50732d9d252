"""Install and configure command implementations.

Both commands drive the component orchestrator; they differ only in the
run mode.
"""

from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

import typer

from ncctl.cli.display import create_run_table, print_run_summary
from ncctl.cli.types import ComponentChoice, Runtime, bootstrap, ensure_root
from ncctl.components.registry import default_registry
from ncctl.core.errors import NcctlError
from ncctl.core.orchestrator import Orchestrator
from ncctl.models.run import ComponentState, RunMode, RunReport
from ncctl.utils.formatting import console, print_error

# Transitions shown as live progress lines
_SHOWN_STATES = {
    ComponentState.INSTALLING,
    ComponentState.CONFIGURING,
    ComponentState.VERIFYING,
    ComponentState.SUCCEEDED,
    ComponentState.SKIPPED,
    ComponentState.FAILED,
}


def _show_transition(name: str, state: ComponentState) -> None:
    if state in _SHOWN_STATES:
        console.print(f"[muted]{name}[/muted] -> {state.value}")


@contextmanager
def _cancel_on_signals(orchestrator: Orchestrator) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a cancellation request at the next component boundary."""

    def _handler(signum: int, frame: object) -> None:
        orchestrator.request_cancel()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def run_components(runtime: Runtime, component: ComponentChoice, mode: RunMode) -> RunReport:
    """Build an orchestrator for the runtime and process the selection."""
    settings = runtime.settings
    orchestrator = Orchestrator(
        default_registry(),
        runtime.component_context(),
        mode=mode,
        retry_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay,
        log_file=runtime.log_file,
        on_transition=_show_transition,
    )
    with _cancel_on_signals(orchestrator):
        return orchestrator.run(component.names())


def _run(ctx: typer.Context, component: ComponentChoice, mode: RunMode) -> None:
    runtime = bootstrap(ctx)
    try:
        ensure_root()
        report = run_components(runtime, component, mode)
    except NcctlError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    console.print(create_run_table(report))
    print_run_summary(report)
    if report.exit_code:
        raise typer.Exit(code=report.exit_code)


def install(
    ctx: typer.Context,
    component: Annotated[
        ComponentChoice,
        typer.Argument(help="Component to install, or 'all'.", case_sensitive=False),
    ] = ComponentChoice.ALL,
) -> None:
    """Install, configure and verify components in dependency order.

    Components that are already installed, configured and running are
    skipped, so running install twice is safe.

    Examples:
        ncctl install            # Everything
        ncctl install redis      # Only Redis (dependencies must be installed)
    """
    _run(ctx, component, RunMode.INSTALL)


def configure(
    ctx: typer.Context,
    component: Annotated[
        ComponentChoice,
        typer.Argument(help="Component to configure, or 'all'.", case_sensitive=False),
    ] = ComponentChoice.ALL,
) -> None:
    """Re-apply configuration to installed components.

    Config files are re-rendered (with a timestamped backup of the old
    file) and services are reloaded.
    """
    _run(ctx, component, RunMode.CONFIGURE)
