"""Component lifecycle orchestrator.

Walks the component registry in order and drives each selected component
through ``Pending -> Probing -> (Skipped | Installing -> Configuring ->
Verifying) -> (Succeeded | Failed)``. Processing is strictly sequential.
The first failure halts the run, leaving every later component Pending.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from ncctl.components.base import Component, ComponentContext, ProbeResult
from ncctl.components.registry import ComponentRegistry
from ncctl.core.errors import (
    DependencyNotInstalledError,
    NcctlError,
    ProbeMismatchError,
    TransientExecutionError,
)
from ncctl.core.logger import ROOT_LOGGER, redact
from ncctl.models.run import (
    ComponentResult,
    ComponentState,
    RunMode,
    RunReport,
    StepName,
)

logger = logging.getLogger(__name__)

# Log lines kept per component result
EXCERPT_LINES = 20

TransitionCallback = Callable[[str, ComponentState], None]


class _ExcerptHandler(logging.Handler):
    """Keeps the most recent log lines for the component being processed."""

    def __init__(self, size: int = EXCERPT_LINES) -> None:
        super().__init__()
        self.lines: deque[str] = deque(maxlen=size)
        self.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(redact(self.format(record)))


@dataclass(slots=True)
class _Progress:
    """Mutable bookkeeping for the component currently being processed."""

    step: StepName | None = None
    attempts: int = 0


def _describe_unmet(probe: ProbeResult) -> str:
    unmet = [
        flag
        for flag, ok in (
            ("installed", probe.installed),
            ("configured", probe.configured),
            ("running", probe.running),
        )
        if not ok
    ]
    return "not " + ", not ".join(unmet)


class Orchestrator:
    """Drives components through their lifecycle.

    Attributes:
        registry: Validated component registry.
        ctx: Context handed to every component action.
        mode: Install or configure.
        retry_attempts: Maximum install attempts for transient failures.
        retry_delay: Base delay; attempt ``n`` waits ``retry_delay * n`` seconds.
        log_file: Log file named in halt messages.

    Example:
        >>> orchestrator = Orchestrator(default_registry(), ctx)
        >>> report = orchestrator.run()
        >>> report.exit_code
        0
    """

    def __init__(
        self,
        registry: ComponentRegistry,
        ctx: ComponentContext,
        *,
        mode: RunMode = RunMode.INSTALL,
        retry_attempts: int = 3,
        retry_delay: float = 5.0,
        log_file: Path | None = None,
        on_transition: TransitionCallback | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.registry = registry
        self.ctx = ctx
        self.mode = mode
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.log_file = log_file
        self._on_transition = on_transition
        self._sleep = sleep
        self._cancel_requested = False

    def request_cancel(self) -> None:
        """Stop the run at the next component boundary.

        The component currently being processed is finished first; a
        package install or migration is never interrupted.
        """
        if not self._cancel_requested:
            logger.warning("Cancellation requested; stopping after the current component")
        self._cancel_requested = True

    def select(self, names: list[str] | None = None) -> list[Component]:
        """Resolve component names to components in registry order.

        Raises:
            ComponentNotFoundError: If a name is unknown.
        """
        if not names:
            return self.registry.list()
        wanted = {self.registry.get(name).name for name in names}
        return [c for c in self.registry if c.name in wanted]

    def run(self, names: list[str] | None = None) -> RunReport:
        """Process the selected components (all when names is None).

        Returns:
            RunReport with one result per selected component.
        """
        selected = self.select(names)
        results: dict[str, ComponentResult] = {
            c.name: ComponentResult(name=c.name, state=ComponentState.PENDING) for c in selected
        }
        finished_ok: set[str] = set()
        cancelled = False

        logger.info(
            "Starting %s run for: %s",
            self.mode.value,
            ", ".join(c.name for c in selected),
        )

        for component in selected:
            if self._cancel_requested:
                cancelled = True
                logger.warning("Run cancelled before %s", component.name)
                break

            result = self._process(component, finished_ok)
            results[component.name] = result

            if result.state.is_ok:
                finished_ok.add(component.name)
            else:
                logger.error(
                    "Halting run: component=%s action=%s error=%s log=%s",
                    result.name,
                    result.action.value if result.action else "none",
                    result.error_kind,
                    self.log_file or "(console only)",
                )
                break

        return RunReport(
            mode=self.mode,
            results=tuple(results.values()),
            cancelled=cancelled,
            log_file=self.log_file,
        )

    def _transition(self, name: str, state: ComponentState) -> None:
        logger.debug("%s -> %s", name, state.value)
        if self._on_transition is not None:
            self._on_transition(name, state)

    def _process(self, component: Component, finished_ok: set[str]) -> ComponentResult:
        excerpt = _ExcerptHandler()
        root = logging.getLogger(ROOT_LOGGER)
        root.addHandler(excerpt)
        progress = _Progress()
        started = time.monotonic()
        try:
            state, message = self._drive(component, finished_ok, progress)
            error_kind = None
        except NcctlError as e:
            state, message, error_kind = ComponentState.FAILED, str(e), e.kind
            logger.error("%s failed during %s: %s", component.name, self._step(progress), e)
        except OSError as e:
            # Filesystem errors raised by an action
            state, message, error_kind = ComponentState.FAILED, str(e), type(e).__name__
            logger.error("%s failed during %s: %s", component.name, self._step(progress), e)
        finally:
            root.removeHandler(excerpt)

        if state == ComponentState.FAILED:
            self._transition(component.name, state)

        return ComponentResult(
            name=component.name,
            state=state,
            action=progress.step,
            error_kind=error_kind,
            message=redact(message),
            attempts=progress.attempts,
            duration=time.monotonic() - started,
            log_excerpt=tuple(excerpt.lines),
        )

    @staticmethod
    def _step(progress: _Progress) -> str:
        return progress.step.value if progress.step else "none"

    def _drive(
        self,
        component: Component,
        finished_ok: set[str],
        progress: _Progress,
    ) -> tuple[ComponentState, str]:
        name = component.name
        ctx = self.ctx

        progress.step = StepName.PROBE
        self._transition(name, ComponentState.PROBING)

        if not component.is_enabled(ctx):
            logger.info("%s is disabled for this configuration", name)
            self._transition(name, ComponentState.SKIPPED)
            return ComponentState.SKIPPED, "disabled"

        self._require_dependencies(component, finished_ok)
        before = component.probe(ctx)
        logger.debug("%s probe: %s", name, before)

        if self.mode == RunMode.INSTALL:
            if before.satisfied:
                logger.info("%s already installed, configured and running", name)
                self._transition(name, ComponentState.SKIPPED)
                return ComponentState.SKIPPED, "already satisfied"

            progress.step = StepName.INSTALL
            self._transition(name, ComponentState.INSTALLING)
            if before.installed:
                logger.info("%s already installed", name)
            else:
                self._install_with_retry(component, progress)
        elif not before.installed:
            raise DependencyNotInstalledError(f"{name} is not installed; run install first")

        progress.step = StepName.CONFIGURE
        self._transition(name, ComponentState.CONFIGURING)
        logger.info("Configuring %s", name)
        component.configure(ctx)

        progress.step = StepName.VERIFY
        self._transition(name, ComponentState.VERIFYING)
        after = component.probe(ctx)
        if not after.satisfied:
            raise ProbeMismatchError(
                f"{name} actions succeeded but the system is {_describe_unmet(after)}"
            )

        self._transition(name, ComponentState.SUCCEEDED)
        logger.info("OK: %s", name)
        return ComponentState.SUCCEEDED, "succeeded"

    def _require_dependencies(self, component: Component, finished_ok: set[str]) -> None:
        """Ensure every dependency is installed before acting on a component.

        Dependencies processed earlier in this run already proved it; any
        other dependency is probed now.

        Raises:
            DependencyNotInstalledError: If a dependency is not installed.
        """
        for dependency in component.depends_on:
            if dependency in finished_ok:
                continue
            dep = self.registry.get(dependency)
            if not dep.is_enabled(self.ctx):
                continue
            if not dep.probe(self.ctx).installed:
                raise DependencyNotInstalledError(
                    f"{component.name} requires {dependency}, which is not installed"
                )

    def _install_with_retry(self, component: Component, progress: _Progress) -> None:
        for attempt in range(1, self.retry_attempts + 1):
            progress.attempts = attempt
            logger.info(
                "Installing %s (attempt %d/%d)", component.name, attempt, self.retry_attempts
            )
            try:
                component.install(self.ctx)
                return
            except TransientExecutionError as e:
                if attempt == self.retry_attempts:
                    raise
                delay = self.retry_delay * attempt
                logger.warning(
                    "%s install hit a transient error, retrying in %.0fs: %s",
                    component.name,
                    delay,
                    e,
                )
                self._sleep(delay)
