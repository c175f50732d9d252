"""Run models for orchestrated component processing.

This module defines the per-component lifecycle states and the immutable
records an orchestrator run produces.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ComponentState(Enum):
    """Lifecycle state of one component within one run.

    Components move forward only:
    ``PENDING -> PROBING -> (SKIPPED | INSTALLING -> CONFIGURING -> VERIFYING)
    -> (SUCCEEDED | FAILED)``.
    """

    PENDING = "pending"
    PROBING = "probing"
    SKIPPED = "skipped"
    INSTALLING = "installing"
    CONFIGURING = "configuring"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_ok(self) -> bool:
        """Check if the component ended in a state dependents can build on."""
        return self in (ComponentState.SUCCEEDED, ComponentState.SKIPPED)


class RunMode(Enum):
    """What an orchestrator run does to each component.

    Attributes:
        INSTALL: Full lifecycle; satisfied components are skipped.
        CONFIGURE: Re-apply configuration to installed components.
    """

    INSTALL = "install"
    CONFIGURE = "configure"


class StepName(Enum):
    """Action a component was performing when its result was recorded."""

    PROBE = "probe"
    INSTALL = "install"
    CONFIGURE = "configure"
    VERIFY = "verify"


@dataclass(frozen=True, slots=True)
class ComponentResult:
    """Outcome of processing one component.

    Attributes:
        name: Component name.
        state: Final state reached in this run.
        action: Step in progress when the result was recorded (None if untouched).
        error_kind: Exception class name when the component failed.
        message: Human-readable outcome.
        attempts: Number of install attempts made.
        duration: Seconds spent on the component.
        log_excerpt: Last log lines emitted while processing the component.
    """

    name: str
    state: ComponentState
    action: StepName | None = None
    error_kind: str | None = None
    message: str = ""
    attempts: int = 0
    duration: float = 0.0
    log_excerpt: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        """Check if the component failed."""
        return self.state == ComponentState.FAILED


@dataclass(frozen=True, slots=True)
class RunReport:
    """Ordered results of one orchestrator run.

    Attributes:
        mode: Run mode.
        results: One result per selected component, in processing order.
        cancelled: True if the run stopped early on a cancellation request.
        log_file: Log file of the run, if file logging was enabled.
    """

    mode: RunMode
    results: tuple[ComponentResult, ...]
    cancelled: bool = False
    log_file: Path | None = None

    @property
    def failure(self) -> ComponentResult | None:
        """The failed component, if any."""
        return next((r for r in self.results if r.failed), None)

    @property
    def exit_code(self) -> int:
        """0 when nothing failed and the run completed, else 1."""
        return 0 if self.failure is None and not self.cancelled else 1

    def count(self, state: ComponentState) -> int:
        """Number of components that ended in a state."""
        return sum(1 for r in self.results if r.state == state)
