"""Exception hierarchy for ncctl.

Every failure that can halt a component, a backup, or a restore derives
from :class:`NcctlError` so callers can report it uniformly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ncctl.utils.shell import CommandResult


class NcctlError(Exception):
    """Base exception for all ncctl errors."""

    @property
    def kind(self) -> str:
        """Short error kind used in status reports."""
        return type(self).__name__


class ConfigError(NcctlError):
    """Raised when the configuration file or environment is invalid."""


class ExecutionError(NcctlError):
    """An external command failed.

    Attributes:
        command: The command line that failed.
        result: The captured result, if the command ran at all.
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        result: CommandResult | None = None,
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.result = result


class TransientExecutionError(ExecutionError):
    """Retryable failure: network trouble, package-lock contention, timeouts."""


class DeterministicExecutionError(ExecutionError):
    """Reproducible failure: bad configuration, missing binary, denied access."""


class DependencyNotInstalledError(DeterministicExecutionError):
    """A component was asked to act before its dependencies were installed."""


class ProbeMismatchError(NcctlError):
    """An action reported success but the post-action probe disagrees."""


class TemplateError(NcctlError):
    """Base exception for configuration template problems."""


class MissingVariableError(TemplateError):
    """One or more placeholders in a template have no bound value.

    Attributes:
        names: Every unresolved placeholder name, sorted.
    """

    def __init__(self, names: list[str] | set[str]) -> None:
        self.names = sorted(set(names))
        super().__init__(", ".join(self.names))


class InvalidVariableError(TemplateError):
    """A variable name or value would corrupt the rendered file structure."""


class ConfigWriteError(NcctlError):
    """A rendered configuration file could not be backed up or written."""


class ChecksumMismatchError(NcctlError):
    """A backup archive does not match its recorded checksum."""


class BackupError(NcctlError):
    """A backup or restore step failed for a reason other than integrity."""


class InsufficientPrivilegeError(NcctlError):
    """The process is not running with the privileges the operation needs."""


class ComponentNotFoundError(NcctlError):
    """The requested component is not part of the registry."""


class RegistryValidationError(NcctlError):
    """The component registry declares an impossible dependency order."""


class StepFailedError(NcctlError):
    """A workflow step logged a fatal error and stopped."""
