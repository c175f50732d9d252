"""Process runner with logging and failure classification.

Wraps :func:`ncctl.utils.shell.run_command` with the policy every
component shares: every command is logged at DEBUG, every command has a
timeout, and failures are classified as transient (worth retrying) or
deterministic (never retried).
"""

import logging
import re
import shlex
from pathlib import Path

from ncctl.core.errors import (
    DeterministicExecutionError,
    ExecutionError,
    TransientExecutionError,
)
from ncctl.utils.shell import CommandResult, run_command

logger = logging.getLogger(__name__)

# stderr fragments that indicate network trouble or package-lock contention
TRANSIENT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"Could not get lock",
        r"Unable to acquire the dpkg frontend lock",
        r"dpkg was interrupted",
        r"Temporary failure resolving",
        r"Failed to fetch",
        r"Connection timed out",
        r"Could not resolve host",
        r"503 Service Unavailable",
        r"Connection reset by peer",
    )
)

# Lines of captured output kept in error messages
_TAIL_LINES = 15


def _tail(text: str, lines: int = _TAIL_LINES) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


def classify_failure(result: CommandResult) -> type[ExecutionError]:
    """Decide whether a failed command is worth retrying.

    Args:
        result: Result of a command that did not succeed.

    Returns:
        TransientExecutionError for timeouts and network/lock errors,
        DeterministicExecutionError for everything else.
    """
    if result.timed_out:
        return TransientExecutionError
    output = f"{result.stderr}\n{result.stdout}"
    if any(p.search(output) for p in TRANSIENT_PATTERNS):
        return TransientExecutionError
    return DeterministicExecutionError


class ProcessRunner:
    """Executes external commands for components and workflows.

    Attributes:
        default_timeout: Timeout applied when a call does not pass one.
    """

    def __init__(self, default_timeout: float = 120.0) -> None:
        self.default_timeout = default_timeout

    def run(
        self,
        args: list[str],
        *,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        stdin_path: Path | None = None,
        fatal: bool = False,
    ) -> CommandResult:
        """Run a command and return its result without raising.

        Args:
            args: Command and arguments.
            timeout: Seconds before the child is killed.
            env: Extra environment variables.
            cwd: Working directory.
            stdin_path: File to feed on stdin.
            fatal: Log captured output at ERROR if the command fails.

        Returns:
            CommandResult of the execution.
        """
        effective_timeout = timeout if timeout is not None else self.default_timeout
        logger.debug("Running (timeout=%ss): %s", effective_timeout, shlex.join(args))

        result = run_command(
            args,
            timeout=effective_timeout,
            cwd=cwd,
            env=env,
            stdin_path=stdin_path,
        )

        if result.timed_out:
            logger.debug("Timed out after %ss: %s", effective_timeout, args[0])
        elif not result.success:
            logger.debug("Exit %d: %s", result.returncode, shlex.join(args))

        if fatal and not result.success:
            logger.error(
                "Command failed (exit %d): %s\n%s",
                result.returncode,
                shlex.join(args),
                _tail(result.stderr or result.stdout),
            )
        return result

    def check(
        self,
        args: list[str],
        *,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        stdin_path: Path | None = None,
    ) -> CommandResult:
        """Run a command and raise a classified error if it fails.

        Raises:
            TransientExecutionError: On timeout, network or lock errors.
            DeterministicExecutionError: On any other failure.
        """
        result = self.run(
            args,
            timeout=timeout,
            env=env,
            cwd=cwd,
            stdin_path=stdin_path,
            fatal=True,
        )
        if result.success:
            return result

        error_cls = classify_failure(result)
        detail = "timed out" if result.timed_out else f"exited with {result.returncode}"
        message = f"{shlex.join(args)} {detail}"
        output = _tail(result.stderr or result.stdout)
        if output:
            message = f"{message}: {output}"
        raise error_cls(message, command=args, result=result)

    def succeeds(
        self,
        args: list[str],
        *,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
    ) -> bool:
        """Run a read-only check command and report whether it exited 0."""
        return self.run(args, timeout=timeout, env=env).success

    @staticmethod
    def as_user(user: str, args: list[str]) -> list[str]:
        """Prefix a command so it runs as another user."""
        return ["sudo", "-n", "-u", user, *args]
