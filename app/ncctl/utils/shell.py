"""Shell execution utilities.

Provides subprocess execution that reports failures as data instead of
raising, so callers decide whether a non-zero exit is fatal.
"""

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Conventional shell exit code for "command not found"
EXIT_NOT_FOUND = 127


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of a shell command execution.

    Attributes:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        returncode: Exit code of the command (-1 when it timed out).
        timed_out: True if the command was killed after exceeding its timeout.
    """

    stdout: str
    stderr: str
    returncode: int
    timed_out: bool = False

    @property
    def success(self) -> bool:
        """Check if command executed successfully."""
        return self.returncode == 0 and not self.timed_out


def _decode(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value


def run_command(
    args: list[str],
    *,
    timeout: float | None = 60.0,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    stdin_path: Path | None = None,
) -> CommandResult:
    """Execute a command and return the result.

    Never raises for a non-zero exit, a timeout, or a missing executable.
    On timeout the child is killed and a result with ``timed_out=True``
    is returned. The child runs in its own session with stdin closed
    unless ``stdin_path`` is given, so a Ctrl-C in the terminal never
    interrupts it.

    Args:
        args: Command and arguments to execute.
        timeout: Maximum time in seconds to wait for command.
        cwd: Working directory for the command. If None, uses current directory.
        env: Additional environment variables (merged with current env).
        stdin_path: Optional file whose contents are fed to the command's stdin.

    Returns:
        CommandResult with stdout, stderr, returncode and timeout flag.
    """
    full_env = {**os.environ, **env} if env else None
    # New session: terminal signals such as Ctrl-C reach ncctl, not the child
    options: dict[str, Any] = {
        "capture_output": True,
        "check": False,
        "timeout": timeout,
        "cwd": cwd,
        "env": full_env,
        "start_new_session": True,
    }
    try:
        if stdin_path is not None:
            with open(stdin_path, "rb") as stdin:
                completed = subprocess.run(args, stdin=stdin, **options)
        else:
            completed = subprocess.run(args, stdin=subprocess.DEVNULL, text=True, **options)
    except subprocess.TimeoutExpired as e:
        return CommandResult(
            stdout=_decode(e.stdout),
            stderr=_decode(e.stderr) or f"Command timed out after {timeout}s",
            returncode=-1,
            timed_out=True,
        )
    except FileNotFoundError:
        return CommandResult(
            stdout="",
            stderr=f"command not found: {args[0]}",
            returncode=EXIT_NOT_FOUND,
        )
    return CommandResult(
        stdout=_decode(completed.stdout),
        stderr=_decode(completed.stderr),
        returncode=completed.returncode,
    )
