"""Shell execution utilities.

Provides safe subprocess execution with proper error handling, and the
command runner the filesystem layer delegates rm, chmod, chown, shred,
mount and df calls to.
"""

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of a shell command execution.

    Attributes:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        returncode: Exit code of the command.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """Check if command executed successfully."""
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        """Non-empty stdout lines."""
        return [line for line in self.stdout.splitlines() if line]


class ProcessFailedError(Exception):
    """Raised when an external command fails, times out, or cannot be started."""

    def __init__(self, message: str, args: Sequence[str], result: CommandResult | None = None):
        super().__init__(message)
        self.command = list(args)
        self.result = result


def run_command(
    args: list[str],
    *,
    check: bool = False,
    timeout: float | None = 60.0,
    cwd: str | None = None,
) -> CommandResult:
    """Execute a shell command and return the result.

    Args:
        args: Command and arguments to execute.
        check: If True, raise CalledProcessError on non-zero exit.
        timeout: Maximum time in seconds to wait for command.
        cwd: Working directory for the command. If None, uses current directory.

    Returns:
        CommandResult with stdout, stderr, and returncode.

    Raises:
        subprocess.CalledProcessError: If check=True and command fails.
        subprocess.TimeoutExpired: If command exceeds timeout.
        FileNotFoundError: If command executable is not found.
    """
    result = subprocess.run(
        args,
        capture_output=True,
        text=True,
        check=check,
        timeout=timeout,
        cwd=cwd,
    )
    return CommandResult(
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )


class CommandRunner:
    """Runs external commands on behalf of the filesystem layer.

    Every call blocks until the command finishes. A timeout or an exit
    code outside accepted_exit_codes is a hard failure; nothing is retried.

    Attributes:
        _default_timeout: Timeout used when a call does not pass one.
    """

    def __init__(self, default_timeout: float = 10.0) -> None:
        self._default_timeout = default_timeout

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        sudo: bool = False,
        timeout: float | None = None,
        accepted_exit_codes: Sequence[int] = (0,),
        cwd: str | None = None,
    ) -> list[str]:
        """Run a command and return its stdout lines.

        Args:
            command: Executable name.
            args: Arguments passed to the executable.
            sudo: Prefix the command with sudo.
            timeout: Seconds to wait. Defaults to the runner's default timeout.
            accepted_exit_codes: Exit codes treated as success.
            cwd: Working directory for the command.

        Returns:
            Non-empty lines written to stdout.

        Raises:
            ProcessFailedError: If the command cannot be started, times out,
                or exits with a code that is not accepted.
        """
        full_args = [command, *args]
        if sudo:
            full_args.insert(0, "sudo")
        logger.debug("Running command: %s", " ".join(full_args))

        try:
            result = run_command(
                full_args,
                timeout=timeout if timeout is not None else self._default_timeout,
                cwd=cwd,
            )
        except subprocess.TimeoutExpired as e:
            msg = f"Command '{' '.join(full_args)}' timed out after {e.timeout} seconds"
            raise ProcessFailedError(msg, full_args) from e
        except (FileNotFoundError, OSError) as e:
            msg = f"Command '{command}' could not be executed: {e}"
            raise ProcessFailedError(msg, full_args) from e

        if result.returncode not in accepted_exit_codes:
            msg = (
                f"Command '{' '.join(full_args)}' failed with exit code "
                f"{result.returncode}: {result.stderr.strip()}"
            )
            raise ProcessFailedError(msg, full_args, result)

        return result.lines
