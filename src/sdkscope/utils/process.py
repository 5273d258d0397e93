"""Subprocess wrapper for external tool invocations (apktool)."""

import logging
import subprocess
from dataclasses import dataclass

from sdkscope.exceptions import ProcessError

logger = logging.getLogger(__name__)

# Lines of tool output kept in error messages
DIAGNOSTIC_LINES = 10


@dataclass
class ProcessResult:
    """Captured outcome of one tool invocation."""

    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if the command succeeded."""
        return self.returncode == 0

    @property
    def diagnostic(self) -> str:
        """Tail of stderr, or of stdout when stderr is empty."""
        text = self.stderr.strip() or self.stdout.strip()
        return "\n".join(text.splitlines()[-DIAGNOSTIC_LINES:])


def run_tool(
    command: list[str],
    *,
    check: bool = True,
    timeout: float | None = None,
) -> ProcessResult:
    """Run an external tool and capture its output as text.

    Args:
        command: Command and arguments to run.
        check: If True, raise ProcessError on non-zero exit.
        timeout: Seconds before the tool is killed. None waits forever.

    Raises:
        ProcessError: If the command cannot be started, times out, or
            (with check=True) returns non-zero.
    """
    logger.debug("Running: %s", " ".join(command))
    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ProcessError(command, -1, f"Timed out after {timeout}s") from e
    except FileNotFoundError as e:
        raise ProcessError(command, -1, f"Command not found: {command[0]}") from e

    result = ProcessResult(
        command=command,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    logger.debug("%s exited with %d", command[0], result.returncode)

    if check and not result.success:
        raise ProcessError(command, result.returncode, result.diagnostic)

    return result
