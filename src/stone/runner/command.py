"""Shell command execution for pipeline stages.

Runs a command string as an async subprocess with timeout enforcement and
output capture. A non-zero exit code is returned as data; only failing to
start the process is raised, as CommandExecutionError.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = -1


class CommandExecutionError(Exception):
    """Raised when a command cannot be started at all.

    Attributes:
        command: The command string that failed to start.
    """

    def __init__(self, message: str, command: str):
        self.command = command
        super().__init__(message)


@dataclass(frozen=True)
class CommandResult:
    """Result of a shell command execution.

    Attributes:
        stdout: Captured standard output.
        stderr: Captured standard error.
        exit_code: Process exit code (-1 for timeout).
        duration_seconds: Wall-clock execution time.
    """

    stdout: str
    stderr: str
    exit_code: int
    duration_seconds: float

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Executes shell commands as async subprocesses.

    Attributes:
        working_directory: Directory the commands run in (defaults to
            the current working directory).
        timeout_seconds: Maximum execution time before the process is killed.
    """

    def __init__(
        self,
        working_directory: Optional[Path] = None,
        timeout_seconds: int = 1800,
    ):
        self.working_directory = working_directory
        self.timeout_seconds = timeout_seconds

    async def execute(self, command: str) -> CommandResult:
        """Run a command and capture its output.

        Args:
            command: Shell command string.

        Returns:
            CommandResult with exit code, captured output and duration.

        Raises:
            CommandExecutionError: If the shell cannot be started.
        """
        start_time = time.monotonic()

        logger.info(
            "Running command",
            extra={"command": command, "timeout": self.timeout_seconds},
        )

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.working_directory) if self.working_directory else None,
            )
        except OSError as exc:
            logger.error("Failed to start command %r: %s", command, exc)
            raise CommandExecutionError(
                f"Failed to start command: {exc}", command=command
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            return await self._handle_timeout(process, command, start_time)

        duration = time.monotonic() - start_time
        exit_code = process.returncode if process.returncode is not None else 0

        if exit_code == 0:
            logger.info("Command completed successfully in %.1fs", duration)
        else:
            logger.warning(
                "Command failed with exit code %d in %.1fs",
                exit_code,
                duration,
                extra={"command": command},
            )

        return CommandResult(
            stdout=self._decode(stdout),
            stderr=self._decode(stderr),
            exit_code=exit_code,
            duration_seconds=duration,
        )

    async def _handle_timeout(
        self,
        process: asyncio.subprocess.Process,
        command: str,
        start_time: float,
    ) -> CommandResult:
        """Kill the process and return a timeout failure result."""
        process.kill()
        try:
            await process.wait()
        except ProcessLookupError:
            pass

        duration = time.monotonic() - start_time
        logger.error(
            "Command timed out after %ds",
            self.timeout_seconds,
            extra={"command": command},
        )
        return CommandResult(
            stdout="",
            stderr=f"Process timed out after {self.timeout_seconds}s",
            exit_code=TIMEOUT_EXIT_CODE,
            duration_seconds=duration,
        )

    @staticmethod
    def _decode(data: Optional[bytes]) -> str:
        if not data:
            return ""
        return data.decode("utf-8", errors="replace").rstrip("\n")
