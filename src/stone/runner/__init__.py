"""Shell command runner used by the test, build and deployment stages.

This module manages command execution:
- Subprocess invocation through the shell
- Timeout enforcement
- stdout/stderr capture
- Exit codes reported as data, not exceptions
"""

from src.stone.runner.command import (
    CommandExecutionError,
    CommandResult,
    CommandRunner,
)

__all__ = ["CommandExecutionError", "CommandResult", "CommandRunner"]
