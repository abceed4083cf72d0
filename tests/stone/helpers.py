"""Test doubles shared across Stone tests."""

import asyncio
from typing import Dict, List, Optional, Sequence
from unittest.mock import AsyncMock

from src.stone.github.models import Issue
from src.stone.runner.command import CommandResult


def run_async(coro):
    return asyncio.run(coro)


class ScriptedCommandRunner:
    """Command runner returning pre-scripted exit codes in call order.

    Exit codes are consumed per call; once exhausted every further call
    succeeds. Executed commands are recorded for assertions.
    """

    def __init__(
        self,
        exit_codes: Sequence[int] = (),
        stdout: str = "ok",
        stderr: str = "",
        outputs: Optional[Dict[str, CommandResult]] = None,
    ):
        self.exit_codes = list(exit_codes)
        self.stdout = stdout
        self.stderr = stderr
        self.outputs = outputs or {}
        self.commands: List[str] = []

    async def execute(self, command: str) -> CommandResult:
        self.commands.append(command)
        if command in self.outputs:
            return self.outputs[command]
        exit_code = self.exit_codes.pop(0) if self.exit_codes else 0
        return CommandResult(
            stdout=self.stdout,
            stderr=self.stderr if exit_code else "",
            exit_code=exit_code,
            duration_seconds=0.0,
        )


def make_github_client(labels: Optional[List[str]] = None, issue_number: int = 123):
    """AsyncMock GitHub client whose get_issue returns the given labels."""
    client = AsyncMock()
    client.get_issue.return_value = Issue(
        number=issue_number,
        title="Add widget export",
        labels=labels if labels is not None else ["stone-ready-for-tests"],
    )
    client.create_comment.return_value = {"id": 1}
    client.add_labels.return_value = []
    client.remove_label.return_value = None
    client.create_commit_status.return_value = {"state": "success"}
    return client
