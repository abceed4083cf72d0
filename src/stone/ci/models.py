"""CI pipeline result records and collaborator protocols.

Result records are created once, at the end of the step they describe,
and never mutated afterwards. They are frozen dataclasses like the
runner's CommandResult.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from src.stone.github.models import CommitState, Issue
from src.stone.runner.command import CommandResult


@dataclass(frozen=True)
class StageDescriptor:
    """A named test stage.

    Attributes:
        name: Stage name reported in results (e.g. "unit").
        pattern: Test path pattern selecting the stage's tests; None runs
            the plain test command.
    """

    name: str
    pattern: Optional[str] = None


DEFAULT_STAGES: Tuple[StageDescriptor, ...] = (
    StageDescriptor("unit", "unit"),
    StageDescriptor("integration", "integration"),
    StageDescriptor("e2e", "e2e"),
)


@dataclass(frozen=True)
class StageResult:
    """Outcome of a single test stage.

    Attributes:
        stage_type: Name of the stage that ran.
        success: True when the stage command exited with code 0.
        output: Captured standard output.
        error_output: Captured standard error.
        duration_seconds: Wall-clock time spent in the stage.
    """

    stage_type: str
    success: bool
    output: str
    error_output: str
    duration_seconds: float


@dataclass(frozen=True)
class PipelineResult:
    """Aggregate outcome of a test pipeline run.

    ``stages`` holds the executed stages in order. Execution stops at the
    first failing stage, so when fewer stages ran than were configured the
    last one failed.
    """

    success: bool
    stages: Tuple[StageResult, ...]

    @property
    def failed_stages(self) -> List[StageResult]:
        return [stage for stage in self.stages if not stage.success]


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a build step."""

    success: bool
    output: str
    duration_seconds: float


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of a deployment to one environment."""

    success: bool
    output: str
    duration_seconds: float
    environment: str


@runtime_checkable
class CommandExecutor(Protocol):
    """Runs a shell command; exit codes are data, not errors."""

    async def execute(self, command: str) -> CommandResult:
        ...


@runtime_checkable
class IssueTracker(Protocol):
    """The issue, label and status operations the CI stages rely on.

    GitHubClient is the production implementation. Failures are raised
    as typed errors (GitHubAPIError, RateLimitError).
    """

    async def get_issue(self, issue_number: int) -> Issue:
        ...

    async def create_comment(self, issue_number: int, body: str) -> Dict[str, Any]:
        ...

    async def add_labels(self, issue_number: int, labels: List[str]) -> Any:
        ...

    async def remove_label(self, issue_number: int, label: str) -> None:
        ...

    async def create_commit_status(
        self,
        sha: str,
        state: CommitState,
        description: Optional[str] = None,
        context: str = "stone/tests",
    ) -> Dict[str, Any]:
        ...


def command_output(result: CommandResult) -> str:
    """Pick the output worth reporting: stdout on success, else stderr.

    Failed commands that wrote nothing to stderr fall back to stdout.
    """
    if result.success:
        return result.stdout
    return result.stderr or result.stdout
