"""Short-circuiting test pipeline.

PipelineRunner runs the configured test stages in order and stops at the
first failure. It also implements the issue-level test run triggered by
the stone-ready-for-tests label, which reports back to the issue through
a comment and a label transition.
"""

import logging
import time
from typing import List, Optional, Sequence

from src.stone.ci.models import (
    DEFAULT_STAGES,
    CommandExecutor,
    IssueTracker,
    PipelineResult,
    StageDescriptor,
    StageResult,
    command_output,
)
from src.stone.metrics import StoneMetrics
from src.stone.routing.labels import (
    DOCS_LABEL,
    READY_FOR_TESTS_LABEL,
    TEST_FAILURE_LABEL,
)
from src.stone.runner.command import CommandExecutionError

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Executes the ordered test stages for a branch or an issue.

    Attributes:
        command_runner: Executes stage commands.
        github_client: Issue tracker used by run_tests_for_issue.
        test_command: Base test command (e.g. "npm test").
        stages: Ordered stage descriptors.
        success_label: Label added when an issue's tests pass.
        failure_label: Label added when an issue's tests fail.
        metrics: Optional Prometheus metrics; nothing is recorded without one.
    """

    def __init__(
        self,
        command_runner: CommandExecutor,
        github_client: IssueTracker,
        test_command: str = "npm test",
        stages: Sequence[StageDescriptor] = DEFAULT_STAGES,
        success_label: str = DOCS_LABEL,
        failure_label: str = TEST_FAILURE_LABEL,
        metrics: Optional[StoneMetrics] = None,
    ):
        if not stages:
            raise ValueError("at least one test stage must be configured")

        self.command_runner = command_runner
        self.github_client = github_client
        self.test_command = test_command
        self.stages = tuple(stages)
        self.success_label = success_label
        self.failure_label = failure_label
        self.metrics = metrics

    def stage_command(
        self, stage: StageDescriptor, test_path: Optional[str] = None
    ) -> str:
        """Build the command line for one stage."""
        command = self.test_command
        if stage.pattern:
            command = f"{command} -- --testPathPattern='{stage.pattern}'"
        if test_path:
            command = f"{command} {test_path}"
        return command

    async def run_pipeline(
        self, branch: str, test_path: Optional[str] = None
    ) -> PipelineResult:
        """Run every stage in order, stopping at the first failure.

        Args:
            branch: Branch being tested; used for logging and reports.
            test_path: Optional path appended to each stage command.

        Returns:
            PipelineResult with one StageResult per executed stage.

        Raises:
            CommandExecutionError: If a stage command cannot be started.
        """
        logger.info("Running test pipeline for branch: %s", branch)

        results: List[StageResult] = []
        for stage in self.stages:
            result = await self._run_stage(stage, test_path)
            results.append(result)
            if not result.success:
                logger.warning(
                    "Stage '%s' failed, skipping remaining stages",
                    stage.name,
                    extra={"branch": branch, "stage": stage.name},
                )
                break

        success = all(result.success for result in results) and len(
            results
        ) == len(self.stages)

        logger.info(
            "Test pipeline %s for branch %s",
            "passed" if success else "failed",
            branch,
            extra={"stages_run": len(results), "stages_total": len(self.stages)},
        )
        if self.metrics is not None:
            self.metrics.record_pipeline_run(success)
        return PipelineResult(success=success, stages=tuple(results))

    async def _run_stage(
        self, stage: StageDescriptor, test_path: Optional[str]
    ) -> StageResult:
        command = self.stage_command(stage, test_path)

        start_time = time.monotonic()
        result = await self.command_runner.execute(command)
        duration = time.monotonic() - start_time

        if self.metrics is not None:
            self.metrics.record_stage_duration(stage.name, duration)

        return StageResult(
            stage_type=stage.name,
            success=result.exit_code == 0,
            output=result.stdout,
            error_output=result.stderr,
            duration_seconds=duration,
        )

    async def run_tests_for_issue(self, issue_number: int) -> Optional[StageResult]:
        """Run the test command for an issue labelled ready-for-tests.

        Posts a "Test Results" comment and moves the issue to the next
        stage on success, or posts a "Test Failure" comment and adds the
        failure label otherwise. A command that cannot be started is
        reported as a "Test Error" comment and a failed result.

        Args:
            issue_number: The issue to test.

        Returns:
            The test StageResult, or None if the issue is not ready for tests.

        Raises:
            GitHubAPIError: If reading the issue or reporting back fails.
        """
        issue = await self.github_client.get_issue(issue_number)

        if not issue.has_label(READY_FOR_TESTS_LABEL):
            logger.info(
                "Issue #%d does not have the '%s' label",
                issue_number,
                READY_FOR_TESTS_LABEL,
            )
            return None

        logger.info("Running tests for issue #%d", issue_number)

        start_time = time.monotonic()
        try:
            command_result = await self.command_runner.execute(self.test_command)
        except CommandExecutionError as exc:
            logger.exception("Error running tests for issue #%d", issue_number)
            await self.github_client.create_comment(
                issue_number,
                "## Test Error\n\n"
                "❌ An error occurred while running tests:\n\n"
                f"```\n{exc}\n```",
            )
            self._record_issue_run("error")
            return StageResult(
                stage_type="test",
                success=False,
                output="",
                error_output=str(exc),
                duration_seconds=time.monotonic() - start_time,
            )

        result = StageResult(
            stage_type="test",
            success=command_result.exit_code == 0,
            output=command_result.stdout,
            error_output=command_result.stderr,
            duration_seconds=time.monotonic() - start_time,
        )

        if result.success:
            await self.github_client.create_comment(
                issue_number,
                "## Test Results\n\n"
                "✅ Tests passed successfully!\n\n"
                f"```\n{command_result.stdout}\n```",
            )
            await self.github_client.add_labels(issue_number, [self.success_label])
            await self.github_client.remove_label(issue_number, READY_FOR_TESTS_LABEL)
            logger.info("Tests passed for issue #%d", issue_number)
            self._record_issue_run("success")
        else:
            await self.github_client.create_comment(
                issue_number,
                "## Test Failure\n\n"
                "❌ Tests failed!\n\n"
                f"```\n{command_output(command_result)}\n```",
            )
            await self.github_client.add_labels(issue_number, [self.failure_label])
            logger.error("Tests failed for issue #%d", issue_number)
            self._record_issue_run("failure")

        return result

    def _record_issue_run(self, result: str) -> None:
        if self.metrics is not None:
            self.metrics.record_issue_test_run(result)


def stages_from_names(names: Sequence[str]) -> List[StageDescriptor]:
    """Build stage descriptors whose pattern is the stage name."""
    return [StageDescriptor(name=name, pattern=name) for name in names]
