"""Status reporting for CI runs.

StatusReporter renders pipeline, build and deployment outcomes into a
markdown report and maps test outcomes onto GitHub commit statuses.
Reports are deterministic for identical inputs.
"""

import logging
from typing import List, Optional

from src.stone.ci.models import (
    BuildResult,
    DeploymentResult,
    IssueTracker,
    PipelineResult,
)
from src.stone.github.models import CommitState

logger = logging.getLogger(__name__)

SUCCESS_GLYPH = "✅"
FAILURE_GLYPH = "❌"

STATUS_CONTEXT = "stone/tests"


def _glyph(success: bool) -> str:
    return SUCCESS_GLYPH if success else FAILURE_GLYPH


def _status_line(name: str, success: bool, duration_seconds: float) -> str:
    outcome = "Success" if success else "Failed"
    return f"- {_glyph(success)} **{name}**: {outcome} ({duration_seconds:.1f}s)"


class StatusReporter:
    """Reduces CI outcomes into reports and commit statuses."""

    def __init__(self, github_client: IssueTracker, context: str = STATUS_CONTEXT):
        self.github_client = github_client
        self.context = context

    def create_status_report(
        self,
        branch: str,
        pipeline_result: PipelineResult,
        build_result: BuildResult,
        deployment_result: Optional[DeploymentResult] = None,
    ) -> str:
        """Render a markdown status report for a branch.

        Args:
            branch: Branch the results belong to.
            pipeline_result: Test pipeline outcome.
            build_result: Build outcome.
            deployment_result: Deployment outcome, if a deployment ran.

        Returns:
            Markdown report with one section per stage group and an
            overall status line.
        """
        report: List[str] = [f"## CI/CD Status Report for `{branch}`", ""]

        report.append("### Tests")
        for stage in pipeline_result.stages:
            report.append(
                _status_line(stage.stage_type, stage.success, stage.duration_seconds)
            )
        report.append("")

        report.append("### Build")
        report.append(
            _status_line("Build", build_result.success, build_result.duration_seconds)
        )
        report.append("")

        if deployment_result is not None:
            report.append("### Deployment")
            report.append(
                _status_line(
                    deployment_result.environment,
                    deployment_result.success,
                    deployment_result.duration_seconds,
                )
            )
            report.append("")

        overall_success = (
            pipeline_result.success
            and build_result.success
            and (deployment_result is None or deployment_result.success)
        )

        report.append("### Overall Status")
        report.append(f"{_glyph(overall_success)} {'Success' if overall_success else 'Failed'}")

        return "\n".join(report)

    def describe(self, pipeline_result: PipelineResult) -> str:
        """Short commit status description for a pipeline result."""
        if pipeline_result.success:
            return "All tests passed"
        failed = [stage.stage_type for stage in pipeline_result.failed_stages]
        if not failed:
            return "Tests incomplete"
        return f"Tests failed: {', '.join(failed)}"

    async def update_pr_status(
        self,
        pr_number: int,
        commit_sha: str,
        pipeline_result: PipelineResult,
    ) -> None:
        """Publish a pipeline result as a single commit status.

        Raises:
            GitHubAPIError: If the status update fails.
        """
        state = CommitState.SUCCESS if pipeline_result.success else CommitState.FAILURE

        await self.github_client.create_commit_status(
            commit_sha,
            state,
            description=self.describe(pipeline_result),
            context=self.context,
        )

        logger.info(
            "Updated PR #%d status: %s",
            pr_number,
            state.value,
            extra={"pr_number": pr_number, "sha": commit_sha},
        )
