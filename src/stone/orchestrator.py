"""Stone orchestrator: the façade over routing, CI stages and reporting.

Receives webhook deliveries and direct operation requests and delegates
them to injected collaborators:
webhook → EventRouter → workflow action → PipelineRunner / dispatcher
→ StatusReporter → GitHub.

The orchestrator holds only its collaborators, so concurrent deliveries
share no mutable state. No ordering is imposed between them; callers that
need per-issue ordering serialize before calling in.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from src.stone.ci.models import (
    BuildResult,
    DeploymentResult,
    IssueTracker,
    PipelineResult,
    StageResult,
)
from src.stone.ci.pipeline import PipelineRunner, stages_from_names
from src.stone.ci.stages import BuildStage, DeploymentStage
from src.stone.ci.status import StatusReporter
from src.stone.config import StoneSettings
from src.stone.github.client import GitHubClient
from src.stone.metrics import StoneMetrics, get_metrics
from src.stone.retry import RetryExecutor
from src.stone.routing.labels import (
    ACTIONS_LABEL,
    FEATURE_IMPLEMENT_LABEL,
    WorkflowAction,
    first_label_action,
)
from src.stone.routing.router import EventRouter, RoutingOutcome
from src.stone.runner.command import CommandRunner
from src.stone.workflows.dispatcher import WorkflowDispatcher
from src.stone.workflows.writer import WorkflowWriter

logger = logging.getLogger(__name__)


class WorkflowTrigger(Protocol):
    """Starts role-driven workflows (everything except tests)."""

    async def dispatch(self, action: WorkflowAction, issue_number: int) -> None:
        ...


class StoneOrchestrator:
    """Composes routing, the CI pipeline and status reporting.

    Attributes:
        github_client: Issue tracker for labels and comments.
        pipeline_runner: Runs test stages and issue test runs.
        build_stage: Runs the build command.
        deployment_stage: Runs deployments.
        status_reporter: Renders reports and commit statuses.
        workflow_writer: Regenerates workflow definition files.
        workflow_trigger: Starts role workflows; None logs and skips them.
        router: Routes webhook deliveries to run_workflow.
    """

    def __init__(
        self,
        github_client: IssueTracker,
        pipeline_runner: PipelineRunner,
        build_stage: BuildStage,
        deployment_stage: DeploymentStage,
        status_reporter: StatusReporter,
        workflow_writer: WorkflowWriter,
        workflow_trigger: Optional[WorkflowTrigger] = None,
        router: Optional[EventRouter] = None,
        retry_executor: Optional[RetryExecutor] = None,
        retry_max_attempts: int = 3,
        retry_initial_delay_ms: int = 1000,
        metrics: Optional[StoneMetrics] = None,
    ):
        self.github_client = github_client
        self.pipeline_runner = pipeline_runner
        self.build_stage = build_stage
        self.deployment_stage = deployment_stage
        self.status_reporter = status_reporter
        self.workflow_writer = workflow_writer
        self.workflow_trigger = workflow_trigger
        self.router = router or EventRouter(
            run_workflow=self.run_workflow,
            retry_executor=retry_executor,
            max_attempts=retry_max_attempts,
            initial_delay_ms=retry_initial_delay_ms,
            metrics=metrics,
        )

    async def initialize(self) -> List[str]:
        """Create or regenerate the Stone workflow definitions.

        Safe to call repeatedly; existing definitions are overwritten.

        Returns:
            Names of the workflow files written.
        """
        logger.info("Initializing GitHub Actions workflows")
        paths = await self.workflow_writer.write_all()
        logger.info("GitHub Actions workflows initialized")
        return [path.name for path in paths]

    async def process_webhook(
        self, event_type: str, payload: Dict[str, Any]
    ) -> RoutingOutcome:
        """Route a webhook delivery. Never raises."""
        return await self.router.route(event_type, payload)

    async def run_workflow(
        self, action: WorkflowAction, issue_number: int, dispatch: bool = True
    ) -> None:
        """Run the workflow mapped to a Stone label for an issue.

        Tests run in-process; other actions are handed to the workflow
        trigger.

        Args:
            action: The workflow action resolved from the label.
            issue_number: The issue the workflow runs for.
            dispatch: Whether role actions start a Stone workflow run.
                Callers already running inside that workflow pass False,
                since dispatching again would start another run of itself.
        """
        logger.info(
            "Running %s workflow for issue #%d", action.value, issue_number
        )

        if action is WorkflowAction.TEST:
            await self.pipeline_runner.run_tests_for_issue(issue_number)
            return

        if not dispatch:
            logger.info(
                "Already inside the Stone workflow, not dispatching %s for issue #%d",
                action.value,
                issue_number,
            )
            return

        if self.workflow_trigger is None:
            logger.info(
                "No workflow trigger configured, skipping %s for issue #%d",
                action.value,
                issue_number,
            )
            return

        await self.workflow_trigger.dispatch(action, issue_number)

    async def process_issue(
        self, issue_number: int, dispatch: bool = True
    ) -> Optional[WorkflowAction]:
        """Process an issue based on its current labels.

        The stone-actions label regenerates workflow files. Otherwise the
        first label that resolves through the label mapping selects the
        workflow, exactly as a labeled webhook would.

        Args:
            issue_number: The issue to process.
            dispatch: Passed through to run_workflow; False when called
                from within the Stone workflow itself.

        Returns:
            The workflow action run, or None if no label matched.

        Raises:
            GitHubAPIError: If the issue cannot be read.
        """
        issue = await self.github_client.get_issue(issue_number)

        if issue.has_label(ACTIONS_LABEL):
            await self.process_actions_issue(issue_number)
            return None

        matched = first_label_action(issue.labels)
        if matched is None:
            logger.info(
                "Issue #%d does not have a recognized Stone label", issue_number
            )
            return None

        label, action = matched
        logger.info(
            "Issue #%d routed by label '%s'",
            issue_number,
            label,
            extra={"action": action.value},
        )
        await self.run_workflow(action, issue_number, dispatch=dispatch)
        return action

    async def process_actions_issue(self, issue_number: int) -> None:
        """Regenerate workflow files for an issue labelled stone-actions.

        Raises:
            GitHubAPIError: If commenting or relabelling fails.
        """
        logger.info("Processing GitHub Actions for issue #%d", issue_number)

        try:
            files = await self.initialize()
        except OSError as exc:
            logger.exception(
                "Error processing GitHub Actions for issue #%d", issue_number
            )
            await self.github_client.create_comment(
                issue_number,
                "## Error Processing GitHub Actions\n\n"
                "An error occurred while processing GitHub Actions for this issue:"
                f"\n\n```\n{exc}\n```",
            )
            return

        directory = self.workflow_writer.workflow_dir.as_posix()
        file_list = "\n".join(f"- `{directory}/{name}`" for name in files)
        await self.github_client.create_comment(
            issue_number,
            "## GitHub Actions Updated\n\n"
            "The following workflow files have been created/updated:\n\n"
            f"{file_list}\n\n"
            "These workflows will automatically process Stone issues based on their labels.",
        )
        await self.github_client.add_labels(issue_number, [FEATURE_IMPLEMENT_LABEL])
        await self.github_client.remove_label(issue_number, ACTIONS_LABEL)

    async def process_testing_issue(self, issue_number: int) -> Optional[StageResult]:
        """Run tests for an issue labelled stone-ready-for-tests."""
        return await self.pipeline_runner.run_tests_for_issue(issue_number)

    async def run_test_pipeline(
        self, branch: str, test_path: Optional[str] = None
    ) -> PipelineResult:
        return await self.pipeline_runner.run_pipeline(branch, test_path)

    async def update_pr_status(
        self, pr_number: int, commit_sha: str, pipeline_result: PipelineResult
    ) -> None:
        await self.status_reporter.update_pr_status(
            pr_number, commit_sha, pipeline_result
        )

    async def process_deployment(
        self, environment: str, branch: str
    ) -> DeploymentResult:
        return await self.deployment_stage.process_deployment(environment, branch)

    async def process_build_step(self, branch: str) -> BuildResult:
        return await self.build_stage.process_build_step(branch)

    def create_status_report(
        self,
        branch: str,
        pipeline_result: PipelineResult,
        build_result: BuildResult,
        deployment_result: Optional[DeploymentResult] = None,
    ) -> str:
        return self.status_reporter.create_status_report(
            branch, pipeline_result, build_result, deployment_result
        )


def build_orchestrator(
    settings: StoneSettings,
    github_client: GitHubClient,
    repo_root: Optional[Path] = None,
) -> StoneOrchestrator:
    """Wire all Stone dependencies into a StoneOrchestrator.

    Args:
        settings: Validated StoneSettings.
        github_client: Authenticated client for the managed repository.
        repo_root: Checkout the commands run in and the workflow files
            are written to; defaults to the current working directory.

    Returns:
        Fully wired StoneOrchestrator.
    """
    root = repo_root or Path.cwd()
    metrics = get_metrics()

    command_runner = CommandRunner(
        working_directory=root,
        timeout_seconds=settings.command_timeout_seconds,
    )
    pipeline_runner = PipelineRunner(
        command_runner=command_runner,
        github_client=github_client,
        test_command=settings.test_command,
        stages=stages_from_names(settings.test_stages),
        metrics=metrics,
    )
    return StoneOrchestrator(
        github_client=github_client,
        pipeline_runner=pipeline_runner,
        build_stage=BuildStage(command_runner, settings.build_command),
        deployment_stage=DeploymentStage(command_runner, settings.deploy_command),
        status_reporter=StatusReporter(github_client),
        workflow_writer=WorkflowWriter(
            root / settings.actions_directory,
            use_webhooks=settings.use_webhooks,
            install_spec=settings.actions_install_spec,
        ),
        workflow_trigger=WorkflowDispatcher(github_client),
        retry_executor=RetryExecutor(),
        retry_max_attempts=settings.retry_max_attempts,
        retry_initial_delay_ms=settings.retry_initial_delay_ms,
        metrics=metrics,
    )
