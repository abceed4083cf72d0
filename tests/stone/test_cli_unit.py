"""Unit tests for the click CLI.

The orchestrator is replaced through the module's _run hook so no
settings, network or subprocesses are involved.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from src.stone import cli as cli_module
from src.stone.ci import (
    BuildResult,
    BuildStage,
    DeploymentResult,
    DeploymentStage,
    PipelineResult,
    PipelineRunner,
    StageResult,
    StatusReporter,
)
from src.stone.orchestrator import StoneOrchestrator
from src.stone.routing import RoutingOutcome, RoutingStatus, WorkflowAction
from src.stone.workflows import WorkflowDispatcher, WorkflowWriter
from tests.stone.helpers import ScriptedCommandRunner, make_github_client


@pytest.fixture
def orchestrator(monkeypatch):
    mock = AsyncMock()
    mock.create_status_report = MagicMock(return_value="## report")

    def fake_run(operation):
        return asyncio.run(operation(mock))

    monkeypatch.setattr(cli_module, "_run", fake_run)
    return mock


@pytest.fixture
def runner():
    return CliRunner()


def _pipeline(success=True):
    return PipelineResult(
        success=success,
        stages=(StageResult("unit", success, "ok", "", 0.5),),
    )


class TestActionsCommand:
    def test_init(self, runner, orchestrator):
        orchestrator.initialize.return_value = ["stone-workflow.yml", "stone-test.yml"]

        result = runner.invoke(cli_module.cli, ["actions", "--init"])

        assert result.exit_code == 0
        assert "stone-workflow.yml, stone-test.yml" in result.output

    def test_issue(self, runner, orchestrator):
        orchestrator.process_issue.return_value = WorkflowAction.QA

        result = runner.invoke(cli_module.cli, ["actions", "--issue", "12"])

        orchestrator.process_issue.assert_awaited_once_with(12, dispatch=False)
        assert "Issue #12 processed: qa" in result.output

    def test_test_issue(self, runner, orchestrator):
        result = runner.invoke(cli_module.cli, ["actions", "-t", "123"])

        orchestrator.process_testing_issue.assert_awaited_once_with(123)
        assert "Tests completed!" in result.output

    def test_webhook_with_payload_file(self, runner, orchestrator, tmp_path):
        payload = {"issue": {"number": 1}, "label": {"name": "stone-qa"}}
        payload_file = tmp_path / "payload.json"
        payload_file.write_text(json.dumps(payload))
        orchestrator.process_webhook.return_value = RoutingOutcome(
            status=RoutingStatus.DISPATCHED, event_type="issues.labeled", detail="ran qa"
        )

        result = runner.invoke(
            cli_module.cli,
            ["actions", "-w", "issues.labeled", "--payload-file", str(payload_file)],
        )

        orchestrator.process_webhook.assert_awaited_once_with("issues.labeled", payload)
        assert "Webhook dispatched: ran qa" in result.output

    def test_run_pipeline(self, runner, orchestrator):
        orchestrator.run_test_pipeline.return_value = _pipeline(success=False)

        result = runner.invoke(
            cli_module.cli, ["actions", "-r", "main", "--test-path", "/pkg"]
        )

        orchestrator.run_test_pipeline.assert_awaited_once_with("main", "/pkg")
        assert "Tests failed" in result.output

    def test_pr_status(self, runner, orchestrator):
        pipeline = _pipeline()
        orchestrator.run_test_pipeline.return_value = pipeline

        result = runner.invoke(
            cli_module.cli, ["actions", "-p", "7", "--sha", "abc123"]
        )

        orchestrator.update_pr_status.assert_awaited_once_with(7, "abc123", pipeline)
        assert "PR #7 status: success" in result.output

    def test_deploy(self, runner, orchestrator):
        orchestrator.process_deployment.return_value = DeploymentResult(
            success=True, output="done", duration_seconds=1.0, environment="staging"
        )

        result = runner.invoke(cli_module.cli, ["actions", "-d", "staging", "-r", "main"])

        orchestrator.process_deployment.assert_awaited_once_with("staging", "main")
        assert "Deployment successful" in result.output

    def test_build(self, runner, orchestrator):
        orchestrator.process_build_step.return_value = BuildResult(
            success=False, output="error", duration_seconds=1.0
        )

        result = runner.invoke(cli_module.cli, ["actions", "-b", "-r", "main"])

        assert "Build failed" in result.output

    def test_no_action(self, runner, orchestrator):
        result = runner.invoke(cli_module.cli, ["actions"])

        assert result.exit_code == 0
        assert "No action specified" in result.output


class TestReportCommand:
    def test_skips_deploy_when_tests_fail(self, runner, orchestrator):
        orchestrator.run_test_pipeline.return_value = _pipeline(success=False)
        orchestrator.process_build_step.return_value = BuildResult(True, "", 1.0)

        result = runner.invoke(cli_module.cli, ["report", "main", "-d", "prod"])

        assert result.exit_code == 0
        assert "## report" in result.output
        orchestrator.process_deployment.assert_not_awaited()


class TestConfigurationErrors:
    def test_missing_settings(self, runner, monkeypatch):
        for name in ("STONE_GITHUB_TOKEN", "STONE_GITHUB_OWNER", "STONE_GITHUB_REPO"):
            monkeypatch.delenv(name, raising=False)

        result = runner.invoke(cli_module.cli, ["actions", "--init"])

        assert result.exit_code != 0
        assert "Invalid configuration" in result.output


class TestIssueInsideWorkflow:
    """`stone actions --issue` runs inside the Stone workflow itself."""

    @pytest.mark.parametrize(
        "label", ["stone-qa", "stone-process", "stone-pm", "stone-feature-fix", "stone-audit"]
    )
    def test_role_label_does_not_dispatch_workflow(
        self, runner, monkeypatch, tmp_path, label
    ):
        github_client = make_github_client(labels=[label])
        github_client.get_default_branch.return_value = "main"
        command_runner = ScriptedCommandRunner()
        orchestrator = StoneOrchestrator(
            github_client=github_client,
            pipeline_runner=PipelineRunner(command_runner, github_client),
            build_stage=BuildStage(command_runner),
            deployment_stage=DeploymentStage(command_runner),
            status_reporter=StatusReporter(github_client),
            workflow_writer=WorkflowWriter(tmp_path),
            workflow_trigger=WorkflowDispatcher(github_client),
        )
        monkeypatch.setattr(
            cli_module, "_run", lambda operation: asyncio.run(operation(orchestrator))
        )

        result = runner.invoke(cli_module.cli, ["actions", "--issue", "123"])

        assert result.exit_code == 0
        github_client.dispatch_workflow.assert_not_awaited()
        assert command_runner.commands == []
