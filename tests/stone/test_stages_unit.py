"""Unit tests for BuildStage and DeploymentStage."""

from src.stone.ci import BuildStage, DeploymentStage
from tests.stone.helpers import ScriptedCommandRunner, run_async


class TestBuildStage:
    def test_successful_build(self):
        runner = ScriptedCommandRunner(stdout="built in 3s")

        result = run_async(BuildStage(runner).process_build_step("main"))

        assert result.success is True
        assert result.output == "built in 3s"
        assert runner.commands == ["npm run build"]

    def test_failed_build_reports_stderr(self):
        runner = ScriptedCommandRunner(exit_codes=[2], stderr="tsc: 4 errors")

        result = run_async(
            BuildStage(runner, build_command="make").process_build_step("main")
        )

        assert result.success is False
        assert result.output == "tsc: 4 errors"
        assert runner.commands == ["make"]


class TestDeploymentStage:
    def test_default_command_template(self):
        stage = DeploymentStage(ScriptedCommandRunner())

        assert (
            stage.render_command("staging", "release/1.2")
            == 'echo "Deploying release/1.2 to staging..."'
        )

    def test_successful_deployment(self):
        runner = ScriptedCommandRunner(stdout="deployed")
        stage = DeploymentStage(runner, deploy_command="./deploy.sh {environment} {branch}")

        result = run_async(stage.process_deployment("production", "main"))

        assert result.success is True
        assert result.environment == "production"
        assert result.output == "deployed"
        assert runner.commands == ["./deploy.sh production main"]

    def test_failed_deployment(self):
        runner = ScriptedCommandRunner(exit_codes=[1], stderr="permission denied")

        result = run_async(
            DeploymentStage(runner).process_deployment("staging", "main")
        )

        assert result.success is False
        assert result.output == "permission denied"
        assert len(runner.commands) == 1
