"""Single-shot build and deployment stages.

Each stage runs one command and wraps its exit code and output into a
result record. Neither stage retries; a caller wanting retries wraps the
call itself.
"""

import logging
import time

from src.stone.ci.models import (
    BuildResult,
    CommandExecutor,
    DeploymentResult,
    command_output,
)

logger = logging.getLogger(__name__)


class BuildStage:
    """Runs the project build command."""

    def __init__(self, command_runner: CommandExecutor, build_command: str = "npm run build"):
        self.command_runner = command_runner
        self.build_command = build_command

    async def process_build_step(self, branch: str) -> BuildResult:
        """Build a branch.

        Raises:
            CommandExecutionError: If the build command cannot be started.
        """
        logger.info("Building branch: %s", branch)

        start_time = time.monotonic()
        result = await self.command_runner.execute(self.build_command)
        duration = time.monotonic() - start_time

        return BuildResult(
            success=result.exit_code == 0,
            output=command_output(result),
            duration_seconds=duration,
        )


class DeploymentStage:
    """Runs the deployment command for an environment.

    Attributes:
        deploy_command: Command template formatted with ``environment``
            and ``branch``.
    """

    def __init__(
        self,
        command_runner: CommandExecutor,
        deploy_command: str = 'echo "Deploying {branch} to {environment}..."',
    ):
        self.command_runner = command_runner
        self.deploy_command = deploy_command

    def render_command(self, environment: str, branch: str) -> str:
        return self.deploy_command.format(environment=environment, branch=branch)

    async def process_deployment(
        self, environment: str, branch: str
    ) -> DeploymentResult:
        """Deploy a branch to an environment.

        Raises:
            CommandExecutionError: If the deploy command cannot be started.
        """
        logger.info("Deploying branch %s to %s", branch, environment)

        start_time = time.monotonic()
        result = await self.command_runner.execute(
            self.render_command(environment, branch)
        )
        duration = time.monotonic() - start_time

        return DeploymentResult(
            success=result.exit_code == 0,
            output=command_output(result),
            duration_seconds=duration,
            environment=environment,
        )
