"""Command-line interface for Stone.

Exposes the orchestrator operations for use from GitHub Actions jobs and
local shells. Configuration comes from STONE_* environment variables.
"""

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click
from pydantic import ValidationError

from src.stone.config import get_settings
from src.stone.github.client import GitHubAPIError, GitHubClient
from src.stone.orchestrator import StoneOrchestrator, build_orchestrator
from src.stone.runner.command import CommandExecutionError


T = TypeVar("T")


def _run(operation: Callable[[StoneOrchestrator], Awaitable[T]]) -> T:
    """Build an orchestrator, run one async operation and close the client."""
    try:
        settings = get_settings()
    except ValidationError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc

    async def runner() -> T:
        async with GitHubClient(
            token=settings.github_token,
            owner=settings.github_owner,
            repo=settings.github_repo,
            base_url=settings.github_base_url,
        ) as client:
            orchestrator = build_orchestrator(settings, client, Path.cwd().resolve())
            return await operation(orchestrator)

    try:
        return asyncio.run(runner())
    except (GitHubAPIError, CommandExecutionError, OSError) as exc:
        raise click.ClickException(f"Actions command failed: {exc}") from exc


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


@click.group()
@click.option("--verbose", is_flag=True, default=False)
def cli(verbose: bool) -> None:
    """Stone CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command("actions")
@click.option("-i", "--init", "init_", is_flag=True, help="Initialize GitHub Actions workflows")
@click.option("--issue", type=int, default=None, help="Process an issue by its labels")
@click.option("-t", "--test", "test_issue", type=int, default=None, help="Run tests for a specific issue")
@click.option("-w", "--webhook", "webhook_type", default=None, help="Process a webhook event type")
@click.option(
    "--payload-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON payload for --webhook",
)
@click.option("-r", "--run", "branch", default=None, help="Branch to test, build or deploy")
@click.option("--test-path", default=None, help="Restrict the test pipeline to a path")
@click.option("-p", "--pr", "pr_number", type=int, default=None, help="Update PR status")
@click.option("--sha", default=None, help="Commit SHA for PR status update")
@click.option("-d", "--deploy", "environment", default=None, help="Deploy to an environment")
@click.option("-b", "--build", is_flag=True, default=False, help="Run build process")
def actions_command(
    init_: bool,
    issue: Optional[int],
    test_issue: Optional[int],
    webhook_type: Optional[str],
    payload_file: Optional[Path],
    branch: Optional[str],
    test_path: Optional[str],
    pr_number: Optional[int],
    sha: Optional[str],
    environment: Optional[str],
    build: bool,
) -> None:
    """Manage GitHub Actions workflows and CI stages."""
    if init_:
        files = _run(lambda o: o.initialize())
        click.echo(f"GitHub Actions workflows initialized: {', '.join(files)}")
    elif issue is not None:
        # Runs inside the Stone workflow, so role actions must not re-dispatch it
        action = _run(lambda o: o.process_issue(issue, dispatch=False))
        click.echo(f"Issue #{issue} processed: {action.value if action else 'no action'}")
    elif test_issue is not None:
        _run(lambda o: o.process_testing_issue(test_issue))
        click.echo("Tests completed!")
    elif webhook_type:
        payload = json.loads(payload_file.read_text(encoding="utf-8")) if payload_file else {}
        outcome = _run(lambda o: o.process_webhook(webhook_type, payload))
        click.echo(f"Webhook {outcome.status.value}: {outcome.detail}")
    elif pr_number is not None and sha:
        async def test_and_report(o: StoneOrchestrator):
            result = await o.run_test_pipeline(branch or sha, test_path)
            await o.update_pr_status(pr_number, sha, result)
            return result

        result = _run(test_and_report)
        click.echo(f"PR #{pr_number} status: {'success' if result.success else 'failure'}")
    elif environment and branch:
        result = _run(lambda o: o.process_deployment(environment, branch))
        _echo_json(asdict(result))
        click.echo(f"Deployment {'successful' if result.success else 'failed'}")
    elif build and branch:
        result = _run(lambda o: o.process_build_step(branch))
        _echo_json(asdict(result))
        click.echo(f"Build {'successful' if result.success else 'failed'}")
    elif branch:
        result = _run(lambda o: o.run_test_pipeline(branch, test_path))
        _echo_json(asdict(result))
        click.echo(f"Tests {'passed' if result.success else 'failed'}")
    else:
        click.echo("No action specified. Use --help to see available options.")


@cli.command("report")
@click.argument("branch")
@click.option("--test-path", default=None)
@click.option("-d", "--deploy", "environment", default=None)
def report_command(branch: str, test_path: Optional[str], environment: Optional[str]) -> None:
    """Run tests, build and an optional deployment, then print a status report."""

    async def full_run(o: StoneOrchestrator) -> str:
        pipeline_result = await o.run_test_pipeline(branch, test_path)
        build_result = await o.process_build_step(branch)
        deployment_result = None
        if environment and pipeline_result.success and build_result.success:
            deployment_result = await o.process_deployment(environment, branch)
        return o.create_status_report(
            branch, pipeline_result, build_result, deployment_result
        )

    click.echo(_run(full_run))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
