"""Trigger Stone workflow runs for role-driven workflow actions.

Role stages (process, pm, qa, feature, audit) run inside GitHub Actions.
The dispatcher starts the Stone workflow for an issue through the
workflow_dispatch API; the workflow itself reads the issue's labels.
"""

import logging
from typing import Optional

from src.stone.github.client import GitHubClient
from src.stone.routing.labels import WorkflowAction
from src.stone.workflows.writer import STONE_WORKFLOW_FILE

logger = logging.getLogger(__name__)


class WorkflowDispatcher:
    """Starts the Stone workflow for an issue.

    Attributes:
        github_client: Client for the managed repository.
        ref: Git ref to run the workflow on; the repository's default
            branch is looked up when not set.
        workflow_file: Workflow definition file to dispatch.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        ref: Optional[str] = None,
        workflow_file: str = STONE_WORKFLOW_FILE,
    ):
        self.github_client = github_client
        self.ref = ref
        self.workflow_file = workflow_file

    async def dispatch(self, action: WorkflowAction, issue_number: int) -> None:
        """Dispatch the workflow for an issue.

        Raises:
            GitHubAPIError: If GitHub rejects the dispatch.
        """
        ref = self.ref or await self.github_client.get_default_branch()

        logger.info(
            "Dispatching %s workflow for issue #%d",
            action.value,
            issue_number,
            extra={"ref": ref, "workflow": self.workflow_file},
        )

        await self.github_client.dispatch_workflow(
            self.workflow_file,
            ref=ref,
            inputs={"issue_number": str(issue_number)},
        )
