"""GitHub Actions workflow definition files for Stone.

WorkflowWriter emits the workflow files that run Stone inside GitHub
Actions. Writing always overwrites, so regenerating definitions that
already exist is safe.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

STONE_WORKFLOW_FILE = "stone-workflow.yml"
TEST_WORKFLOW_FILE = "stone-test.yml"
WEBHOOK_WORKFLOW_FILE = "stone-webhook.yml"

_ISSUE_NUMBER_SCRIPT = (
    'if [ "${{ github.event_name }}" = "issues" ]; then\n'
    '  ISSUE_NUMBER="${{ github.event.issue.number }}"\n'
    "else\n"
    '  ISSUE_NUMBER="${{ github.event.inputs.issue_number }}"\n'
    "fi\n"
)


DEFAULT_INSTALL_SPEC = "stone-actions"

# Everything StoneSettings requires, taken from the workflow context
STONE_STEP_ENV = {
    "STONE_GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}",
    "STONE_GITHUB_OWNER": "${{ github.repository_owner }}",
    "STONE_GITHUB_REPO": "${{ github.event.repository.name }}",
}


def _setup_steps(install_spec: str) -> List[Dict[str, Any]]:
    return [
        {"name": "Checkout repository", "uses": "actions/checkout@v4"},
        {
            "name": "Set up Python",
            "uses": "actions/setup-python@v5",
            "with": {"python-version": "3.12"},
        },
        {"name": "Install Stone", "run": f"pip install '{install_spec}'"},
    ]


def _dispatch_inputs(description: str) -> Dict[str, Any]:
    return {
        "inputs": {
            "issue_number": {
                "description": description,
                "required": True,
                "type": "number",
            }
        }
    }


def stone_workflow(install_spec: str = DEFAULT_INSTALL_SPEC) -> Dict[str, Any]:
    """Workflow that processes issues when Stone labels change."""
    return {
        "name": "Stone Software Factory",
        "on": {
            "issues": {"types": ["labeled", "unlabeled", "edited"]},
            "workflow_dispatch": _dispatch_inputs("GitHub issue number to process"),
        },
        "jobs": {
            "stone_process": {
                "runs-on": "ubuntu-latest",
                "steps": _setup_steps(install_spec)
                + [
                    {
                        "name": "Process Stone issue",
                        "run": _ISSUE_NUMBER_SCRIPT
                        + "stone actions --issue $ISSUE_NUMBER",
                        "env": dict(STONE_STEP_ENV),
                    }
                ],
            }
        },
    }


def testing_workflow(install_spec: str = DEFAULT_INSTALL_SPEC) -> Dict[str, Any]:
    """Workflow that runs tests for issues labelled ready-for-tests."""
    return {
        "name": "Stone Test Runner",
        "on": {
            "issues": {"types": ["labeled"]},
            "workflow_dispatch": _dispatch_inputs("GitHub issue number to test"),
        },
        "jobs": {
            "run_tests": {
                "runs-on": "ubuntu-latest",
                "if": (
                    "github.event.label.name == 'stone-ready-for-tests' "
                    "|| github.event_name == 'workflow_dispatch'"
                ),
                "steps": _setup_steps(install_spec)
                + [
                    {
                        "name": "Run tests",
                        "run": _ISSUE_NUMBER_SCRIPT
                        + "stone actions --test $ISSUE_NUMBER",
                        "env": dict(STONE_STEP_ENV),
                    }
                ],
            }
        },
    }


def webhook_workflow(install_spec: str = DEFAULT_INSTALL_SPEC) -> Dict[str, Any]:
    """Workflow that forwards repository_dispatch payloads to Stone."""
    return {
        "name": "Stone Webhook Handler",
        "on": {"repository_dispatch": {"types": ["stone-webhook"]}},
        "jobs": {
            "process_webhook": {
                "runs-on": "ubuntu-latest",
                "steps": _setup_steps(install_spec)
                + [
                    {
                        "name": "Write webhook payload",
                        "run": (
                            "echo '${{ toJson(github.event.client_payload.payload) }}'"
                            " > webhook-payload.json"
                        ),
                    },
                    {
                        "name": "Process webhook",
                        "run": (
                            "stone actions "
                            '--webhook "${{ github.event.client_payload.event_type }}" '
                            "--payload-file webhook-payload.json"
                        ),
                        "env": dict(STONE_STEP_ENV),
                    },
                ],
            }
        },
    }


class WorkflowWriter:
    """Writes Stone's workflow definition files.

    Attributes:
        workflow_dir: Directory receiving the workflow files.
        use_webhooks: Whether the webhook workflow is generated too.
        install_spec: pip requirement the jobs install Stone from, e.g. a
            package name, a wheel URL or a "git+https://..." reference.
    """

    def __init__(
        self,
        workflow_dir: Path,
        use_webhooks: bool = True,
        install_spec: str = DEFAULT_INSTALL_SPEC,
    ):
        self.workflow_dir = Path(workflow_dir)
        self.use_webhooks = use_webhooks
        self.install_spec = install_spec

    def workflow_files(self) -> List[str]:
        files = [STONE_WORKFLOW_FILE, TEST_WORKFLOW_FILE]
        if self.use_webhooks:
            files.append(WEBHOOK_WORKFLOW_FILE)
        return files

    async def write_all(self) -> List[Path]:
        """Create or overwrite every workflow definition.

        Returns:
            Paths of the files written, in a stable order.

        Raises:
            OSError: If the directory or a file cannot be written.
        """
        definitions = {
            STONE_WORKFLOW_FILE: stone_workflow(self.install_spec),
            TEST_WORKFLOW_FILE: testing_workflow(self.install_spec),
        }
        if self.use_webhooks:
            definitions[WEBHOOK_WORKFLOW_FILE] = webhook_workflow(self.install_spec)

        self.workflow_dir.mkdir(parents=True, exist_ok=True)
        return [
            self._write(name, definition) for name, definition in definitions.items()
        ]

    def _write(self, file_name: str, definition: Dict[str, Any]) -> Path:
        path = self.workflow_dir / file_name
        path.write_text(
            yaml.safe_dump(definition, sort_keys=False, width=float("inf")),
            encoding="utf-8",
        )
        logger.info("Wrote workflow definition %s", path)
        return path

    def load(self, file_name: str) -> Optional[Dict[str, Any]]:
        """Read back a workflow definition, or None if it does not exist."""
        path = self.workflow_dir / file_name
        if not path.exists():
            return None
        with path.open(encoding="utf-8") as f:
            return yaml.safe_load(f)
