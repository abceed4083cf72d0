"""GitHub Actions workflow definitions and dispatch for Stone."""

from src.stone.workflows.dispatcher import WorkflowDispatcher
from src.stone.workflows.writer import (
    STONE_WORKFLOW_FILE,
    TEST_WORKFLOW_FILE,
    WEBHOOK_WORKFLOW_FILE,
    WorkflowWriter,
)

__all__ = [
    "STONE_WORKFLOW_FILE",
    "TEST_WORKFLOW_FILE",
    "WEBHOOK_WORKFLOW_FILE",
    "WorkflowDispatcher",
    "WorkflowWriter",
]
