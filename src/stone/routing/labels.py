"""Stone label vocabulary and the label to workflow action mapping.

Labels carrying the reserved prefix signal workflow stage transitions on
an issue. The mapping is closed: anything not listed resolves to no action.
Both the event router and the orchestrator's issue processing resolve
labels through resolve_label_action so the two can never disagree.
"""

from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple


STONE_LABEL_PREFIX = "stone-"

READY_FOR_TESTS_LABEL = "stone-ready-for-tests"
DOCS_LABEL = "stone-docs"
TEST_FAILURE_LABEL = "stone-test-failure"
ACTIONS_LABEL = "stone-actions"
FEATURE_IMPLEMENT_LABEL = "stone-feature-implement"


class WorkflowAction(str, Enum):
    """Workflow stages a Stone label can trigger."""

    PROCESS = "process"
    PM = "pm"
    QA = "qa"
    FEATURE = "feature"
    AUDIT = "audit"
    TEST = "test"


LABEL_ACTIONS: Mapping[str, WorkflowAction] = MappingProxyType(
    {
        "stone-process": WorkflowAction.PROCESS,
        "stone-pm": WorkflowAction.PM,
        "stone-qa": WorkflowAction.QA,
        FEATURE_IMPLEMENT_LABEL: WorkflowAction.FEATURE,
        "stone-feature-fix": WorkflowAction.FEATURE,
        "stone-audit": WorkflowAction.AUDIT,
        READY_FOR_TESTS_LABEL: WorkflowAction.TEST,
        DOCS_LABEL: WorkflowAction.PM,
        "stone-pr": WorkflowAction.PM,
    }
)


def is_stone_label(label_name: str) -> bool:
    """Check whether a label carries the reserved Stone prefix."""
    return label_name.startswith(STONE_LABEL_PREFIX)


def resolve_label_action(label_name: str) -> Optional[WorkflowAction]:
    """Map a label to its workflow action.

    Args:
        label_name: The label name, compared case-sensitively.

    Returns:
        The workflow action, or None for non-Stone or unknown labels.
    """
    if not is_stone_label(label_name):
        return None
    return LABEL_ACTIONS.get(label_name)


def first_label_action(
    labels: Iterable[str],
) -> Optional[Tuple[str, WorkflowAction]]:
    """Find the first label in order that resolves to a workflow action."""
    for label in labels:
        action = resolve_label_action(label)
        if action is not None:
            return label, action
    return None
