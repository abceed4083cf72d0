"""Label resolution and webhook event routing."""

from src.stone.routing.labels import (
    LABEL_ACTIONS,
    STONE_LABEL_PREFIX,
    WorkflowAction,
    first_label_action,
    is_stone_label,
    resolve_label_action,
)
from src.stone.routing.router import (
    EventRouter,
    RoutingOutcome,
    RoutingStatus,
    find_issue_reference,
)

__all__ = [
    "EventRouter",
    "LABEL_ACTIONS",
    "RoutingOutcome",
    "RoutingStatus",
    "STONE_LABEL_PREFIX",
    "WorkflowAction",
    "find_issue_reference",
    "first_label_action",
    "is_stone_label",
    "resolve_label_action",
]
