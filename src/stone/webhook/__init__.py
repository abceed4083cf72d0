"""GitHub webhook handling for Stone.

This module parses the GitHub webhook events Stone reacts to:
- issues.labeled - Label added to an issue
- pull_request.* - Pull request opened, reopened, synchronized or closed
"""

from .handler import WebhookParser
from .models import (
    ISSUES_LABELED,
    PULL_REQUEST_PREFIX,
    IssueLabeledEvent,
    PullRequestAction,
    PullRequestEvent,
)

__all__ = [
    "ISSUES_LABELED",
    "PULL_REQUEST_PREFIX",
    "IssueLabeledEvent",
    "PullRequestAction",
    "PullRequestEvent",
    "WebhookParser",
]
