"""GitHub webhook event models for Stone.

Two event kinds drive the workflow: an issue gaining a label and a pull
request lifecycle change. Events are constructed once per delivery by
WebhookParser and are immutable afterwards.

The models use Pydantic for validation, consistent with the configuration
approach in config.py.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


ISSUES_LABELED = "issues.labeled"
PULL_REQUEST_PREFIX = "pull_request"


class PullRequestAction(str, Enum):
    """Pull request actions Stone reacts to.

    Attributes:
        OPENED: A pull request was created.
        REOPENED: A closed pull request was reopened.
        SYNCHRONIZE: New commits were pushed to the head branch.
        CLOSED: The pull request was closed, merged or not.
    """

    OPENED = "opened"
    REOPENED = "reopened"
    SYNCHRONIZE = "synchronize"
    CLOSED = "closed"


class IssueLabeledEvent(BaseModel):
    """A label was added to an issue.

    Attributes:
        issue_number: The issue number within the repository.
        label_name: Name of the label that was just added.
    """

    model_config = ConfigDict(frozen=True)

    issue_number: int = Field(..., gt=0)
    label_name: str = Field(..., min_length=1)


class PullRequestEvent(BaseModel):
    """A pull request changed state.

    Attributes:
        pr_number: The pull request number within the repository.
        action: The lifecycle action that triggered the webhook.
        merged: Whether the pull request was merged (closed events only).
        title: The pull request title, searched for issue references.
        head_sha: Head commit SHA, used for commit status updates.
    """

    model_config = ConfigDict(frozen=True)

    pr_number: int = Field(..., gt=0)
    action: PullRequestAction
    merged: bool = False
    title: str = ""
    head_sha: Optional[str] = None

