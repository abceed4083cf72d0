"""GitHub issue and commit status models.

The models use Pydantic for validation, consistent with the webhook event
models in src/stone/webhook/models.py.
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class CommitState(str, Enum):
    """Commit status states accepted by the GitHub statuses API."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


class Issue(BaseModel):
    """The subset of a GitHub issue the orchestration core relies on.

    Attributes:
        number: The issue number within the repository.
        title: The issue title text.
        labels: Label names attached to the issue, in GitHub's order.
    """

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., gt=0)
    title: str = ""
    labels: List[str] = Field(default_factory=list)

    def has_label(self, label_name: str) -> bool:
        """Check if the issue has a specific label (case-sensitive)."""
        return label_name in self.labels

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "Issue":
        """Build an Issue from a GitHub REST API issue payload.

        GitHub returns labels as objects with a 'name' field, but some
        endpoints and fixtures use plain strings; both are accepted.
        """
        labels = []
        for label in data.get("labels") or []:
            if isinstance(label, dict):
                name = label.get("name")
            else:
                name = label
            if isinstance(name, str) and name:
                labels.append(name)

        return cls(
            number=data["number"],
            title=data.get("title") or "",
            labels=labels,
        )
