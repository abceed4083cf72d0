"""GitHub API client for issue, label and commit status interactions."""

from src.stone.github.client import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
)
from src.stone.github.models import CommitState, Issue

__all__ = [
    "CommitState",
    "GitHubAPIError",
    "GitHubClient",
    "Issue",
    "RateLimitError",
]
