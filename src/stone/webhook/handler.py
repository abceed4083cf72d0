"""GitHub webhook payload parsing for Stone.

This module turns raw webhook payloads into IssueLabeledEvent and
PullRequestEvent objects. Malformed payloads are logged and yield None
rather than raising, so a bad delivery can never fail the receiver.

GitHub Webhook Payload Structure (issues.labeled):
{
  "action": "labeled",
  "issue": {"number": 123, "title": "...", "labels": [{"name": "stone-qa"}]},
  "label": {"name": "stone-qa"}
}

GitHub Webhook Payload Structure (pull_request):
{
  "action": "closed",
  "pull_request": {
    "number": 7,
    "title": "Fix #123",
    "merged": true,
    "head": {"sha": "abc123"}
  }
}
"""

import logging
from typing import Any, Dict, Optional

from .models import IssueLabeledEvent, PullRequestAction, PullRequestEvent

logger = logging.getLogger(__name__)


class WebhookParser:
    """Parser for the GitHub webhook payloads Stone understands."""

    def parse_issue_labeled(
        self, payload: Dict[str, Any]
    ) -> Optional[IssueLabeledEvent]:
        """Parse an issues.labeled payload.

        Args:
            payload: The raw webhook payload as a dictionary.

        Returns:
            IssueLabeledEvent if parsing succeeds, None otherwise.
        """
        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return None

        issue_number = self._extract_number(payload.get("issue"), "issue")
        if issue_number is None:
            return None

        label_data = payload.get("label")
        label_name = label_data.get("name") if isinstance(label_data, dict) else None
        if not isinstance(label_name, str) or not label_name.strip():
            logger.warning("Missing or invalid label in payload: %s", label_data)
            return None

        return IssueLabeledEvent(
            issue_number=issue_number,
            label_name=label_name.strip(),
        )

    def parse_pull_request(
        self, payload: Dict[str, Any]
    ) -> Optional[PullRequestEvent]:
        """Parse a pull_request payload.

        Returns None for malformed payloads and for actions Stone does not
        handle (e.g. labeled, review_requested); the latter are logged at
        info level since they are routine.
        """
        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return None

        pr_data = payload.get("pull_request")
        pr_number = self._extract_number(pr_data, "pull_request")
        if pr_number is None:
            return None

        action_str = payload.get("action")
        action = self._parse_action(action_str)
        if action is None:
            logger.info("Unhandled PR action: %s", action_str)
            return None

        title = pr_data.get("title")
        head = pr_data.get("head")
        head_sha = head.get("sha") if isinstance(head, dict) else None

        return PullRequestEvent(
            pr_number=pr_number,
            action=action,
            merged=bool(pr_data.get("merged")),
            title=title if isinstance(title, str) else "",
            head_sha=head_sha if isinstance(head_sha, str) else None,
        )

    def _parse_action(self, action_str: Any) -> Optional[PullRequestAction]:
        if not isinstance(action_str, str):
            return None

        try:
            return PullRequestAction(action_str)
        except ValueError:
            return None

    def _extract_number(self, data: Any, context: str) -> Optional[int]:
        """Extract a positive 'number' field from an issue or PR object."""
        if not isinstance(data, dict):
            logger.warning(
                "Missing or invalid '%s' field in payload: %s",
                context,
                type(data),
            )
            return None

        number = data.get("number")
        # bool is an int subclass; reject it explicitly
        if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
            logger.warning("Invalid %s number: %s", context, number)
            return None

        return number
