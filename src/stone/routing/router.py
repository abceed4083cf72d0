"""Webhook event routing for Stone.

EventRouter classifies an inbound delivery, resolves Stone labels to a
workflow action and runs the matching handler. The whole dispatch runs
under RetryExecutor so rate-limited GitHub calls are retried; whatever
still fails is logged here and never reaches the webhook sender, which
must always see the delivery acknowledged.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from src.stone.metrics import StoneMetrics
from src.stone.retry import RetryExecutor
from src.stone.routing.labels import (
    WorkflowAction,
    is_stone_label,
    resolve_label_action,
)
from src.stone.webhook.handler import WebhookParser
from src.stone.webhook.models import (
    ISSUES_LABELED,
    PULL_REQUEST_PREFIX,
    IssueLabeledEvent,
    PullRequestAction,
    PullRequestEvent,
)

logger = logging.getLogger(__name__)

ISSUE_REFERENCE_PATTERN = re.compile(r"#(\d+)")

WorkflowEntryPoint = Callable[[WorkflowAction, int], Awaitable[None]]


class RoutingStatus(str, Enum):
    """What happened to a webhook delivery."""

    DISPATCHED = "dispatched"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(frozen=True)
class RoutingOutcome:
    """Result of routing one webhook delivery.

    Attributes:
        status: Whether a handler ran, the event was ignored, or it failed.
        event_type: The event type string that was routed.
        action: Workflow action triggered by an issue label, if any.
        linked_issue: Issue number referenced by a pull request title.
        head_sha: Pull request head commit, for commit status updates.
        detail: Short human-readable explanation.
    """

    status: RoutingStatus
    event_type: str
    action: Optional[WorkflowAction] = None
    linked_issue: Optional[int] = None
    head_sha: Optional[str] = None
    detail: str = ""


def find_issue_reference(title: str) -> Optional[int]:
    """Return the first '#<digits>' issue number in a title, if any."""
    match = ISSUE_REFERENCE_PATTERN.search(title or "")
    if match is None:
        return None
    return int(match.group(1))


class EventRouter:
    """Routes webhook events to workflow and pull request handlers.

    Attributes:
        run_workflow: Entry point invoked with (action, issue_number)
            when a recognised Stone label is added to an issue.
        retry_executor: Retries the dispatch on rate-limit failures.
        parser: Converts raw payloads into event models.
        max_attempts: Attempts per delivery, including the first.
        initial_delay_ms: Backoff before the first retry.
        metrics: Optional Prometheus metrics for routing outcomes.
    """

    def __init__(
        self,
        run_workflow: WorkflowEntryPoint,
        retry_executor: Optional[RetryExecutor] = None,
        parser: Optional[WebhookParser] = None,
        max_attempts: int = 3,
        initial_delay_ms: int = 1000,
        metrics: Optional[StoneMetrics] = None,
    ):
        self.run_workflow = run_workflow
        self.retry_executor = retry_executor or RetryExecutor()
        self.parser = parser or WebhookParser()
        self.max_attempts = max_attempts
        self.initial_delay_ms = initial_delay_ms
        self.metrics = metrics

    async def route(self, event_type: str, payload: Dict[str, Any]) -> RoutingOutcome:
        """Route a webhook delivery; never raises.

        Args:
            event_type: "issues.labeled" or any "pull_request*" string.
                Anything else is accepted and ignored.
            payload: The raw webhook payload.

        Returns:
            RoutingOutcome describing what was done.
        """
        logger.info("Processing webhook event: %s", event_type)

        try:
            outcome = await self.retry_executor.execute(
                lambda: self._dispatch(event_type, payload),
                max_attempts=self.max_attempts,
                initial_delay_ms=self.initial_delay_ms,
            )
        except Exception as exc:
            logger.exception(
                "Error processing webhook",
                extra={"event_type": event_type},
            )
            outcome = RoutingOutcome(
                status=RoutingStatus.FAILED,
                event_type=event_type,
                detail=str(exc),
            )

        if self.metrics is not None:
            self.metrics.record_webhook(event_type, outcome.status.value)
        return outcome

    async def _dispatch(
        self, event_type: str, payload: Dict[str, Any]
    ) -> RoutingOutcome:
        if event_type == ISSUES_LABELED:
            event = self.parser.parse_issue_labeled(payload)
            if event is None:
                return self._ignored(event_type, "invalid issues.labeled payload")
            return await self.handle_issue_labeled(event)

        if event_type.startswith(PULL_REQUEST_PREFIX):
            event = self.parser.parse_pull_request(payload)
            if event is None:
                return self._ignored(event_type, "unsupported pull request event")
            return await self.handle_pull_request(event, event_type)

        logger.info("Unhandled event type: %s", event_type)
        return self._ignored(event_type, "unhandled event type")

    async def handle_issue_labeled(self, event: IssueLabeledEvent) -> RoutingOutcome:
        """Trigger the workflow mapped to a newly added Stone label."""
        logger.info(
            "Processing issue #%d with label '%s'",
            event.issue_number,
            event.label_name,
        )

        if not is_stone_label(event.label_name):
            return self._ignored(ISSUES_LABELED, "not a Stone label")

        action = resolve_label_action(event.label_name)
        if action is None:
            logger.info(
                "Unrecognized Stone label '%s' on issue #%d",
                event.label_name,
                event.issue_number,
            )
            return self._ignored(ISSUES_LABELED, "unrecognized Stone label")

        await self.run_workflow(action, event.issue_number)
        return RoutingOutcome(
            status=RoutingStatus.DISPATCHED,
            event_type=ISSUES_LABELED,
            action=action,
            detail=f"ran {action.value} workflow for issue #{event.issue_number}",
        )

    async def handle_pull_request(
        self, event: PullRequestEvent, event_type: str = PULL_REQUEST_PREFIX
    ) -> RoutingOutcome:
        """Dispatch a pull request event on its action."""
        logger.info(
            "Processing PR #%d with action '%s'",
            event.pr_number,
            event.action.value,
        )

        match event.action:
            case PullRequestAction.OPENED | PullRequestAction.REOPENED:
                linked_issue = self._handle_pr_opened(event)
            case PullRequestAction.SYNCHRONIZE:
                linked_issue = self._handle_pr_sync(event)
            case PullRequestAction.CLOSED:
                linked_issue = self._handle_pr_closed(event)
            case _:
                logger.info("Unhandled PR action: %s", event.action)
                return self._ignored(event_type, "unhandled pull request action")

        return RoutingOutcome(
            status=RoutingStatus.DISPATCHED,
            event_type=event_type,
            linked_issue=linked_issue,
            head_sha=event.head_sha,
            detail=f"handled PR #{event.pr_number} {event.action.value}",
        )

    def _handle_pr_opened(self, event: PullRequestEvent) -> Optional[int]:
        logger.info("PR #%d opened: %s", event.pr_number, event.title)

        issue_number = find_issue_reference(event.title)
        if issue_number is not None:
            logger.info(
                "PR #%d references issue #%d",
                event.pr_number,
                issue_number,
                extra={"pr_number": event.pr_number, "issue_number": issue_number},
            )
        return issue_number

    def _handle_pr_sync(self, event: PullRequestEvent) -> Optional[int]:
        # Hook point: the outcome carries head_sha for a caller that re-runs
        # the pipeline and reports through StatusReporter.update_pr_status
        logger.info(
            "PR #%d updated with new commits",
            event.pr_number,
            extra={"pr_number": event.pr_number, "head_sha": event.head_sha},
        )
        return find_issue_reference(event.title)

    def _handle_pr_closed(self, event: PullRequestEvent) -> Optional[int]:
        if event.merged:
            logger.info("PR #%d was merged", event.pr_number)
        else:
            logger.info("PR #%d was closed without merging", event.pr_number)
        return find_issue_reference(event.title)

    def _ignored(self, event_type: str, detail: str) -> RoutingOutcome:
        return RoutingOutcome(
            status=RoutingStatus.IGNORED,
            event_type=event_type,
            detail=detail,
        )
