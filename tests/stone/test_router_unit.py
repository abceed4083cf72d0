"""Unit tests for EventRouter.

Covers label dispatch, pull request handling, unknown event types, and
the guarantee that routing failures are logged and never propagate.
"""

import asyncio
from typing import List, Tuple

import pytest

from src.stone.github.client import GitHubAPIError, RateLimitError
from src.stone.retry import RetryExecutor
from src.stone.routing import EventRouter, RoutingStatus, WorkflowAction
from src.stone.routing.router import find_issue_reference


def run_async(coro):
    return asyncio.run(coro)


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingWorkflow:
    """Workflow entry point that records calls and can fail first."""

    def __init__(self, errors=()):
        self.errors = list(errors)
        self.calls: List[Tuple[WorkflowAction, int]] = []

    async def __call__(self, action: WorkflowAction, issue_number: int) -> None:
        self.calls.append((action, issue_number))
        if self.errors:
            raise self.errors.pop(0)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def workflow():
    return RecordingWorkflow()


@pytest.fixture
def router(workflow, sleep):
    return EventRouter(run_workflow=workflow, retry_executor=RetryExecutor(sleep=sleep))


def _labeled(label, number=123):
    return {
        "action": "labeled",
        "issue": {"number": number},
        "label": {"name": label},
    }


def _pr(action, title="Implements #123", merged=False):
    return {
        "action": action,
        "pull_request": {"number": 7, "title": title, "merged": merged},
    }


class TestIssueLabeled:
    def test_ready_for_tests_runs_test_workflow(self, router, workflow):
        outcome = run_async(
            router.route("issues.labeled", _labeled("stone-ready-for-tests"))
        )

        assert outcome.status is RoutingStatus.DISPATCHED
        assert outcome.action is WorkflowAction.TEST
        assert workflow.calls == [(WorkflowAction.TEST, 123)]

    @pytest.mark.parametrize(
        "label,action",
        [
            ("stone-process", WorkflowAction.PROCESS),
            ("stone-qa", WorkflowAction.QA),
            ("stone-feature-fix", WorkflowAction.FEATURE),
            ("stone-docs", WorkflowAction.PM),
        ],
    )
    def test_mapped_labels(self, router, workflow, label, action):
        run_async(router.route("issues.labeled", _labeled(label, number=5)))

        assert workflow.calls == [(action, 5)]

    def test_non_stone_label_is_ignored(self, router, workflow):
        outcome = run_async(router.route("issues.labeled", _labeled("bug")))

        assert outcome.status is RoutingStatus.IGNORED
        assert workflow.calls == []

    def test_unknown_stone_label_is_ignored(self, router, workflow):
        outcome = run_async(router.route("issues.labeled", _labeled("stone-unknown")))

        assert outcome.status is RoutingStatus.IGNORED
        assert outcome.action is None
        assert workflow.calls == []

    def test_malformed_payload_is_ignored(self, router, workflow):
        outcome = run_async(router.route("issues.labeled", {"issue": {}}))

        assert outcome.status is RoutingStatus.IGNORED
        assert workflow.calls == []


class TestPullRequest:
    @pytest.mark.parametrize("action", ["opened", "reopened", "synchronize"])
    def test_linked_issue_from_title(self, router, action):
        outcome = run_async(router.route("pull_request", _pr(action)))

        assert outcome.status is RoutingStatus.DISPATCHED
        assert outcome.linked_issue == 123

    def test_closed_merged(self, router, workflow):
        outcome = run_async(
            router.route("pull_request.closed", _pr("closed", merged=True))
        )

        assert outcome.status is RoutingStatus.DISPATCHED
        assert outcome.event_type == "pull_request.closed"
        assert workflow.calls == []

    def test_title_without_reference(self, router):
        outcome = run_async(router.route("pull_request", _pr("opened", title="Tidy up")))

        assert outcome.linked_issue is None

    def test_unhandled_pr_action_is_ignored(self, router):
        outcome = run_async(router.route("pull_request", _pr("labeled")))

        assert outcome.status is RoutingStatus.IGNORED

    def test_synchronize_carries_head_sha(self, router, workflow, caplog):
        payload = _pr("synchronize")
        payload["pull_request"]["head"] = {"sha": "deadbeef"}

        with caplog.at_level("INFO", logger="src.stone.routing.router"):
            outcome = run_async(router.route("pull_request.synchronize", payload))

        assert outcome.head_sha == "deadbeef"
        assert workflow.calls == []
        assert any(
            getattr(record, "head_sha", None) == "deadbeef" for record in caplog.records
        )

    def test_head_sha_absent_without_head(self, router):
        outcome = run_async(router.route("pull_request", _pr("opened")))

        assert outcome.head_sha is None


class TestUnhandledEvents:
    @pytest.mark.parametrize("event_type", ["push", "issues.opened", "", "release"])
    def test_ignored_without_side_effects(self, router, workflow, event_type):
        outcome = run_async(router.route(event_type, {"action": "whatever"}))

        assert outcome.status is RoutingStatus.IGNORED
        assert outcome.event_type == event_type
        assert workflow.calls == []


class TestFailureHandling:
    def test_workflow_error_is_contained(self, sleep):
        workflow = RecordingWorkflow(errors=[GitHubAPIError("boom", status_code=500)])
        router = EventRouter(workflow, retry_executor=RetryExecutor(sleep=sleep))

        outcome = run_async(router.route("issues.labeled", _labeled("stone-qa")))

        assert outcome.status is RoutingStatus.FAILED
        assert "boom" in outcome.detail
        assert len(workflow.calls) == 1
        assert sleep.delays == []

    def test_rate_limit_is_retried(self, sleep):
        workflow = RecordingWorkflow(
            errors=[RateLimitError("rate limit exceeded", status_code=429)]
        )
        router = EventRouter(workflow, retry_executor=RetryExecutor(sleep=sleep))

        outcome = run_async(router.route("issues.labeled", _labeled("stone-qa")))

        assert outcome.status is RoutingStatus.DISPATCHED
        assert len(workflow.calls) == 2
        assert sleep.delays == [1.0]

    def test_persistent_rate_limit_fails_after_configured_attempts(self, sleep):
        workflow = RecordingWorkflow(
            errors=[RateLimitError("rate limit exceeded", status_code=429)] * 5
        )
        router = EventRouter(
            workflow,
            retry_executor=RetryExecutor(sleep=sleep),
            max_attempts=2,
            initial_delay_ms=50,
        )

        outcome = run_async(router.route("issues.labeled", _labeled("stone-qa")))

        assert outcome.status is RoutingStatus.FAILED
        assert len(workflow.calls) == 2
        assert sleep.delays == [0.05]


class TestFindIssueReference:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Fix #42", 42),
            ("Closes #7 and #8", 7),
            ("No reference", None),
            ("", None),
            ("Issue# 3", None),
        ],
    )
    def test_reference(self, title, expected):
        assert find_issue_reference(title) == expected
