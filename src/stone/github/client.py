"""GitHub API client for the repository managed by Stone.

This module provides an async wrapper around the GitHub REST API for:
- Reading issues
- Creating comments on issues and pull requests
- Managing labels (add/remove)
- Setting commit statuses
- Dispatching workflow runs

Transient transport failures (timeouts, 5xx) are retried here. Rate limit
responses are raised as RateLimitError so the caller's retry policy decides
how long to back off.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from src.stone.github.models import CommitState, Issue


logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


class GitHubClient:
    """Async GitHub API client bound to a single repository.

    Attributes:
        token: GitHub API token (PAT or GitHub App token).
        owner: Repository owner (user or organization).
        repo: Repository name.
        base_url: Base URL for GitHub API (default: https://api.github.com).
        max_retries: Maximum number of retry attempts for transient failures.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds between retries.
        timeout: Request timeout in seconds.

    Example:
        >>> client = GitHubClient(token="ghp_xxx", owner="acme", repo="widgets")
        >>> async with client:
        ...     await client.create_comment(123, "Hello!")
    """

    # Rate limits are excluded: they surface as RateLimitError instead
    RETRYABLE_STATUS_CODES = {408, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
    ):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
            )
        return self._client

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "Stone-Actions/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff delay with full jitter.

        Args:
            attempt: The current retry attempt (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        exponential_delay = self.base_delay * (2 ** attempt)
        capped_delay = min(exponential_delay, self.max_delay)
        return random.uniform(0, capped_delay)

    def _parse_int_header(
        self,
        headers: httpx.Headers,
        name: str,
    ) -> Optional[int]:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return None

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        """Decide whether a response is a primary or secondary rate limit."""
        if response.status_code == 429:
            return True
        if response.status_code != 403:
            return False

        remaining = self._parse_int_header(
            response.headers, "x-ratelimit-remaining"
        )
        if remaining == 0:
            return True
        # Secondary rate limits come back as 403 with a Retry-After header
        return response.headers.get("retry-after") is not None

    def _raise_rate_limit(self, response: httpx.Response) -> None:
        """Raise RateLimitError with reset information from the headers.

        Raises:
            RateLimitError: Always.
        """
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={
                "status_code": response.status_code,
                "reset_at": reset_at,
                "retry_after": retry_after,
            },
        )

        raise RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            response_body=response.text,
            request_url=str(response.url),
            reset_at=reset_at,
            retry_after=retry_after,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic for transient failures.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH).
            path: API path relative to the base URL.
            json_data: Optional JSON body for the request.

        Returns:
            The HTTP response from GitHub.

        Raises:
            RateLimitError: If rate limit is exceeded.
            GitHubAPIError: If the request fails after all retries.
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                )
            except httpx.TimeoutException as e:
                last_exception = e
            except httpx.RequestError as e:
                last_exception = e
            else:
                if self._is_rate_limited(response):
                    self._raise_rate_limit(response)

                if (
                    response.status_code in self.RETRYABLE_STATUS_CODES
                    and attempt < self.max_retries
                ):
                    last_exception = GitHubAPIError(
                        message=f"GitHub API error: {response.status_code}",
                        status_code=response.status_code,
                    )
                elif response.status_code >= 400:
                    error_body = response.text
                    logger.error(
                        "GitHub API error",
                        extra={
                            "status_code": response.status_code,
                            "path": path,
                            "method": method,
                            "response_body": error_body[:500],
                        },
                    )
                    raise GitHubAPIError(
                        message=f"GitHub API error: {response.status_code}",
                        status_code=response.status_code,
                        response_body=error_body,
                        request_url=str(response.url),
                    )
                else:
                    return response

            if attempt < self.max_retries:
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    "Transient GitHub API failure, retrying",
                    extra={
                        "error": str(last_exception),
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "delay": delay,
                        "path": path,
                    },
                )
                await asyncio.sleep(delay)

        logger.error(
            "GitHub API request failed after all retries",
            extra={
                "path": path,
                "method": method,
                "max_retries": self.max_retries,
                "last_error": str(last_exception),
            },
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_exception}",
            request_url=f"{self.base_url}{path}",
        )

    async def get_issue(self, issue_number: int) -> Issue:
        """Get issue details.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"{self.repo_path}/issues/{issue_number}"

        logger.debug(
            "Getting issue details",
            extra={"issue_number": issue_number},
        )

        response = await self._request(method="GET", path=path)
        return Issue.from_github_response(response.json())

    async def create_comment(self, issue_number: int, body: str) -> Dict[str, Any]:
        """Create a comment on an issue or pull request.

        Args:
            issue_number: Issue or pull request number to comment on.
            body: Comment body in markdown format.

        Returns:
            The created comment data from GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"{self.repo_path}/issues/{issue_number}/comments"

        logger.info(
            "Creating comment on issue",
            extra={"issue_number": issue_number, "body_length": len(body)},
        )

        response = await self._request(
            method="POST",
            path=path,
            json_data={"body": body},
        )

        result = response.json()
        logger.info(
            "Comment created successfully",
            extra={"issue_number": issue_number, "comment_id": result.get("id")},
        )
        return result

    async def add_labels(
        self,
        issue_number: int,
        labels: List[str],
    ) -> List[Dict[str, Any]]:
        """Add labels to an issue.

        Returns:
            List of all labels on the issue after adding.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"{self.repo_path}/issues/{issue_number}/labels"

        logger.info(
            "Adding labels to issue",
            extra={"issue_number": issue_number, "labels": labels},
        )

        response = await self._request(
            method="POST",
            path=path,
            json_data={"labels": labels},
        )
        return response.json()

    async def remove_label(self, issue_number: int, label: str) -> None:
        """Remove a label from an issue.

        Raises:
            GitHubAPIError: If the request fails (except 404 which is ignored).
        """
        path = f"{self.repo_path}/issues/{issue_number}/labels/{quote(label, safe='')}"

        logger.info(
            "Removing label from issue",
            extra={"issue_number": issue_number, "label": label},
        )

        try:
            await self._request(method="DELETE", path=path)
        except GitHubAPIError as e:
            # 404 means label wasn't on the issue
            if e.status_code == 404 and not isinstance(e, RateLimitError):
                logger.debug(
                    "Label not found on issue (already removed)",
                    extra={"issue_number": issue_number, "label": label},
                )
                return
            raise

    async def create_commit_status(
        self,
        sha: str,
        state: CommitState,
        description: Optional[str] = None,
        context: str = "stone/tests",
    ) -> Dict[str, Any]:
        """Create a commit status for a SHA.

        Args:
            sha: The commit SHA to attach the status to.
            state: The commit status state.
            description: Short human-readable description (max 140 chars).
            context: Label that differentiates this status from others.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"{self.repo_path}/statuses/{sha}"
        payload: Dict[str, Any] = {"state": CommitState(state).value, "context": context}
        if description is not None:
            payload["description"] = description[:140]

        logger.info(
            "Creating commit status",
            extra={"sha": sha, "state": payload["state"], "context": context},
        )

        response = await self._request(method="POST", path=path, json_data=payload)
        return response.json()

    async def dispatch_workflow(
        self,
        workflow_file: str,
        ref: str,
        inputs: Optional[Dict[str, str]] = None,
    ) -> None:
        """Trigger a workflow_dispatch run for a workflow file.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"{self.repo_path}/actions/workflows/{workflow_file}/dispatches"

        logger.info(
            "Dispatching workflow",
            extra={"workflow": workflow_file, "ref": ref, "inputs": inputs},
        )

        await self._request(
            method="POST",
            path=path,
            json_data={"ref": ref, "inputs": inputs or {}},
        )

    async def get_default_branch(self) -> str:
        """Return the repository's default branch name.

        Raises:
            GitHubAPIError: If the request fails.
        """
        response = await self._request(method="GET", path=self.repo_path)
        return response.json().get("default_branch") or "main"

    async def health_check(self) -> bool:
        """Check if the GitHub API is accessible with the configured token."""
        try:
            response = await self.client.get(self.repo_path)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(
                "GitHub API health check failed",
                extra={"error": str(e)},
            )
            return False
