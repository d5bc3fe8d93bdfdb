"""GitHub API client for the QA flagger.

Wraps a `requests` session for plain REST calls and PyGithub for label
handling. Every call goes through a :class:`RetryingHttpGateway`.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

import requests
from github import Auth, Github

from github_qa_flagger.flagger.github.gateway import RetryingHttpGateway

logger = logging.getLogger(__name__)

USER_AGENT = "github-qa-flagger"

# GitHub lists at most 250 commits for a pull request.
COMMITS_PER_PAGE = 100
MAX_COMMIT_PAGES = 3


class CommitListError(Exception):
    """Raised when a commit list response does not have the expected shape."""


def parse_commit_messages(payload: Any) -> list[str]:
    """Extract ``/commit/message`` from every element of a commit list.

    The list is all-or-nothing: one malformed element rejects the whole
    response.

    Raises:
        CommitListError: If the payload is not a list of commits with string
            messages.
    """

    if not isinstance(payload, list):
        raise CommitListError("expected array as top level object")

    messages: list[str] = []
    for index, item in enumerate(payload):
        commit = item.get("commit") if isinstance(item, dict) else None
        if not isinstance(commit, dict) or "message" not in commit:
            raise CommitListError(f"missing message field in element {index}")
        message = commit["message"]
        if not isinstance(message, str):
            raise CommitListError(f"message field has wrong type in element {index}")
        messages.append(message)
    return messages


class GitHubClient:
    """The three GitHub operations the flagger performs."""

    def __init__(
        self,
        *,
        token: str,
        gateway: RetryingHttpGateway,
        base_url: str = "https://api.github.com",
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
        github_api: Github | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")

        self._gateway = gateway
        self._rest_base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds

        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": USER_AGENT,
            }
        )

        self._github = github_api or Github(
            auth=Auth.Token(token),
            base_url=self._rest_base_url,
            timeout=max(1, math.ceil(timeout_seconds)),
            user_agent=USER_AGENT,
            # Retries are owned by the gateway.
            retry=None,
        )

    @property
    def base_url(self) -> str:
        return self._rest_base_url

    def _issues_url(self, *, repository: str, issue_number: int) -> str:
        if issue_number <= 0:
            raise ValueError("issue_number must be a positive integer")
        return f"{self._rest_base_url}/repos/{repository.strip('/')}/issues/{issue_number}"

    def fetch_commit_messages(self, commits_url: str) -> list[str]:
        """GET a pull request's commit list and return the commit messages.

        Pages of 100 are fetched until a short page; each page is retried on
        its own.

        Raises:
            GatewayError: If the request keeps failing.
            CommitListError: If the response body has the wrong shape.
        """

        messages: list[str] = []
        for page in range(1, MAX_COMMIT_PAGES + 1):

            def _get(page: int = page) -> Any:
                resp = self._session.get(
                    commits_url,
                    params={"per_page": COMMITS_PER_PAGE, "page": page},
                    timeout=self._timeout,
                )
                resp.raise_for_status()
                return resp.json()

            payload = self._gateway.execute(f"GET {commits_url} page {page}", _get)
            page_messages = parse_commit_messages(payload)
            messages.extend(page_messages)
            if len(page_messages) < COMMITS_PER_PAGE:
                break
        logger.debug(
            "Fetched commit list",
            extra={"commits_url": commits_url, "commit_count": len(messages)},
        )
        return messages

    def add_labels(self, *, repository: str, issue_number: int, labels: Sequence[str]) -> None:
        """Add labels to an issue, keeping the labels it already has."""

        normalized = [label.strip() for label in labels if label.strip()]
        if not normalized:
            raise ValueError("At least one label is required")

        def _add() -> None:
            repo = self._github.get_repo(repository, lazy=True)
            issue = repo.get_issue(issue_number)
            issue.add_to_labels(*normalized)

        self._gateway.execute(f"label {repository}#{issue_number}", _add)
        logger.info(
            "Issue labels added",
            extra={"repo": repository, "issue_number": issue_number, "labels": normalized},
        )

    def set_assignee(self, *, repository: str, issue_number: int, assignee: str) -> None:
        """Set the issue's assignee with a partial update.

        Anything other than 200 counts as a failed attempt.
        """

        if not assignee.strip():
            raise ValueError("assignee is required")

        url = self._issues_url(repository=repository, issue_number=issue_number)

        def _patch() -> None:
            resp = self._session.patch(url, json={"assignee": assignee}, timeout=self._timeout)
            if resp.status_code != 200:
                raise requests.HTTPError(
                    f"Unexpected status {resp.status_code} updating {url}", response=resp
                )

        self._gateway.execute(f"assign {repository}#{issue_number}", _patch)
        logger.info(
            "Issue assigned",
            extra={"repo": repository, "issue_number": issue_number, "assignee": assignee},
        )

    def close(self) -> None:
        self._session.close()
        self._github.close()
