"""Webhook delivery → issue annotation pipeline.

One call to :meth:`IssueAnnotationPipeline.process` handles one delivery:

1. parse the payload (non pull request events are skipped)
2. stop unless the pull request was merged
3. resolve the repository's QA configuration (untracked repos are skipped)
4. fetch the PR commit list
5. scan commit messages for "needs QA #N"
6. label and assign every referenced issue

Failures end the delivery (or, during step 6, the affected issue only) and
are logged. Nothing is raised to the caller, so the listener can always
acknowledge the delivery.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from github_qa_flagger.flagger.config import FlaggerSettings
from github_qa_flagger.flagger.github.client import CommitListError, GitHubClient
from github_qa_flagger.flagger.github.gateway import GatewayError, RetryingHttpGateway, RetryPolicy
from github_qa_flagger.flagger.repositories import (
    FlaggerConfig,
    RepoConfig,
    RepositoryConfigStore,
    resolve_repo_config,
)
from github_qa_flagger.flagger.scanner import scan_issue_references
from github_qa_flagger.flagger.webhook import (
    IgnoredEvent,
    ParseError,
    PullRequestEvent,
    parse_webhook_event,
)

logger = logging.getLogger(__name__)

EVENT_HEADER = "X-GitHub-Event"


class DeliveryOutcome(enum.Enum):
    IGNORED = "ignored"
    INVALID = "invalid"
    NOT_MERGED = "not_merged"
    UNTRACKED = "untracked"
    FETCH_FAILED = "fetch_failed"
    NO_ISSUES = "no_issues"
    ANNOTATED = "annotated"
    PARTIAL = "partial"


@dataclass(frozen=True, slots=True)
class IssueMutation:
    """Changes applied to one flagged issue."""

    issue_number: int
    labels_to_add: tuple[str, ...]
    assignee: str | None

    @classmethod
    def for_issue(cls, issue_number: int, config: RepoConfig) -> IssueMutation:
        return cls(
            issue_number=issue_number,
            labels_to_add=tuple(dict.fromkeys(config.qa_flags)),
            assignee=config.qa_user.strip() or None,
        )


def _header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class IssueAnnotationPipeline:
    """Process webhook deliveries against a configuration snapshot source.

    Args:
        github_factory: Builds a client for the configured API root. The
            pipeline closes every client it creates.
        config_source: Returns the configuration snapshot to use for one
            delivery (typically ``RepositoryConfigStore.snapshot``).
        max_workers: Upper bound on issues mutated concurrently.
    """

    def __init__(
        self,
        *,
        github_factory: Callable[[str], GitHubClient],
        config_source: Callable[[], FlaggerConfig],
        max_workers: int = 4,
    ) -> None:
        self._github_factory = github_factory
        self._config_source = config_source
        self._max_workers = max(max_workers, 1)

    def process(self, body: bytes, headers: Mapping[str, str]) -> DeliveryOutcome:
        """Handle one delivery. Never raises."""

        try:
            return self._process(body, headers)
        except Exception:
            logger.exception("Unexpected failure while processing delivery")
            return DeliveryOutcome.INVALID

    def _process(self, body: bytes, headers: Mapping[str, str]) -> DeliveryOutcome:
        try:
            event = parse_webhook_event(body, _header(headers, EVENT_HEADER))
        except ParseError as e:
            logger.error("Error decoding pull request webhook", extra={"error": str(e)})
            return DeliveryOutcome.INVALID

        if isinstance(event, IgnoredEvent):
            logger.debug("Ignoring webhook event", extra={"event_kind": event.event_kind})
            return DeliveryOutcome.IGNORED

        if not event.merged:
            logger.info("Pull request not merged; nothing to do", extra={"repo": event.full_name})
            return DeliveryOutcome.NOT_MERGED

        config = self._config_source()
        repo_config = resolve_repo_config(event.owner, event.repo_name, config.repos)
        if repo_config is None:
            logger.info("No config found for repo; skipping", extra={"repo": event.full_name})
            return DeliveryOutcome.UNTRACKED

        github = self._github_factory(config.api_root)
        try:
            return self._annotate(github, event, repo_config)
        finally:
            github.close()

    def _annotate(
        self, github: GitHubClient, event: PullRequestEvent, repo_config: RepoConfig
    ) -> DeliveryOutcome:
        try:
            messages = github.fetch_commit_messages(event.commits_url)
        except (GatewayError, CommitListError) as e:
            logger.error(
                "Couldn't fetch pull request commits",
                extra={"repo": event.full_name, "commits_url": event.commits_url, "error": str(e)},
            )
            return DeliveryOutcome.FETCH_FAILED

        issues = scan_issue_references(messages)
        if not issues:
            logger.info("No issues flagged for QA", extra={"repo": event.full_name})
            return DeliveryOutcome.NO_ISSUES

        logger.info(
            "Issues flagged for QA",
            extra={"repo": event.full_name, "issue_numbers": sorted(issues)},
        )

        mutations = [IssueMutation.for_issue(number, repo_config) for number in sorted(issues)]
        workers = min(self._max_workers, len(mutations))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="qa-flagger") as pool:
            results = list(
                pool.map(lambda m: self._apply(github, event.full_name, m), mutations)
            )

        return DeliveryOutcome.ANNOTATED if all(results) else DeliveryOutcome.PARTIAL

    def _apply(self, github: GitHubClient, repository: str, mutation: IssueMutation) -> bool:
        if mutation.issue_number <= 0:
            logger.info(
                "Wanted to update an issue that cannot exist; skipping",
                extra={"repo": repository, "issue_number": mutation.issue_number},
            )
            return True

        try:
            if mutation.labels_to_add:
                github.add_labels(
                    repository=repository,
                    issue_number=mutation.issue_number,
                    labels=mutation.labels_to_add,
                )
            if mutation.assignee is not None:
                github.set_assignee(
                    repository=repository,
                    issue_number=mutation.issue_number,
                    assignee=mutation.assignee,
                )
        except Exception:
            logger.exception(
                "Failed to update issue",
                extra={"repo": repository, "issue_number": mutation.issue_number},
            )
            return False
        return True


def build_pipeline(
    settings: FlaggerSettings, store: RepositoryConfigStore
) -> IssueAnnotationPipeline:
    """Wire a pipeline from process settings and a configuration store."""

    gateway = RetryingHttpGateway(RetryPolicy(max_attempts=settings.max_retries))

    def _github_factory(api_root: str) -> GitHubClient:
        return GitHubClient(
            token=settings.github_token,
            gateway=gateway,
            base_url=api_root,
            timeout_seconds=settings.http_timeout_seconds,
        )

    return IssueAnnotationPipeline(
        github_factory=_github_factory,
        config_source=store.snapshot,
        max_workers=settings.max_workers,
    )
