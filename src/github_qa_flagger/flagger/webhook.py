"""Pull request webhook payload parsing.

Only ``pull_request`` deliveries are acted on. Every other event kind parses
to :class:`IgnoredEvent` so the caller can skip it without treating it as a
failure.

Fields read from a pull request payload (JSON pointer paths):

    /pull_request/commits_url       absolute URL of the PR commit list
    /pull_request/repo/owner/login  repository owner
    /pull_request/repo/name         repository name
    /pull_request/merged            whether the PR was merged
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

PULL_REQUEST_EVENT = "pull_request"

COMMITS_URL_PATH = "/pull_request/commits_url"
OWNER_PATH = "/pull_request/repo/owner/login"
REPO_NAME_PATH = "/pull_request/repo/name"
MERGED_PATH = "/pull_request/merged"

_HTTP_URL = TypeAdapter(AnyHttpUrl)


class ParseError(Exception):
    """Base class for webhook payloads that cannot be processed."""


class MalformedPayload(ParseError):
    """Raised when the delivery body is not valid JSON."""


@dataclass(frozen=True, slots=True)
class MissingField(ParseError):
    """Raised when a required field is absent from the payload."""

    field_path: str

    def __str__(self) -> str:
        return f"Couldn't find field {self.field_path}"


@dataclass(frozen=True, slots=True)
class TypeMismatch(ParseError):
    """Raised when a field is present but has the wrong JSON type."""

    field_path: str
    expected: str

    def __str__(self) -> str:
        return f"Field {self.field_path} is not a {self.expected}"


@dataclass(frozen=True, slots=True)
class InvalidUrl(ParseError):
    """Raised when the commits URL is not an absolute http(s) URL."""

    field_path: str
    value: str

    def __str__(self) -> str:
        return f"Field {self.field_path} is not an absolute URL: {self.value!r}"


@dataclass(frozen=True, slots=True)
class PullRequestEvent:
    """The parts of a pull request delivery the flagger needs."""

    commits_url: str
    owner: str
    repo_name: str
    merged: bool

    @property
    def full_name(self) -> str:
        """Return the repository key ("owner/repo")."""

        return f"{self.owner}/{self.repo_name}"


@dataclass(frozen=True, slots=True)
class IgnoredEvent:
    """A delivery for an event kind the flagger does not handle."""

    event_kind: str


WebhookEvent = PullRequestEvent | IgnoredEvent


def parse_webhook_event(body: bytes, event_kind: str | None) -> WebhookEvent:
    """Parse a raw webhook delivery.

    Args:
        body: Raw request body.
        event_kind: Value of the ``X-GitHub-Event`` header, if any.

    Returns:
        A :class:`PullRequestEvent` for pull request deliveries, otherwise an
        :class:`IgnoredEvent`.

    Raises:
        ParseError: If a pull request body is not JSON or lacks a required
            field. Other event kinds are returned without reading the body.
    """

    if event_kind != PULL_REQUEST_EVENT:
        return IgnoredEvent(event_kind=event_kind or "")

    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPayload(f"Webhook body is not valid JSON: {e}") from e

    return parse_pull_request_payload(payload)


def parse_pull_request_payload(payload: Any) -> PullRequestEvent:
    """Extract a :class:`PullRequestEvent` from an already-decoded payload."""

    commits_url = _require(payload, COMMITS_URL_PATH, str)
    try:
        _HTTP_URL.validate_python(commits_url)
    except ValidationError as e:
        raise InvalidUrl(COMMITS_URL_PATH, commits_url) from e

    return PullRequestEvent(
        commits_url=commits_url,
        owner=_require(payload, OWNER_PATH, str),
        repo_name=_require(payload, REPO_NAME_PATH, str),
        merged=_require(payload, MERGED_PATH, bool),
    )


def resolve_pointer(document: Any, pointer: str) -> Any:
    """Resolve a JSON pointer against nested dicts/lists.

    Raises:
        MissingField: If any segment along the path does not exist.
    """

    node = document
    for raw_segment in pointer.lstrip("/").split("/"):
        segment = raw_segment.replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and segment in node:
            node = node[segment]
        elif isinstance(node, list) and segment.isdigit() and int(segment) < len(node):
            node = node[int(segment)]
        else:
            raise MissingField(pointer)
    return node


def _require(document: Any, pointer: str, expected: type) -> Any:
    value = resolve_pointer(document, pointer)
    # bool is a subclass of int; JSON types are checked exactly.
    if type(value) is not expected:
        raise TypeMismatch(pointer, expected.__name__)
    return value
