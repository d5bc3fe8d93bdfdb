"""Unit tests for the FastAPI webhook listener."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from github_qa_flagger import __version__
from github_qa_flagger.flagger.config import FlaggerSettings
from github_qa_flagger.flagger.pipeline import DeliveryOutcome, IssueAnnotationPipeline
from github_qa_flagger.flagger.repositories import RepositoryConfigStore
from github_qa_flagger.server.app import create_app


@pytest.fixture
def pipeline() -> Mock:
    mock_pipeline = Mock(spec=IssueAnnotationPipeline)
    mock_pipeline.process.return_value = DeliveryOutcome.ANNOTATED
    return mock_pipeline


@pytest.fixture
def client(flagger_env: Path, pipeline: Mock) -> TestClient:
    settings = FlaggerSettings()
    store = RepositoryConfigStore(settings.config_path)
    return TestClient(create_app(settings, store=store, pipeline=pipeline))


def test_health_reports_tracked_repositories(client: TestClient) -> None:
    health = client.get("/health").json()

    assert health == {"status": "ok", "version": __version__, "tracked_repositories": 2}


def test_webhook_hands_body_and_headers_to_pipeline(
    client: TestClient, pipeline: Mock, make_body: Callable[..., bytes]
) -> None:
    body = make_body()

    resp = client.post(
        "/webhook",
        content=body,
        headers={"X-GitHub-Event": "pull_request", "Content-Type": "application/json"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"status": "accepted", "outcome": "annotated"}
    (sent_body, sent_headers), _ = pipeline.process.call_args
    assert sent_body == body
    assert sent_headers["x-github-event"] == "pull_request"


@pytest.mark.parametrize(
    "outcome",
    [DeliveryOutcome.INVALID, DeliveryOutcome.FETCH_FAILED, DeliveryOutcome.PARTIAL],
)
def test_webhook_acknowledges_failed_processing(
    outcome: DeliveryOutcome, client: TestClient, pipeline: Mock
) -> None:
    pipeline.process.return_value = outcome

    resp = client.post("/webhook", content=b"{not json", headers={"X-GitHub-Event": "push"})

    assert resp.status_code == 200
    assert resp.json()["outcome"] == outcome.value


def test_unmerged_delivery_round_trip_without_mocks(
    flagger_env: Path, make_body: Callable[..., bytes]
) -> None:
    # Real pipeline: an unmerged PR must not need GitHub at all.
    app = create_app(FlaggerSettings())

    resp = TestClient(app).post(
        "/webhook",
        content=make_body(owner="lkgrele", repo="steve", merged=False),
        headers={"X-GitHub-Event": "pull_request"},
    )

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "not_merged"


def test_untracked_delivery_round_trip_without_mocks(
    flagger_env: Path, make_body: Callable[..., bytes]
) -> None:
    app = create_app(FlaggerSettings())

    resp = TestClient(app).post(
        "/webhook",
        content=make_body(owner="someone", repo="else"),
        headers={"X-GitHub-Event": "pull_request"},
    )

    assert resp.json()["outcome"] == "untracked"
