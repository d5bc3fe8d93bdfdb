"""Test configuration and fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from github_qa_flagger.flagger.repositories import FlaggerConfig, RepoConfig

SAMPLE_CONFIG_TOML = """\
api_root = "github.example.com/api/v3"

[repos."lkgrele/steve"]
qa_user = "leif"
qa_flags = ["qa", "test"]

[repos."raul/robot"]
qa_user = "raul"
qa_flags = ["qa"]
"""


def pull_request_payload(
    *,
    owner: str = "octo-org",
    repo: str = "octo-repo",
    merged: bool = True,
    commits_url: str = "https://api.github.com/repos/octo-org/octo-repo/pulls/7/commits",
) -> dict[str, Any]:
    """Build a trimmed-down `pull_request` webhook payload."""

    return {
        "action": "closed",
        "number": 7,
        "pull_request": {
            "number": 7,
            "merged": merged,
            "commits_url": commits_url,
            "repo": {
                "name": repo,
                "owner": {"login": owner},
            },
        },
    }


def payload_bytes(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    """Provide the `pull_request` payload builder."""
    return pull_request_payload


@pytest.fixture
def make_body() -> Callable[..., bytes]:
    """Provide a builder for encoded `pull_request` delivery bodies."""

    def _make(**kwargs: Any) -> bytes:
        return payload_bytes(pull_request_payload(**kwargs))

    return _make


@pytest.fixture
def repo_config() -> RepoConfig:
    """Provide the QA settings of the tracked test repository."""
    return RepoConfig(qa_user="qa-lead", qa_flags=("needs-qa", "qa"))


@pytest.fixture
def flagger_config(repo_config: RepoConfig) -> FlaggerConfig:
    """Provide a configuration snapshot tracking `octo-org/octo-repo` only."""
    return FlaggerConfig(
        api_root="https://api.github.com",
        repos={"octo-org/octo-repo": repo_config},
    )


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Provide a TOML configuration file on disk."""
    path = tmp_path / ".qa-flagger.toml"
    path.write_text(SAMPLE_CONFIG_TOML, encoding="utf-8")
    return path


@pytest.fixture
def flagger_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, config_file: Path) -> Path:
    """Isolate settings from the developer environment and provide a token."""
    for name in (
        "QA_FLAGGER_MAX_RETRIES",
        "QA_FLAGGER_HTTP_TIMEOUT_SECONDS",
        "QA_FLAGGER_MAX_WORKERS",
        "QA_FLAGGER_HOST",
        "QA_FLAGGER_PORT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("QA_FLAGGER_GITHUB_TOKEN", "test-token")
    monkeypatch.setenv("QA_FLAGGER_CONFIG_PATH", str(config_file))
    return config_file
