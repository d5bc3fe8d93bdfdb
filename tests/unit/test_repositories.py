"""Unit tests for repository configuration loading and lookup."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from github_qa_flagger.flagger.repositories import (
    ConfigError,
    FlaggerConfig,
    RepoConfig,
    RepositoryConfigStore,
    load_flagger_config,
    resolve_repo_config,
)


def _touch_later(path: Path) -> None:
    stat = path.stat()
    later = stat.st_mtime_ns + 5_000_000_000
    os.utime(path, ns=(later, later))


def test_reads_toml(config_file: Path) -> None:
    config = load_flagger_config(config_file)

    assert config.api_root == "https://github.example.com/api/v3"
    steve = config.repos["lkgrele/steve"]
    assert steve.qa_user == "leif"
    assert steve.qa_flags == ("qa", "test")
    raul = config.repos["raul/robot"]
    assert raul.qa_user == "raul"
    assert raul.qa_flags == ("qa",)


@pytest.mark.parametrize(
    ("api_root", "expected"),
    [
        ("https://api.github.com/", "https://api.github.com"),
        ("github.example.com/api/v3", "https://github.example.com/api/v3"),
        ("http://localhost:8080/api/v3/", "http://localhost:8080/api/v3"),
    ],
)
def test_api_root_is_normalized(api_root: str, expected: str) -> None:
    assert FlaggerConfig(api_root=api_root).api_root == expected


def test_missing_file_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Couldn't read"):
        load_flagger_config(tmp_path / "absent.toml")


def test_invalid_toml_is_a_config_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.toml"
    path.write_text("api_root = [unterminated", encoding="utf-8")

    with pytest.raises(ConfigError, match="Couldn't decode"):
        load_flagger_config(path)


def test_schema_violation_is_a_config_error(tmp_path: Path) -> None:
    path = tmp_path / "bad.toml"
    path.write_text('[repos."a/b"]\nqa_flags = "qa"\n', encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid config"):
        load_flagger_config(path)


def test_resolve_uses_owner_slash_repo_key(repo_config: RepoConfig) -> None:
    repos = {"octo-org/octo-repo": repo_config}

    assert resolve_repo_config("octo-org", "octo-repo", repos) is repo_config
    assert resolve_repo_config("octo-repo", "octo-org", repos) is None
    assert resolve_repo_config("Octo-Org", "octo-repo", repos) is None


def test_resolve_absent_repository_returns_none() -> None:
    assert resolve_repo_config("someone", "else", {}) is None


def test_snapshots_are_immutable(config_file: Path) -> None:
    config = load_flagger_config(config_file)

    with pytest.raises(ValidationError):
        config.repos["raul/robot"].qa_user = "mallory"  # type: ignore[misc]


def test_store_returns_same_snapshot_until_file_changes(config_file: Path) -> None:
    store = RepositoryConfigStore(config_file)

    first = store.snapshot()
    assert store.snapshot() is first

    config_file.write_text(
        'api_root = "https://api.github.com"\n[repos."a/b"]\nqa_user = "x"\nqa_flags = ["qa"]\n',
        encoding="utf-8",
    )
    _touch_later(config_file)

    second = store.snapshot()
    assert second is not first
    assert set(second.repos) == {"a/b"}
    # Earlier snapshots are unaffected by the reload.
    assert set(first.repos) == {"lkgrele/steve", "raul/robot"}


def test_store_keeps_previous_snapshot_when_reload_fails(config_file: Path) -> None:
    store = RepositoryConfigStore(config_file)
    first = store.snapshot()

    config_file.write_text("api_root = [", encoding="utf-8")
    _touch_later(config_file)

    assert store.snapshot() is first


def test_store_keeps_snapshot_when_file_disappears(config_file: Path) -> None:
    store = RepositoryConfigStore(config_file)
    first = store.snapshot()

    config_file.unlink()

    assert store.snapshot() is first


def test_store_requires_loadable_file_at_startup(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        RepositoryConfigStore(tmp_path / "absent.toml")
