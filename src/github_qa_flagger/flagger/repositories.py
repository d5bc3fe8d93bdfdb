"""Per-repository QA configuration.

The configuration file is TOML:

    api_root = "https://github.example.com/api/v3"

    [repos."owner/repo"]
    qa_user = "leif"
    qa_flags = ["qa", "test"]

Repositories absent from ``repos`` are untracked; deliveries for them are
skipped.
"""

from __future__ import annotations

import logging
import threading
import tomllib
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the repository configuration file cannot be loaded."""


class RepoConfig(BaseModel):
    """QA settings for one tracked repository."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    qa_user: str = Field(default="", description="Login assigned to flagged issues")
    qa_flags: tuple[str, ...] = Field(
        default=(), description="Labels added to flagged issues, in order"
    )


class FlaggerConfig(BaseModel):
    """One loaded snapshot of the repository configuration file."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    api_root: str = Field(default="https://api.github.com")
    repos: dict[str, RepoConfig] = Field(default_factory=dict)

    @field_validator("api_root")
    @classmethod
    def _normalize_api_root(cls, value: str) -> str:
        root = value.strip().rstrip("/")
        if not root:
            raise ValueError("api_root must not be empty")
        if "://" not in root:
            root = f"https://{root}"
        return root


def resolve_repo_config(
    owner: str, repo: str, repos: Mapping[str, RepoConfig]
) -> RepoConfig | None:
    """Look up the configuration for ``owner/repo``; ``None`` means untracked."""

    return repos.get(f"{owner}/{repo}")


def load_flagger_config(path: Path) -> FlaggerConfig:
    """Read and validate the TOML configuration file.

    Raises:
        ConfigError: If the file is missing, not TOML, or fails validation.
    """

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Couldn't read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Couldn't decode config file {path}: {e}") from e

    try:
        return FlaggerConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


class RepositoryConfigStore:
    """Serves immutable configuration snapshots, reloading when the file changes.

    Each call to :meth:`snapshot` returns a complete :class:`FlaggerConfig`;
    a reload replaces the stored reference, so callers holding an older
    snapshot keep a consistent view for the rest of their delivery.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._snapshot = load_flagger_config(path)
        self._mtime_ns = self._stat_mtime()

    @property
    def path(self) -> Path:
        return self._path

    def _stat_mtime(self) -> int | None:
        try:
            return self._path.stat().st_mtime_ns
        except OSError:
            return None

    def snapshot(self) -> FlaggerConfig:
        """Return the current snapshot, reloading first if the file changed."""

        mtime_ns = self._stat_mtime()
        if mtime_ns is None or mtime_ns == self._mtime_ns:
            return self._snapshot

        with self._lock:
            if mtime_ns == self._mtime_ns:
                return self._snapshot
            try:
                self._snapshot = load_flagger_config(self._path)
            except ConfigError:
                logger.exception(
                    "Config reload failed; keeping previous snapshot",
                    extra={"path": str(self._path)},
                )
            else:
                logger.info(
                    "Config reloaded",
                    extra={"path": str(self._path), "repositories": len(self._snapshot.repos)},
                )
            # A broken file is not re-read until it changes again.
            self._mtime_ns = mtime_ns
            return self._snapshot
