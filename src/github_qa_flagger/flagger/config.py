"""Process settings for the QA flagger.

Settings are loaded from:
- environment variables
- and a local `.env` file (if present)

The per-repository QA configuration (labels, assignee, API root) lives in a
separate TOML file; see :mod:`github_qa_flagger.flagger.repositories`.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlaggerSettings(BaseSettings):
    """Settings for the webhook processor.

    Environment variables:
    - QA_FLAGGER_GITHUB_TOKEN
    - QA_FLAGGER_CONFIG_PATH          (optional)
    - QA_FLAGGER_MAX_RETRIES          (optional)
    - QA_FLAGGER_HTTP_TIMEOUT_SECONDS (optional)
    - QA_FLAGGER_MAX_WORKERS          (optional)
    - QA_FLAGGER_HOST / QA_FLAGGER_PORT (optional)
    - LOG_LEVEL                       (optional)

    Notes:
        Tests can override the env file via `FlaggerSettings(_env_file=path)`.
    """

    # Empty default so `FlaggerSettings()` type-checks; the validator below enforces it.
    github_token: str = Field(
        default="",
        validation_alias="QA_FLAGGER_GITHUB_TOKEN",
        description="GitHub token sent as a bearer token on every API call",
    )

    config_path: Path = Field(
        default=Path(".qa-flagger.toml"),
        validation_alias="QA_FLAGGER_CONFIG_PATH",
        description="TOML file holding api_root and the tracked repositories",
    )

    max_retries: int = Field(
        default=5,
        validation_alias="QA_FLAGGER_MAX_RETRIES",
        description="Maximum attempts per GitHub call; values <= 1 mean a single attempt",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="QA_FLAGGER_HTTP_TIMEOUT_SECONDS",
        gt=0,
        description="Timeout applied to every outbound HTTP call",
    )

    max_workers: int = Field(
        default=4,
        validation_alias="QA_FLAGGER_MAX_WORKERS",
        ge=1,
        le=32,
        description="Upper bound on issues mutated concurrently within one delivery",
    )

    host: str = Field(default="0.0.0.0", validation_alias="QA_FLAGGER_HOST")
    port: int = Field(default=8080, validation_alias="QA_FLAGGER_PORT", ge=1, le=65535)

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_github_auth(self) -> FlaggerSettings:
        if not self.github_token.strip():
            raise ValueError("QA_FLAGGER_GITHUB_TOKEN is required")
        return self
