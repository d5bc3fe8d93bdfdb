"""Bounded retry around outbound GitHub calls.

Retries are immediate: there is no backoff and no jitter. The attempt bound
keeps the worst-case latency of a call at ``max_attempts * timeout``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import requests
from github import GithubException

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures worth another attempt: transport errors, non-success statuses
# (raised via `raise_for_status`) and PyGithub API errors.
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    requests.RequestException,
    GithubException,
)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 5

    @property
    def attempts(self) -> int:
        """Number of attempts actually made; never fewer than one."""

        return max(self.max_attempts, 1)


@dataclass(frozen=True, slots=True)
class GatewayError(Exception):
    """Raised when a call still fails after the final attempt."""

    operation: str
    attempts: int
    last_error: BaseException

    def __str__(self) -> str:
        return f"{self.operation} failed after {self.attempts} attempt(s): {self.last_error!r}"


class RetryingHttpGateway:
    """Execute GitHub calls under a :class:`RetryPolicy`."""

    def __init__(self, policy: RetryPolicy) -> None:
        self._policy = policy

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def execute(self, operation: str, call: Callable[[], T]) -> T:
        """Run ``call`` until it succeeds or the attempts are exhausted.

        Args:
            operation: Short description used in logs and errors.
            call: Zero-argument callable performing one attempt.

        Returns:
            The value returned by the first successful attempt.

        Raises:
            GatewayError: If every attempt failed with a retryable error.
        """

        attempts = self._policy.attempts
        for attempt in range(1, attempts + 1):
            try:
                return call()
            except RETRYABLE_ERRORS as e:
                if attempt == attempts:
                    raise GatewayError(operation, attempts, e) from e
                logger.warning(
                    "GitHub call failed; retrying",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "max_attempts": attempts,
                        "error": repr(e),
                    },
                )
        # Unreachable: the loop either returns or raises on the last attempt.
        raise AssertionError("retry loop exited without a result")
