"""Commit message scanning for "needs QA" directives.

A directive is the case-insensitive phrase ``needs qa``, an optional colon, a
single whitespace character and an issue reference such as ``#72``:

    needs qa: #72
    Needs QA #333

Only the reference directly after the phrase is taken; ``needs QA: #33 #45``
flags issue 33 alone. References are ASCII digit runs of at most 19 digits
(the range of a GitHub issue number); longer runs flag nothing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

NEEDS_QA_PATTERN = re.compile(r"needs\sqa:?\s#([0-9]{1,19})(?![0-9])", re.IGNORECASE)


def find_issue_references(message: str) -> set[int]:
    """Return the issue numbers flagged by a single commit message."""

    return {int(match.group(1)) for match in NEEDS_QA_PATTERN.finditer(message)}


def scan_issue_references(messages: Iterable[str]) -> set[int]:
    """Return the deduplicated issue numbers flagged across all messages."""

    issues: set[int] = set()
    for message in messages:
        issues |= find_issue_references(message)
    return issues
