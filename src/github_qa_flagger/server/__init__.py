"""FastAPI webhook listener for github-qa-flagger.

Design intent:
- Keep delivery handling in `github_qa_flagger.flagger.*`
- Keep server-specific concerns (routing, acknowledgement) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from github_qa_flagger.server.app import create_app
