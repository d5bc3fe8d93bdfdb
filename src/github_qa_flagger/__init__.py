"""GitHub QA flagger.

Annotates issues referenced by "needs QA #N" commit messages once the pull
request that carries them is merged:
- webhook parsing and commit-message scanning
- per-repository QA labels and assignee from a TOML file
- retried GitHub REST mutations with structured logging
"""

__version__ = "0.1.0"

from github_qa_flagger.flagger.config import FlaggerSettings

__all__ = ["__version__", "FlaggerSettings"]
