"""CLI entrypoint for the QA flagger.

Commands:
- serve:   run the webhook listener
- process: run one saved delivery through the pipeline
- scan:    print the issue numbers a commit message flags
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from github_qa_flagger import __version__
from github_qa_flagger.flagger.config import FlaggerSettings
from github_qa_flagger.flagger.logging import configure_logging
from github_qa_flagger.flagger.pipeline import EVENT_HEADER, build_pipeline
from github_qa_flagger.flagger.repositories import ConfigError, RepositoryConfigStore
from github_qa_flagger.flagger.scanner import scan_issue_references
from github_qa_flagger.flagger.webhook import PULL_REQUEST_EVENT

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qa-flagger",
        description="Flag issues referenced by 'needs QA #N' commits of merged pull requests",
    )
    parser.add_argument(
        "--version", action="version", version=f"github-qa-flagger {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the webhook listener")
    serve.add_argument("--host", default=None, help="Listen address (overrides QA_FLAGGER_HOST)")
    serve.add_argument(
        "--port", type=int, default=None, help="Listen port (overrides QA_FLAGGER_PORT)"
    )

    process = subparsers.add_parser("process", help="Process one saved webhook delivery")
    process.add_argument(
        "payload",
        type=Path,
        help="Path to the delivery body (JSON)",
    )
    process.add_argument(
        "--event",
        default=PULL_REQUEST_EVENT,
        help="Value of the X-GitHub-Event header for this delivery",
    )

    scan = subparsers.add_parser("scan", help="Print issue numbers flagged in commit messages")
    scan.add_argument(
        "files",
        nargs="*",
        type=Path,
        help="Files holding one commit message each (defaults to stdin)",
    )

    return parser


def _scan(files: list[Path]) -> int:
    if files:
        messages = [path.read_text(encoding="utf-8") for path in files]
    else:
        messages = [sys.stdin.read()]
    for number in sorted(scan_issue_references(messages)):
        print(number)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "scan":
        return _scan(args.files)

    try:
        settings = FlaggerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment / .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        store = RepositoryConfigStore(settings.config_path)
    except ConfigError as e:
        logger.error("Couldn't load repository config", extra={"error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.command == "serve":
        import uvicorn

        from github_qa_flagger.server.app import create_app

        app = create_app(settings, store=store)
        uvicorn.run(
            app,
            host=args.host or settings.host,
            port=args.port or settings.port,
            log_config=None,
        )
        return 0

    if args.command == "process":
        pipeline = build_pipeline(settings, store)
        body = args.payload.read_bytes()
        outcome = pipeline.process(body, {EVENT_HEADER: args.event})
        print(f"Delivery outcome: {outcome.value}")
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
