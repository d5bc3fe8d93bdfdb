"""FastAPI app factory.

Deliveries are always acknowledged with 200: the outcome of processing is
logged, never reflected back to the webhook sender.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool

from github_qa_flagger import __version__
from github_qa_flagger.flagger.config import FlaggerSettings
from github_qa_flagger.flagger.pipeline import IssueAnnotationPipeline, build_pipeline
from github_qa_flagger.flagger.repositories import RepositoryConfigStore
from github_qa_flagger.server.models import DeliveryAck, Health

logger = logging.getLogger(__name__)


def create_app(
    settings: FlaggerSettings | None = None,
    *,
    store: RepositoryConfigStore | None = None,
    pipeline: IssueAnnotationPipeline | None = None,
) -> FastAPI:
    settings = settings or FlaggerSettings()
    store = store or RepositoryConfigStore(settings.config_path)
    pipeline = pipeline or build_pipeline(settings, store)

    app = FastAPI(
        title="GitHub QA Flagger",
        version=__version__,
        description="Flags issues referenced by 'needs QA #N' commits of merged pull requests.",
    )

    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = pipeline

    @app.get("/health", response_model=Health)
    def health() -> Health:
        return Health(version=__version__, tracked_repositories=len(store.snapshot().repos))

    @app.post("/webhook", response_model=DeliveryAck)
    async def webhook(request: Request) -> DeliveryAck:
        body = await request.body()
        headers = dict(request.headers)
        # The pipeline blocks on GitHub calls; keep it off the event loop.
        outcome = await run_in_threadpool(pipeline.process, body, headers)
        logger.info(
            "Delivery processed",
            extra={
                "delivery_id": request.headers.get("X-GitHub-Delivery", ""),
                "event_kind": request.headers.get("X-GitHub-Event", ""),
                "outcome": outcome.value,
            },
        )
        return DeliveryAck(outcome=outcome.value)

    return app
