"""HTTP surface: the scheduler trigger and the read-only edition queries."""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from morningstack.collector import EditionCollector, build_collector, get_widget_snapshot
from morningstack.models import EditionType

logger = logging.getLogger(__name__)


def get_collector(request: Request) -> EditionCollector:
    return request.app.state.collector


def require_cron_secret(request: Request, authorization: str | None = Header(default=None)) -> None:
    """Reject the call unless it carries the configured bearer secret.

    With no secret configured every call is rejected.
    """
    secret = request.app.state.settings.cron_secret
    expected = f"Bearer {secret}"
    if not secret or not authorization or not secrets.compare_digest(
        authorization.encode(), expected.encode()
    ):
        logger.warning("Rejected collection trigger with bad or missing credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def create_app(config=None, collector: EditionCollector | None = None) -> FastAPI:
    if config is None:
        from morningstack.config import settings as config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down, flushing and closing the cache")
        await app.state.collector.cache.close()

    app = FastAPI(title="MorningStack", version="1.0.0", lifespan=lifespan)
    app.state.settings = config
    app.state.collector = collector or build_collector(config)

    @app.api_route(
        "/api/cron/collect",
        methods=["GET", "POST"],
        dependencies=[Depends(require_cron_secret)],
    )
    async def collect(collector: EditionCollector = Depends(get_collector)) -> JSONResponse:
        result = await collector.collect()
        code = status.HTTP_500_INTERNAL_SERVER_ERROR if result.status == "error" else status.HTTP_200_OK
        return JSONResponse(result.to_dict(), status_code=code)

    @app.get("/api/editions/latest")
    async def latest_edition(collector: EditionCollector = Depends(get_collector)) -> dict:
        edition = await run_in_threadpool(collector.store.get_latest_edition)
        if edition is None:
            raise HTTPException(status_code=404, detail="No published edition")
        return edition.to_dict()

    @app.get("/api/editions/{date}/{edition_type}")
    async def edition_for_slot(
        date: str,
        edition_type: EditionType,
        collector: EditionCollector = Depends(get_collector),
    ) -> dict:
        edition = await run_in_threadpool(collector.store.get_edition, edition_type, date)
        if edition is None:
            raise HTTPException(status_code=404, detail="Edition not found")
        return edition.to_dict()

    @app.get("/api/widgets")
    async def widgets(collector: EditionCollector = Depends(get_collector)) -> dict:
        snapshot = await get_widget_snapshot(collector.cache)
        return snapshot.to_dict()

    return app
