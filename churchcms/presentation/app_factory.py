from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from churchcms.config import settings
from churchcms.container import broadcast_channel, session_registry
from churchcms.infrastructure.logging_setup import init_logging
from churchcms.infrastructure.metrics.metrics import setup_metrics
from churchcms.presentation.api.messaging_routes import router as messaging_router
from churchcms.presentation.api.routes import router as api_router


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    # Initialize logging before app construction to capture startup logs
    init_logging()
    app = FastAPI(title=settings.app_name, lifespan=_lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(messaging_router)

    if settings.metrics_enabled:
        # Prometheus metrics (/metrics) + messaging counters
        setup_metrics(app)
    return app


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    await _startup()
    try:
        yield
    finally:
        await _shutdown()


async def _startup() -> None:
    logger.info("application startup")
    # the redis channel needs a connection; the local one has nothing to start
    start = getattr(broadcast_channel(), "start", None)
    if start is not None:
        try:
            await start()
        except Exception as exc:  # noqa: BLE001
            logger.error("broadcast channel failed to start (%s): %s", settings.broadcast_backend, exc)
            raise


async def _shutdown() -> None:
    logger.info("application shutdown")
    session_registry().close_all()
    stop = getattr(broadcast_channel(), "stop", None)
    if stop is not None:
        try:
            await stop()
        except Exception as exc:  # noqa: BLE001
            logger.warning("broadcast channel stop failed: %s", exc)


app = create_app()
