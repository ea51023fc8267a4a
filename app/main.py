from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router
from logging_config import configure_logging
from services.collector import build_default_collector
from services.series import build_default_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    collector = build_default_collector()
    if collector is not None:
        collector.start()
    else:
        logger.info("No sensor URL configured; periodic collection disabled")
    try:
        yield
    finally:
        if collector is not None:
            collector.shutdown()
        build_default_collector.cache_clear()
        build_default_service.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor History",
        description="Temperature and humidity logging with sampled history for dashboards.",
        version="0.1.0",
        lifespan=lifespan,
    )
    # The dashboard is served from a different origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app

app = create_app()
