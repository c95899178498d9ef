from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import health_router, router
from app.client_api import router as client_router
from app.errors import register_exception_handlers
from logging_config import configure_logging
from services.relay import build_relay_engine
from services.stream import build_default_stream_engine
from services.synthesizer import build_default_synthesizer


@asynccontextmanager
async def server_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    build_default_stream_engine()
    try:
        yield
    finally:
        build_default_stream_engine.cache_clear()
        build_default_synthesizer.cache_clear()


@asynccontextmanager
async def client_lifespan(app: FastAPI) -> AsyncIterator[None]:
    relay_engine = build_relay_engine()
    app.state.relay_engine = relay_engine
    try:
        yield
    finally:
        await relay_engine.aclose()


def create_server_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor Telemetry Server",
        description="Synthesizes per-sensor time series and streams them as NDJSON.",
        version="0.1.0",
        lifespan=server_lifespan,
    )
    register_exception_handlers(app)
    app.include_router(router)
    app.include_router(health_router)
    return app


def create_client_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor Telemetry Relay",
        description="Relays sensor server streams with timeouts, retries and cancellation.",
        version="0.1.0",
        lifespan=client_lifespan,
    )
    register_exception_handlers(app)
    app.include_router(client_router)
    app.include_router(health_router)
    return app


server_app = create_server_app()
client_app = create_client_app()
