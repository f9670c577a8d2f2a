from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from app.auth_api import router as auth_router
from app.generator_api import router as generator_router
from app.middleware import install_middleware
from app.responses import install_exception_handlers
from app.sensor_api import health_router, router as sensor_router
from datastore.sensor_repository import build_default_repository, build_default_session_factory
from logging_config import configure_logging
from services.auth import build_default_auth_service
from services.errors import AlreadyRunningError
from services.generator import build_default_generator
from settings import get_settings
from transport.client import build_default_client
from transport.server import TransportServer

logger = logging.getLogger(__name__)


def create_generator_app(autostart: Optional[bool] = None) -> FastAPI:
    """HTTP control surface for the generator; optionally starts producing on boot."""
    configure_logging()
    settings = get_settings()
    should_start = settings.generator_autostart if autostart is None else autostart

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        generator = build_default_generator()
        if should_start:
            try:
                generator.start()
            except AlreadyRunningError:
                logger.debug("Generator already running at startup")
        try:
            yield
        finally:
            generator.shutdown()
            build_default_generator.cache_clear()
            build_default_client.cache_clear()

    app = FastAPI(
        title="Sensor Generator",
        description="Produces synthetic sensor readings and ships them over gRPC.",
        version="0.1.0",
        lifespan=lifespan,
    )
    install_exception_handlers(app)
    install_middleware(app, cors_origins=settings.cors_origins)
    app.include_router(generator_router)
    return app


def create_storage_app(serve_grpc: bool = True) -> FastAPI:
    """Authenticated query API over stored readings, plus the gRPC ingest server."""
    configure_logging()
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        repository = build_default_repository()
        auth = build_default_auth_service()
        auth.seed_default_users()

        server: Optional[TransportServer] = None
        if serve_grpc:
            server = TransportServer(
                repository,
                address=f"[::]:{settings.grpc_port}",
                workers=settings.grpc_server_workers,
            )
            server.start()
        try:
            yield
        finally:
            if server is not None:
                server.stop()
            build_default_auth_service.cache_clear()
            build_default_repository.cache_clear()
            build_default_session_factory.cache_clear()

    app = FastAPI(
        title="Sensor Storage",
        description="Persists sensor readings received over gRPC and serves them over HTTP.",
        version="0.1.0",
        lifespan=lifespan,
    )
    install_exception_handlers(app)
    install_middleware(
        app,
        cors_origins=settings.cors_origins,
        rate_limit_per_minute=settings.rate_limit_per_minute,
    )
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(sensor_router)
    return app
