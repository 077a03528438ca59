"""Main entry point for dd-server, the deployment receiver."""

import signal
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from dd_deploy import __version__
from dd_deploy.api.health import router as health_router
from dd_deploy.api.middleware import (
    setup_error_handling,
    setup_logging_middleware,
    setup_metrics_middleware,
    setup_upload_limit_middleware,
)
from dd_deploy.api.receiver import router as receiver_router
from dd_deploy.core.config import ServerSettings
from dd_deploy.server.docker import DockerRunner
from dd_deploy.server.receiver import Receiver
from dd_deploy.server.store import DescriptorStore
from dd_deploy.utils.logging import setup_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: ServerSettings = app.state.settings
    logger.info(
        "Starting dd-server",
        version=__version__,
        deployments_dir=str(Path(settings.deployments_dir).resolve()),
    )
    yield
    logger.info("Shutting down dd-server")


def build_receiver(settings: ServerSettings) -> Receiver:
    store = DescriptorStore(Path(settings.deployments_dir), max_size_bytes=settings.max_upload_size_bytes)
    docker = DockerRunner(settings.docker_bin, timeout=settings.command_timeout_seconds)
    return Receiver(store, docker, max_upload_size_bytes=settings.max_upload_size_bytes)


def create_app(settings: Optional[ServerSettings] = None, receiver: Optional[Receiver] = None) -> FastAPI:
    """Create FastAPI application.

    The route table is fixed here and never mutated afterwards.
    """
    if settings is None:
        settings = ServerSettings()

    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="dd-server",
        version=__version__,
        description="Receives images and deployment files and applies them",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.receiver = receiver or build_receiver(settings)

    setup_error_handling(app)
    setup_logging_middleware(app)
    setup_metrics_middleware(app)
    setup_upload_limit_middleware(app, settings.max_upload_size_bytes)

    app.include_router(receiver_router, tags=["receiver"])
    app.include_router(health_router, tags=["health"])

    if settings.metrics_enabled:
        app.mount("/metrics", make_asgi_app())

    return app


def run():
    """Run the receiver."""
    settings = ServerSettings()

    def handle_sigterm(signum, frame):
        logger.info("Received SIGTERM, initiating graceful shutdown")
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_sigterm)

    config = uvicorn.Config(
        "dd_deploy.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_config=None,  # We handle logging ourselves
        access_log=False,  # Handled by middleware
    )

    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    run()
