"""
OpenDrive API application.

Only the plumbing the event bus needs lives here: the lifespan that builds
the bus at startup and closes it at shutdown, request logging and health
routes. File/folder routes publish through the injected bus.
"""
from contextlib import asynccontextmanager
from typing import Optional, Sequence
import logging
import time

from fastapi import FastAPI, Request

from api.routes import health
from core.domain.event_bus import EventBus
from core.infrastructure.bus import close_quietly, create_event_bus
from core.infrastructure.logging import configure_logging
from workers import WorkerSpec, register_worker


logger = logging.getLogger(__name__)


def create_app(
    event_bus: Optional[EventBus] = None, workers: Sequence[WorkerSpec] = ()
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        event_bus: Bus to use; built from settings at startup when omitted
        workers: Workers hosted in this process (monolith deployments)

    Returns:
        Configured application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bus = event_bus or create_event_bus()
        app.state.event_bus = bus
        for worker in workers:
            await register_worker(bus, worker)
        logger.info(f"OpenDrive API starting up with {bus.describe()['transport']} event bus")
        try:
            yield
        finally:
            logger.info("OpenDrive API shutting down...")
            await close_quietly(bus)

    app = FastAPI(title="OpenDrive API", version="1.0.0", lifespan=lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing."""
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} "
            f"[{response.status_code}] ({duration:.3f}s)"
        )
        return response

    app.include_router(health.router, tags=["Health"])
    return app


def build_default_app() -> FastAPI:
    """ASGI factory: ``uvicorn api.main:build_default_app --factory``."""
    configure_logging()
    return create_app()
