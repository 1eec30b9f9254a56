"""
Worker host.

Background workers (thumbnailing, search indexing, ...) are described by a
WorkerSpec: a role plus the handlers it subscribes. In monolith mode the API
registers them on its in-process bus; in microservices mode each role runs
as its own process through run_worker().
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from core.domain.event_bus import EventBus, EventHandler
from core.infrastructure.bus import close_quietly, create_event_bus, install_signal_handlers


logger = logging.getLogger(__name__)


@dataclass
class WorkerSpec:
    """A worker role and the (topic, handler) pairs it consumes."""

    role: str
    subscriptions: list[tuple[str, EventHandler]] = field(default_factory=list)

    def on(self, topic: str):
        """Decorator registering a handler for ``topic``."""

        def decorator(handler: EventHandler) -> EventHandler:
            self.subscriptions.append((topic, handler))
            return handler

        return decorator


async def register_worker(bus: EventBus, worker: WorkerSpec) -> None:
    """Subscribe every handler of a worker under its role."""
    for topic, handler in worker.subscriptions:
        await bus.subscribe(topic, handler, role=worker.role)
    logger.info(
        f"[{worker.role}] registered {len(worker.subscriptions)} subscription(s)",
        extra={"role": worker.role},
    )


async def run_worker(
    worker: WorkerSpec,
    bus: Optional[EventBus] = None,
    stop_event: Optional[asyncio.Event] = None,
    handle_signals: bool = True,
) -> None:
    """
    Run a worker until SIGTERM/SIGINT (or ``stop_event``), then close the bus.

    Args:
        worker: Role and subscriptions to host
        bus: Event bus (built from settings when omitted)
        stop_event: Event that ends the worker; signals set it too
        handle_signals: Install SIGTERM/SIGINT handlers on the running loop
    """
    bus = bus or create_event_bus()
    stop_event = stop_event or asyncio.Event()
    if handle_signals:
        install_signal_handlers(stop_event)

    logger.info(f"[{worker.role}] starting worker")
    try:
        await register_worker(bus, worker)
        logger.info(f"[{worker.role}] started and ready to process events")
        await stop_event.wait()
        logger.info(f"[{worker.role}] shutting down gracefully...")
    finally:
        await close_quietly(bus)
        logger.info(f"[{worker.role}] stopped")
