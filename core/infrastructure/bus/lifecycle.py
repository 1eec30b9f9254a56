"""Graceful shutdown on SIGTERM/SIGINT."""
import asyncio
import logging
import signal
from typing import Optional

from core.domain.event_bus import EventBus


logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def install_signal_handlers(
    stop_event: asyncio.Event, loop: Optional[asyncio.AbstractEventLoop] = None
) -> list[signal.Signals]:
    """
    Set ``stop_event`` when the process receives a termination signal.

    Args:
        stop_event: Event the entry point waits on
        loop: Loop to install on (running loop by default)

    Returns:
        Signals that were installed (none on platforms without support)
    """
    loop = loop or asyncio.get_running_loop()
    installed = []
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, _on_signal, sig, stop_event)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Signal handler for {sig.name} not supported here")
            continue
        installed.append(sig)
    return installed


def _on_signal(sig: signal.Signals, stop_event: asyncio.Event) -> None:
    logger.info(f"Received {sig.name}, shutting down gracefully...")
    stop_event.set()


async def close_quietly(bus: EventBus) -> None:
    """Close the bus; errors are logged so process exit never hangs on them."""
    try:
        await bus.close()
    except Exception as exc:
        logger.error(f"Error during graceful shutdown: {exc}", exc_info=True)
