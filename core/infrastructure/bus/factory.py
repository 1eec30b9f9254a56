"""
Event bus factory.

Chooses the transport once from DEPLOYMENT_MODE. Entry points build the bus
at startup and pass it down explicitly; get_event_bus() keeps one lazily
created bus per process for code that cannot be handed one.
"""
import logging
from typing import Optional

from core.domain.event_bus import EventBus
from core.domain.exceptions import ConfigurationError
from core.settings import AppSettings, DeploymentMode, get_app_settings

from .in_memory import InMemoryEventBus


logger = logging.getLogger(__name__)


def create_event_bus(settings: Optional[AppSettings] = None) -> EventBus:
    """
    Build the transport selected by the deployment mode.

    The Kafka transport is imported only here, so monolith deployments never
    load the broker client.

    Args:
        settings: Application settings (cached global settings by default)

    Returns:
        InMemoryEventBus for ``monolith``, KafkaEventBus for ``microservices``

    Raises:
        ConfigurationError: If microservices mode lacks aiokafka or brokers
    """
    settings = settings or get_app_settings()
    mode = settings.event_bus.deployment_mode

    if mode is DeploymentMode.MICROSERVICES:
        logger.info("Initializing EventBus in MICROSERVICES mode (Kafka)")
        try:
            from core.infrastructure.kafka import KafkaEventBus
        except ImportError as exc:
            raise ConfigurationError(
                "DEPLOYMENT_MODE=microservices needs the 'kafka' extra: pip install 'opendrive-events[kafka]'"
            ) from exc
        return KafkaEventBus.from_settings(settings.kafka, settings.event_bus)

    logger.info("Initializing EventBus in MONOLITH mode (in-memory)")
    return InMemoryEventBus(key_fields=settings.event_bus.partition_key_fields)


# Global event bus instance
_event_bus_instance: Optional[EventBus] = None


def get_event_bus(settings: Optional[AppSettings] = None) -> EventBus:
    """
    Get or create the process-wide event bus.

    The transport is fixed by the first call; later calls return the same
    instance whatever settings they pass.
    """
    global _event_bus_instance

    if _event_bus_instance is None:
        _event_bus_instance = create_event_bus(settings)

    return _event_bus_instance


async def shutdown_event_bus() -> None:
    """Close the process-wide bus and forget it, allowing a controlled restart."""
    global _event_bus_instance

    bus, _event_bus_instance = _event_bus_instance, None
    if bus is not None:
        await bus.close()
