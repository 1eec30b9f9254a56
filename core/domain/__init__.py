"""Domain layer - event bus contract, envelope and errors."""

from .event_bus import EventBus, EventHandler, HandlerResult
from .events import Envelope, TopicSpec, REQUIRED_TOPICS
from .exceptions import (
    ConfigurationError,
    EventBusClosedError,
    EventBusConnectionError,
    EventBusError,
    PublishError,
    TopicProvisioningError,
    TransportError,
)

__all__ = [
    "ConfigurationError",
    "Envelope",
    "EventBus",
    "EventBusClosedError",
    "EventBusConnectionError",
    "EventBusError",
    "EventHandler",
    "HandlerResult",
    "PublishError",
    "REQUIRED_TOPICS",
    "TopicProvisioningError",
    "TopicSpec",
    "TransportError",
]
