"""
Event bus error taxonomy.

Every error raised through the EventBus contract derives from EventBusError,
so producers can catch one type regardless of the active transport.
"""


class EventBusError(Exception):
    """Base class for all event bus errors."""


class ConfigurationError(EventBusError):
    """Deployment configuration cannot produce a working transport."""


class TransportError(EventBusError):
    """The active transport could not accept an event or a subscription."""


class EventBusConnectionError(TransportError):
    """Broker unreachable after the reconnect budget was spent."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class TopicProvisioningError(EventBusConnectionError):
    """Required topics are still missing after a failed creation request."""

    def __init__(self, message: str, missing: list[str]):
        super().__init__(message)
        self.missing = missing


class PublishError(TransportError):
    """The broker rejected or failed to acknowledge a send."""

    def __init__(self, message: str, topic: str):
        super().__init__(message)
        self.topic = topic


class EventBusClosedError(TransportError):
    """Publish or subscribe attempted after close()."""
