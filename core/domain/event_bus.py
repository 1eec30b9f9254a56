"""
Event Bus Interface (Domain Layer).

Pure interface definition - no transport details. Producers and consumers
depend on this contract only; the transport behind it is chosen once at
startup.
"""
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Mapping, Optional

from .events.envelope import Envelope


class HandlerResult(str, Enum):
    """Outcome of one handler invocation."""

    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def acknowledged(self) -> bool:
        """True when the event no longer needs delivery to this handler."""
        return self is not HandlerResult.FAILED


# Handlers may return None, which counts as PROCESSED
EventHandler = Callable[[Envelope], Awaitable[Optional[HandlerResult]]]


class EventBus(ABC):
    """
    Event Bus Interface.

    Implemented by the in-process transport and the distributed (Kafka)
    transport with the same meaning for every operation.
    """

    #: Tag stamped into ``Envelope.source``
    source: str = "eventbus"

    @abstractmethod
    async def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        """
        Publish one event.

        Resolves once the transport's delivery guarantee for the call holds.

        Args:
            topic: Topic name, e.g. ``file.uploaded``
            payload: Producer data

        Raises:
            TransportError: If the transport cannot accept the event
        """

    @abstractmethod
    async def subscribe(
        self, topic: str, handler: EventHandler, role: Optional[str] = None
    ) -> None:
        """
        Register a handler for a topic.

        Args:
            topic: Topic name
            handler: Async callable receiving the Envelope
            role: Consumer role; distinct roles receive independent copies
                (distributed transport only, defaults to the service role)
        """

    @abstractmethod
    async def close(self) -> None:
        """Stop intake, wait for in-flight handlers, release resources. Idempotent."""

    def describe(self) -> dict[str, Any]:
        """Transport summary for health checks."""
        return {"transport": type(self).__name__}
