"""
In-process event bus.

Delivers every event to the handlers registered in this process, one at a
time and in registration order. No persistence and no network hop: an event
published while nobody listens is dropped.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Mapping, Optional, Sequence

from core.domain.event_bus import EventBus, EventHandler, HandlerResult
from core.domain.events import Envelope
from core.domain.events.envelope import DEFAULT_PARTITION_KEY_FIELDS
from core.domain.exceptions import EventBusClosedError

from .dispatch import handler_name, invoke_handler


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandlerFailure:
    """A handler that failed on an event. Nothing retries it."""

    topic: str
    handler: str
    envelope: Envelope
    failed_at: datetime


class InMemoryEventBus(EventBus):
    """
    In-Memory Event Bus Implementation.

    Features:
    - Sequential dispatch in registration order
    - publish() returns after every handler was attempted
    - Handler failures are logged and recorded, never raised
    - close() waits for dispatches already running
    """

    source = "in-memory-eventbus"

    def __init__(
        self,
        key_fields: Sequence[str] = DEFAULT_PARTITION_KEY_FIELDS,
        max_recorded_failures: int = 100,
    ):
        """
        Initialize event bus.

        Args:
            key_fields: Payload fields used for Envelope.partition_key
            max_recorded_failures: Size of the failures ring buffer
        """
        self._handlers: dict[str, list[EventHandler]] = {}
        self._key_fields = tuple(key_fields)
        self._inflight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self.failures: Deque[HandlerFailure] = deque(maxlen=max_recorded_failures)

        logger.info("EventBus initialized in IN-MEMORY mode")

    @property
    def closed(self) -> bool:
        return self._closed

    def handler_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))

    async def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        """
        Publish an event to every handler subscribed to ``topic``.

        Handlers registered while this call is dispatching are not invoked
        for this event.

        Args:
            topic: Topic name
            payload: Producer data

        Raises:
            EventBusClosedError: If the bus was closed
        """
        if self._closed:
            raise EventBusClosedError(f"Cannot publish {topic}: event bus is closed")

        envelope = Envelope.create(topic, payload, self.source, self._key_fields)
        handlers = list(self._handlers.get(topic, []))
        if not handlers:
            logger.debug(f"No handlers for {topic}; event dropped")
            return

        logger.debug(
            f"Publishing {topic} to {len(handlers)} handler(s)",
            extra={"topic": topic, "handler_count": len(handlers)},
        )

        self._inflight += 1
        self._idle.clear()
        try:
            for handler in handlers:
                outcome = await invoke_handler(handler, envelope)
                if outcome is HandlerResult.FAILED:
                    self.failures.append(
                        HandlerFailure(
                            topic=topic,
                            handler=handler_name(handler),
                            envelope=envelope,
                            failed_at=datetime.now(timezone.utc),
                        )
                    )
        finally:
            self._inflight -= 1
            if self._inflight == 0:
                self._idle.set()

    async def subscribe(
        self, topic: str, handler: EventHandler, role: Optional[str] = None
    ) -> None:
        """
        Subscribe a handler to a topic.

        ``role`` is accepted for contract compatibility; in a single
        process every handler receives every event.

        Raises:
            EventBusClosedError: If the bus was closed
            TypeError: If handler is not callable
        """
        if self._closed:
            raise EventBusClosedError(f"Cannot subscribe to {topic}: event bus is closed")
        if not callable(handler):
            raise TypeError(f"Handler for {topic} must be callable, got {handler!r}")

        self._handlers.setdefault(topic, []).append(handler)
        logger.info(
            f"Registered event handler {handler_name(handler)} for {topic}",
            extra={"topic": topic, "handler_count": self.handler_count(topic)},
        )

    async def close(self) -> None:
        """Stop intake and wait for running dispatches. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        if self._inflight:
            logger.info(f"Waiting for {self._inflight} in-flight dispatch(es) before close")
        await self._idle.wait()

        self._handlers.clear()
        logger.info("EventBus closed (in-memory)")

    def describe(self) -> dict[str, Any]:
        return {
            "transport": "in-memory",
            "closed": self._closed,
            "topics": {topic: len(handlers) for topic, handlers in self._handlers.items()},
            "recorded_failures": len(self.failures),
        }
