"""
Handler dispatch boundary.

Every handler invocation on either transport goes through invoke_handler,
which turns raised exceptions into HandlerResult.FAILED so one failing
handler never reaches its siblings or the caller.
"""
import inspect
import logging
from typing import Any

from core.domain.event_bus import EventHandler, HandlerResult
from core.domain.events import Envelope


logger = logging.getLogger(__name__)


def handler_name(handler: EventHandler) -> str:
    """Readable name for logs."""
    return getattr(handler, "__qualname__", None) or getattr(
        handler, "__name__", repr(handler)
    )


async def invoke_handler(
    handler: EventHandler, envelope: Envelope, **context: Any
) -> HandlerResult:
    """
    Run one handler and classify the outcome.

    Sync handlers are accepted too; their return value is used as-is.

    Args:
        handler: Subscribed handler
        envelope: Event being delivered
        **context: Extra log fields (partition, offset, group_id, ...)

    Returns:
        PROCESSED, SKIPPED or FAILED
    """
    try:
        result = handler(envelope)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        logger.error(
            f"Event handler {handler_name(handler)} failed on {envelope.topic}: {exc}",
            exc_info=True,
            extra={
                "topic": envelope.topic,
                "payload": dict(envelope.payload),
                **context,
            },
        )
        return HandlerResult.FAILED

    if result is None:
        return HandlerResult.PROCESSED
    if isinstance(result, HandlerResult):
        return result

    logger.warning(
        f"Event handler {handler_name(handler)} returned {result!r}; treating as processed",
        extra={"topic": envelope.topic, **context},
    )
    return HandlerResult.PROCESSED
