"""
Kafka consumer-group runner.

One runner per (topic, consumer group) in this process. It polls the
partitions the broker assigned to it, hands each message to the group's
handlers and commits the offset only after all of them acknowledged it.
"""
import asyncio
import logging
from collections.abc import Callable
from typing import Any, Optional, Sequence

from aiokafka.errors import KafkaError

from core.domain.event_bus import EventHandler, HandlerResult
from core.domain.events import Envelope
from core.domain.events.envelope import DEFAULT_PARTITION_KEY_FIELDS
from core.infrastructure.bus.dispatch import invoke_handler


logger = logging.getLogger(__name__)

ConsumerFactory = Callable[[str, str], Any]


class KafkaConsumerRunner:
    """
    Consumes one topic as a member of one consumer group.

    Features:
    - Manual offset commit after the handlers finish (at-least-once)
    - Failed message: partition is rewound to it and redelivered after a pause
    - Per-partition sequential processing, partitions owned by the broker's
      group assignment
    - stop() lets the running handler finish and commit before returning
    """

    def __init__(
        self,
        topic: str,
        group_id: str,
        consumer_factory: ConsumerFactory,
        key_fields: Sequence[str] = DEFAULT_PARTITION_KEY_FIELDS,
        poll_timeout_ms: int = 1000,
        max_records: int = 50,
        redelivery_backoff_seconds: float = 1.0,
        start_timeout_seconds: float = 30.0,
    ):
        self.topic = topic
        self.group_id = group_id
        self.handlers: list[EventHandler] = []
        self._consumer_factory = consumer_factory
        self._key_fields = tuple(key_fields)
        self._poll_timeout_ms = poll_timeout_ms
        self._max_records = max_records
        self._redelivery_backoff = redelivery_backoff_seconds
        self._start_timeout = start_timeout_seconds

        self._consumer: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()
        self._busy = False

        self.processed_count = 0
        self.failed_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_handler(self, handler: EventHandler) -> None:
        self.handlers.append(handler)

    async def start(self) -> None:
        """Join the consumer group and start the poll loop."""
        if self._consumer is not None:
            return
        consumer = self._consumer_factory(self.topic, self.group_id)
        try:
            await asyncio.wait_for(consumer.start(), timeout=self._start_timeout)
        except BaseException:
            try:
                await consumer.stop()
            except Exception as exc:
                logger.debug(f"Ignoring error stopping failed consumer: {exc}")
            raise

        self._consumer = consumer
        self._task = asyncio.create_task(
            self._run(), name=f"kafka-consumer:{self.group_id}"
        )
        logger.info(
            f"Kafka consumer running for {self.topic}",
            extra={"topic": self.topic, "group_id": self.group_id},
        )

    async def stop(self) -> None:
        """
        Stop polling.

        A message whose handlers are running is finished and committed
        first; an idle poll is cancelled immediately.
        """
        self._stopping.set()
        task = self._task
        if task is None or task.done():
            return
        if not self._busy:
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        """Leave the group and release the consumer connection."""
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            await consumer.stop()

    async def _run(self) -> None:
        logger.debug(f"Consumer loop started for {self.group_id}")
        try:
            while not self._stopping.is_set():
                try:
                    batch = await self._consumer.getmany(
                        timeout_ms=self._poll_timeout_ms, max_records=self._max_records
                    )
                except KafkaError as exc:
                    logger.warning(
                        f"Kafka poll failed for {self.group_id}: {exc}",
                        extra={"topic": self.topic, "group_id": self.group_id},
                    )
                    await self._pause(self._redelivery_backoff)
                    continue

                rewound = False
                for tp, records in batch.items():
                    for record in records:
                        if self._stopping.is_set():
                            return
                        if not await self._process(tp, record):
                            rewound = True
                            self._rewind(tp, record.offset)
                            break

                if rewound:
                    await self._pause(self._redelivery_backoff)
        except asyncio.CancelledError:
            logger.debug(f"Consumer loop cancelled for {self.group_id}")
            raise
        except Exception as exc:
            logger.error(
                f"Consumer loop error for {self.group_id}: {exc}",
                exc_info=True,
                extra={"topic": self.topic, "group_id": self.group_id},
            )
        finally:
            logger.info(f"Consumer loop exiting for {self.group_id}")

    async def _process(self, tp: Any, record: Any) -> bool:
        """
        Deliver one record to every handler of the group.

        Returns:
            True when the offset was committed (or the record skipped),
            False when it must be redelivered
        """
        context = {
            "group_id": self.group_id,
            "partition": record.partition,
            "offset": record.offset,
        }
        self._busy = True
        try:
            try:
                if record.value is None:
                    raise ValueError("empty message value")
                envelope = Envelope.from_json(
                    record.value, topic=record.topic, key_fields=self._key_fields
                )
            except ValueError as exc:
                logger.error(
                    f"Skipping undecodable message on {record.topic}: {exc}",
                    extra={"topic": record.topic, **context},
                )
                await self._commit(tp, record.offset + 1)
                return True

            logger.debug(
                f"Processing Kafka message {record.topic}[{record.partition}]@{record.offset}",
                extra={"topic": record.topic, **context},
            )
            outcomes = []
            for handler in list(self.handlers):
                outcomes.append(await invoke_handler(handler, envelope, **context))

            if all(outcome.acknowledged for outcome in outcomes):
                await self._commit(tp, record.offset + 1)
                self.processed_count += 1
                return True

            self.failed_count += 1
            failed = sum(1 for outcome in outcomes if outcome is HandlerResult.FAILED)
            logger.warning(
                f"{failed} handler(s) failed on {record.topic}[{record.partition}]@{record.offset}; "
                f"offset withheld for redelivery",
                extra={"topic": record.topic, **context},
            )
            return False
        finally:
            self._busy = False

    def _rewind(self, tp: Any, offset: int) -> None:
        try:
            self._consumer.seek(tp, offset)
        except KafkaError as exc:
            # Partition revoked mid-handler; its next owner resumes from the committed offset
            logger.warning(
                f"Could not rewind {self.group_id} to {offset}: {exc}",
                extra={"topic": self.topic, "group_id": self.group_id},
            )

    async def _commit(self, tp: Any, offset: int) -> None:
        try:
            await self._consumer.commit({tp: offset})
        except KafkaError as exc:
            # Lost the partition in a rebalance; the new owner redelivers
            logger.warning(
                f"Offset commit failed for {self.group_id} at {offset}: {exc}",
                extra={"topic": self.topic, "group_id": self.group_id},
            )

    async def _pause(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
