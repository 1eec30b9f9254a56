"""
Kafka publisher.

Wraps an aiokafka producer: picks the partition for each envelope, sends
the JSON wire form and waits for the broker acknowledgement.
"""
import asyncio
import logging
from collections.abc import Callable
from typing import Any, Optional

from core.domain.events import Envelope

from .partitioner import Partitioner


logger = logging.getLogger(__name__)

ProducerFactory = Callable[[], Any]


class KafkaEventPublisher:
    """
    Publishes envelopes to Kafka.

    Message format: the Envelope wire object as UTF-8 JSON; the partition
    key (when present) is also the Kafka message key.
    """

    def __init__(
        self,
        producer_factory: ProducerFactory,
        partitioner: Optional[Partitioner] = None,
        start_timeout_seconds: float = 30.0,
    ):
        """
        Args:
            producer_factory: Returns an unstarted aiokafka-compatible producer
            partitioner: Partition selection strategy
            start_timeout_seconds: Upper bound for one connection attempt
        """
        self._producer_factory = producer_factory
        self._partitioner = partitioner or Partitioner()
        self._start_timeout = start_timeout_seconds
        self._producer: Optional[Any] = None

    @property
    def started(self) -> bool:
        return self._producer is not None

    async def start(self) -> None:
        """
        Start a fresh producer.

        A producer that failed to start is stopped and discarded so the next
        attempt begins clean.
        """
        if self._producer is not None:
            return
        producer = self._producer_factory()
        try:
            await asyncio.wait_for(producer.start(), timeout=self._start_timeout)
        except BaseException:
            try:
                await producer.stop()
            except Exception as exc:
                logger.debug(f"Ignoring error stopping failed producer: {exc}")
            raise
        self._producer = producer

    async def stop(self) -> None:
        """Flush buffered sends and stop the producer."""
        producer, self._producer = self._producer, None
        if producer is not None:
            await producer.stop()

    async def publish(self, envelope: Envelope) -> Any:
        """
        Send one envelope and wait for the broker ack.

        Args:
            envelope: Event to send

        Returns:
            Broker record metadata

        Raises:
            RuntimeError: If the publisher was not started
        """
        if self._producer is None:
            raise RuntimeError("Kafka publisher is not started")

        key = envelope.partition_key.encode("utf-8") if envelope.partition_key else None
        partitions = await self._producer.partitions_for(envelope.topic)
        partition = self._partitioner.select(envelope.topic, key, list(partitions or ()))

        metadata = await self._producer.send_and_wait(
            envelope.topic,
            value=envelope.to_json(),
            key=key,
            partition=partition,
        )
        logger.debug(
            f"Event published to Kafka: {envelope.topic}",
            extra={"topic": envelope.topic, "partition": partition, "key": envelope.partition_key},
        )
        return metadata
