"""
Kafka event bus.

Distributed transport behind the EventBus contract: partitioned topics,
consumer groups per worker role, offsets committed after handling, topic
provisioning on connect and ordered graceful shutdown.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.admin import AIOKafkaAdminClient

from core.domain.event_bus import EventBus, EventHandler
from core.domain.events import REQUIRED_TOPICS, Envelope, TopicSpec
from core.domain.exceptions import (
    EventBusClosedError,
    EventBusConnectionError,
    PublishError,
)
from core.infrastructure.bus.dispatch import handler_name
from core.infrastructure.retry import RetryPolicy
from core.settings import EventBusSettings, KafkaSettings

from .client_config import build_client_kwargs, sanitize_servers
from .consumer import ConsumerFactory, KafkaConsumerRunner
from .producer import KafkaEventPublisher, ProducerFactory
from .topic_registry import AdminFactory, TopicRegistry


logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def consumer_group_id(topic: str, role: str, prefix: str = "") -> str:
    """
    Consumer group for a topic and worker role.

    Replicas of one role share the group; distinct roles get their own
    copy of every event.

    Example:
        >>> consumer_group_id("file.uploaded", "thumbnail")
        'file.uploaded-thumbnail'
    """
    group_id = f"{topic}-{role}"
    return f"{prefix}-{group_id}" if prefix else group_id


class KafkaEventBus(EventBus):
    """
    Kafka Event Bus Implementation.

    State machine: disconnected -> connecting -> connected. The first
    publish or subscribe connects; concurrent callers wait for the single
    attempt in flight. Failed attempts are retried with capped exponential
    backoff before EventBusConnectionError reaches the caller.
    """

    source = "kafka-eventbus"

    def __init__(
        self,
        kafka_settings: KafkaSettings,
        bus_settings: Optional[EventBusSettings] = None,
        *,
        producer_factory: Optional[ProducerFactory] = None,
        consumer_factory: Optional[ConsumerFactory] = None,
        admin_factory: Optional[AdminFactory] = None,
        required_topics: Sequence[TopicSpec] = REQUIRED_TOPICS,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize Kafka event bus.

        Args:
            kafka_settings: Broker connection settings
            bus_settings: Service role, group prefix and key fields
            producer_factory: Builds the producer (aiokafka by default)
            consumer_factory: Builds a consumer for (topic, group_id)
            admin_factory: Builds the admin client used for provisioning
            required_topics: Catalog provisioned on connect
            retry_policy: Reconnect policy (from settings by default)

        Raises:
            ConfigurationError: If no broker address is configured and a
                default aiokafka factory is needed
        """
        self._settings = kafka_settings
        self._bus_settings = bus_settings or EventBusSettings()
        self._key_fields = self._bus_settings.partition_key_fields

        if None in (producer_factory, consumer_factory, admin_factory):
            self._client_kwargs = build_client_kwargs(kafka_settings)
        else:
            self._client_kwargs = {}

        timeout_seconds = kafka_settings.connection_timeout_ms / 1000
        self._publisher = KafkaEventPublisher(
            producer_factory or self._default_producer,
            start_timeout_seconds=timeout_seconds,
        )
        self._consumer_factory = consumer_factory or self._default_consumer
        self._registry = TopicRegistry(
            admin_factory or self._default_admin,
            required_topics=required_topics,
            replication_factor=kafka_settings.replication_factor,
            timeout_ms=kafka_settings.request_timeout_ms,
        )
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=kafka_settings.connect_max_attempts,
            initial_backoff_seconds=kafka_settings.connect_initial_backoff_seconds,
            max_backoff_seconds=kafka_settings.connect_max_backoff_seconds,
        )

        self._state = ConnectionState.DISCONNECTED
        self._connect_lock = asyncio.Lock()
        self._subscribe_lock = asyncio.Lock()
        self._runners: dict[tuple[str, str], KafkaConsumerRunner] = {}
        self._closed = False

        logger.info(
            "EventBus initialized in KAFKA mode",
            extra={
                "brokers": sanitize_servers(kafka_settings.brokers),
                "client_id": kafka_settings.client_id,
                "authenticated": kafka_settings.authenticated,
            },
        )

    @classmethod
    def from_settings(
        cls, kafka_settings: KafkaSettings, bus_settings: EventBusSettings
    ) -> "KafkaEventBus":
        return cls(kafka_settings, bus_settings)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def registry(self) -> TopicRegistry:
        return self._registry

    def group_id_for(self, topic: str, role: Optional[str] = None) -> str:
        return consumer_group_id(
            topic, role or self._bus_settings.service_name, self._bus_settings.group_prefix
        )

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Connect the producer and provision topics. Idempotent.

        Raises:
            EventBusConnectionError: If every attempt failed or provisioning
                could not reach the broker
            EventBusClosedError: If the bus was closed meanwhile
        """
        if self._state is ConnectionState.CONNECTED:
            return

        async with self._connect_lock:
            if self._closed:
                raise EventBusClosedError("Event bus closed while connecting")
            if self._state is ConnectionState.CONNECTED:
                return
            self._state = ConnectionState.CONNECTING
            try:
                await self._start_producer()
                await self._registry.ensure_topics()
            except BaseException:
                self._state = ConnectionState.DISCONNECTED
                if self._publisher.started:
                    await self._stop_quietly(self._publisher.stop(), "producer")
                raise
            self._state = ConnectionState.CONNECTED
            logger.info("Connected to Kafka successfully")

    async def _start_producer(self) -> None:
        policy = self._retry_policy
        last_error: Optional[BaseException] = None
        for attempt in range(1, policy.max_attempts + 1):
            if self._closed:
                raise EventBusClosedError("Event bus closed while connecting")
            logger.info(
                f"Connecting to Kafka cluster (attempt {attempt}/{policy.max_attempts})",
                extra={"brokers": sanitize_servers(self._settings.brokers)},
            )
            try:
                await self._publisher.start()
                return
            except Exception as exc:
                last_error = exc
                logger.warning(f"Kafka connection attempt {attempt} failed: {exc}")
                if attempt < policy.max_attempts:
                    await asyncio.sleep(policy.backoff_for(attempt))

        raise EventBusConnectionError(
            f"Failed to connect to Kafka after {policy.max_attempts} attempts: {last_error}",
            attempts=policy.max_attempts,
        ) from last_error

    # ------------------------------------------------------------------
    # EventBus contract
    # ------------------------------------------------------------------

    async def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        """
        Publish to Kafka and wait for the broker acknowledgement.

        Events sharing a partition key land on one partition in publish
        order; others rotate over the topic's partitions.

        Raises:
            EventBusClosedError: If the bus was closed
            EventBusConnectionError: If the broker is unreachable
            PublishError: If the send was not acknowledged
        """
        if self._closed:
            raise EventBusClosedError(f"Cannot publish {topic}: event bus is closed")
        await self.connect()

        envelope = Envelope.create(topic, payload, self.source, self._key_fields)
        try:
            await self._publisher.publish(envelope)
        except Exception as exc:
            logger.error(
                f"Failed to publish event to Kafka: {topic}: {exc}",
                exc_info=True,
                extra={"topic": topic, "key": envelope.partition_key},
            )
            raise PublishError(f"Failed to publish {topic}: {exc}", topic=topic) from exc

    async def subscribe(
        self, topic: str, handler: EventHandler, role: Optional[str] = None
    ) -> None:
        """
        Join the consumer group ``<topic>-<role>`` and start consuming.

        A second handler for the same topic and role in this process joins
        the existing consumer instead of adding a group member.

        Raises:
            EventBusClosedError: If the bus was closed
            EventBusConnectionError: If the consumer cannot join the group
        """
        if self._closed:
            raise EventBusClosedError(f"Cannot subscribe to {topic}: event bus is closed")
        if not callable(handler):
            raise TypeError(f"Handler for {topic} must be callable, got {handler!r}")
        await self.connect()

        group_id = self.group_id_for(topic, role)
        async with self._subscribe_lock:
            if self._closed:
                raise EventBusClosedError(f"Cannot subscribe to {topic}: event bus is closed")
            runner = self._runners.get((topic, group_id))
            if runner is not None:
                runner.add_handler(handler)
                logger.info(
                    f"Added handler {handler_name(handler)} to Kafka consumer {group_id}",
                    extra={"topic": topic, "group_id": group_id},
                )
                return

            runner = KafkaConsumerRunner(
                topic,
                group_id,
                self._consumer_factory,
                key_fields=self._key_fields,
                poll_timeout_ms=self._settings.poll_timeout_ms,
                max_records=self._settings.poll_max_records,
                redelivery_backoff_seconds=self._settings.redelivery_backoff_seconds,
                start_timeout_seconds=self._settings.connection_timeout_ms / 1000,
            )
            runner.add_handler(handler)
            logger.info(
                f"Creating Kafka consumer for {topic}",
                extra={"topic": topic, "group_id": group_id},
            )
            try:
                await runner.start()
            except Exception as exc:
                logger.error(f"Failed to subscribe to Kafka topic {topic}: {exc}")
                raise EventBusConnectionError(
                    f"Failed to start consumer {group_id}: {exc}"
                ) from exc
            self._runners[(topic, group_id)] = runner

    async def close(self) -> None:
        """
        Shut down in order.

        1. Stop polling; running handlers finish and commit
        2. Stop the producer (flushes buffered sends)
        3. Stop the consumers (leave their groups)

        Errors are logged and shutdown continues. Safe to call twice.
        """
        if self._closed:
            return
        self._closed = True
        logger.info("Closing Kafka EventBus...")

        async with self._subscribe_lock:
            runners = list(self._runners.values())
            self._runners.clear()

        for runner in runners:
            await self._stop_quietly(runner.stop(), f"consumer loop {runner.group_id}")

        async with self._connect_lock:
            await self._stop_quietly(self._publisher.stop(), "producer")
            self._state = ConnectionState.DISCONNECTED

        for runner in runners:
            await self._stop_quietly(runner.close(), f"consumer {runner.group_id}")

        logger.info("Kafka EventBus closed successfully")

    def describe(self) -> dict[str, Any]:
        return {
            "transport": "kafka",
            "state": self._state.value,
            "closed": self._closed,
            "consumer_groups": sorted(group for _, group in self._runners),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _stop_quietly(awaitable, what: str) -> None:
        try:
            await awaitable
        except Exception as exc:
            logger.error(f"Error stopping Kafka {what}: {exc}", exc_info=True)

    def _default_producer(self) -> AIOKafkaProducer:
        return AIOKafkaProducer(
            **self._client_kwargs,
            acks="all",
            enable_idempotence=True,
        )

    def _default_consumer(self, topic: str, group_id: str) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            topic,
            **self._client_kwargs,
            group_id=group_id,
            enable_auto_commit=False,
            auto_offset_reset="latest",
            session_timeout_ms=self._settings.session_timeout_ms,
            heartbeat_interval_ms=self._settings.heartbeat_interval_ms,
        )

    def _default_admin(self) -> AIOKafkaAdminClient:
        return AIOKafkaAdminClient(**self._client_kwargs)
