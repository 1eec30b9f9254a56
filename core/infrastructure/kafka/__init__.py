"""Distributed event transport on Kafka (requires the ``kafka`` extra)."""
from .consumer import KafkaConsumerRunner
from .event_bus import ConnectionState, KafkaEventBus, consumer_group_id
from .partitioner import Partitioner
from .producer import KafkaEventPublisher
from .topic_registry import TopicRegistry

__all__ = [
    "ConnectionState",
    "KafkaConsumerRunner",
    "KafkaEventBus",
    "KafkaEventPublisher",
    "Partitioner",
    "TopicRegistry",
    "consumer_group_id",
]
