"""Partition selection for published envelopes."""
import itertools
from typing import Iterator, Optional, Sequence

from aiokafka.partitioner import murmur2


class Partitioner:
    """
    Keyed events hash onto a fixed partition; unkeyed events rotate.

    Keyed placement uses murmur2 like the Java client's default partitioner,
    so other Kafka clients agree on where a key lives.
    """

    def __init__(self) -> None:
        self._counters: dict[str, Iterator[int]] = {}

    def select(
        self, topic: str, key: Optional[bytes], partitions: Sequence[int]
    ) -> int:
        """
        Pick a partition.

        Args:
            topic: Topic name (round-robin state is per topic)
            key: Encoded partition key, or None
            partitions: Partition ids known for the topic

        Returns:
            Chosen partition id

        Raises:
            ValueError: If the topic has no partitions
        """
        ordered = sorted(partitions or ())
        if not ordered:
            raise ValueError(f"No partitions known for topic {topic}")

        if key is not None:
            index = (murmur2(key) & 0x7FFFFFFF) % len(ordered)
        else:
            counter = self._counters.setdefault(topic, itertools.count())
            index = next(counter) % len(ordered)
        return ordered[index]
