"""Tests for Partitioner."""

import pytest

from core.infrastructure.kafka import Partitioner


def test_same_key_always_same_partition():
    partitioner = Partitioner()
    partitions = list(range(6))

    chosen = {partitioner.select("file.uploaded", b"user-42", partitions) for _ in range(20)}

    assert len(chosen) == 1
    assert chosen.pop() in partitions


def test_keyless_events_rotate_over_partitions():
    partitioner = Partitioner()

    chosen = [partitioner.select("file.deleted", None, [2, 0, 1]) for _ in range(6)]

    assert chosen == [0, 1, 2, 0, 1, 2]


def test_round_robin_state_is_per_topic():
    partitioner = Partitioner()

    partitioner.select("a", None, [0, 1])
    assert partitioner.select("b", None, [0, 1]) == 0


def test_no_partitions_is_an_error():
    with pytest.raises(ValueError):
        Partitioner().select("file.uploaded", None, [])
