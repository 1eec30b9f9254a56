"""Tests for KafkaConsumerRunner offset handling."""

import json

import pytest
from aiokafka.errors import IllegalStateError

from core.domain.event_bus import HandlerResult
from core.infrastructure.kafka import KafkaConsumerRunner
from tests.mocks.kafka import FakeBroker, FakeConsumer, FakeConsumerFactory, wait_until


TOPIC = "file.deleted"
GROUP = "file.deleted-search"


def wire(file_id: str) -> bytes:
    return json.dumps(
        {
            "fileId": file_id,
            "eventType": TOPIC,
            "timestamp": "2024-05-01T10:00:00+00:00",
            "source": "kafka-eventbus",
        }
    ).encode("utf-8")


async def start_runner(broker: FakeBroker, *handlers) -> KafkaConsumerRunner:
    runner = KafkaConsumerRunner(
        TOPIC,
        GROUP,
        FakeConsumerFactory(broker),
        poll_timeout_ms=10,
        redelivery_backoff_seconds=0.01,
    )
    for handler in handlers:
        runner.add_handler(handler)
    await runner.start()
    return runner


async def shutdown(runner: KafkaConsumerRunner) -> None:
    await runner.stop()
    await runner.close()


@pytest.mark.asyncio
async def test_commits_offset_after_handler_success():
    broker = FakeBroker({TOPIC: 1})
    seen = []

    async def handler(envelope):
        seen.append((envelope.topic, envelope.payload["fileId"], envelope.source))

    runner = await start_runner(broker, handler)
    broker.append(TOPIC, 0, None, wire("f1"))
    broker.append(TOPIC, 0, None, wire("f2"))

    await wait_until(lambda: broker.committed.get((GROUP, TOPIC, 0)) == 2)
    await shutdown(runner)

    assert seen == [(TOPIC, "f1", "kafka-eventbus"), (TOPIC, "f2", "kafka-eventbus")]
    assert runner.processed_count == 2


@pytest.mark.asyncio
async def test_undecodable_message_is_skipped_and_committed():
    broker = FakeBroker({TOPIC: 1})
    seen = []

    async def handler(envelope):
        seen.append(envelope.payload["fileId"])

    runner = await start_runner(broker, handler)
    broker.append(TOPIC, 0, None, b"not json at all")
    broker.append(TOPIC, 0, None, wire("f2"))

    await wait_until(lambda: broker.committed.get((GROUP, TOPIC, 0)) == 2)
    await shutdown(runner)

    assert seen == ["f2"]


@pytest.mark.asyncio
async def test_skipped_result_still_commits():
    broker = FakeBroker({TOPIC: 1})

    async def handler(envelope):
        return HandlerResult.SKIPPED

    runner = await start_runner(broker, handler)
    broker.append(TOPIC, 0, None, wire("f1"))

    await wait_until(lambda: broker.committed.get((GROUP, TOPIC, 0)) == 1)
    await shutdown(runner)


@pytest.mark.asyncio
async def test_stuck_partition_does_not_stall_other_partitions():
    broker = FakeBroker({TOPIC: 2})
    seen = []

    async def handler(envelope):
        if envelope.payload["fileId"] == "poison":
            raise ValueError("cannot index")
        seen.append(envelope.payload["fileId"])

    runner = await start_runner(broker, handler)
    broker.append(TOPIC, 0, None, wire("poison"))
    broker.append(TOPIC, 0, None, wire("behind-poison"))
    broker.append(TOPIC, 1, None, wire("a"))
    broker.append(TOPIC, 1, None, wire("b"))

    await wait_until(lambda: broker.committed.get((GROUP, TOPIC, 1)) == 2)
    await wait_until(lambda: runner.failed_count >= 2)
    await shutdown(runner)

    assert seen == ["a", "b"]
    assert (GROUP, TOPIC, 0) not in broker.committed


@pytest.mark.asyncio
async def test_restarted_member_resumes_from_committed_offset():
    """A message whose handler never succeeded is redelivered to the next member."""
    broker = FakeBroker({TOPIC: 1})

    async def failing(envelope):
        if envelope.payload["fileId"] == "f1":
            raise RuntimeError("crashed mid-handler")

    first = await start_runner(broker, failing)
    broker.append(TOPIC, 0, None, wire("f0"))
    broker.append(TOPIC, 0, None, wire("f1"))
    await wait_until(lambda: first.failed_count >= 1)
    await shutdown(first)

    assert broker.committed[(GROUP, TOPIC, 0)] == 1
    seen = []

    async def healthy(envelope):
        seen.append(envelope.payload["fileId"])

    second = await start_runner(broker, healthy)
    await wait_until(lambda: seen == ["f1"])
    await shutdown(second)


class RevokedOnSeekConsumer(FakeConsumer):
    """Loses its partition while a handler runs: the first seek is refused."""

    revoked = False

    def seek(self, tp, offset):
        if not self.revoked:
            self.revoked = True
            # Reassigned: the next fetch resumes from the committed offset
            self.positions[tp.partition] = self.broker.committed.get(
                (self.group_id, tp.topic, tp.partition), 0
            )
            raise IllegalStateError(f"No current assignment for partition {tp}")
        super().seek(tp, offset)


@pytest.mark.asyncio
async def test_revoked_partition_during_failure_keeps_consuming():
    broker = FakeBroker({TOPIC: 1})
    seen = []
    attempts = []

    async def handler(envelope):
        attempts.append(envelope.payload["fileId"])
        if attempts == ["f1"]:
            raise RuntimeError("index unavailable")
        seen.append(envelope.payload["fileId"])

    runner = KafkaConsumerRunner(
        TOPIC,
        GROUP,
        lambda topic, group_id: RevokedOnSeekConsumer(broker, topic, group_id),
        poll_timeout_ms=10,
        redelivery_backoff_seconds=0.01,
    )
    runner.add_handler(handler)
    await runner.start()

    broker.append(TOPIC, 0, None, wire("f1"))
    await wait_until(lambda: runner.failed_count == 1)
    broker.append(TOPIC, 0, None, wire("f2"))

    await wait_until(lambda: broker.committed.get((GROUP, TOPIC, 0)) == 2)
    assert runner.running
    await shutdown(runner)

    assert seen == ["f1", "f2"]
