"""Tests for TopicRegistry provisioning."""

import pytest

from core.domain.events import REQUIRED_TOPICS, TopicSpec
from core.domain.exceptions import EventBusConnectionError, TopicProvisioningError
from core.infrastructure.kafka import TopicRegistry
from tests.mocks.kafka import FakeAdminFactory, FakeBroker


@pytest.mark.asyncio
async def test_creates_only_missing_topics_then_nothing():
    """8 required, 3 present: one request for the other 5, then zero requests."""
    assert len(REQUIRED_TOPICS) == 8
    present = {spec.name: spec.partitions for spec in REQUIRED_TOPICS[:3]}
    broker = FakeBroker(present)
    admins = FakeAdminFactory(broker)
    registry = TopicRegistry(admins, replication_factor=1)

    created = await registry.ensure_topics()

    expected = [spec.name for spec in REQUIRED_TOPICS[3:]]
    assert created == expected
    assert len(admins.create_calls) == 1
    assert [name for name, _, _ in admins.create_calls[0]] == expected

    assert await registry.ensure_topics() == []
    assert len(admins.create_calls) == 1
    assert all(admin.closed for admin in admins.admins)


@pytest.mark.asyncio
async def test_creation_uses_catalog_partitions_and_replication_factor():
    """Each created topic carries its catalog partition count."""
    broker = FakeBroker()
    admins = FakeAdminFactory(broker)
    registry = TopicRegistry(
        admins,
        required_topics=[TopicSpec("file.uploaded", 6), TopicSpec("user.registered", 1)],
        replication_factor=3,
    )

    await registry.ensure_topics()

    assert admins.create_calls == [[("file.uploaded", 6, 3), ("user.registered", 1, 3)]]
    assert len(broker.logs["file.uploaded"]) == 6


@pytest.mark.asyncio
async def test_failed_creation_is_fine_when_topics_exist():
    """Another process created the topics between list and create."""
    broker = FakeBroker()

    class RacingAdminFactory(FakeAdminFactory):
        def __call__(self):
            admin = super().__call__()
            original_create = admin.create_topics

            async def create_topics(new_topics, timeout_ms=None):
                broker.add_topic("file.deleted", 3)
                return await original_create(new_topics, timeout_ms=timeout_ms)

            admin.create_topics = create_topics
            return admin

    racing = RacingAdminFactory(broker, fail_create=True)
    registry = TopicRegistry(racing, required_topics=[TopicSpec("file.deleted", 3)])

    assert await registry.ensure_topics() == []
    assert len(racing.create_calls) == 1


@pytest.mark.asyncio
async def test_failed_creation_with_missing_topics_raises():
    """Still-missing topics surface as a connection-class error."""
    broker = FakeBroker()
    registry = TopicRegistry(
        FakeAdminFactory(broker, fail_create=True),
        required_topics=[TopicSpec("share.created", 3)],
    )

    with pytest.raises(TopicProvisioningError) as exc_info:
        await registry.ensure_topics()

    assert exc_info.value.missing == ["share.created"]
    assert isinstance(exc_info.value, EventBusConnectionError)


@pytest.mark.asyncio
async def test_unreachable_broker_raises_connection_error():
    """Listing failure means the broker cannot be reached at all."""
    registry = TopicRegistry(FakeAdminFactory(FakeBroker(), unreachable=True))

    with pytest.raises(EventBusConnectionError):
        await registry.ensure_topics()
