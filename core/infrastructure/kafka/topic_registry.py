"""
Topic provisioning.

Makes sure the static required-topic catalog exists on the broker before the
transport publishes or consumes anything.
"""
import logging
from collections.abc import Callable
from typing import Any, Iterable, Sequence

from aiokafka.admin import NewTopic

from core.domain.events import REQUIRED_TOPICS, TopicSpec
from core.domain.exceptions import EventBusConnectionError, TopicProvisioningError


logger = logging.getLogger(__name__)

# Kafka error code for a topic that is already present
TOPIC_ALREADY_EXISTS = 36

AdminFactory = Callable[[], Any]


class TopicRegistry:
    """
    Creates missing required topics in one batch.

    Running ensure_topics() again with the same catalog lists the topics,
    finds nothing missing, and issues no creation request.
    """

    def __init__(
        self,
        admin_factory: AdminFactory,
        required_topics: Sequence[TopicSpec] = REQUIRED_TOPICS,
        replication_factor: int = 1,
        timeout_ms: int = 30000,
    ):
        """
        Args:
            admin_factory: Returns an unstarted admin client
            required_topics: Catalog of topics and partition counts
            replication_factor: 3 for managed clusters, 1 for self-hosted
            timeout_ms: Creation request timeout
        """
        self._admin_factory = admin_factory
        self.required_topics = tuple(required_topics)
        self.replication_factor = replication_factor
        self._timeout_ms = timeout_ms

    async def ensure_topics(self) -> list[str]:
        """
        Create the required topics that do not exist yet.

        Returns:
            Names of the topics created by this call

        Raises:
            EventBusConnectionError: If the broker cannot be listed
            TopicProvisioningError: If creation failed and topics are still missing
        """
        admin = self._admin_factory()
        try:
            existing = await self._list(admin, start=True)
            missing = self._missing(existing)
            if not missing:
                logger.debug(
                    f"All {len(self.required_topics)} required Kafka topics already exist"
                )
                return []

            names = [spec.name for spec in missing]
            logger.info(
                f"Creating {len(missing)} Kafka topics: {', '.join(names)}",
                extra={"replication_factor": self.replication_factor},
            )
            try:
                response = await admin.create_topics(
                    [
                        NewTopic(
                            name=spec.name,
                            num_partitions=spec.partitions,
                            replication_factor=self.replication_factor,
                        )
                        for spec in missing
                    ],
                    timeout_ms=self._timeout_ms,
                )
                failed = _failed_topics(response)
                if failed:
                    raise RuntimeError(f"Broker rejected topics: {failed}")
            except Exception as exc:
                logger.warning(f"Topic creation failed, re-checking broker: {exc}")
                still_missing = [spec.name for spec in self._missing(await self._list(admin))]
                if still_missing:
                    raise TopicProvisioningError(
                        f"Required Kafka topics missing after failed creation: {still_missing}",
                        missing=still_missing,
                    ) from exc
                logger.info("Required Kafka topics were created concurrently elsewhere")
                return []

            logger.info(f"Kafka topics created: {', '.join(names)}")
            return names
        finally:
            try:
                await admin.close()
            except Exception as exc:
                logger.warning(f"Error closing Kafka admin client: {exc}")

    def _missing(self, existing: Iterable[str]) -> list[TopicSpec]:
        existing = set(existing)
        return [spec for spec in self.required_topics if spec.name not in existing]

    async def _list(self, admin: Any, start: bool = False) -> list[str]:
        try:
            if start:
                await admin.start()
            return list(await admin.list_topics())
        except Exception as exc:
            raise EventBusConnectionError(f"Cannot list Kafka topics: {exc}") from exc


def _failed_topics(response: Any) -> list[str]:
    """Topics with a non-benign error code in a CreateTopics response."""
    failed = []
    for entry in getattr(response, "topic_errors", None) or []:
        topic, code = entry[0], entry[1]
        if code not in (0, TOPIC_ALREADY_EXISTS):
            failed.append(topic)
    return failed
