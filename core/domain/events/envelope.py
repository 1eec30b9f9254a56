"""
Message Envelope.

The immutable record exchanged across the EventBus contract. Producers only
supply a topic and a payload; the bus stamps timestamp and source.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence
import json


# Wire keys added next to the spread payload fields
WIRE_EVENT_TYPE = "eventType"
WIRE_TIMESTAMP = "timestamp"
WIRE_SOURCE = "source"

DEFAULT_PARTITION_KEY_FIELDS: tuple[str, ...] = ("userId", "user_id")


def derive_partition_key(
    payload: Mapping[str, Any],
    key_fields: Sequence[str] = DEFAULT_PARTITION_KEY_FIELDS,
) -> Optional[str]:
    """
    Pick the partition key out of a payload.

    The first field from ``key_fields`` holding a non-empty value wins.

    Args:
        payload: Producer payload
        key_fields: Candidate field names, in priority order

    Returns:
        Key as a string, or None when no candidate field is set
    """
    for name in key_fields:
        value = payload.get(name)
        if value is not None and value != "":
            return str(value)
    return None


@dataclass(frozen=True)
class Envelope:
    """
    One emitted event.

    Attributes:
        topic: ``<resource>.<action>`` name, e.g. ``file.uploaded``
        payload: Producer data (read-only view)
        timestamp: Creation time, always timezone-aware UTC
        source: Transport/service tag, diagnostics only
        partition_key: Optional ordering key used by the distributed transport
    """

    topic: str
    payload: Mapping[str, Any]
    timestamp: datetime
    source: str
    partition_key: Optional[str] = field(default=None)

    def __post_init__(self):
        if not isinstance(self.payload, MappingProxyType):
            object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    @classmethod
    def create(
        cls,
        topic: str,
        payload: Mapping[str, Any],
        source: str,
        key_fields: Sequence[str] = DEFAULT_PARTITION_KEY_FIELDS,
    ) -> "Envelope":
        """Build an envelope stamped with the current UTC time."""
        if not topic:
            raise ValueError("Event topic must be a non-empty string")
        payload = dict(payload or {})
        return cls(
            topic=topic,
            payload=payload,
            timestamp=datetime.now(timezone.utc),
            source=source,
            partition_key=derive_partition_key(payload, key_fields),
        )

    def get(self, name: str, default: Any = None) -> Any:
        """Shortcut for ``envelope.payload.get(name)``."""
        return self.payload.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to the wire structure.

        Payload fields are spread at the top level; bus metadata overrides
        payload fields with the same name.
        """
        data = dict(self.payload)
        data[WIRE_EVENT_TYPE] = self.topic
        data[WIRE_TIMESTAMP] = self.timestamp.isoformat()
        data[WIRE_SOURCE] = self.source
        return data

    def to_json(self) -> bytes:
        """Serialize the wire structure as UTF-8 JSON."""
        return json.dumps(self.to_dict(), default=str).encode("utf-8")

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        topic: Optional[str] = None,
        key_fields: Sequence[str] = DEFAULT_PARTITION_KEY_FIELDS,
    ) -> "Envelope":
        """
        Rebuild an envelope from its wire structure.

        Args:
            data: Decoded wire object
            topic: Topic the message was read from, used when the wire
                object carries no ``eventType``
            key_fields: Candidate partition key fields

        Raises:
            ValueError: If no topic can be determined
        """
        payload = dict(data)
        event_type = payload.pop(WIRE_EVENT_TYPE, None) or topic
        if not event_type:
            raise ValueError("Wire event has no eventType")

        raw_timestamp = payload.pop(WIRE_TIMESTAMP, None)
        if raw_timestamp:
            timestamp = datetime.fromisoformat(str(raw_timestamp).replace("Z", "+00:00"))
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
        else:
            timestamp = datetime.now(timezone.utc)

        source = str(payload.pop(WIRE_SOURCE, "unknown"))
        return cls(
            topic=event_type,
            payload=payload,
            timestamp=timestamp,
            source=source,
            partition_key=derive_partition_key(payload, key_fields),
        )

    @classmethod
    def from_json(
        cls,
        raw: bytes,
        topic: Optional[str] = None,
        key_fields: Sequence[str] = DEFAULT_PARTITION_KEY_FIELDS,
    ) -> "Envelope":
        """
        Decode a wire message.

        Raises:
            ValueError: If the bytes are not a JSON object
        """
        data = json.loads(raw.decode("utf-8") if isinstance(raw, bytes) else raw)
        if not isinstance(data, dict):
            raise ValueError(f"Wire event must be a JSON object, got {type(data).__name__}")
        return cls.from_dict(data, topic=topic, key_fields=key_fields)
