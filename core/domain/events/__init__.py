"""Event envelope and topic catalog."""
from .envelope import Envelope, derive_partition_key
from .topics import (
    FILE_DELETED,
    FILE_DOWNLOADED,
    FILE_UPLOADED,
    FOLDER_CREATED,
    FOLDER_DELETED,
    REQUIRED_TOPICS,
    SHARE_CREATED,
    SHARE_REVOKED,
    USER_REGISTERED,
    TopicSpec,
)

__all__ = [
    "Envelope",
    "derive_partition_key",
    "TopicSpec",
    "REQUIRED_TOPICS",
    "FILE_UPLOADED",
    "FILE_DELETED",
    "FILE_DOWNLOADED",
    "SHARE_CREATED",
    "SHARE_REVOKED",
    "USER_REGISTERED",
    "FOLDER_CREATED",
    "FOLDER_DELETED",
]
