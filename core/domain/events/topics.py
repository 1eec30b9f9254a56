"""Topic names and the required-topic catalog."""
from dataclasses import dataclass


FILE_UPLOADED = "file.uploaded"
FILE_DELETED = "file.deleted"
FILE_DOWNLOADED = "file.downloaded"
SHARE_CREATED = "share.created"
SHARE_REVOKED = "share.revoked"
USER_REGISTERED = "user.registered"
FOLDER_CREATED = "folder.created"
FOLDER_DELETED = "folder.deleted"


@dataclass(frozen=True)
class TopicSpec:
    """A topic that must exist on the broker before first use."""

    name: str
    partitions: int

    def __post_init__(self):
        if self.partitions < 1:
            raise ValueError(f"Topic {self.name} needs at least one partition")


# file.uploaded gets the most partitions: it feeds the heaviest workers
REQUIRED_TOPICS: tuple[TopicSpec, ...] = (
    TopicSpec(FILE_UPLOADED, 6),
    TopicSpec(FILE_DELETED, 3),
    TopicSpec(FILE_DOWNLOADED, 3),
    TopicSpec(SHARE_CREATED, 3),
    TopicSpec(SHARE_REVOKED, 3),
    TopicSpec(USER_REGISTERED, 1),
    TopicSpec(FOLDER_CREATED, 3),
    TopicSpec(FOLDER_DELETED, 3),
)
