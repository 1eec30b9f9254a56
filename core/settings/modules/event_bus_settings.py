from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator

from core.settings.base_settings import OpenDriveBaseSettings


class DeploymentMode(str, Enum):
    """Which transport the event bus factory builds."""

    MONOLITH = "monolith"
    MICROSERVICES = "microservices"


class EventBusSettings(OpenDriveBaseSettings):
    """
    Event bus settings.
    Loaded from .env with exact variable name matching.
    """

    deployment_mode: DeploymentMode = Field(
        DeploymentMode.MONOLITH, alias="DEPLOYMENT_MODE"
    )
    service_name: str = Field("worker", alias="SERVICE_NAME")
    group_prefix: str = Field("", alias="EVENT_BUS_GROUP_PREFIX")
    partition_key_fields_raw: str = Field(
        "userId,user_id", alias="EVENT_BUS_PARTITION_KEY_FIELDS"
    )

    @field_validator("deployment_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value):
        if value is None or value == "":
            return DeploymentMode.MONOLITH
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def partition_key_fields(self) -> tuple[str, ...]:
        return tuple(
            name.strip()
            for name in self.partition_key_fields_raw.split(",")
            if name.strip()
        )
