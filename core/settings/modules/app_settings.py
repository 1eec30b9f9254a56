from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from core.settings.modules.event_bus_settings import EventBusSettings
from core.settings.modules.kafka_settings import KafkaSettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    event_bus: EventBusSettings
    kafka: KafkaSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        event_bus=EventBusSettings(),
        kafka=KafkaSettings(),
    )
