# Settings modules
from .app_settings import AppSettings, get_app_settings
from .event_bus_settings import DeploymentMode, EventBusSettings
from .kafka_settings import KafkaSettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "DeploymentMode",
    "EventBusSettings",
    "KafkaSettings",
]
