# Settings package
from core.settings.modules import (
    AppSettings,
    DeploymentMode,
    EventBusSettings,
    KafkaSettings,
    get_app_settings,
)

__all__ = [
    "get_app_settings",
    "AppSettings",
    "DeploymentMode",
    "EventBusSettings",
    "KafkaSettings",
]
