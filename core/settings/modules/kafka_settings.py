from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field

from core.settings.base_settings import OpenDriveBaseSettings


class KafkaSettings(OpenDriveBaseSettings):
    """
    Kafka connection settings (microservices mode only).

    Credentials switch the client to SASL_SSL/PLAIN and mark the cluster as
    managed, which raises the default replication factor.
    """

    brokers_raw: str = Field(
        "",
        validation_alias=AliasChoices(
            "brokers_raw", "KAFKA_BROKERS", "KAFKA_BOOTSTRAP_SERVERS"
        ),
    )
    client_id: str = Field("opendrive", alias="KAFKA_CLIENT_ID")
    sasl_username: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "sasl_username", "KAFKA_SASL_USERNAME", "KAFKA_API_KEY"
        ),
    )
    sasl_password: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "sasl_password", "KAFKA_SASL_PASSWORD", "KAFKA_API_SECRET"
        ),
        repr=False,
    )
    replication_factor_override: Optional[int] = Field(
        None, alias="KAFKA_REPLICATION_FACTOR"
    )

    connection_timeout_ms: int = Field(30000, alias="KAFKA_CONNECTION_TIMEOUT_MS")
    request_timeout_ms: int = Field(30000, alias="KAFKA_REQUEST_TIMEOUT_MS")
    session_timeout_ms: int = Field(30000, alias="KAFKA_SESSION_TIMEOUT_MS")
    heartbeat_interval_ms: int = Field(3000, alias="KAFKA_HEARTBEAT_INTERVAL_MS")
    poll_timeout_ms: int = Field(1000, alias="KAFKA_POLL_TIMEOUT_MS")
    poll_max_records: int = Field(50, alias="KAFKA_POLL_MAX_RECORDS")

    connect_max_attempts: int = Field(5, alias="KAFKA_CONNECT_MAX_ATTEMPTS")
    connect_initial_backoff_seconds: float = Field(
        0.5, alias="KAFKA_CONNECT_INITIAL_BACKOFF_SECONDS"
    )
    connect_max_backoff_seconds: float = Field(
        10.0, alias="KAFKA_CONNECT_MAX_BACKOFF_SECONDS"
    )
    redelivery_backoff_seconds: float = Field(
        1.0, alias="KAFKA_REDELIVERY_BACKOFF_SECONDS"
    )

    @property
    def brokers(self) -> list[str]:
        return [b.strip() for b in self.brokers_raw.split(",") if b.strip()]

    @property
    def authenticated(self) -> bool:
        return bool(self.sasl_username and self.sasl_password)

    @property
    def replication_factor(self) -> int:
        if self.replication_factor_override:
            return self.replication_factor_override
        return 3 if self.authenticated else 1
