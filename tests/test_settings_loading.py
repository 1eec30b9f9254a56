"""
Test settings loading from environment variables.

Deployment env var names are fixed; these tests pin each alias.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.settings import DeploymentMode, EventBusSettings, KafkaSettings, get_app_settings


@pytest.fixture
def clean_env(monkeypatch):
    for key in (
        "DEPLOYMENT_MODE",
        "SERVICE_NAME",
        "KAFKA_BROKERS",
        "KAFKA_BOOTSTRAP_SERVERS",
        "KAFKA_SASL_USERNAME",
        "KAFKA_SASL_PASSWORD",
        "KAFKA_API_KEY",
        "KAFKA_API_SECRET",
        "KAFKA_REPLICATION_FACTOR",
    ):
        monkeypatch.delenv(key, raising=False)
    get_app_settings.cache_clear()
    yield monkeypatch
    get_app_settings.cache_clear()


def test_defaults_select_monolith(clean_env):
    settings = get_app_settings()

    assert settings.event_bus.deployment_mode is DeploymentMode.MONOLITH
    assert settings.event_bus.service_name == "worker"
    assert settings.event_bus.partition_key_fields == ("userId", "user_id")
    assert settings.kafka.brokers == []
    assert settings.kafka.client_id == "opendrive"


def test_deployment_mode_and_role_from_env(clean_env):
    clean_env.setenv("DEPLOYMENT_MODE", "Microservices")
    clean_env.setenv("SERVICE_NAME", "search-indexer")

    settings = EventBusSettings()

    assert settings.deployment_mode is DeploymentMode.MICROSERVICES
    assert settings.service_name == "search-indexer"


def test_unknown_deployment_mode_is_rejected(clean_env):
    clean_env.setenv("DEPLOYMENT_MODE", "cluster")

    with pytest.raises(ValidationError):
        EventBusSettings()


def test_bootstrap_servers_alias(clean_env):
    clean_env.setenv("KAFKA_BOOTSTRAP_SERVERS", "kafka-1:9092, kafka-2:9092,")

    assert KafkaSettings().brokers == ["kafka-1:9092", "kafka-2:9092"]


def test_self_hosted_cluster_uses_replication_factor_one(clean_env):
    clean_env.setenv("KAFKA_BROKERS", "kafka:9092")

    settings = KafkaSettings()

    assert not settings.authenticated
    assert settings.replication_factor == 1


def test_api_key_credentials_mark_managed_cluster(clean_env):
    clean_env.setenv("KAFKA_BROKERS", "pkc-1.cloud:9092")
    clean_env.setenv("KAFKA_API_KEY", "key")
    clean_env.setenv("KAFKA_API_SECRET", "secret")

    settings = KafkaSettings()

    assert settings.authenticated
    assert settings.replication_factor == 3
    assert "secret" not in repr(settings)


def test_replication_factor_override(clean_env):
    clean_env.setenv("KAFKA_SASL_USERNAME", "user")
    clean_env.setenv("KAFKA_SASL_PASSWORD", "pass")
    clean_env.setenv("KAFKA_REPLICATION_FACTOR", "2")

    assert KafkaSettings().replication_factor == 2
