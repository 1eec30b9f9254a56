"""Shared aiokafka client arguments built from KafkaSettings."""
import re
from typing import Any, Iterable

from aiokafka.helpers import create_ssl_context

from core.domain.exceptions import ConfigurationError
from core.settings import KafkaSettings


_CREDENTIALS = re.compile(r"^[^@/]+@")


def build_client_kwargs(settings: KafkaSettings) -> dict[str, Any]:
    """
    Arguments common to producer, consumer and admin clients.

    Args:
        settings: Kafka settings

    Returns:
        Keyword arguments for aiokafka client constructors

    Raises:
        ConfigurationError: If no broker address is configured
    """
    if not settings.brokers:
        raise ConfigurationError(
            "KAFKA_BROKERS or KAFKA_BOOTSTRAP_SERVERS is required for microservices mode"
        )

    kwargs: dict[str, Any] = {
        "bootstrap_servers": settings.brokers,
        "client_id": settings.client_id,
        "request_timeout_ms": settings.request_timeout_ms,
    }
    if settings.authenticated:
        kwargs.update(
            security_protocol="SASL_SSL",
            sasl_mechanism="PLAIN",
            sasl_plain_username=settings.sasl_username,
            sasl_plain_password=settings.sasl_password,
            ssl_context=create_ssl_context(),
        )
    return kwargs


def sanitize_servers(servers: Iterable[str]) -> str:
    """Strip ``user:secret@`` prefixes so broker lists are safe to log."""
    return ",".join(_CREDENTIALS.sub("", server) for server in servers)
