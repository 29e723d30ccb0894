"""Configuration for the traced topic publisher and queue consumer."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from tracecarrier.encoding import DEFAULT_CARRIER_CONFIG, CarrierConfig
from tracecarrier.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_TOPIC_ARN = "SNS_TOPIC_ARN"
ENV_QUEUE_URL = "SQS_QUEUE_URL"
ENV_MAX_MESSAGES = "SQS_MAX_MESSAGES"
ENV_WAIT_TIME_SECONDS = "SQS_WAIT_TIME_SECONDS"

# SQS ReceiveMessage bounds
MAX_RECEIVE_BATCH = 10
MAX_WAIT_TIME_SECONDS = 20


def _require(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} environment variable not set")
    return value


def _int_from_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


@dataclass
class TopicPublisherConfig:
    """
    Configuration for TracedTopicPublisher.

    Attributes:
        topic_arn: ARN of the SNS topic to publish to
        subject: Default subject for published messages (optional)
        enable_tracing: Create PRODUCER spans if True
        carrier: Attribute limits and propagation field names

    Example:
        >>> config = TopicPublisherConfig(
        ...     topic_arn="arn:aws:sns:us-east-1:123456789012:orders",
        ...     subject="Order event",
        ... )
    """

    topic_arn: str
    subject: str | None = None
    enable_tracing: bool = True
    carrier: CarrierConfig = field(default_factory=lambda: DEFAULT_CARRIER_CONFIG)

    def __post_init__(self) -> None:
        if not self.topic_arn:
            raise ValueError("topic_arn is required")
        if not self.topic_arn.startswith("arn:"):
            raise ValueError(f"topic_arn must be an ARN, got {self.topic_arn!r}")

    @property
    def topic_name(self) -> str:
        """Topic name, the last segment of the ARN."""
        return self.topic_arn.rsplit(":", 1)[-1]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TopicPublisherConfig:
        """
        Load configuration from environment variables.

        Reads ``SNS_TOPIC_ARN``.

        Raises:
            ConfigurationError: If the variable is missing or empty
        """
        environ = os.environ if environ is None else environ
        return cls(topic_arn=_require(environ, ENV_TOPIC_ARN))


@dataclass
class QueueConsumerConfig:
    """
    Configuration for TracedQueueConsumer.

    Attributes:
        queue_url: URL of the SQS queue subscribed to the topic
        max_messages: Messages requested per receive call (1-10)
        wait_time_seconds: Long polling wait per receive call (0-20)
        visibility_timeout: Visibility timeout override in seconds (optional)
        error_backoff_seconds: Pause after a failed receive in ``poll``
        enable_tracing: Create CONSUMER spans if True
        carrier: Attribute limits and propagation field names
    """

    queue_url: str
    max_messages: int = MAX_RECEIVE_BATCH
    wait_time_seconds: int = MAX_WAIT_TIME_SECONDS
    visibility_timeout: int | None = None
    error_backoff_seconds: float = 5.0
    enable_tracing: bool = True
    carrier: CarrierConfig = field(default_factory=lambda: DEFAULT_CARRIER_CONFIG)

    def __post_init__(self) -> None:
        if not self.queue_url:
            raise ValueError("queue_url is required")
        if not 1 <= self.max_messages <= MAX_RECEIVE_BATCH:
            raise ValueError(
                f"max_messages must be between 1 and {MAX_RECEIVE_BATCH}, got {self.max_messages}"
            )
        if not 0 <= self.wait_time_seconds <= MAX_WAIT_TIME_SECONDS:
            raise ValueError(
                f"wait_time_seconds must be between 0 and {MAX_WAIT_TIME_SECONDS}, "
                f"got {self.wait_time_seconds}"
            )
        if self.visibility_timeout is not None and self.visibility_timeout < 0:
            raise ValueError(f"visibility_timeout must be >= 0, got {self.visibility_timeout}")
        if self.error_backoff_seconds < 0:
            raise ValueError(
                f"error_backoff_seconds must be >= 0, got {self.error_backoff_seconds}"
            )
        if self.wait_time_seconds == 0:
            logger.warning("Short polling configured (wait_time_seconds=0)")

    @property
    def queue_name(self) -> str:
        """Queue name, the last path segment of the URL."""
        return self.queue_url.rstrip("/").rsplit("/", 1)[-1]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> QueueConsumerConfig:
        """
        Load configuration from environment variables.

        Reads ``SQS_QUEUE_URL`` and, optionally, ``SQS_MAX_MESSAGES`` and
        ``SQS_WAIT_TIME_SECONDS``.

        Raises:
            ConfigurationError: If a variable is missing or malformed
        """
        environ = os.environ if environ is None else environ
        return cls(
            queue_url=_require(environ, ENV_QUEUE_URL),
            max_messages=_int_from_env(environ, ENV_MAX_MESSAGES, MAX_RECEIVE_BATCH),
            wait_time_seconds=_int_from_env(
                environ, ENV_WAIT_TIME_SECONDS, MAX_WAIT_TIME_SECONDS
            ),
        )


__all__ = [
    "ENV_MAX_MESSAGES",
    "ENV_QUEUE_URL",
    "ENV_TOPIC_ARN",
    "ENV_WAIT_TIME_SECONDS",
    "QueueConsumerConfig",
    "TopicPublisherConfig",
]
