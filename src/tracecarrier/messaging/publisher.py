"""
Traced publishing to an SNS topic.

Each publish runs inside a PRODUCER span; the span's context is injected
into the message attributes before the transport call, so the consumer on
the other side of the subscription can continue the trace.

Example:
    >>> from tracecarrier.messaging import TopicPublisherConfig, create_topic_publisher
    >>>
    >>> publisher = create_topic_publisher(TopicPublisherConfig(topic_arn=topic_arn))
    >>> message_id = publisher.publish(
    ...     '{"id": 1, "content": "hello"}',
    ...     attributes={"content-type": "application/json"},
    ... )
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import boto3
from opentelemetry.propagators.textmap import TextMapPropagator

from tracecarrier.exceptions import PublishError
from tracecarrier.messaging.config import TopicPublisherConfig
from tracecarrier.observability import (
    ATTR_ATTRIBUTE_COUNT,
    ATTR_ERROR_TYPE,
    ATTR_MESSAGING_DESTINATION,
    ATTR_MESSAGING_MESSAGE_ID,
    ATTR_MESSAGING_OPERATION,
    ATTR_MESSAGING_SYSTEM,
    MESSAGING_SYSTEM_SNS,
    SpanKindEnum,
    Tracer,
    create_tracer,
)
from tracecarrier.propagation import build_message_attributes

logger = logging.getLogger(__name__)


class PublishClient(Protocol):
    """The part of the boto3 SNS client the publisher calls."""

    def publish(self, **kwargs: Any) -> dict[str, Any]: ...


class TracedTopicPublisher:
    """
    Publishes messages to an SNS topic with trace context attached.

    Args:
        client: SNS client (boto3 ``sns`` client or compatible)
        config: Publisher configuration
        tracer: Optional custom tracer; defaults to one built from
            ``config.enable_tracing``
        propagator: Optional propagator; defaults to the global one
    """

    def __init__(
        self,
        client: PublishClient,
        config: TopicPublisherConfig,
        tracer: Tracer | None = None,
        propagator: TextMapPropagator | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._tracer = tracer or create_tracer(__name__, config.enable_tracing)
        self._propagator = propagator

    @property
    def config(self) -> TopicPublisherConfig:
        return self._config

    def publish(
        self,
        body: str,
        attributes: Mapping[str, Any] | None = None,
        subject: str | None = None,
    ) -> str:
        """
        Publish one message.

        Args:
            body: Message body
            attributes: Application message attributes; at most
                as many as the trace context reservation leaves
            subject: Subject override for this message

        Returns:
            The message id assigned by SNS

        Raises:
            CapacityExceededError: If the application attributes leave no
                room for trace context
            InvalidAttributeError: If an application attribute is invalid
            PublishError: If the transport call fails
        """
        topic_arn = self._config.topic_arn
        with self._tracer.span_with_kind(
            f"{self._config.topic_name} publish",
            kind=SpanKindEnum.PRODUCER,
            attributes={
                ATTR_MESSAGING_SYSTEM: MESSAGING_SYSTEM_SNS,
                ATTR_MESSAGING_DESTINATION: topic_arn,
                ATTR_MESSAGING_OPERATION: "publish",
            },
        ) as span:
            message_attributes = build_message_attributes(
                attributes,
                config=self._config.carrier,
                propagator=self._propagator,
            )
            params: dict[str, Any] = {
                "TopicArn": topic_arn,
                "Message": body,
                "MessageAttributes": message_attributes,
            }
            subject = subject or self._config.subject
            if subject:
                params["Subject"] = subject

            try:
                response = self._client.publish(**params)
            except Exception as e:
                if span:
                    span.set_attribute(ATTR_ERROR_TYPE, type(e).__name__)
                logger.error(
                    "Failed to publish message",
                    extra={"topic_arn": topic_arn, "error": str(e)},
                    exc_info=True,
                )
                raise PublishError(f"Failed to publish message to {topic_arn}: {e}") from e

            message_id = str(response.get("MessageId", ""))
            if span:
                span.set_attribute(ATTR_MESSAGING_MESSAGE_ID, message_id)
                span.set_attribute(ATTR_ATTRIBUTE_COUNT, len(message_attributes))

        logger.debug(
            "Message published",
            extra={
                "topic_arn": topic_arn,
                "message_id": message_id,
                "attributes": sorted(message_attributes),
            },
        )
        return message_id


def create_topic_publisher(
    config: TopicPublisherConfig | None = None,
    client: PublishClient | None = None,
    tracer: Tracer | None = None,
) -> TracedTopicPublisher:
    """
    Build a publisher, loading config from the environment if not given.

    A boto3 ``sns`` client is created from the default credential chain
    when no client is passed.
    """
    config = config or TopicPublisherConfig.from_env()
    client = client or boto3.client("sns")
    return TracedTopicPublisher(client, config, tracer=tracer)


__all__ = [
    "PublishClient",
    "TracedTopicPublisher",
    "create_topic_publisher",
]
