"""
Setup-time check that the subscription delivers message attributes.

Trace context survives the topic to queue hop only under raw message
delivery. Nothing at the point of use can tell the difference between "no
trace context was sent" and "the subscription wrapped the message", so run
this check once when wiring up a new topic and queue, before relying on the
pipeline for tracing.

Example:
    >>> from tracecarrier.messaging import create_queue_consumer, create_topic_publisher
    >>> from tracecarrier.selftest import assert_passthrough_delivery
    >>>
    >>> assert_passthrough_delivery(
    ...     create_topic_publisher(),
    ...     create_queue_consumer(),
    ...     timeout=30.0,
    ... )
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tracecarrier.carriers import QueueAttributesCarrier
from tracecarrier.exceptions import PassthroughDeliveryError
from tracecarrier.messaging.consumer import TracedQueueConsumer
from tracecarrier.messaging.publisher import TracedTopicPublisher

logger = logging.getLogger(__name__)

SENTINEL_ATTRIBUTE = "tracecarrier-sentinel"
SENTINEL_BODY_KEY = "tracecarrier_sentinel"


@dataclass(frozen=True)
class PassthroughCheckResult:
    """
    Outcome of a passthrough delivery check.

    Attributes:
        delivered: The sentinel message reached the queue
        passthrough: The sentinel attribute was readable on the queue side
        sentinel: Unique value sent in the body and the attribute
        message_id: SNS message id of the sentinel message
        detail: Human-readable explanation
    """

    delivered: bool
    passthrough: bool
    sentinel: str
    message_id: str | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.delivered and self.passthrough


def verify_passthrough_delivery(
    publisher: TracedTopicPublisher,
    consumer: TracedQueueConsumer,
    *,
    timeout: float = 30.0,
    poll_interval: float = 1.0,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PassthroughCheckResult:
    """
    Publish a sentinel message and check its attribute arrives on the queue.

    The sentinel message is deleted once found. Other messages received
    while waiting are not deleted and become visible again after their
    visibility timeout, so prefer running this against an idle queue.

    Args:
        publisher: Publisher for the topic
        consumer: Consumer for the queue subscribed to that topic
        timeout: Seconds to wait for the sentinel message
        poll_interval: Seconds to pause between empty receives
        clock: Monotonic clock
        sleep: Sleep function

    Returns:
        The check result; ``result.ok`` is True when passthrough is confirmed
    """
    sentinel = uuid.uuid4().hex
    body = json.dumps({SENTINEL_BODY_KEY: sentinel})
    message_id = publisher.publish(body, attributes={SENTINEL_ATTRIBUTE: sentinel})
    logger.info(
        "Published passthrough sentinel",
        extra={"message_id": message_id, "queue_url": consumer.config.queue_url},
    )

    deadline = clock() + timeout
    while True:
        for message in consumer.receive():
            if sentinel not in message.payload:
                continue
            consumer.delete(message)

            carrier = QueueAttributesCarrier(message.attributes, consumer.config.carrier)
            if carrier.get(SENTINEL_ATTRIBUTE) == sentinel:
                logger.info("Passthrough delivery confirmed", extra={"message_id": message_id})
                return PassthroughCheckResult(
                    delivered=True,
                    passthrough=True,
                    sentinel=sentinel,
                    message_id=message_id,
                    detail="sentinel attribute received",
                )

            if message.wrapped is not None:
                detail = "message arrived wrapped in an SNS envelope; enable RawMessageDelivery"
            else:
                detail = "message arrived without the sentinel attribute"
            logger.warning("Passthrough delivery not active", extra={"detail": detail})
            return PassthroughCheckResult(
                delivered=True,
                passthrough=False,
                sentinel=sentinel,
                message_id=message_id,
                detail=detail,
            )

        if clock() >= deadline:
            break
        sleep(poll_interval)

    detail = f"sentinel message not received within {timeout}s"
    logger.warning("Passthrough delivery not confirmed", extra={"detail": detail})
    return PassthroughCheckResult(
        delivered=False,
        passthrough=False,
        sentinel=sentinel,
        message_id=message_id,
        detail=detail,
    )


def assert_passthrough_delivery(
    publisher: TracedTopicPublisher,
    consumer: TracedQueueConsumer,
    **kwargs: Any,
) -> PassthroughCheckResult:
    """
    Like ``verify_passthrough_delivery`` but raises unless confirmed.

    Raises:
        PassthroughDeliveryError: If the sentinel was not delivered, or was
            delivered without its attribute
    """
    result = verify_passthrough_delivery(publisher, consumer, **kwargs)
    if not result.ok:
        raise PassthroughDeliveryError(result.detail)
    return result


def raw_message_delivery_enabled(sns_client: Any, subscription_arn: str) -> bool:
    """
    Read the ``RawMessageDelivery`` attribute of an SNS subscription.

    Args:
        sns_client: boto3 ``sns`` client
        subscription_arn: ARN of the queue's subscription to the topic

    Returns:
        True if raw message delivery is enabled
    """
    response = sns_client.get_subscription_attributes(SubscriptionArn=subscription_arn)
    value = response.get("Attributes", {}).get("RawMessageDelivery", "false")
    return str(value).lower() == "true"


__all__ = [
    "PassthroughCheckResult",
    "SENTINEL_ATTRIBUTE",
    "assert_passthrough_delivery",
    "raw_message_delivery_enabled",
    "verify_passthrough_delivery",
]
