"""
Traced consumption from an SQS queue subscribed to an SNS topic.

Each received message is processed inside a CONSUMER span whose parent is
the context extracted from the message attributes, linking it to the
producer span that published it.

Precondition:
    The subscription must deliver raw messages (``RawMessageDelivery=true``).
    Messages that arrive wrapped in an SNS envelope are still handed to the
    handler, but a warning is logged and their spans start a new trace.

Example:
    >>> from tracecarrier.messaging import QueueConsumerConfig, create_queue_consumer
    >>>
    >>> consumer = create_queue_consumer(QueueConsumerConfig(queue_url=queue_url))
    >>>
    >>> def handle(message):
    ...     print(message.body)
    >>>
    >>> consumer.poll(handle)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

import boto3
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import TextMapPropagator

from tracecarrier.envelope import SnsNotification, parse_notification
from tracecarrier.exceptions import ReceiveError
from tracecarrier.messaging.config import QueueConsumerConfig
from tracecarrier.observability import (
    ATTR_ATTRIBUTE_COUNT,
    ATTR_CONTEXT_EXTRACTED,
    ATTR_ERROR_TYPE,
    ATTR_MESSAGING_DESTINATION,
    ATTR_MESSAGING_MESSAGE_ID,
    ATTR_MESSAGING_OPERATION,
    ATTR_MESSAGING_SYSTEM,
    ATTR_WRAPPED_DELIVERY,
    MESSAGING_SYSTEM_SQS,
    SpanKindEnum,
    Tracer,
    create_tracer,
)
from tracecarrier.propagation import extract_context

logger = logging.getLogger(__name__)

R = TypeVar("R")


class ReceiveClient(Protocol):
    """The part of the boto3 SQS client the consumer calls."""

    def receive_message(self, **kwargs: Any) -> dict[str, Any]: ...

    def delete_message(self, **kwargs: Any) -> dict[str, Any]: ...


@dataclass(frozen=True)
class ReceivedMessage:
    """
    A message received from the queue.

    Attributes:
        message_id: SQS message id
        receipt_handle: Handle needed to delete the message
        body: Message body as delivered
        attributes: ``MessageAttributes`` as delivered (empty if none)
        wrapped: The SNS envelope, when the body is one
    """

    message_id: str
    receipt_handle: str | None
    body: str
    attributes: dict[str, Any] = field(default_factory=dict)
    wrapped: SnsNotification | None = None

    @classmethod
    def from_response(cls, raw: Mapping[str, Any]) -> ReceivedMessage:
        """Build from one entry of a ReceiveMessage response's ``Messages``."""
        body = raw.get("Body") or ""
        return cls(
            message_id=raw.get("MessageId", ""),
            receipt_handle=raw.get("ReceiptHandle"),
            body=body,
            attributes=dict(raw.get("MessageAttributes") or {}),
            wrapped=parse_notification(body),
        )

    @property
    def payload(self) -> str:
        """The published body, unwrapped from the envelope if needed."""
        if self.wrapped is not None:
            return self.wrapped.message
        return self.body


class TracedQueueConsumer:
    """
    Receives and processes queue messages with trace context continued.

    Args:
        client: SQS client (boto3 ``sqs`` client or compatible)
        config: Consumer configuration
        tracer: Optional custom tracer; defaults to one built from
            ``config.enable_tracing``
        propagator: Optional propagator; defaults to the global one
    """

    def __init__(
        self,
        client: ReceiveClient,
        config: QueueConsumerConfig,
        tracer: Tracer | None = None,
        propagator: TextMapPropagator | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._tracer = tracer or create_tracer(__name__, config.enable_tracing)
        self._propagator = propagator
        self._running = False

    @property
    def config(self) -> QueueConsumerConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    def receive(self) -> list[ReceivedMessage]:
        """
        Receive one batch of messages with all their attributes.

        Raises:
            ReceiveError: If the transport call fails
        """
        params: dict[str, Any] = {
            "QueueUrl": self._config.queue_url,
            "MaxNumberOfMessages": self._config.max_messages,
            "WaitTimeSeconds": self._config.wait_time_seconds,
            "MessageAttributeNames": ["All"],
        }
        if self._config.visibility_timeout is not None:
            params["VisibilityTimeout"] = self._config.visibility_timeout

        try:
            response = self._client.receive_message(**params)
        except Exception as e:
            logger.error(
                "Failed to receive messages",
                extra={"queue_url": self._config.queue_url, "error": str(e)},
                exc_info=True,
            )
            raise ReceiveError(f"Failed to receive from {self._config.queue_url}: {e}") from e

        messages = [ReceivedMessage.from_response(raw) for raw in response.get("Messages", [])]
        for message in messages:
            if message.wrapped is not None:
                logger.warning(
                    "Message arrived wrapped in an SNS envelope; trace context is lost. "
                    "Enable RawMessageDelivery on the subscription.",
                    extra={
                        "message_id": message.message_id,
                        "topic_arn": message.wrapped.topic_arn,
                    },
                )

        logger.debug(
            "Received messages",
            extra={"queue_url": self._config.queue_url, "message_count": len(messages)},
        )
        return messages

    def extract_context(self, message: ReceivedMessage) -> Context:
        """Extract the producer's trace context from a received message."""
        return extract_context(
            message.attributes,
            config=self._config.carrier,
            propagator=self._propagator,
        )

    def process(self, message: ReceivedMessage, handler: Callable[[ReceivedMessage], R]) -> R:
        """
        Run ``handler`` on a message inside a CONSUMER span, then delete it.

        The message is only deleted after the handler returns. If the handler
        raises, the exception is recorded on the span and re-raised, and the
        message becomes visible again after its visibility timeout.

        Returns:
            Whatever the handler returned
        """
        parent = self.extract_context(message)
        span_context = trace.get_current_span(parent).get_span_context()
        extracted = span_context.is_valid and span_context.is_remote
        if not extracted:
            logger.debug(
                "No trace context on message, starting a new trace",
                extra={"message_id": message.message_id},
            )

        with self._tracer.span_with_kind(
            f"{self._config.queue_name} process",
            kind=SpanKindEnum.CONSUMER,
            attributes={
                ATTR_MESSAGING_SYSTEM: MESSAGING_SYSTEM_SQS,
                ATTR_MESSAGING_DESTINATION: self._config.queue_url,
                ATTR_MESSAGING_OPERATION: "process",
                ATTR_MESSAGING_MESSAGE_ID: message.message_id,
                ATTR_ATTRIBUTE_COUNT: len(message.attributes),
                ATTR_CONTEXT_EXTRACTED: extracted,
                ATTR_WRAPPED_DELIVERY: message.wrapped is not None,
            },
            context=parent,
        ) as span:
            try:
                result = handler(message)
            except Exception as e:
                if span:
                    span.set_attribute(ATTR_ERROR_TYPE, type(e).__name__)
                logger.error(
                    "Handler failed, message left for redelivery",
                    extra={"message_id": message.message_id, "error": str(e)},
                    exc_info=True,
                )
                raise
            self.delete(message)
        return result

    def delete(self, message: ReceivedMessage) -> None:
        """
        Delete a processed message from the queue.

        Raises:
            ReceiveError: If the message has no receipt handle or the
                transport call fails
        """
        if not message.receipt_handle:
            raise ReceiveError(f"Message {message.message_id} has no receipt handle")
        try:
            self._client.delete_message(
                QueueUrl=self._config.queue_url,
                ReceiptHandle=message.receipt_handle,
            )
        except Exception as e:
            logger.error(
                "Failed to delete message",
                extra={"message_id": message.message_id, "error": str(e)},
                exc_info=True,
            )
            raise ReceiveError(f"Failed to delete message {message.message_id}: {e}") from e
        logger.debug("Message deleted", extra={"message_id": message.message_id})

    def poll(
        self,
        handler: Callable[[ReceivedMessage], Any],
        max_batches: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> int:
        """
        Receive and process messages until stopped.

        A failing handler does not stop the loop; the message is left on the
        queue. A failed receive is retried after
        ``config.error_backoff_seconds``.

        Args:
            handler: Called once per message
            max_batches: Stop after this many receive calls (None = forever)
            sleep: Sleep function used for the error backoff

        Returns:
            Number of messages processed successfully
        """
        self._running = True
        processed = 0
        batches = 0
        logger.info("Polling queue", extra={"queue_url": self._config.queue_url})

        try:
            while self._running and (max_batches is None or batches < max_batches):
                batches += 1
                try:
                    messages = self.receive()
                except ReceiveError:
                    sleep(self._config.error_backoff_seconds)
                    continue

                for message in messages:
                    try:
                        self.process(message, handler)
                    except Exception:
                        # already logged by process(); the message stays on the queue
                        continue
                    processed += 1
        finally:
            self._running = False

        logger.info(
            "Stopped polling queue",
            extra={"queue_url": self._config.queue_url, "processed": processed},
        )
        return processed

    def stop(self) -> None:
        """Ask a running ``poll`` loop to stop after the current batch."""
        logger.info("Stop polling requested")
        self._running = False


def create_queue_consumer(
    config: QueueConsumerConfig | None = None,
    client: ReceiveClient | None = None,
    tracer: Tracer | None = None,
) -> TracedQueueConsumer:
    """
    Build a consumer, loading config from the environment if not given.

    A boto3 ``sqs`` client is created from the default credential chain
    when no client is passed.
    """
    config = config or QueueConsumerConfig.from_env()
    client = client or boto3.client("sqs")
    return TracedQueueConsumer(client, config, tracer=tracer)


__all__ = [
    "ReceiveClient",
    "ReceivedMessage",
    "TracedQueueConsumer",
    "create_queue_consumer",
]
