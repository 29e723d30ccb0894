"""
Standard span attributes for tracecarrier.

Messaging attributes follow the OpenTelemetry semantic conventions for
messaging systems; the ``tracecarrier.*`` attributes describe carrier state.

Example:
    >>> from tracecarrier.observability.attributes import (
    ...     ATTR_MESSAGING_DESTINATION,
    ...     ATTR_MESSAGING_SYSTEM,
    ... )
    >>>
    >>> with tracer.span_with_kind(
    ...     "orders publish",
    ...     kind=SpanKindEnum.PRODUCER,
    ...     attributes={
    ...         ATTR_MESSAGING_SYSTEM: MESSAGING_SYSTEM_SNS,
    ...         ATTR_MESSAGING_DESTINATION: topic_arn,
    ...     },
    ... ):
    ...     pass
"""

# =============================================================================
# Messaging Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_MESSAGING_SYSTEM = "messaging.system"
"""Messaging system identifier ('aws_sns' or 'aws_sqs')."""

ATTR_MESSAGING_DESTINATION = "messaging.destination.name"
"""Topic ARN or queue URL the message is sent to or received from."""

ATTR_MESSAGING_OPERATION = "messaging.operation"
"""Messaging operation type ('publish', 'receive' or 'process')."""

ATTR_MESSAGING_MESSAGE_ID = "messaging.message.id"
"""Transport-assigned message identifier."""

MESSAGING_SYSTEM_SNS = "aws_sns"
MESSAGING_SYSTEM_SQS = "aws_sqs"

# =============================================================================
# Carrier Attributes
# =============================================================================

ATTR_ATTRIBUTE_COUNT = "tracecarrier.attribute.count"
"""Number of message attributes on the message (integer)."""

ATTR_CONTEXT_EXTRACTED = "tracecarrier.context.extracted"
"""Whether a remote parent was found on the received message (boolean)."""

ATTR_WRAPPED_DELIVERY = "tracecarrier.delivery.wrapped"
"""Whether the message arrived wrapped in an SNS envelope (boolean)."""

ATTR_ERROR_TYPE = "tracecarrier.error.type"
"""Type of error encountered (exception class name)."""


__all__ = [
    "ATTR_ATTRIBUTE_COUNT",
    "ATTR_CONTEXT_EXTRACTED",
    "ATTR_ERROR_TYPE",
    "ATTR_MESSAGING_DESTINATION",
    "ATTR_MESSAGING_MESSAGE_ID",
    "ATTR_MESSAGING_OPERATION",
    "ATTR_MESSAGING_SYSTEM",
    "ATTR_WRAPPED_DELIVERY",
    "MESSAGING_SYSTEM_SNS",
    "MESSAGING_SYSTEM_SQS",
]
