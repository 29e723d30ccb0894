"""
Observability utilities for tracecarrier.

This module provides the composition-based tracer used by the traced
publisher and consumer, and the standard span attribute names.

Example:
    >>> from tracecarrier.observability import MockTracer, SpanKindEnum, create_tracer
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span_with_kind("orders process", kind=SpanKindEnum.CONSUMER):
    ...     pass
"""

from tracecarrier.observability.attributes import (
    ATTR_ATTRIBUTE_COUNT,
    ATTR_CONTEXT_EXTRACTED,
    ATTR_ERROR_TYPE,
    ATTR_MESSAGING_DESTINATION,
    ATTR_MESSAGING_MESSAGE_ID,
    ATTR_MESSAGING_OPERATION,
    ATTR_MESSAGING_SYSTEM,
    ATTR_WRAPPED_DELIVERY,
    MESSAGING_SYSTEM_SNS,
    MESSAGING_SYSTEM_SQS,
)
from tracecarrier.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    RecordedSpan,
    SpanKindEnum,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer (composition-based API)
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "RecordedSpan",
    "SpanKindEnum",
    "create_tracer",
    # Attributes - Messaging
    "ATTR_MESSAGING_SYSTEM",
    "ATTR_MESSAGING_DESTINATION",
    "ATTR_MESSAGING_OPERATION",
    "ATTR_MESSAGING_MESSAGE_ID",
    "MESSAGING_SYSTEM_SNS",
    "MESSAGING_SYSTEM_SQS",
    # Attributes - Carrier
    "ATTR_ATTRIBUTE_COUNT",
    "ATTR_CONTEXT_EXTRACTED",
    "ATTR_WRAPPED_DELIVERY",
    "ATTR_ERROR_TYPE",
]
