"""
tracecarrier - Trace context propagation across SNS topics and SQS queues.

This library provides:
- Outbound and inbound carriers over SNS/SQS message attributes
- Injection and extraction through any OpenTelemetry text-map propagator
- Transport limit checks (attribute count, names, value encoding)
- Detection of wrapped (non-raw) SNS delivery on the queue side
- A traced topic publisher and queue consumer built on boto3
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tracecarrier-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

# Carriers
from tracecarrier.carriers import (
    QUEUE_ATTRIBUTES_GETTER,
    TOPIC_ATTRIBUTES_SETTER,
    QueueAttributesCarrier,
    QueueAttributesGetter,
    ReadableCarrier,
    TopicAttributesCarrier,
    TopicAttributesSetter,
    WritableCarrier,
)

# Encoding and transport limits
from tracecarrier.encoding import (
    DEFAULT_CARRIER_CONFIG,
    AttributeLimits,
    CarrierConfig,
    DataType,
    PropagationFields,
)

# Envelope detection
from tracecarrier.envelope import SnsNotification, is_wrapped_delivery, parse_notification

# Exceptions
from tracecarrier.exceptions import (
    CapacityExceededError,
    ConfigurationError,
    InvalidAttributeError,
    PassthroughDeliveryError,
    PublishError,
    ReceiveError,
    TraceCarrierError,
)

# Publisher and consumer
from tracecarrier.messaging import (
    QueueConsumerConfig,
    ReceivedMessage,
    TopicPublisherConfig,
    TracedQueueConsumer,
    TracedTopicPublisher,
    create_queue_consumer,
    create_topic_publisher,
)

# Propagation
from tracecarrier.propagation import (
    build_message_attributes,
    extract_context,
    inject_context,
    propagation_field_names,
)

# Delivery check
from tracecarrier.selftest import (
    PassthroughCheckResult,
    assert_passthrough_delivery,
    verify_passthrough_delivery,
)

__all__ = [
    "__version__",
    # Carriers
    "QUEUE_ATTRIBUTES_GETTER",
    "TOPIC_ATTRIBUTES_SETTER",
    "QueueAttributesCarrier",
    "QueueAttributesGetter",
    "ReadableCarrier",
    "TopicAttributesCarrier",
    "TopicAttributesSetter",
    "WritableCarrier",
    # Encoding
    "DEFAULT_CARRIER_CONFIG",
    "AttributeLimits",
    "CarrierConfig",
    "DataType",
    "PropagationFields",
    # Envelope
    "SnsNotification",
    "is_wrapped_delivery",
    "parse_notification",
    # Exceptions
    "CapacityExceededError",
    "ConfigurationError",
    "InvalidAttributeError",
    "PassthroughDeliveryError",
    "PublishError",
    "ReceiveError",
    "TraceCarrierError",
    # Messaging
    "QueueConsumerConfig",
    "ReceivedMessage",
    "TopicPublisherConfig",
    "TracedQueueConsumer",
    "TracedTopicPublisher",
    "create_queue_consumer",
    "create_topic_publisher",
    # Propagation
    "build_message_attributes",
    "extract_context",
    "inject_context",
    "propagation_field_names",
    # Delivery check
    "PassthroughCheckResult",
    "assert_passthrough_delivery",
    "verify_passthrough_delivery",
]
