"""
Traced SNS publisher and SQS consumer.

These are thin call sites around a boto3 client: the publisher injects trace
context into the message attributes inside a PRODUCER span, the consumer
extracts it and processes each message inside a CONSUMER span parented on
the producer.
"""

from tracecarrier.messaging.config import QueueConsumerConfig, TopicPublisherConfig
from tracecarrier.messaging.consumer import (
    ReceiveClient,
    ReceivedMessage,
    TracedQueueConsumer,
    create_queue_consumer,
)
from tracecarrier.messaging.publisher import (
    PublishClient,
    TracedTopicPublisher,
    create_topic_publisher,
)

__all__ = [
    # Publisher
    "PublishClient",
    "TopicPublisherConfig",
    "TracedTopicPublisher",
    "create_topic_publisher",
    # Consumer
    "QueueConsumerConfig",
    "ReceiveClient",
    "ReceivedMessage",
    "TracedQueueConsumer",
    "create_queue_consumer",
]
