"""
Test utilities for tracecarrier.

Components:
    InMemoryFanout: In-memory SNS topic, SQS queue and subscription, with
        raw or wrapped delivery

Note:
    This module is intended for test code only. It should not be imported
    in production code paths.
"""

from tracecarrier.testing.fanout import (
    DEFAULT_QUEUE_URL,
    DEFAULT_TOPIC_ARN,
    InMemoryFanout,
    InMemoryQueueClient,
    InMemoryTopicClient,
)

__all__ = [
    "DEFAULT_QUEUE_URL",
    "DEFAULT_TOPIC_ARN",
    "InMemoryFanout",
    "InMemoryQueueClient",
    "InMemoryTopicClient",
]
