"""
Shared pytest fixtures for the tracecarrier tests.

This module provides:
- OpenTelemetry fixtures (span_exporter, tracer_provider, otel_tracer)
- A deterministic W3C propagator (propagator)
- Remote parent contexts built from a known traceparent (remote_context)
- In-memory SNS to SQS fanouts with raw and wrapped delivery
- Publisher and consumer configs pointing at the fanout

Spans are recorded by a local TracerProvider passed explicitly to the code
under test, so the global OpenTelemetry state is never touched.
"""

from __future__ import annotations

from collections.abc import Callable, Generator

import pytest
from opentelemetry.context import Context
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from tracecarrier.messaging import QueueConsumerConfig, TopicPublisherConfig
from tracecarrier.observability import OpenTelemetryTracer
from tracecarrier.testing import InMemoryFanout

from tests.fixtures import TRACEPARENT

# ============================================================================
# OpenTelemetry fixtures
# ============================================================================


@pytest.fixture
def span_exporter() -> Generator[InMemorySpanExporter, None, None]:
    """In-memory exporter capturing every span finished during a test."""
    exporter = InMemorySpanExporter()
    yield exporter
    exporter.clear()


@pytest.fixture
def tracer_provider(span_exporter: InMemorySpanExporter) -> TracerProvider:
    """SDK TracerProvider exporting to ``span_exporter``."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


@pytest.fixture
def otel_tracer(tracer_provider: TracerProvider) -> OpenTelemetryTracer:
    """OpenTelemetryTracer backed by the test provider."""
    return OpenTelemetryTracer("tests", tracer_provider)


@pytest.fixture
def propagator() -> TraceContextTextMapPropagator:
    """W3C Trace Context propagator, independent of the global textmap."""
    return TraceContextTextMapPropagator()


@pytest.fixture
def remote_context(
    propagator: TraceContextTextMapPropagator,
) -> Callable[..., Context]:
    """
    Factory for contexts holding a remote parent span.

    Example:
        >>> def test_inject(remote_context):
        ...     ctx = remote_context(TRACEPARENT)
    """

    def _make(traceparent: str = TRACEPARENT, tracestate: str | None = None) -> Context:
        headers = {"traceparent": traceparent}
        if tracestate is not None:
            headers["tracestate"] = tracestate
        return propagator.extract(headers)

    return _make


# ============================================================================
# Transport fixtures
# ============================================================================


@pytest.fixture
def fanout() -> InMemoryFanout:
    """Topic to queue fanout with raw message delivery."""
    return InMemoryFanout(raw_message_delivery=True)


@pytest.fixture
def wrapped_fanout() -> InMemoryFanout:
    """Topic to queue fanout that wraps messages in the SNS envelope."""
    return InMemoryFanout(raw_message_delivery=False)


@pytest.fixture
def publisher_config(fanout: InMemoryFanout) -> TopicPublisherConfig:
    return TopicPublisherConfig(topic_arn=fanout.topic_arn)


@pytest.fixture
def consumer_config(fanout: InMemoryFanout) -> QueueConsumerConfig:
    return QueueConsumerConfig(queue_url=fanout.queue_url, wait_time_seconds=1)
