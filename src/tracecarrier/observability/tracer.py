"""
Tracer protocol and implementations for the traced publisher and consumer.

The tracer is injected into ``TracedTopicPublisher`` and
``TracedQueueConsumer`` as a dependency, so tests can swap in a
``MockTracer`` and disabled tracing costs nothing.

Example:
    >>> from tracecarrier.observability import SpanKindEnum, create_tracer
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span_with_kind("orders publish", kind=SpanKindEnum.PRODUCER) as span:
    ...     if span:
    ...         span.set_attribute("messaging.message.id", message_id)
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextlib import AbstractContextManager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from opentelemetry import trace

if TYPE_CHECKING:
    from opentelemetry.context import Context
    from opentelemetry.trace import Span, TracerProvider


class SpanKindEnum(Enum):
    """
    Span kinds used around the topic to queue hop.

    Values:
        INTERNAL: Default span kind for internal operations
        PRODUCER: Publishing a message to a topic
        CONSUMER: Processing a message received from a queue
    """

    INTERNAL = "internal"
    PRODUCER = "producer"
    CONSUMER = "consumer"


_OTEL_KINDS = {
    SpanKindEnum.INTERNAL: trace.SpanKind.INTERNAL,
    SpanKindEnum.PRODUCER: trace.SpanKind.PRODUCER,
    SpanKindEnum.CONSUMER: trace.SpanKind.CONSUMER,
}


@runtime_checkable
class Tracer(Protocol):
    """
    Protocol for tracers that create spans around publish and process calls.

    Implementations:
    - NullTracer: No-op tracer for when tracing is disabled
    - OpenTelemetryTracer: Wrapper around an OpenTelemetry tracer
    - MockTracer: Records spans for assertions in tests
    """

    @property
    def enabled(self) -> bool:
        """True if the tracer creates real spans."""
        ...

    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Context | None = None,
    ) -> AbstractContextManager[Span | None]:
        """
        Create a span context manager that makes the span current.

        Args:
            name: Span name (e.g., "orders publish")
            kind: The span kind
            attributes: Span attributes (optional)
            context: Parent context, e.g. the one extracted from a received
                message (optional, defaults to the current context)

        Returns:
            Context manager yielding the Span, or None when disabled
        """
        ...


class NullTracer:
    """No-op tracer used when tracing is disabled."""

    @property
    def enabled(self) -> bool:
        return False

    @contextlib.contextmanager
    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Context | None = None,
    ) -> Generator[None, None, None]:
        yield None


class OpenTelemetryTracer:
    """
    OpenTelemetry tracer implementation.

    Args:
        tracer_name: Name for the tracer (typically __name__)
        tracer_provider: Provider to take the tracer from (defaults to the
            global provider)
    """

    def __init__(
        self,
        tracer_name: str,
        tracer_provider: TracerProvider | None = None,
    ) -> None:
        self._tracer = trace.get_tracer(tracer_name, tracer_provider=tracer_provider)

    @property
    def enabled(self) -> bool:
        return True

    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Context | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(
            name,
            context=context,
            kind=_OTEL_KINDS.get(kind, trace.SpanKind.INTERNAL),
            attributes=attributes or {},
        )


@dataclass(frozen=True)
class RecordedSpan:
    """A span captured by MockTracer."""

    name: str
    kind: SpanKindEnum
    attributes: dict[str, Any] | None
    context: Any


class MockTracer:
    """
    Mock tracer for testing that records span information.

    Example:
        >>> tracer = MockTracer()
        >>> with tracer.span_with_kind("orders publish", SpanKindEnum.PRODUCER):
        ...     pass
        >>> assert tracer.span_names == ["orders publish"]
    """

    def __init__(self) -> None:
        self.spans: list[RecordedSpan] = []

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [span.name for span in self.spans]

    def clear(self) -> None:
        self.spans.clear()

    @contextlib.contextmanager
    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Context | None = None,
    ) -> Generator[None, None, None]:
        self.spans.append(RecordedSpan(name, kind, attributes, context))
        yield None


def create_tracer(
    name: str,
    enable_tracing: bool = True,
    tracer_provider: TracerProvider | None = None,
) -> Tracer:
    """
    Create the appropriate tracer for a component.

    Args:
        name: Tracer name (typically __name__)
        enable_tracing: Whether tracing should be enabled (default True)
        tracer_provider: Provider for the OpenTelemetry tracer (optional)

    Returns:
        OpenTelemetryTracer if enabled, NullTracer otherwise
    """
    if enable_tracing:
        return OpenTelemetryTracer(name, tracer_provider)
    return NullTracer()


__all__ = [
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "RecordedSpan",
    "SpanKindEnum",
    "Tracer",
    "create_tracer",
]
