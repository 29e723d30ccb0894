"""
Unit tests for propagator integration.

Tests for:
- inject_context(): writing, idempotence, re-injection, atomic capacity failure
- extract_context(): round trip, absent and malformed fields, fallback
- build_message_attributes(): reservation for trace context and baggage
- propagation_field_names()
"""

from __future__ import annotations

import logging

import pytest
from opentelemetry import baggage, propagate, trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.context import Context
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import TextMapPropagator

from tracecarrier.encoding import (
    AttributeLimits,
    CarrierConfig,
    encode_string_attribute,
)
from tracecarrier.exceptions import CapacityExceededError, InvalidAttributeError
from tracecarrier.propagation import (
    build_message_attributes,
    extract_context,
    inject_context,
    propagation_field_names,
)

from tests.fixtures import SPAN_ID, TRACE_ID, TRACEPARENT

OTHER_TRACEPARENT = f"00-{'c' * 32}-{'d' * 16}-01"


def _app_attributes(count: int) -> dict:
    return {f"app-{i}": encode_string_attribute(str(i)) for i in range(count)}


def _span_context(ctx: Context) -> trace.SpanContext:
    return trace.get_current_span(ctx).get_span_context()


class ExplodingPropagator(TextMapPropagator):
    """Propagator whose every call fails."""

    def extract(self, carrier, context=None, getter=None):
        raise RuntimeError("propagator exploded")

    def inject(self, carrier, context=None, setter=None):
        raise RuntimeError("propagator exploded")

    @property
    def fields(self):
        return {"traceparent"}


@pytest.fixture
def composite_propagator(propagator) -> CompositePropagator:
    """Trace context plus baggage, the default global propagator setup."""
    return CompositePropagator([propagator, W3CBaggagePropagator()])


class TestInjectContext:
    """Tests for inject_context()."""

    def test_writes_traceparent(self, propagator, remote_context):
        attributes: dict = {}
        result = inject_context(attributes, remote_context(), propagator=propagator)

        assert result is attributes
        assert attributes == {"traceparent": {"DataType": "String", "StringValue": TRACEPARENT}}

    def test_writes_tracestate_when_present(self, propagator, remote_context):
        attributes: dict = {}
        inject_context(attributes, remote_context(tracestate="k=v"), propagator=propagator)
        assert attributes["tracestate"] == {"DataType": "String", "StringValue": "k=v"}

    def test_no_active_span_writes_nothing(self, propagator):
        attributes = _app_attributes(3)
        before = dict(attributes)
        inject_context(attributes, Context(), propagator=propagator)
        assert attributes == before

    def test_uses_current_span_by_default(self, propagator, tracer_provider):
        tracer = tracer_provider.get_tracer("test")
        attributes: dict = {}
        with tracer.start_as_current_span("publish") as span:
            inject_context(attributes, propagator=propagator)
            expected = span.get_span_context()

        traceparent = attributes["traceparent"]["StringValue"]
        assert traceparent == f"00-{expected.trace_id:032x}-{expected.span_id:016x}-01"

    def test_uses_global_propagator_by_default(self, propagator, remote_context, monkeypatch):
        monkeypatch.setattr(propagate, "get_global_textmap", lambda: propagator)
        attributes: dict = {}
        inject_context(attributes, remote_context())
        assert attributes["traceparent"]["StringValue"] == TRACEPARENT

    def test_injecting_twice_is_idempotent(self, propagator, remote_context):
        ctx = remote_context(tracestate="k=v")
        attributes = _app_attributes(2)
        inject_context(attributes, ctx, propagator=propagator)
        once = {name: dict(value) for name, value in attributes.items()}
        inject_context(attributes, ctx, propagator=propagator)
        assert attributes == once
        assert len(attributes) == 4

    def test_fills_set_to_limit(self, propagator, remote_context):
        attributes = _app_attributes(8)
        inject_context(attributes, remote_context(tracestate="k=v"), propagator=propagator)
        assert len(attributes) == 10

    def test_overflow_raises_and_leaves_attributes_unchanged(self, propagator, remote_context):
        """Nine application attributes leave room for traceparent but not tracestate."""
        attributes = _app_attributes(9)
        before = dict(attributes)

        with pytest.raises(CapacityExceededError) as exc_info:
            inject_context(attributes, remote_context(tracestate="k=v"), propagator=propagator)

        assert attributes == before
        assert exc_info.value.limit == 10
        assert exc_info.value.current == 9
        assert exc_info.value.requested == 2

    def test_nine_attributes_fit_traceparent_alone(self, propagator, remote_context):
        attributes = _app_attributes(9)
        inject_context(attributes, remote_context(), propagator=propagator)
        assert len(attributes) == 10
        assert "traceparent" in attributes

    def test_larger_limit_from_config(self, propagator, remote_context):
        config = CarrierConfig(limits=AttributeLimits(max_attributes=20))
        attributes = _app_attributes(15)
        inject_context(attributes, remote_context(), config=config, propagator=propagator)
        assert len(attributes) == 16

    def test_reinject_drops_tracestate_of_previous_context(self, propagator, remote_context):
        """A tracestate never stays attached to a different traceparent."""
        attributes = _app_attributes(2)
        inject_context(attributes, remote_context(tracestate="vendor=a"), propagator=propagator)

        inject_context(attributes, remote_context(OTHER_TRACEPARENT), propagator=propagator)

        assert attributes["traceparent"]["StringValue"] == OTHER_TRACEPARENT
        assert "tracestate" not in attributes
        assert len(attributes) == 3

    def test_reinject_replaces_tracestate(self, propagator, remote_context):
        attributes: dict = {}
        inject_context(attributes, remote_context(tracestate="vendor=a"), propagator=propagator)
        inject_context(
            attributes,
            remote_context(OTHER_TRACEPARENT, tracestate="vendor=b"),
            propagator=propagator,
        )
        assert attributes["tracestate"]["StringValue"] == "vendor=b"

    def test_reinject_overflow_keeps_previous_context(self, propagator, remote_context):
        """A failed re-injection removes nothing."""
        config = CarrierConfig(limits=AttributeLimits(max_attributes=4))
        attributes = _app_attributes(3)
        inject_context(attributes, remote_context(), config=config, propagator=propagator)
        before = dict(attributes)

        with pytest.raises(CapacityExceededError):
            inject_context(
                attributes,
                remote_context(OTHER_TRACEPARENT, tracestate="vendor=b"),
                config=config,
                propagator=propagator,
            )

        assert attributes == before

    def test_reinject_drops_stale_baggage(self, composite_propagator, remote_context):
        attributes: dict = {}
        ctx = baggage.set_baggage("tenant", "acme", context=remote_context())
        inject_context(attributes, ctx, propagator=composite_propagator)
        assert attributes["baggage"]["StringValue"] == "tenant=acme"

        inject_context(
            attributes, remote_context(OTHER_TRACEPARENT), propagator=composite_propagator
        )

        assert list(attributes) == ["traceparent"]


class TestExtractContext:
    """Tests for extract_context()."""

    def test_round_trip(self, propagator, remote_context):
        attributes: dict = {}
        inject_context(attributes, remote_context(), propagator=propagator)

        span_context = _span_context(extract_context(attributes, propagator=propagator))
        assert span_context.is_valid
        assert span_context.is_remote
        assert span_context.trace_id == TRACE_ID
        assert span_context.span_id == SPAN_ID
        assert span_context.trace_flags.sampled

    def test_application_attributes_ignored(self, propagator):
        attributes = {
            "traceparent": encode_string_attribute(TRACEPARENT),
            "content-type": encode_string_attribute("application/json"),
            "count": {"DataType": "Number", "StringValue": "3"},
        }
        span_context = _span_context(extract_context(attributes, propagator=propagator))
        assert span_context.trace_id == TRACE_ID

    def test_absent_traceparent_gives_no_parent(self, propagator):
        attributes = {"content-type": encode_string_attribute("application/json")}
        span_context = _span_context(extract_context(attributes, Context(), propagator=propagator))
        assert not span_context.is_valid

    def test_none_attributes_gives_no_parent(self, propagator):
        span_context = _span_context(extract_context(None, Context(), propagator=propagator))
        assert not span_context.is_valid

    def test_binary_traceparent_gives_no_parent(self, propagator):
        attributes = {"traceparent": {"DataType": "Binary", "BinaryValue": TRACEPARENT.encode()}}
        span_context = _span_context(extract_context(attributes, Context(), propagator=propagator))
        assert not span_context.is_valid

    def test_malformed_traceparent_gives_no_parent(self, propagator):
        attributes = {"traceparent": encode_string_attribute("not-a-traceparent")}
        span_context = _span_context(extract_context(attributes, Context(), propagator=propagator))
        assert not span_context.is_valid

    def test_propagator_failure_falls_back_to_given_context(self, caplog):
        base = Context({"marker": 1})
        with caplog.at_level(logging.WARNING, logger="tracecarrier.propagation"):
            result = extract_context(
                {"traceparent": encode_string_attribute(TRACEPARENT)},
                base,
                propagator=ExplodingPropagator(),
            )
        assert result is base
        assert "Failed to extract trace context" in caplog.text

    def test_propagator_failure_without_context_gives_empty(self):
        result = extract_context({}, propagator=ExplodingPropagator())
        assert not _span_context(result).is_valid


class TestBuildMessageAttributes:
    """Tests for build_message_attributes()."""

    def test_application_and_trace_attributes(self, propagator, remote_context):
        attributes = build_message_attributes(
            {"content-type": "application/json", "priority": 5, "digest": b"\x01"},
            remote_context(),
            propagator=propagator,
        )
        assert attributes == {
            "traceparent": {"DataType": "String", "StringValue": TRACEPARENT},
            "content-type": {"DataType": "String", "StringValue": "application/json"},
            "priority": {"DataType": "Number", "StringValue": "5"},
            "digest": {"DataType": "Binary", "BinaryValue": b"\x01"},
        }

    def test_returns_new_dict_each_call(self, propagator, remote_context):
        first = build_message_attributes(None, remote_context(), propagator=propagator)
        second = build_message_attributes(None, remote_context(), propagator=propagator)
        assert first == second
        assert first is not second

    def test_no_context_gives_application_attributes_only(self, propagator):
        attributes = build_message_attributes({"a": "1"}, Context(), propagator=propagator)
        assert list(attributes) == ["a"]

    def test_eight_application_attributes_fit(self, propagator, remote_context):
        app = {f"app-{i}": str(i) for i in range(8)}
        attributes = build_message_attributes(
            app, remote_context(tracestate="k=v"), propagator=propagator
        )
        assert len(attributes) == 10

    def test_nine_application_attributes_rejected(self, propagator, remote_context):
        """Trace context slots are reserved even when tracestate would be absent."""
        app = {f"app-{i}": str(i) for i in range(9)}
        with pytest.raises(CapacityExceededError) as exc_info:
            build_message_attributes(app, remote_context(), propagator=propagator)
        assert exc_info.value.current == 9
        assert exc_info.value.requested == 2

    @pytest.mark.parametrize("name", ["traceparent", "tracestate"])
    def test_reserved_name_rejected(self, name, propagator):
        with pytest.raises(InvalidAttributeError, match="reserved for trace context"):
            build_message_attributes({name: "x"}, propagator=propagator)

    def test_invalid_name_rejected(self, propagator):
        with pytest.raises(InvalidAttributeError):
            build_message_attributes({"AWS.thing": "x"}, propagator=propagator)

    def test_invalid_value_rejected(self, propagator):
        with pytest.raises(InvalidAttributeError, match="forbidden character"):
            build_message_attributes({"note": "a\x00b"}, propagator=propagator)

    def test_unsupported_value_rejected(self, propagator):
        with pytest.raises(InvalidAttributeError):
            build_message_attributes({"flag": True}, propagator=propagator)

    def test_does_not_mutate_input(self, propagator, remote_context):
        app = {"content-type": "application/json"}
        build_message_attributes(app, remote_context(), propagator=propagator)
        assert app == {"content-type": "application/json"}

    def test_baggage_slot_reserved_with_composite_propagator(
        self, composite_propagator, remote_context
    ):
        """Seven application attributes leave room for traceparent, tracestate and baggage."""
        ctx = baggage.set_baggage("tenant", "acme", context=remote_context(tracestate="k=v"))
        app = {f"app-{i}": str(i) for i in range(7)}

        attributes = build_message_attributes(app, ctx, propagator=composite_propagator)

        assert len(attributes) == 10
        assert attributes["baggage"]["StringValue"] == "tenant=acme"

    def test_eight_application_attributes_rejected_with_composite_propagator(
        self, composite_propagator, remote_context
    ):
        ctx = baggage.set_baggage("tenant", "acme", context=remote_context(tracestate="k=v"))
        app = {f"app-{i}": str(i) for i in range(8)}

        with pytest.raises(CapacityExceededError) as exc_info:
            build_message_attributes(app, ctx, propagator=composite_propagator)

        assert exc_info.value.current == 8
        assert exc_info.value.requested == 3

    def test_baggage_name_reserved_with_composite_propagator(self, composite_propagator):
        with pytest.raises(InvalidAttributeError, match="reserved for trace context"):
            build_message_attributes({"baggage": "x"}, propagator=composite_propagator)

    def test_empty_value_rejected(self, propagator):
        with pytest.raises(InvalidAttributeError, match="must not be empty"):
            build_message_attributes({"note": ""}, propagator=propagator)


class TestPropagationFieldNames:
    """Tests for propagation_field_names()."""

    def test_trace_context_propagator(self, propagator):
        assert propagation_field_names(propagator=propagator) == {"traceparent", "tracestate"}

    def test_composite_propagator_adds_baggage(self, composite_propagator):
        assert propagation_field_names(propagator=composite_propagator) == {
            "traceparent",
            "tracestate",
            "baggage",
        }
