"""
Propagator integration for topic and queue message attributes.

These functions run a standard OpenTelemetry text-map propagator (the
global one unless another is passed) against the carriers in
``tracecarrier.carriers``. They do not implement the trace-context wire
format themselves.

Capacity policy:
    Propagation fields are reserved first: the configured ones plus any the
    propagator declares, such as ``baggage``. ``build_message_attributes``
    refuses application attributes that would leave fewer free slots than
    that, and nothing is ever silently dropped.
    ``inject_context`` is all-or-nothing: when the injected fields do not
    fit, ``CapacityExceededError`` is raised and the attribute map is left
    as it was.

Example:
    >>> from opentelemetry import trace
    >>> from tracecarrier.propagation import build_message_attributes, extract_context
    >>>
    >>> tracer = trace.get_tracer(__name__)
    >>> with tracer.start_as_current_span("orders publish", kind=trace.SpanKind.PRODUCER):
    ...     attributes = build_message_attributes({"content-type": "application/json"})
    ...     sns.publish(TopicArn=topic_arn, Message=body, MessageAttributes=attributes)
    >>>
    >>> # In the consumer process
    >>> parent = extract_context(message.get("MessageAttributes"))
    >>> with tracer.start_as_current_span("orders process", context=parent):
    ...     handle(message)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from opentelemetry import propagate
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import TextMapPropagator

from tracecarrier.carriers import (
    QUEUE_ATTRIBUTES_GETTER,
    TOPIC_ATTRIBUTES_SETTER,
    QueueAttributesCarrier,
    TopicAttributesCarrier,
)
from tracecarrier.encoding import (
    DEFAULT_CARRIER_CONFIG,
    AttributeSet,
    CarrierConfig,
    DataType,
    base_data_type,
    check_capacity,
    encode_attribute,
    validate_attribute_name,
    validate_string_value,
)
from tracecarrier.exceptions import CapacityExceededError, InvalidAttributeError

logger = logging.getLogger(__name__)


def propagation_field_names(
    config: CarrierConfig | None = None,
    propagator: TextMapPropagator | None = None,
) -> frozenset[str]:
    """
    Get every attribute name trace context may occupy.

    This is the configured propagation fields plus whatever the propagator
    declares in ``fields``, so a composite propagator that also carries
    ``baggage`` gets a slot for it.
    """
    config = config or DEFAULT_CARRIER_CONFIG
    propagator = propagator or propagate.get_global_textmap()
    return frozenset(config.fields.names) | frozenset(propagator.fields)


def inject_context(
    attributes: AttributeSet,
    context: Context | None = None,
    *,
    config: CarrierConfig | None = None,
    propagator: TextMapPropagator | None = None,
) -> AttributeSet:
    """
    Inject trace context into an outgoing message attribute map.

    Propagation fields already on the map that the new context does not
    write (a ``tracestate`` from an earlier injection, say) are removed, so
    the fields on the message always belong to one context.

    Args:
        attributes: ``MessageAttributes`` of the message to publish,
            updated in place
        context: Context to inject (defaults to the current context)
        config: Transport limits and propagation field names
        propagator: Propagator to use (defaults to the global one)

    Returns:
        The same ``attributes`` dict

    Raises:
        CapacityExceededError: If the injected fields do not fit; nothing is
            written in that case
        InvalidAttributeError: If the propagator produced a field the
            transport cannot carry
    """
    config = config or DEFAULT_CARRIER_CONFIG
    propagator = propagator or propagate.get_global_textmap()

    staged: AttributeSet = {}
    propagator.inject(
        TopicAttributesCarrier(staged, config),
        context=context,
        setter=TOPIC_ATTRIBUTES_SETTER,
    )
    if not staged:
        logger.debug("No trace context to inject")
        return attributes

    stale = [
        name
        for name in propagation_field_names(config, propagator)
        if name in attributes and name not in staged
    ]
    kept = {name: value for name, value in attributes.items() if name not in stale}
    check_capacity(kept, staged.keys(), config.limits)

    for name in stale:
        del attributes[name]
    attributes.update(staged)
    logger.debug(
        "Injected trace context into message attributes",
        extra={
            "fields": sorted(staged),
            "removed": sorted(stale),
            "attribute_count": len(attributes),
        },
    )
    return attributes


def extract_context(
    attributes: Mapping[str, Any] | None,
    context: Context | None = None,
    *,
    config: CarrierConfig | None = None,
    propagator: TextMapPropagator | None = None,
) -> Context:
    """
    Extract trace context from a received message attribute map.

    Never raises: a propagator failure is logged and ``context`` (or an
    empty context) is returned, so the message can still be processed.

    Args:
        attributes: ``MessageAttributes`` of the received message
        context: Context to extend (defaults to the current context)
        config: Transport limits and propagation field names
        propagator: Propagator to use (defaults to the global one)

    Returns:
        Context to use as the parent of the consumer span
    """
    config = config or DEFAULT_CARRIER_CONFIG
    propagator = propagator or propagate.get_global_textmap()
    carrier = QueueAttributesCarrier(attributes, config)

    try:
        return propagator.extract(carrier, context=context, getter=QUEUE_ATTRIBUTES_GETTER)
    except Exception as e:
        logger.warning(
            "Failed to extract trace context from message attributes",
            extra={"error": str(e), "attributes": carrier.keys()},
            exc_info=True,
        )
        return context if context is not None else Context()


def build_message_attributes(
    application_attributes: Mapping[str, Any] | None = None,
    context: Context | None = None,
    *,
    config: CarrierConfig | None = None,
    propagator: TextMapPropagator | None = None,
) -> AttributeSet:
    """
    Build the attribute map for a publish call, trace context first.

    Application values are encoded with ``encode_attribute``: ``str`` as
    String, numbers as Number, ``bytes`` as Binary.

    Args:
        application_attributes: Attributes the application wants to send
        context: Context to inject (defaults to the current context)
        config: Transport limits and propagation field names
        propagator: Propagator to use (defaults to the global one)

    Returns:
        A new ``MessageAttributes`` dict

    Raises:
        CapacityExceededError: If the application attributes leave no room
            for the propagation fields
        InvalidAttributeError: If an application attribute is invalid or
            uses a propagation field name
    """
    config = config or DEFAULT_CARRIER_CONFIG
    propagator = propagator or propagate.get_global_textmap()
    application_attributes = application_attributes or {}

    reserved = propagation_field_names(config, propagator)
    capacity = max(config.limits.max_attributes - len(reserved), 0)
    if len(application_attributes) > capacity:
        raise CapacityExceededError(
            limit=config.limits.max_attributes,
            current=len(application_attributes),
            requested=len(reserved),
        )

    encoded: AttributeSet = {}
    for name, value in application_attributes.items():
        if name in reserved:
            raise InvalidAttributeError(name, "name is reserved for trace context")
        validate_attribute_name(name, config.limits)
        attribute = encode_attribute(value)
        if base_data_type(attribute) is not DataType.BINARY:
            validate_string_value(name, attribute["StringValue"], config.limits)
        encoded[name] = attribute

    attributes: AttributeSet = {}
    inject_context(attributes, context, config=config, propagator=propagator)
    check_capacity(attributes, encoded.keys(), config.limits)
    attributes.update(encoded)
    return attributes


__all__ = [
    "build_message_attributes",
    "extract_context",
    "inject_context",
    "propagation_field_names",
]
