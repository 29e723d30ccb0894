"""
Carriers moving trace context through SNS and SQS message attributes.

The outbound carrier writes propagation fields into the attribute map of a
message about to be published to a topic. The inbound carrier reads them
back from a message received on a queue. The two roles are separate
capabilities, ``WritableCarrier`` and ``ReadableCarrier``, with no shared
base class: a publish-side carrier cannot be read from and a receive-side
carrier cannot be written to.

Precondition:
    The queue subscription must use raw message delivery
    (``RawMessageDelivery=true``). Without it SNS folds the attributes into
    a JSON envelope in the message body, the queue-side attribute map is
    empty and every extraction comes back absent. See
    ``tracecarrier.selftest`` for a setup-time check.

Example:
    >>> from opentelemetry import propagate
    >>> from tracecarrier.carriers import (
    ...     QUEUE_ATTRIBUTES_GETTER,
    ...     TOPIC_ATTRIBUTES_SETTER,
    ...     QueueAttributesCarrier,
    ...     TopicAttributesCarrier,
    ... )
    >>>
    >>> attributes = {}
    >>> propagate.inject(TopicAttributesCarrier(attributes), setter=TOPIC_ATTRIBUTES_SETTER)
    >>> sns.publish(TopicArn=topic_arn, Message=body, MessageAttributes=attributes)
    >>>
    >>> ctx = propagate.extract(
    ...     QueueAttributesCarrier(message["MessageAttributes"]),
    ...     getter=QUEUE_ATTRIBUTES_GETTER,
    ... )
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from opentelemetry.propagators.textmap import Getter, Setter

from tracecarrier.encoding import (
    DEFAULT_CARRIER_CONFIG,
    AttributeSet,
    CarrierConfig,
    check_capacity,
    decode_string_attribute,
    encode_string_attribute,
    validate_attribute_name,
    validate_string_value,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class WritableCarrier(Protocol):
    """Write capability a propagator needs to inject context."""

    def set(self, key: str, value: str) -> None:
        """
        Write one propagation field.

        Args:
            key: Propagation field name (e.g., "traceparent")
            value: Serialized field value
        """
        ...


@runtime_checkable
class ReadableCarrier(Protocol):
    """Read capability a propagator needs to extract context."""

    def get(self, key: str) -> str | None:
        """
        Read one propagation field.

        Returns:
            The field value, or None when it is not available
        """
        ...

    def keys(self) -> list[str]:
        """Return every field name present, in no particular order."""
        ...


class TopicAttributesCarrier:
    """
    Outbound carrier over the attribute map of a message being published.

    Writes each field as a String-typed attribute. The wrapped dict is
    mutated in place and is the ``MessageAttributes`` argument of the
    publish call. A failed ``set`` leaves the dict untouched.

    Args:
        attributes: Attribute map of the outgoing message
        config: Transport limits and propagation field names

    Raises:
        CapacityExceededError: From ``set``, when a new key would exceed the
            attribute count limit
        InvalidAttributeError: From ``set``, when the key or value breaks a
            transport constraint
    """

    def __init__(
        self,
        attributes: AttributeSet,
        config: CarrierConfig = DEFAULT_CARRIER_CONFIG,
    ) -> None:
        self._attributes = attributes
        self._config = config

    @property
    def attributes(self) -> AttributeSet:
        return self._attributes

    def set(self, key: str, value: str) -> None:
        limits = self._config.limits
        validate_attribute_name(key, limits)
        validate_string_value(key, value, limits)
        check_capacity(self._attributes, [key], limits)

        encoded = encode_string_attribute(value)
        if self._attributes.get(key) == encoded:
            return
        self._attributes[key] = encoded
        logger.debug(
            "Set message attribute",
            extra={"attribute": key, "attribute_count": len(self._attributes)},
        )


class QueueAttributesCarrier:
    """
    Inbound carrier over the attribute map of a received queue message.

    Read-only. A field that is missing, or present with a Number or Binary
    type, reads as None so that a broken trace never blocks handling of the
    message itself.

    Args:
        attributes: ``MessageAttributes`` of the received message, or None
            when the message carried none
        config: Transport limits and propagation field names
    """

    def __init__(
        self,
        attributes: Mapping[str, Any] | None,
        config: CarrierConfig = DEFAULT_CARRIER_CONFIG,
    ) -> None:
        self._attributes: Mapping[str, Any] = attributes or {}
        self._config = config

    def get(self, key: str) -> str | None:
        attribute = self._attributes.get(key)
        if attribute is None:
            return None
        value = decode_string_attribute(attribute)
        if value is None:
            logger.debug(
                "Ignoring message attribute that is not String-typed",
                extra={"attribute": key},
            )
        return value

    def keys(self) -> list[str]:
        return list(self._attributes.keys())


class TopicAttributesSetter(Setter[WritableCarrier]):
    """OpenTelemetry ``Setter`` writing through a ``WritableCarrier``."""

    def set(self, carrier: WritableCarrier, key: str, value: str) -> None:
        carrier.set(key, value)


class QueueAttributesGetter(Getter[ReadableCarrier]):
    """OpenTelemetry ``Getter`` reading through a ``ReadableCarrier``."""

    def get(self, carrier: ReadableCarrier, key: str) -> list[str] | None:
        value = carrier.get(key)
        if value is None:
            return None
        return [value]

    def keys(self, carrier: ReadableCarrier) -> list[str]:
        return carrier.keys()


TOPIC_ATTRIBUTES_SETTER = TopicAttributesSetter()
QUEUE_ATTRIBUTES_GETTER = QueueAttributesGetter()


__all__ = [
    "QUEUE_ATTRIBUTES_GETTER",
    "TOPIC_ATTRIBUTES_SETTER",
    "QueueAttributesCarrier",
    "QueueAttributesGetter",
    "ReadableCarrier",
    "TopicAttributesCarrier",
    "TopicAttributesSetter",
    "WritableCarrier",
]
