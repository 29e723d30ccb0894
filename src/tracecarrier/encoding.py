"""
Message attribute encoding rules and transport constraint checks.

SNS and SQS carry message metadata as a map of typed attributes, each a
small dict holding a data type tag and a payload::

    {"DataType": "String", "StringValue": "00-...-01"}
    {"DataType": "Number", "StringValue": "42"}
    {"DataType": "Binary", "BinaryValue": b"..."}

Both carriers go through the helpers in this module, so a change to a
transport limit is made in one place: pass a different ``CarrierConfig``.

Example:
    >>> from tracecarrier.encoding import AttributeLimits, CarrierConfig
    >>>
    >>> config = CarrierConfig(limits=AttributeLimits(max_attributes=50))
    >>> encode_string_attribute("00-aaaa-bbbb-01")
    {'DataType': 'String', 'StringValue': '00-aaaa-bbbb-01'}
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from tracecarrier.exceptions import CapacityExceededError, InvalidAttributeError

MessageAttribute = dict[str, Any]
AttributeSet = dict[str, MessageAttribute]

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")
_NUMBER_PATTERN = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")
_RESERVED_NAME_PREFIXES = ("aws.", "amazon.")


class DataType(Enum):
    """
    Base data types of a message attribute.

    The wire tag may carry a custom suffix after a period (``String.json``,
    ``Number.float``); only the part before the first period selects the
    base type.
    """

    STRING = "String"
    NUMBER = "Number"
    BINARY = "Binary"


@dataclass(frozen=True)
class AttributeLimits:
    """
    Transport limits on a message attribute set.

    Defaults match SNS and SQS: at most 10 attributes per message, names up
    to 256 characters and a message (body plus attributes) of 256 KiB.

    Attributes:
        max_attributes: Maximum number of attributes on one message
        max_name_length: Maximum attribute name length in characters
        max_value_bytes: Maximum UTF-8 encoded size of one string value
    """

    max_attributes: int = 10
    max_name_length: int = 256
    max_value_bytes: int = 262144

    def __post_init__(self) -> None:
        for name in ("max_attributes", "max_name_length", "max_value_bytes"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")


@dataclass(frozen=True)
class PropagationFields:
    """
    Attribute names reserved for trace context.

    These default to the W3C Trace Context header names so that any
    conformant propagator on either side of the hop finds them.
    """

    traceparent: str = "traceparent"
    tracestate: str = "tracestate"

    @property
    def names(self) -> tuple[str, ...]:
        return (self.traceparent, self.tracestate)

    @property
    def required(self) -> tuple[str, ...]:
        return (self.traceparent,)


@dataclass(frozen=True)
class CarrierConfig:
    """
    Constants table shared by the outbound and inbound carriers.

    Attributes:
        limits: Transport attribute limits
        fields: Reserved propagation field names
    """

    limits: AttributeLimits = field(default_factory=AttributeLimits)
    fields: PropagationFields = field(default_factory=PropagationFields)

    @property
    def reserved_slots(self) -> int:
        """Number of attribute slots kept free for propagation fields."""
        return len(self.fields.names)

    @property
    def application_capacity(self) -> int:
        """Number of attributes an application may set when only ``fields`` are reserved."""
        return max(self.limits.max_attributes - self.reserved_slots, 0)


DEFAULT_CARRIER_CONFIG = CarrierConfig()


def encode_string_attribute(value: str) -> MessageAttribute:
    """Build a String-typed attribute for the publish call."""
    return {"DataType": DataType.STRING.value, "StringValue": value}


def encode_attribute(value: Any) -> MessageAttribute:
    """
    Encode an application value as a typed message attribute.

    Args:
        value: ``str``, ``int``, ``float``, ``Decimal``, ``bytes`` or a dict
            already in typed attribute shape

    Returns:
        A new typed attribute dict

    Raises:
        InvalidAttributeError: If the value has no attribute encoding
    """
    if isinstance(value, Mapping):
        return _copy_typed_attribute(value)
    if isinstance(value, str):
        return encode_string_attribute(value)
    if isinstance(value, bool):
        raise InvalidAttributeError(repr(value), "booleans have no attribute encoding")
    if isinstance(value, Decimal) and not value.is_finite():
        raise InvalidAttributeError(repr(value), "numbers must be finite")
    if isinstance(value, (int, Decimal)):
        return {"DataType": DataType.NUMBER.value, "StringValue": str(value)}
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidAttributeError(repr(value), "numbers must be finite")
        return {"DataType": DataType.NUMBER.value, "StringValue": repr(value)}
    if isinstance(value, (bytes, bytearray)):
        if not value:
            raise InvalidAttributeError(repr(value), "value must not be empty")
        return {"DataType": DataType.BINARY.value, "BinaryValue": bytes(value)}
    raise InvalidAttributeError(repr(value), f"unsupported type {type(value).__name__}")


def _copy_typed_attribute(attribute: Mapping[str, Any]) -> MessageAttribute:
    if "DataType" not in attribute:
        raise InvalidAttributeError(
            str(attribute.get("Type")), "typed attribute needs a DataType key"
        )
    data_type = base_data_type(attribute)
    if data_type is None:
        raise InvalidAttributeError(
            str(attribute.get("DataType")), "unknown attribute data type"
        )
    payload_key = "BinaryValue" if data_type is DataType.BINARY else "StringValue"
    if payload_key not in attribute:
        raise InvalidAttributeError(
            str(attribute.get("DataType")), f"{payload_key} missing for {data_type.value}"
        )
    payload = attribute[payload_key]
    if data_type is DataType.BINARY and not (isinstance(payload, (bytes, bytearray)) and payload):
        raise InvalidAttributeError(
            str(attribute["DataType"]), "BinaryValue must be non-empty bytes"
        )
    if data_type is DataType.NUMBER and not (
        isinstance(payload, str) and _NUMBER_PATTERN.match(payload)
    ):
        raise InvalidAttributeError(str(attribute["DataType"]), f"{payload!r} is not a number")
    return dict(attribute)


def base_data_type(attribute: Any) -> DataType | None:
    """
    Get the base data type of a typed attribute.

    Accepts the publish/receive shape (``DataType``) and the SNS envelope
    shape (``Type``). Returns None for anything unrecognised.
    """
    if not isinstance(attribute, Mapping):
        return None
    tag = attribute.get("DataType", attribute.get("Type"))
    if not isinstance(tag, str):
        return None
    base = tag.split(".", 1)[0]
    try:
        return DataType(base)
    except ValueError:
        return None


def decode_string_attribute(attribute: Any) -> str | None:
    """
    Decode a String-typed attribute.

    A missing, Number, Binary or malformed attribute decodes to None rather
    than raising.
    """
    if base_data_type(attribute) is not DataType.STRING:
        return None
    value = attribute.get("StringValue", attribute.get("Value"))
    if not isinstance(value, str):
        return None
    return value


def validate_attribute_name(name: str, limits: AttributeLimits) -> None:
    """
    Check an attribute name against transport naming rules.

    Raises:
        InvalidAttributeError: If the name is empty, too long, uses a
            reserved prefix or a character outside ``A-Za-z0-9_-.``
    """
    if not isinstance(name, str) or not name:
        raise InvalidAttributeError(str(name), "name must be a non-empty string")
    if len(name) > limits.max_name_length:
        raise InvalidAttributeError(
            name, f"name longer than {limits.max_name_length} characters"
        )
    if not _NAME_PATTERN.match(name):
        raise InvalidAttributeError(name, "name may only contain A-Z, a-z, 0-9, '_', '-', '.'")
    if name.startswith(".") or name.endswith(".") or ".." in name:
        raise InvalidAttributeError(name, "name may not start or end with '.' or contain '..'")
    if name.lower().startswith(_RESERVED_NAME_PREFIXES):
        raise InvalidAttributeError(name, "names starting with 'AWS.' or 'Amazon.' are reserved")


def _is_permitted_char(char: str) -> bool:
    code = ord(char)
    return (
        code in (0x9, 0xA, 0xD)
        or 0x20 <= code <= 0xD7FF
        or 0xE000 <= code <= 0xFFFD
        or 0x10000 <= code <= 0x10FFFF
    )


def validate_string_value(name: str, value: str, limits: AttributeLimits) -> None:
    """
    Check a string value against transport constraints.

    Raises:
        InvalidAttributeError: If the value is not a ``str``, is empty, holds
            a character the transport rejects, or is too large once encoded
    """
    if not isinstance(value, str):
        raise InvalidAttributeError(name, f"value must be str, got {type(value).__name__}")
    if not value:
        raise InvalidAttributeError(name, "value must not be empty")
    for char in value:
        if not _is_permitted_char(char):
            raise InvalidAttributeError(name, f"value contains forbidden character {char!r}")
    size = len(value.encode("utf-8"))
    if size > limits.max_value_bytes:
        raise InvalidAttributeError(
            name, f"value is {size} bytes, limit is {limits.max_value_bytes}"
        )


def check_capacity(
    attributes: Mapping[str, Any],
    new_names: Iterable[str],
    limits: AttributeLimits,
) -> None:
    """
    Ensure adding ``new_names`` keeps the set within ``limits.max_attributes``.

    Names already present are overwrites and take no extra slot.

    Raises:
        CapacityExceededError: If the new names do not fit
    """
    added = {name for name in new_names if name not in attributes}
    if len(attributes) + len(added) > limits.max_attributes:
        raise CapacityExceededError(
            limit=limits.max_attributes,
            current=len(attributes),
            requested=len(added),
        )


__all__ = [
    "AttributeLimits",
    "AttributeSet",
    "CarrierConfig",
    "DEFAULT_CARRIER_CONFIG",
    "DataType",
    "MessageAttribute",
    "PropagationFields",
    "base_data_type",
    "check_capacity",
    "decode_string_attribute",
    "encode_attribute",
    "encode_string_attribute",
    "validate_attribute_name",
    "validate_string_value",
]
