"""
Detection of SNS envelope (wrapped) delivery on a queue.

Without raw message delivery, SNS wraps each notification in a JSON document
and sends that as the SQS message body::

    {
        "Type": "Notification",
        "MessageId": "...",
        "TopicArn": "arn:aws:sns:...",
        "Message": "<original body>",
        "MessageAttributes": {"traceparent": {"Type": "String", "Value": "00-..."}},
        ...
    }

The queue message then has no attributes of its own, so trace context cannot
be extracted from it. This module recognises that shape so consumers can
report the misconfiguration instead of silently losing traces.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tracecarrier.encoding import AttributeSet, DataType, base_data_type

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "Notification"


class EnvelopeAttribute(BaseModel):
    """A message attribute as SNS writes it inside the envelope."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    type: str = Field(alias="Type")
    value: str = Field(alias="Value")


class SnsNotification(BaseModel):
    """
    SNS notification envelope found in a wrapped queue message body.

    Attributes:
        type: Always "Notification" for published messages
        message_id: SNS message id
        topic_arn: Topic the message was published to
        message: The original message body
        subject: Optional subject given at publish time
        timestamp: Publish time as sent by SNS
        message_attributes: Attributes folded into the envelope
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    type: str = Field(alias="Type")
    message_id: str = Field(alias="MessageId")
    topic_arn: str = Field(alias="TopicArn")
    message: str = Field(alias="Message")
    subject: str | None = Field(default=None, alias="Subject")
    timestamp: str | None = Field(default=None, alias="Timestamp")
    message_attributes: dict[str, EnvelopeAttribute] = Field(
        default_factory=dict,
        alias="MessageAttributes",
    )

    def delivered_attributes(self) -> AttributeSet:
        """
        Convert the envelope attributes to the receive-side typed shape.

        Intended for diagnostics only. Binary values stay base64 text.
        """
        converted: AttributeSet = {}
        for name, attribute in self.message_attributes.items():
            data_type = base_data_type({"Type": attribute.type})
            key = "BinaryValue" if data_type is DataType.BINARY else "StringValue"
            converted[name] = {"DataType": attribute.type, key: attribute.value}
        return converted


def parse_notification(body: Any) -> SnsNotification | None:
    """
    Parse a queue message body as an SNS notification envelope.

    Returns:
        The envelope, or None when the body is not one
    """
    if not isinstance(body, str | bytes) or not body:
        return None
    try:
        envelope = SnsNotification.model_validate_json(body)
    except ValidationError:
        return None
    if envelope.type != NOTIFICATION_TYPE:
        logger.debug("Ignoring SNS envelope of type %s", envelope.type)
        return None
    return envelope


def is_wrapped_delivery(body: Any) -> bool:
    """Check whether a queue message body is an SNS notification envelope."""
    return parse_notification(body) is not None


__all__ = [
    "EnvelopeAttribute",
    "NOTIFICATION_TYPE",
    "SnsNotification",
    "is_wrapped_delivery",
    "parse_notification",
]
