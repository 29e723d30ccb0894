"""Library exceptions for the tracecarrier package."""


class TraceCarrierError(Exception):
    """Base exception for tracecarrier library."""

    pass


class CapacityExceededError(TraceCarrierError):
    """
    Raised when writing attributes would exceed the transport attribute limit.

    This error is recoverable: the producer may drop lower-priority
    application attributes and retry, or fail the publish. The attribute set
    is left exactly as it was before the failed call.

    Attributes:
        limit: Maximum number of attributes the transport accepts
        current: Number of attributes already present
        requested: Number of new attribute names the call tried to add
    """

    def __init__(self, limit: int, current: int, requested: int) -> None:
        self.limit = limit
        self.current = current
        self.requested = requested
        super().__init__(
            f"Message attribute capacity exceeded: {current} present, "
            f"{requested} requested, limit is {limit}"
        )


class InvalidAttributeError(TraceCarrierError):
    """Raised when an attribute name or value violates transport constraints."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid message attribute {name!r}: {reason}")


class PassthroughDeliveryError(TraceCarrierError):
    """
    Raised when raw (passthrough) delivery could not be confirmed.

    Trace context only survives the topic to queue hop when the subscription
    delivers message attributes unchanged. Enable ``RawMessageDelivery`` on
    the subscription.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Passthrough delivery not confirmed: {reason}")


class ConfigurationError(TraceCarrierError):
    """Raised when publisher or consumer configuration is missing or invalid."""

    pass


class PublishError(TraceCarrierError):
    """Raised when the transport rejects a publish call."""

    pass


class ReceiveError(TraceCarrierError):
    """Raised when receiving from or deleting on the queue fails."""

    pass
