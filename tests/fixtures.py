"""
Known trace context values shared across the test suite.

The traceparent below is the one used throughout: trace id of 32 ``a``,
parent span id of 16 ``b``, sampled.
"""

TRACE_ID_HEX = "a" * 32
SPAN_ID_HEX = "b" * 16
TRACEPARENT = f"00-{TRACE_ID_HEX}-{SPAN_ID_HEX}-01"
TRACESTATE = "vendor=value"

TRACE_ID = int(TRACE_ID_HEX, 16)
SPAN_ID = int(SPAN_ID_HEX, 16)
