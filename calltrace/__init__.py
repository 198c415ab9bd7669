"""calltrace: log the method calls a Python program makes.

Example:
    from calltrace import TraceSession

    with TraceSession("dog_trace.csv", class_whitelist=["Dog"]) as session:
        session.trace(Dog().bark)
"""
from __future__ import annotations

from calltrace.trace import (
    HEADER,
    UNKNOWN,
    CallEvent,
    CallTraceError,
    FilterConfig,
    FilterConfigError,
    SessionClosedError,
    SessionState,
    TraceSession,
    load_trace,
    record,
)

__version__ = "0.1.0"

__all__ = [
    "TraceSession",
    "record",
    "CallEvent",
    "SessionState",
    "FilterConfig",
    "load_trace",
    "HEADER",
    "UNKNOWN",
    "CallTraceError",
    "FilterConfigError",
    "SessionClosedError",
]
