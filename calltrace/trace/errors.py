"""Exceptions raised by the call trace layer."""
from __future__ import annotations


class CallTraceError(Exception):
    """Base class for errors raised by calltrace."""
    pass


class FilterConfigError(CallTraceError, ValueError):
    """Raised when a filter rule is built from something that is not a pattern.

    Filter configuration is validated when a session is constructed, never
    lazily on the first intercepted call.
    """
    pass


class SessionClosedError(CallTraceError, RuntimeError):
    """Raised when a closed trace session is asked to start tracing again."""
    pass
