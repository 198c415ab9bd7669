"""Trace layer package: call filtering, log encoding and trace sessions.

Exports:
    - TraceSession: Records filtered method calls to a sink
    - record: One-shot helper tracing a callable into a destination
    - CallEvent: One intercepted call
    - SessionState: open / tracing / closed
    - FilterConfig, PatternRule, accepts: Whitelist/blacklist rules
    - RecordEncoder, encode: Log line encoding
    - AffinityGuard, OwnedSink: Process and thread ownership of sinks
    - CallObserver, InterceptionSource, ProfileHookSource: Call interception
    - load_trace: Read a trace log back into a DataFrame
    - HEADER, UNKNOWN: Fixed log strings
"""
from __future__ import annotations

from calltrace.trace.encoder import RecordEncoder, encode
from calltrace.trace.errors import CallTraceError, FilterConfigError, SessionClosedError
from calltrace.trace.filters import FilterConfig, PatternRule, accepts
from calltrace.trace.guard import AffinityGuard, OwnedSink
from calltrace.trace.reader import load_trace
from calltrace.trace.schema import HEADER, UNKNOWN, CallEvent, SessionState
from calltrace.trace.session import TraceSession, record
from calltrace.trace.source import CallObserver, InterceptionSource, ProfileHookSource

__all__ = [
    "TraceSession",
    "record",
    "CallEvent",
    "SessionState",
    "FilterConfig",
    "PatternRule",
    "accepts",
    "RecordEncoder",
    "encode",
    "AffinityGuard",
    "OwnedSink",
    "CallObserver",
    "InterceptionSource",
    "ProfileHookSource",
    "load_trace",
    "HEADER",
    "UNKNOWN",
    "CallTraceError",
    "FilterConfigError",
    "SessionClosedError",
]
