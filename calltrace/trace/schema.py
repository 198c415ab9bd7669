"""Record definitions for the call trace log.

This module defines the call event consumed from an interception source,
the lifecycle states of a trace session, and the fixed strings that make up
the log format.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

# Header line written once at the top of every trace log.
HEADER = (
    "entity,caller_entity,filepath,lineno,method_name,"
    "method_level,caller_method_name,caller_method_level\n"
)

# Column names, in the order they appear on a data line.
COLUMNS = tuple(HEADER.strip().split(","))

# Rendered in place of a caller field the interception source could not resolve.
UNKNOWN = "<UNKNOWN>"

# Prefix of an out-of-band comment line.
MARK_PREFIX = "--- "

CLASS_LEVEL = "class"
INSTANCE_LEVEL = "instance"


@dataclass(frozen=True)
class CallEvent:
    """
    One observed method invocation plus its caller's location.

    Produced by an interception source and read-only to everything else.

    Attributes:
        receiver_class_name: Class of the object whose method was invoked
        caller_class_name: Class of the code performing the call, if known
        caller_path: Source file of the call site, if known
        caller_lineno: Line number of the call site
        method_name: Name of the invoked method
        caller_method_name: Name of the enclosing method at the call site, if known
        is_singleton_call: True if the invoked method is class-level
        is_singleton_caller: True if the enclosing caller method is class-level
        receiver_identity: id() of the receiving object, used for self-exclusion only
    """
    receiver_class_name: str
    caller_class_name: Optional[str]
    caller_path: Optional[str]
    caller_lineno: int
    method_name: str
    caller_method_name: Optional[str]
    is_singleton_call: bool = False
    is_singleton_caller: bool = False
    receiver_identity: Optional[int] = None


class SessionState(str, enum.Enum):
    """Lifecycle state of a trace session."""

    OPEN = "open"
    TRACING = "tracing"
    CLOSED = "closed"


def method_level(is_singleton: bool) -> str:
    """Render a singleton flag as a method level."""
    return CLASS_LEVEL if is_singleton else INSTANCE_LEVEL
