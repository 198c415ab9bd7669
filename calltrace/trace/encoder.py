"""Encoding of accepted call events into trace log lines."""
from __future__ import annotations

from typing import List

from calltrace.trace.schema import UNKNOWN, CallEvent, method_level


def escape_csv_string(value: str) -> str:
    """Double every embedded double quote."""
    return value.replace('"', '""') if '"' in value else value


class RecordEncoder:
    """
    Turns a call event into one quoted, newline-terminated log line.

    Runs once per recorded call, so the parts list is kept between calls
    and cleared instead of reallocated. The result only depends on the event.
    """

    def __init__(self) -> None:
        self._parts: List[str] = []

    def encode(self, event: CallEvent) -> str:
        if event.caller_method_name is None:
            caller_method_name = UNKNOWN
            caller_method_level = UNKNOWN
        else:
            caller_method_name = escape_csv_string(event.caller_method_name)
            caller_method_level = method_level(event.is_singleton_caller)

        caller_class_name = event.caller_class_name
        caller_class_name = UNKNOWN if caller_class_name is None else escape_csv_string(caller_class_name)

        parts = self._parts
        parts.clear()
        parts.append('"')
        parts.append(escape_csv_string(event.receiver_class_name))
        parts.append('","')
        parts.append(caller_class_name)
        parts.append('","')
        parts.append(escape_csv_string(event.caller_path or ""))
        parts.append('",')
        parts.append(str(event.caller_lineno))
        parts.append(',"')
        parts.append(escape_csv_string(event.method_name))
        parts.append('",')
        parts.append(method_level(event.is_singleton_call))
        parts.append(',"')
        parts.append(caller_method_name)
        parts.append('",')
        parts.append(caller_method_level)
        parts.append("\n")
        return "".join(parts)


_default_encoder = RecordEncoder()


def encode(event: CallEvent) -> str:
    """Encode an event with the module's shared encoder."""
    return _default_encoder.encode(event)
