"""Shared fixtures for calltrace tests."""
from __future__ import annotations

from typing import Any

import pytest

from calltrace.trace import CallEvent, InterceptionSource


class FakeSource(InterceptionSource):
    """Interception source driven by hand: tests push events with emit()."""

    def __init__(self, observer):
        super().__init__(observer)
        self.active = False
        self.starts = 0
        self.stops = 0

    def start(self) -> None:
        if not self.active:
            self.starts += 1
        self.active = True

    def stop(self) -> None:
        if self.active:
            self.stops += 1
        self.active = False

    def is_active(self) -> bool:
        return self.active

    def emit(self, event: CallEvent) -> None:
        if self.active:
            self.observer.on_call(event)


def build_event(**overrides: Any) -> CallEvent:
    fields = dict(
        receiver_class_name="Noisemaker",
        caller_class_name="Dog",
        caller_path="/app/dog.rb",
        caller_lineno=5,
        method_name="speak",
        caller_method_name="bark",
        is_singleton_call=True,
        is_singleton_caller=False,
        receiver_identity=None,
    )
    fields.update(overrides)
    return CallEvent(**fields)


@pytest.fixture
def fake_source():
    """The FakeSource class, to pass as a TraceSession source factory."""
    return FakeSource


@pytest.fixture
def make_event():
    """Factory for CallEvents defaulting to Dog#bark calling Noisemaker.speak."""
    return build_event
