"""Trace sessions: filter intercepted calls and stream them to a sink."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import IO, Any, Callable, Iterator, Optional, TypeVar, Union

from calltrace.trace.encoder import RecordEncoder
from calltrace.trace.errors import SessionClosedError
from calltrace.trace.filters import FilterConfig, accepts
from calltrace.trace.guard import AffinityGuard, OwnedSink
from calltrace.trace.schema import HEADER, MARK_PREFIX, CallEvent, SessionState
from calltrace.trace.source import CallObserver, InterceptionSource, ProfileHookSource

logger = logging.getLogger(__name__)

T = TypeVar("T")
Destination = Union[str, "os.PathLike[str]", IO[str]]
SourceFactory = Callable[[CallObserver], InterceptionSource]


class TraceSession(CallObserver):
    """
    Records method calls made while tracing is active.

    Lifecycle: ``open`` (sink ready, not tracing) <-> ``tracing`` -> ``closed``.
    A session writes the log header when it is created and is closed for good
    once ``close()`` has run in the owning process and thread.

    Args:
        destination: A path to create, or a writable text stream. Streams
            stay owned by the caller and are never closed by the session.
        class_whitelist: Patterns a receiver or caller class must match
        class_blacklist: Patterns excluding a receiver or caller class
        path_blacklist: Patterns excluding a caller source path
        source: Factory building the interception source from the session
    """

    def __init__(
        self,
        destination: Destination,
        class_whitelist: Any = None,
        class_blacklist: Any = None,
        path_blacklist: Any = None,
        source: Optional[SourceFactory] = None,
    ):
        self.filters = FilterConfig(
            class_whitelist=class_whitelist,
            class_blacklist=class_blacklist,
            path_blacklist=path_blacklist,
        )
        self.guard = AffinityGuard()
        self._encoder = RecordEncoder()
        self._closed = False

        self._owned: Optional[OwnedSink] = None
        if isinstance(destination, (str, os.PathLike)):
            self._owned = OwnedSink(destination)
            self.sink: IO[str] = self._owned.stream
        else:
            self.sink = destination

        try:
            self._write(HEADER)
            self.source: InterceptionSource = (source or ProfileHookSource)(self)
        except BaseException:
            if self._owned is not None:
                self._owned.release()
            raise
        logger.info("Opened trace session on %s", self._describe_sink())

    # ===== Lifecycle =====

    def start(self) -> None:
        if self._closed:
            raise SessionClosedError("Cannot start tracing on a closed session")
        if not self.source.is_active():
            logger.debug("Starting call interception")
        self.source.start()

    def stop(self) -> None:
        self.source.stop()

    def trace(self, work: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run ``work`` with tracing active and return its result.

        Tracing is stopped on every exit path, including exceptions raised
        by ``work``, which propagate unchanged.
        """
        self.start()
        try:
            return work(*args, **kwargs)
        finally:
            self.stop()

    @contextmanager
    def tracing(self) -> Iterator[TraceSession]:
        """Context manager form of ``trace``."""
        self.start()
        try:
            yield self
        finally:
            self.stop()

    def mark(self, message: str = "") -> None:
        """Write a ``--- message`` comment line to the log."""
        if self._closed:
            return
        was_tracing = self.source.is_active()
        if was_tracing:
            # the write itself must not be recorded
            self.source.stop()
        try:
            if self.guard.is_owner():
                self._write(f"{MARK_PREFIX}{message}\n")
            else:
                logger.debug("Dropped mark %r from a non-owning process or thread", message)
        finally:
            if was_tracing:
                self.source.start()

    def close(self) -> bool:
        """Stop tracing and close the sink. Closing twice is harmless."""
        self.stop()
        if self._closed:
            return True
        if not self.guard.is_owner():
            logger.debug("Ignoring close() from a non-owning process or thread")
            return True
        if self._owned is not None:
            self._owned.release()
        self._closed = True
        logger.info("Closed trace session on %s", self._describe_sink())
        return True

    def state(self) -> SessionState:
        if self.closed:
            return SessionState.CLOSED
        return SessionState.TRACING if self.source.is_active() else SessionState.OPEN

    @property
    def closed(self) -> bool:
        return self._closed or bool(getattr(self.sink, "closed", False))

    def __enter__(self) -> TraceSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ===== Call handling =====

    def on_call(self, event: CallEvent) -> None:
        if not accepts(event, self.filters, self):
            return
        self._write(self._encoder.encode(event))

    def _write(self, text: str) -> None:
        # Threads of the owning process may write; a forked child may not.
        if self.guard.owns_process():
            self.sink.write(text)

    def _describe_sink(self) -> str:
        if self._owned is not None:
            return str(self._owned.path)
        return getattr(self.sink, "name", type(self.sink).__name__)

    def __repr__(self) -> str:
        return f"<TraceSession {self._describe_sink()} state={self.state().value}>"


def record(destination: Destination, work: Callable[[TraceSession], Any], **filters: Any) -> TraceSession:
    """
    Trace ``work(session)`` into ``destination`` and return the session.

    When ``destination`` is a path the log file is closed before returning;
    a stream passed in by the caller is left open.

    Example:
        session = record("dog_trace.csv", lambda s: Dog().bark(), class_whitelist=["Dog"])
    """
    session = TraceSession(destination, **filters)
    try:
        session.trace(work, session)
    finally:
        if isinstance(destination, (str, os.PathLike)):
            session.close()
    return session
