"""Process and thread affinity for trace sinks.

A trace session can outlive an ``os.fork()``. The child then holds a copy of
the parent's file object, including any buffered lines not yet flushed. If
both processes flushed that buffer the shared file would get duplicated or
interleaved partial lines, so I/O is only ever performed by the process (and,
for mark/close, the thread) that created the session.
"""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import IO, Optional, Union

logger = logging.getLogger(__name__)


class AffinityGuard:
    """Remembers which process and thread own a session."""

    __slots__ = ("pid", "thread_id")

    def __init__(self) -> None:
        self.pid = os.getpid()
        self.thread_id = threading.get_ident()

    def owns_process(self) -> bool:
        return os.getpid() == self.pid

    def owns_thread(self) -> bool:
        return threading.get_ident() == self.thread_id

    def is_owner(self) -> bool:
        return self.owns_process() and self.owns_thread()

    def __repr__(self) -> str:
        return f"AffinityGuard(pid={self.pid}, thread_id={self.thread_id})"


class OwnedSink:
    """
    A file opened by a trace session from a path, tagged with the creating pid.

    Releasing the sink in the creating process closes it normally. In any other
    process the file descriptor is redirected to the null device before the
    file object is closed, so lines buffered before the fork are written
    exactly once (by the parent). Releasing also happens when the wrapper is
    garbage collected.
    """

    def __init__(self, path: Union[str, os.PathLike], encoding: str = "utf-8"):
        self.path = Path(path)
        self.pid = os.getpid()
        self.stream: Optional[IO[str]] = None
        self.stream = open(self.path, "w", encoding=encoding)

    @property
    def closed(self) -> bool:
        return self.stream is None or self.stream.closed

    def release(self) -> None:
        stream = self.stream
        if stream is None:
            return
        self.stream = None
        if os.getpid() == self.pid:
            stream.close()
            return
        if stream.closed:
            return
        logger.debug("Dropping inherited trace sink %s in pid %s without flushing", self.path, os.getpid())
        _drop_without_flush(stream)

    def __enter__(self) -> OwnedSink:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self) -> None:
        self.release()


def _drop_without_flush(stream: IO[str]) -> None:
    """Point the descriptor behind ``stream`` at the null device, then close it.

    Whatever is still buffered in ``stream`` is flushed into ``os.devnull``
    instead of the shared trace file.
    """
    devnull = os.open(os.devnull, os.O_WRONLY)
    try:
        os.dup2(devnull, stream.fileno())
    finally:
        os.close(devnull)
    stream.close()
