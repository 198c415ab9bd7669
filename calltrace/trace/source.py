"""Call interception.

A trace session consumes calls through two small interfaces: it is itself a
``CallObserver`` and it drives an ``InterceptionSource`` that reports every
call to its observer, synchronously, while active.

``ProfileHookSource`` is the interception source used by default. It installs
a ``sys.setprofile`` hook on the thread that starts it and turns Python
function calls and builtin calls into ``CallEvent`` records.
"""
from __future__ import annotations

import dis
import inspect
import os
import sys
import types
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from calltrace.config.paths import PACKAGE_ROOT
from calltrace.trace.schema import CallEvent

# Calls made from or into calltrace's own modules are never reported.
_PACKAGE_DIR = str(PACKAGE_ROOT)


class CallObserver(ABC):
    """Receives one call event per intercepted call."""

    @abstractmethod
    def on_call(self, event: CallEvent) -> None:
        ...


class InterceptionSource(ABC):
    """
    Produces call events for an observer while active.

    Implementations must deliver events synchronously on the thread that
    made the call, and must tolerate ``start()`` / ``stop()`` being called
    when already started / stopped.
    """

    def __init__(self, observer: CallObserver):
        self.observer = observer

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def is_active(self) -> bool:
        ...


# (class name, method name, is class-level, receiver object)
FrameOwner = Tuple[str, str, bool, Any]

# Comprehension scopes that run to completion inside the frame defining them.
_INLINE_SCOPES = frozenset({"<listcomp>", "<dictcomp>", "<setcomp>"})

_RESUMABLE_FLAGS = inspect.CO_GENERATOR | inspect.CO_COROUTINE | inspect.CO_ASYNC_GENERATOR
_RESUME = dis.opmap.get("RESUME")
_YIELD_OPS = frozenset(dis.opmap[name] for name in ("YIELD_VALUE", "YIELD_FROM", "SEND") if name in dis.opmap)


def qualname_owner(qualname: str) -> Optional[str]:
    """
    Nearest class named in a qualified name, or None for module-level code.

    ``Dog.bark.<locals>.<listcomp>`` and ``Dog.bark.<locals>.helper`` both
    belong to ``Dog``; ``make.<locals>.Inner.run`` belongs to ``Inner``.
    """
    while True:
        head, sep, tail = qualname.rpartition(".<locals>.")
        owner = tail.rpartition(".")[0].rpartition(".")[2]
        if owner:
            return owner
        if not sep:
            return None
        qualname = head


def is_resumption(frame: types.FrameType) -> bool:
    """True when a generator or coroutine frame continues after a yield or await."""
    code = frame.f_code
    if not code.co_flags & _RESUMABLE_FLAGS:
        return False
    lasti = frame.f_lasti
    if lasti < 0:
        return False
    if _RESUME is None:
        # before 3.11 a fresh frame is the only one at -1
        return True
    op = code.co_code[lasti]
    if op == _RESUME:
        # low two oparg bits: 0 at function start, 1-3 after yield / yield from / await
        return code.co_code[lasti + 1] & 3 != 0
    return op in _YIELD_OPS


def describe_frame(frame: types.FrameType) -> FrameOwner:
    """Work out which class (or module) a running frame's code belongs to."""
    code = frame.f_code
    if code.co_argcount:
        first = code.co_varnames[0]
        if first == "self" or first == "cls":
            receiver = frame.f_locals.get(first)
            if first == "cls" and isinstance(receiver, type):
                return receiver.__name__, code.co_name, True, receiver
            if first == "self" and receiver is not None:
                return type(receiver).__name__, code.co_name, False, receiver

    qualname = getattr(code, "co_qualname", None)
    if qualname is not None:
        owner = qualname_owner(qualname)
    elif code.co_name in _INLINE_SCOPES and frame.f_back is not None:
        owner = describe_frame(frame.f_back)[0]
    else:
        owner = None
    if not owner:
        owner = frame.f_globals.get("__name__") or "<module>"
    return owner, code.co_name, True, None


def describe_builtin(func: Any) -> FrameOwner:
    """Work out the receiver of a builtin function or method."""
    name = getattr(func, "__name__", repr(func))
    bound = getattr(func, "__self__", None)
    if bound is None or isinstance(bound, types.ModuleType):
        module = getattr(bound, "__name__", None) or getattr(func, "__module__", None) or "builtins"
        return module, name, True, bound
    if isinstance(bound, type):
        return bound.__name__, name, True, bound
    return type(bound).__name__, name, False, bound


class ProfileHookSource(InterceptionSource):
    """
    Interception source built on ``sys.setprofile``.

    The hook is installed for the calling thread only. Any profile function
    already installed is put back by ``stop()``. A generator or coroutine is
    reported once, when it first starts running, not on every resume.
    """

    def __init__(self, observer: CallObserver):
        super().__init__(observer)
        self._hook: Callable[[types.FrameType, str, Any], None] = self._profile
        self._previous: Optional[Callable[..., Any]] = None
        self._internal: Dict[str, bool] = {}

    def start(self) -> None:
        if self.is_active():
            return
        self._previous = sys.getprofile()
        sys.setprofile(self._hook)

    def stop(self) -> None:
        if not self.is_active():
            return
        previous, self._previous = self._previous, None
        sys.setprofile(previous)

    def is_active(self) -> bool:
        return sys.getprofile() is self._hook

    def _is_internal(self, filename: str) -> bool:
        internal = self._internal.get(filename)
        if internal is None:
            internal = os.path.realpath(filename).startswith(_PACKAGE_DIR + os.sep)
            self._internal[filename] = internal
        return internal

    def _profile(self, frame: types.FrameType, event: str, arg: Any) -> None:
        if event == "call":
            if self._is_internal(frame.f_code.co_filename) or is_resumption(frame):
                return
            receiver_class, method, singleton, receiver = describe_frame(frame)
            caller_frame = frame.f_back
        elif event == "c_call":
            receiver_class, method, singleton, receiver = describe_builtin(arg)
            caller_frame = frame
        else:
            return

        if caller_frame is None:
            self.observer.on_call(CallEvent(
                receiver_class_name=receiver_class,
                caller_class_name=None,
                caller_path=None,
                caller_lineno=0,
                method_name=method,
                caller_method_name=None,
                is_singleton_call=singleton,
                is_singleton_caller=False,
                receiver_identity=id(receiver) if receiver is not None else None,
            ))
            return

        caller_path = caller_frame.f_code.co_filename
        if self._is_internal(caller_path):
            return
        caller_class, caller_method, caller_singleton, _ = describe_frame(caller_frame)
        self.observer.on_call(CallEvent(
            receiver_class_name=receiver_class,
            caller_class_name=caller_class,
            caller_path=caller_path,
            caller_lineno=caller_frame.f_lineno,
            method_name=method,
            caller_method_name=caller_method,
            is_singleton_call=singleton,
            is_singleton_caller=caller_singleton,
            receiver_identity=id(receiver) if receiver is not None else None,
        ))
