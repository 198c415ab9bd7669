"""Whitelist and blacklist rules deciding which call events are recorded.

A rule is built once, when a session is constructed, and then only ever
asked ``matches(candidate)``. Plain strings match as literal substrings;
compiled regular expressions are searched as given.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from calltrace.trace.errors import FilterConfigError
from calltrace.trace.schema import CallEvent


class PatternRule:
    """
    A match rule over class names or paths.

    A rule is either constant (matches everything or nothing) or a set of
    compiled patterns searched anywhere in the candidate.
    """

    __slots__ = ("_patterns", "_constant")

    def __init__(self, patterns: Tuple["re.Pattern[str]", ...] = (), constant: Optional[bool] = None):
        self._patterns = patterns
        self._constant = constant

    @classmethod
    def always(cls) -> PatternRule:
        return cls(constant=True)

    @classmethod
    def never(cls) -> PatternRule:
        return cls(constant=False)

    @classmethod
    def build(cls, value: Any, *, empty_matches: bool) -> PatternRule:
        """
        Build a rule from user input.

        Args:
            value: None, a string, a compiled pattern, or an iterable of those
            empty_matches: What an empty rule matches (True for whitelists)

        Raises:
            FilterConfigError: If value contains anything that is not a pattern
        """
        if isinstance(value, PatternRule):
            return value
        if value is None:
            items: list = []
        elif isinstance(value, (str, re.Pattern)):
            items = [value]
        else:
            try:
                items = list(value)
            except TypeError:
                raise FilterConfigError(
                    f"Expected a string, a compiled pattern or a list of them, got {value!r}"
                ) from None

        compiled = []
        for item in items:
            if isinstance(item, re.Pattern):
                compiled.append(item)
            elif isinstance(item, str):
                compiled.append(re.compile(re.escape(item)))
            else:
                raise FilterConfigError(f"Filter patterns must be strings or re.Pattern, got {item!r}")

        if not compiled:
            return cls.always() if empty_matches else cls.never()
        return cls(patterns=tuple(compiled))

    def matches(self, candidate: Optional[str]) -> bool:
        if self._constant is not None:
            return self._constant
        if candidate is None:
            return False
        for pattern in self._patterns:
            if pattern.search(candidate):
                return True
        return False

    def __repr__(self) -> str:
        if self._constant is not None:
            return f"PatternRule(constant={self._constant})"
        return f"PatternRule({[p.pattern for p in self._patterns]!r})"


@dataclass(frozen=True)
class FilterConfig:
    """
    Immutable rule set for a trace session.

    An empty whitelist accepts every class; empty blacklists reject nothing.

    Attributes:
        class_whitelist: Record only calls whose receiver or caller class matches
        class_blacklist: Never record calls whose receiver or caller class matches
        path_blacklist: Never record calls made from a matching source path
    """
    class_whitelist: Any = None
    class_blacklist: Any = None
    path_blacklist: Any = None

    def __post_init__(self) -> None:
        """Compile every rule so bad input fails here and not mid-trace."""
        object.__setattr__(self, "class_whitelist", PatternRule.build(self.class_whitelist, empty_matches=True))
        object.__setattr__(self, "class_blacklist", PatternRule.build(self.class_blacklist, empty_matches=False))
        object.__setattr__(self, "path_blacklist", PatternRule.build(self.path_blacklist, empty_matches=False))


def accepts(event: CallEvent, config: FilterConfig, observer: Any = None) -> bool:
    """
    Decide whether a call event should be recorded.

    Rules are checked in order and the first rejection wins:
      1. the receiver is the observing session itself
      2. the caller class is the receiver class
      3. the class blacklist matches the receiver or caller class
      4. the class whitelist matches neither the receiver nor caller class
      5. the path blacklist matches the caller path

    An absent caller class never equals the receiver and contributes no match
    of its own to rules 3 and 4.
    """
    if observer is not None and event.receiver_identity == id(observer):
        return False

    receiver = event.receiver_class_name
    caller = event.caller_class_name
    if caller == receiver:
        return False

    blacklist = config.class_blacklist
    if blacklist.matches(receiver) or blacklist.matches(caller):
        return False

    whitelist = config.class_whitelist
    if not (whitelist.matches(receiver) or whitelist.matches(caller)):
        return False

    if config.path_blacklist.matches(event.caller_path or ""):
        return False
    return True
