"""Ordered include/exclude pattern matching for ref names and paths."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .utils import brace_expand

_MATCH_ALL_RX = re.compile(r".*", re.DOTALL)


@dataclass(frozen=True)
class CompiledPattern:
    pattern: str
    rx: re.Pattern[str]
    negated: bool = False

    def test(self, candidate: str) -> bool:
        return self.rx.fullmatch(candidate) is not None


MATCH_ALL = CompiledPattern("*", _MATCH_ALL_RX)

OnMatch = Callable[[str, CompiledPattern], Optional[str]]
Matcher = Callable[..., Optional[str]]


def glob_to_regex(pattern: str, *, globstar: bool = True) -> str:
    """Translate one brace-free glob into a regex fragment.

    ``*`` stays within a ``/``-delimited segment, ``**`` crosses segments when
    ``globstar`` is set, ``?`` is a single character, a backslash escapes the
    next character. A wildcard never matches a leading dot in a segment.
    """
    out: list[str] = []
    i = 0
    at_segment_start = True
    while i < len(pattern):
        ch = pattern[i]
        if at_segment_start and ch != ".":
            out.append(r"(?!\.)")
        at_segment_start = False
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            if globstar and pattern.startswith("**", i):
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "/":
            out.append("/")
            at_segment_start = True
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)


def compile_pattern(pattern: str) -> CompiledPattern:
    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    if body in ("*", "**"):
        return CompiledPattern(body, _MATCH_ALL_RX, negated)
    alternatives = brace_expand(body)
    if any(alt in ("*", "**") for alt in alternatives):
        return CompiledPattern(body, _MATCH_ALL_RX, negated)
    source = "|".join(glob_to_regex(alt) for alt in alternatives)
    return CompiledPattern(body, re.compile(f"(?:{source})", re.DOTALL), negated)


class PatternCache:
    """Compiled patterns keyed by their literal text, shared across repositories."""

    def __init__(self) -> None:
        self._compiled: dict[str, CompiledPattern] = {}
        self._lock = threading.Lock()

    def compile(self, pattern: str) -> CompiledPattern:
        with self._lock:
            compiled = self._compiled.get(pattern)
            if compiled is None:
                compiled = self._compiled[pattern] = compile_pattern(pattern)
            return compiled

    def __contains__(self, pattern: str) -> bool:
        return pattern in self._compiled

    def __len__(self) -> int:
        return len(self._compiled)


def create_matcher(
    patterns: Iterable[str], cache: PatternCache | None = None
) -> Matcher:
    """Compile ``patterns`` into a predicate.

    Patterns are applied left to right. Once a candidate has matched, only
    negated patterns are consulted, and they can only veto; a later positive
    pattern may match the candidate again. If the first pattern is negated an
    implicit match-all pattern is prepended.

    The returned function takes ``(candidate, on_match=None)`` and returns the
    matched value or None. ``on_match(candidate, pattern)`` may map a
    symbolic candidate (such as ``HEAD``) to a concrete value; subsequent
    patterns are tested against both forms.
    """
    cache = cache if cache is not None else PatternCache()
    compiled = [cache.compile(pattern) for pattern in patterns]
    if compiled and compiled[0].negated:
        compiled.insert(0, MATCH_ALL)

    def match(candidate: str, on_match: OnMatch | None = None) -> str | None:
        matched: str | None = None
        symbolic: str | None = None
        for cp in compiled:
            vote = True
            if matched is not None:
                if not cp.negated:
                    continue
                vote = False
            elif cp.negated:
                continue
            hit = cp.test(candidate)
            if not hit and symbolic is not None and cp.test(symbolic):
                candidate, hit = symbolic, True
            if not hit:
                continue
            if on_match is not None:
                resolved = on_match(candidate, cp)
                if not resolved:
                    continue
                symbolic, candidate = candidate, resolved
            matched = candidate if vote else None
        return matched

    return match


def filter_refs(
    candidates: Iterable[str],
    patterns: Iterable[str],
    cache: PatternCache | None = None,
    on_match: OnMatch | None = None,
) -> list[str]:
    match = create_matcher(patterns, cache)
    accum: list[str] = []
    for candidate in candidates:
        matched = match(candidate, on_match)
        if matched is not None:
            accum.append(matched)
    return accum
