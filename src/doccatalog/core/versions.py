"""Descending version ordering used to find the latest component version."""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable

_SEMANTIC_RX = re.compile(r"^v?(\d+(?:\.[^.\-]+)*)(?:-(.+))?$")


def _is_number(segment: str) -> bool:
    return segment.isdigit()


def _compare_segments(a: list[str], b: list[str]) -> int:
    """Ascending comparison; numbers outrank words, words compare as equal."""
    for idx in range(max(len(a), len(b))):
        sa = a[idx] if idx < len(a) else "0"
        sb = b[idx] if idx < len(b) else "0"
        a_num, b_num = _is_number(sa), _is_number(sb)
        if a_num and b_num:
            diff = int(sa) - int(sb)
            if diff:
                return 1 if diff > 0 else -1
        elif a_num:
            return 1
        elif b_num:
            return -1
    return 0


def _compare_prerelease(a: str, b: str) -> int:
    pa, pb = a.split("."), b.split(".")
    for idx in range(max(len(pa), len(pb))):
        if idx >= len(pa):
            return -1
        if idx >= len(pb):
            return 1
        sa, sb = pa[idx], pb[idx]
        if sa == sb:
            continue
        if _is_number(sa) and _is_number(sb):
            return 1 if int(sa) > int(sb) else -1
        if _is_number(sa):
            return -1
        if _is_number(sb):
            return 1
        return 1 if sa > sb else -1
    return 0


def _compare_named(a: str, b: str) -> int:
    ka, kb = (a.lower(), a.swapcase()), (b.lower(), b.swapcase())
    if ka == kb:
        return 0
    return 1 if ka > kb else -1


def version_compare_desc(a: str, b: str) -> int:
    """Comparator sorting versions from newest to oldest.

    Named (non-semantic) versions sort before semantic ones and among
    themselves in reverse case-insensitive order. Semantic versions
    (optionally prefixed with ``v``) compare segment by segment, numbers
    outranking words; a final release sorts before its pre-releases.
    """
    if a == b:
        return 0
    ma, mb = _SEMANTIC_RX.match(a), _SEMANTIC_RX.match(b)
    if not ma and not mb:
        return -_compare_named(a, b)
    if not ma:
        return -1
    if not mb:
        return 1
    cmp = _compare_segments(ma.group(1).split("."), mb.group(1).split("."))
    if cmp:
        return -cmp
    pre_a, pre_b = ma.group(2), mb.group(2)
    if pre_a is None and pre_b is None:
        return 0
    if pre_a is None:
        return -1
    if pre_b is None:
        return 1
    return -_compare_prerelease(pre_a, pre_b)


def sort_versions_desc(versions: Iterable[str]) -> list[str]:
    return sorted(versions, key=cmp_to_key(version_compare_desc))


def is_semantic_version(version: str) -> bool:
    return _SEMANTIC_RX.match(version) is not None
