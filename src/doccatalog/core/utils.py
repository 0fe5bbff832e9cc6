import re

_RANGE_RX = re.compile(r"^(-?\d+|[a-zA-Z])\.\.(-?\d+|[a-zA-Z])(?:\.\.(-?\d+))?$")


def _split_brace_options(s: str) -> list[str]:
    """Split brace options on top-level commas, leaving nested braces intact."""
    opts = []
    buf = ""
    depth = 0
    for ch in s:
        if ch == "," and depth == 0:
            opts.append(buf)
            buf = ""
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        buf += ch
    opts.append(buf)
    return opts


def _find_brace_group(pattern: str, start: int = 0) -> tuple[int, int] | None:
    idx = pattern.find("{", start)
    while idx != -1:
        depth = 0
        for i in range(idx, len(pattern)):
            if pattern[i] == "{":
                depth += 1
            elif pattern[i] == "}":
                depth -= 1
                if depth == 0:
                    return idx, i
        idx = pattern.find("{", idx + 1)
    return None


def expand_range(inside: str) -> list[str] | None:
    """Expand ``1..5``, ``a..e`` or ``1..9..2``; return None if not a range."""
    m = _RANGE_RX.match(inside)
    if not m:
        return None
    begin, end, step = m.group(1), m.group(2), m.group(3)
    step_size = abs(int(step)) if step else 1
    if step_size == 0:
        step_size = 1
    if begin.lstrip("-").isdigit() and end.lstrip("-").isdigit():
        lo, hi = int(begin), int(end)
        width = len(begin) if begin.startswith("0") and len(begin) > 1 else 0
        values = range(lo, hi + 1, step_size) if lo <= hi else range(lo, hi - 1, -step_size)
        return [str(v).zfill(width) for v in values]
    if len(begin) == 1 and len(end) == 1 and not begin.isdigit() and not end.isdigit():
        lo, hi = ord(begin), ord(end)
        values = range(lo, hi + 1, step_size) if lo <= hi else range(lo, hi - 1, -step_size)
        return [chr(v) for v in values]
    return None


def has_braces(pattern: str) -> bool:
    return _find_brace_group(pattern) is not None


def brace_expand(pattern: str) -> list[str]:
    """Expand shell-style brace patterns like {a,b,c} or {1..3} into multiple strings.

    A group with a single option that is not a range (e.g. ``{a}``) is kept
    literally, matching shell behavior.
    """
    group = _find_brace_group(pattern)
    if group is None:
        return [pattern]
    start, end = group
    inside = pattern[start + 1 : end]
    prefix = pattern[:start]
    rest = pattern[end + 1 :]
    options = _split_brace_options(inside)
    if len(options) == 1:
        ranged = expand_range(inside)
        if ranged is None:
            literal = pattern[: end + 1]
            return [literal + expanded for expanded in brace_expand(rest)]
        options = ranged
    out = []
    for opt in options:
        for expanded in brace_expand(opt + rest):
            out.append(prefix + expanded)
    return out
