"""Lazy, segment-by-segment resolution of path globs against a tree."""

from __future__ import annotations

import re

from ..core.matcher import compile_pattern, glob_to_regex
from ..core.utils import brace_expand
from .tree import ContentTree, join_path

_MAGIC_RX = re.compile(r"[*{]")
_GLOBSTAR = "**"


def _literal_question_marks(pattern: str) -> str:
    return pattern.replace("?", "\\?")


def _segment_matcher(patterns: list[str]) -> re.Pattern[str]:
    source = "|".join(
        glob_to_regex(_literal_question_marks(p), globstar=False) for p in patterns
    )
    return re.compile(f"(?:{source})", re.DOTALL)


def _extract_magic_base(base: str, segments: list[str]) -> tuple[str, list[str]]:
    """Fold literal segments following ``base`` into it, stopping at the first glob."""
    while segments and not _MAGIC_RX.search(segments[0]):
        base = f"{base}/{segments[0]}"
        segments = segments[1:]
    return base, segments


def _descend(
    tree: ContentTree, path: str, rest: list[str], is_dir: bool, globbed: bool
) -> list[str]:
    if not rest:
        return [path]
    if not is_dir:
        return []
    return _glob(tree, rest, path, globbed)


def _literal_alternatives(
    tree: ContentTree, alternatives: list[str], rest: list[str], path: str, globbed: bool
) -> list[str]:
    if not rest and not globbed:
        return [join_path(path, alt) for alt in alternatives]
    found: list[str] = []
    for alt in alternatives:
        child = join_path(path, alt)
        entry = tree.lookup(child)
        if entry is not None:
            found.extend(_descend(tree, child, rest, entry.is_dir, globbed))
    return found


def _globstar(tree: ContentTree, rest: list[str], path: str) -> list[str]:
    if not rest:
        return [join_path(path, it) for it in tree.walk(path)]
    found = _glob(tree, rest, path, True)
    for entry in tree.list_entries(path):
        if entry.is_dir and not entry.name.startswith("."):
            found.extend(_globstar(tree, rest, join_path(path, entry.name)))
    return found


def _glob(
    tree: ContentTree, segments: list[str], path: str, globbed: bool
) -> list[str]:
    segment, rest = segments[0], segments[1:]
    if segment == _GLOBSTAR:
        return _globstar(tree, rest, path)
    if not _MAGIC_RX.search(segment):
        literal, rest = _extract_magic_base(segment, rest)
        return _literal_alternatives(tree, [literal], rest, path, globbed)

    explicit: list[str] = []
    if segment == "*":
        def is_match(name: str) -> bool:
            return not name.startswith(".")
    elif "{" in segment:
        alternatives = brace_expand(segment)
        explicit = [alt for alt in alternatives if "*" not in alt]
        wildcards = [alt for alt in alternatives if "*" in alt]
        if not wildcards:
            return _literal_alternatives(tree, explicit, rest, path, globbed or bool(rest))
        rx = _segment_matcher(wildcards)

        def is_match(name: str) -> bool:
            return rx.fullmatch(name) is not None
    else:
        rx = _segment_matcher([segment])

        def is_match(name: str) -> bool:
            return rx.fullmatch(name) is not None

    discovered: list[str] = []
    for entry in tree.list_entries(path):
        if entry.name in explicit or not is_match(entry.name):
            continue
        child = join_path(path, entry.name)
        discovered.extend(_descend(tree, child, rest, entry.is_dir, True))
    explicit_paths = _literal_alternatives(tree, explicit, rest, path, globbed or bool(rest))
    return explicit_paths + discovered


def resolve_path_globs(
    tree: ContentTree, patterns: list[str], base: str | None = None
) -> list[str]:
    """Resolve ``patterns`` to file and directory paths within ``tree``.

    Only segments containing ``*`` or ``{`` trigger a directory listing;
    literal patterns are returned as given. Every segment but the last must
    name a directory, so alternatives that do not exist drop out silently.
    A ``**`` segment spans any number of directories. Negated patterns
    (``!``) filter the paths accumulated so far. ``*`` never matches a
    hidden entry.
    """
    root = (base or "").strip("/")
    resolved: list[str] = []
    for pattern in patterns:
        if pattern.startswith("!"):
            if resolved:
                negation = compile_pattern(_literal_question_marks(pattern[1:]))
                resolved = [
                    it
                    for it in resolved
                    if not negation.test(_relative_to(root, it))
                ]
        elif _MAGIC_RX.search(pattern):
            found = _glob(tree, pattern.strip("/").split("/"), root, False)
            resolved.extend(found)
        else:
            resolved.append(join_path(root, pattern.strip("/")))
    resolved = list(dict.fromkeys(resolved))
    if root:
        return [_relative_to(root, it) for it in resolved]
    return resolved


def _relative_to(root: str, path: str) -> str:
    if root and path.startswith(root + "/"):
        return path[len(root) + 1 :]
    return "" if path == root else path
