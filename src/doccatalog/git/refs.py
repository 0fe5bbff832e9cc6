from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..core.matcher import CompiledPattern, PatternCache, filter_refs
from .cache import ResolvedSource

HEAD = "HEAD"


@dataclass(frozen=True)
class Ref:
    name: str
    reftype: str
    qualified: str
    remote: str | None = None
    worktree_path: str | None = None

    @property
    def is_branch(self) -> bool:
        return self.reftype == "branch"


def _branch_candidates(resolved: ResolvedSource) -> dict[str, Ref]:
    repository = resolved.repository
    candidates: dict[str, Ref] = {}
    for name in repository.list_branches():
        candidates[name] = Ref(name, "branch", f"refs/heads/{name}")
    if resolved.local:
        for name in repository.list_remote_branches(resolved.remote):
            candidates.setdefault(
                name,
                Ref(
                    name,
                    "branch",
                    f"refs/remotes/{resolved.remote}/{name}",
                    remote=resolved.remote,
                ),
            )
    return candidates


def enumerate_refs(
    resolved: ResolvedSource,
    branches: Sequence[str],
    tags: Sequence[str],
    cache: PatternCache | None = None,
) -> list[Ref]:
    """Select the refs of ``resolved`` matched by the branch and tag patterns.

    ``HEAD`` stands for the current branch of a worktree, or the default
    branch of a remote repository. A detached worktree yields a ref named
    ``HEAD``. An empty pattern list selects nothing from that category.
    """
    use_worktree = resolved.worktree_path is not None and resolved.source.worktrees
    current = resolved.current_branch
    refs: list[Ref] = []
    seen: set[tuple[str, str]] = set()

    def add(ref: Ref) -> None:
        key = (ref.reftype, ref.name)
        if key not in seen:
            seen.add(key)
            refs.append(ref)

    if branches:
        candidates = _branch_candidates(resolved)

        def resolve_head(candidate: str, _pattern: CompiledPattern) -> str:
            if candidate == HEAD:
                return current or HEAD
            return candidate

        names = filter_refs(
            [HEAD, *sorted(candidates)], branches, cache, on_match=resolve_head
        )
        for name in names:
            if name == HEAD:
                add(
                    Ref(
                        HEAD,
                        "branch",
                        HEAD,
                        worktree_path=resolved.worktree_path if use_worktree else None,
                    )
                )
                continue
            ref = candidates.get(name)
            if ref is None:
                # current branch of a fresh repository with no commits of its own
                continue
            if use_worktree and name == current:
                ref = Ref(
                    ref.name,
                    ref.reftype,
                    f"refs/heads/{name}",
                    worktree_path=resolved.worktree_path,
                )
            add(ref)

    if tags:
        for name in filter_refs(resolved.repository.list_tags(), tags, cache):
            add(Ref(name, "tag", f"refs/tags/{name}"))

    return refs
