from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Callable, Iterator, Sequence

from ..runtime import get_verbose

logger = logging.getLogger(__name__)

GitRunner = Callable[..., "subprocess.CompletedProcess[bytes]"]

_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "", "LC_ALL": "C"}


def run_git(
    args: Sequence[str],
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess[bytes]:
    if get_verbose():
        logger.debug("running: %s", " ".join(_redact(args)))
    full_env = {**os.environ, **_GIT_ENV, **(env or {})}
    return subprocess.run(
        list(args), cwd=cwd, env=full_env, check=True, capture_output=True
    )


def _redact(args: Sequence[str]) -> list[str]:
    from .target import strip_credentials

    return [strip_credentials(arg) if "://" in arg else arg for arg in args]


@dataclass(frozen=True)
class TreeEntry:
    name: str
    oid: str
    is_dir: bool
    mode: str = ""


class GitRepository:
    """Read access to a git directory through the git CLI."""

    def __init__(
        self,
        gitdir: str,
        *,
        worktree: str | None = None,
        runner: GitRunner | None = None,
    ) -> None:
        self.gitdir = gitdir
        self.worktree = worktree
        self._runner = runner or run_git

    def __repr__(self) -> str:
        return f"GitRepository({self.gitdir!r}, worktree={self.worktree!r})"

    def run(self, *args: str, env: dict[str, str] | None = None) -> bytes:
        cmd = ["git", f"--git-dir={self.gitdir}"]
        if self.worktree:
            cmd.append(f"--work-tree={self.worktree}")
        return self._runner([*cmd, *args], env=env).stdout

    def run_text(self, *args: str, env: dict[str, str] | None = None) -> str:
        return self.run(*args, env=env).decode("utf-8", errors="replace")

    def _try_text(self, *args: str) -> str | None:
        try:
            return self.run_text(*args).strip()
        except subprocess.CalledProcessError:
            return None

    def is_bare(self) -> bool:
        return self.worktree is None

    def current_branch(self) -> str | None:
        """Short name of the branch HEAD points to, or None when detached."""
        return self._try_text("symbolic-ref", "--quiet", "--short", "HEAD") or None

    def remote_url(self, remote: str = "origin") -> str | None:
        return self._try_text("config", "--get", f"remote.{remote}.url") or None

    def _list_refs(self, prefix: str) -> list[str]:
        out = self.run_text(
            "for-each-ref", "--format=%(refname)", "--sort=refname", prefix
        )
        return [line for line in out.splitlines() if line]

    def list_branches(self) -> list[str]:
        return [ref[len("refs/heads/") :] for ref in self._list_refs("refs/heads/")]

    def list_remote_branches(self, remote: str = "origin") -> list[str]:
        prefix = f"refs/remotes/{remote}/"
        names = [ref[len(prefix) :] for ref in self._list_refs(prefix)]
        return [name for name in names if name != "HEAD"]

    def list_tags(self) -> list[str]:
        return [ref[len("refs/tags/") :] for ref in self._list_refs("refs/tags/")]

    def resolve_commit(self, ref: str) -> str | None:
        return self._try_text("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")

    def resolve_tree(self, ref: str) -> str | None:
        return self._try_text("rev-parse", "--verify", "--quiet", f"{ref}^{{tree}}")

    def lookup(self, tree_oid: str, path: str) -> str | None:
        """Object id of ``path`` inside ``tree_oid``, or None if it is absent."""
        if not path:
            return tree_oid
        return self._try_text("rev-parse", "--verify", "--quiet", f"{tree_oid}:{path}")

    def list_tree(self, tree_oid: str) -> list[TreeEntry]:
        try:
            out = self.run("ls-tree", "-z", tree_oid)
        except subprocess.CalledProcessError:
            return []
        return [entry for _, entry in _parse_ls_tree(out)]

    def walk_tree(self, tree_oid: str) -> Iterator[tuple[str, TreeEntry]]:
        """Yield ``(path, entry)`` for every blob below ``tree_oid``."""
        out = self.run("ls-tree", "-r", "-z", tree_oid)
        yield from _parse_ls_tree(out)

    def read_blob(self, oid: str) -> bytes:
        return self.run("cat-file", "blob", oid)


def _parse_ls_tree(out: bytes) -> Iterator[tuple[str, TreeEntry]]:
    for record in out.split(b"\0"):
        if not record:
            continue
        meta, _, raw_path = record.partition(b"\t")
        mode, kind, oid = meta.decode("ascii").split(" ", 2)
        path = raw_path.decode("utf-8", errors="surrogateescape")
        name = path.rsplit("/", 1)[-1]
        yield path, TreeEntry(name=name, oid=oid, is_dir=kind == "tree", mode=mode)
