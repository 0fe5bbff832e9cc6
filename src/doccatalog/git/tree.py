"""Uniform read access to a worktree directory or a git tree object."""

from __future__ import annotations

import os
import posixpath
import threading
from typing import Iterator, Protocol

from .repository import GitRepository, TreeEntry

_SUBMODULE_MODE = "160000"


def join_path(parent: str, child: str) -> str:
    return f"{parent}/{child}" if parent else child


def _is_hidden(relpath: str) -> bool:
    return any(segment.startswith(".") for segment in relpath.split("/"))


class ContentTree(Protocol):
    def list_entries(self, path: str) -> list[TreeEntry]: ...
    def lookup(self, path: str) -> TreeEntry | None: ...
    def walk(self, path: str) -> Iterator[str]: ...
    def read(self, path: str) -> bytes: ...


class FsTree:
    """Directory on disk; paths are ``/``-separated and relative to ``root``."""

    def __init__(self, root: str) -> None:
        self.root = root

    def __repr__(self) -> str:
        return f"FsTree({self.root!r})"

    def abspath(self, path: str) -> str:
        return os.path.join(self.root, *path.split("/")) if path else self.root

    def list_entries(self, path: str) -> list[TreeEntry]:
        try:
            with os.scandir(self.abspath(path)) as it:
                entries = [
                    TreeEntry(name=e.name, oid="", is_dir=e.is_dir()) for e in it
                ]
        except (FileNotFoundError, NotADirectoryError):
            return []
        return sorted(entries, key=lambda e: e.name)

    def lookup(self, path: str) -> TreeEntry | None:
        full = self.abspath(path)
        if not os.path.exists(full):
            return None
        return TreeEntry(
            name=posixpath.basename(path), oid="", is_dir=os.path.isdir(full)
        )

    def walk(self, path: str) -> Iterator[str]:
        """Yield files below ``path`` (relative to it), skipping hidden entries."""
        top = self.abspath(path)
        for dirpath, dirnames, filenames in os.walk(top, followlinks=True):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            rel_dir = os.path.relpath(dirpath, top)
            rel_dir = "" if rel_dir == "." else rel_dir.replace(os.sep, "/")
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                yield join_path(rel_dir, filename)

    def read(self, path: str) -> bytes:
        with open(self.abspath(path), "rb") as f:
            return f.read()


class GitTree:
    """Tree object of a commit; directory listings are memoized."""

    def __init__(self, repository: GitRepository, tree_oid: str) -> None:
        self.repository = repository
        self.tree_oid = tree_oid
        self._listings: dict[str, list[TreeEntry]] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"GitTree({self.repository.gitdir!r}, {self.tree_oid[:12]!r})"

    def _dir_oid(self, path: str) -> str | None:
        if not path:
            return self.tree_oid
        entry = self.lookup(path)
        return entry.oid if entry is not None and entry.is_dir else None

    def list_entries(self, path: str) -> list[TreeEntry]:
        with self._lock:
            cached = self._listings.get(path)
        if cached is not None:
            return cached
        oid = self._dir_oid(path)
        entries = self.repository.list_tree(oid) if oid else []
        entries = [e for e in entries if e.mode != _SUBMODULE_MODE]
        with self._lock:
            self._listings[path] = entries
        return entries

    def lookup(self, path: str) -> TreeEntry | None:
        if not path:
            return TreeEntry(name="", oid=self.tree_oid, is_dir=True)
        parent, _, name = path.rpartition("/")
        for entry in self.list_entries(parent):
            if entry.name == name:
                return entry
        return None

    def walk(self, path: str) -> Iterator[str]:
        oid = self._dir_oid(path)
        if oid is None:
            return
        for relpath, entry in self.repository.walk_tree(oid):
            if entry.mode == _SUBMODULE_MODE or _is_hidden(relpath):
                continue
            yield relpath

    def read(self, path: str) -> bytes:
        entry = self.lookup(path)
        if entry is None or entry.is_dir:
            raise FileNotFoundError(path)
        return self.repository.read_blob(entry.oid)
