from __future__ import annotations

import logging
import os
import shutil
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from ..concurrency import Limiters
from ..errors import AuthenticationError, ConfigurationError, TransportError
from .credentials import CredentialStore, Credentials
from .repository import GitRepository, GitRunner, run_git
from .target import (
    cache_dir_for,
    extract_credentials,
    inject_credentials,
    is_local_url,
)

if TYPE_CHECKING:
    from ..playbook import ContentSource

logger = logging.getLogger(__name__)

_AUTH_FAILURE_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "http basic: access denied",
    "401",
    "403",
)


@dataclass(frozen=True)
class ResolvedSource:
    """A content source bound to a readable repository."""

    source: ContentSource
    repository: GitRepository
    url: str
    local: bool
    worktree_path: str | None = None
    current_branch: str | None = None
    auth_status: str | None = None
    remote: str = "origin"


def _stderr_text(err: subprocess.CalledProcessError) -> str:
    stderr = err.stderr or b""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return stderr.strip()


def _is_auth_failure(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in _AUTH_FAILURE_MARKERS)


def _read_head_branch(gitdir: str) -> str | None:
    """Branch named by ``gitdir/HEAD``, or None when HEAD is detached."""
    try:
        with open(os.path.join(gitdir, "HEAD"), encoding="utf-8") as f:
            head = f.read().strip()
    except OSError:
        return None
    if head.startswith("ref: refs/heads/"):
        return head[len("ref: refs/heads/") :]
    return None


def _read_pointer(path: str, prefix: str = "") -> str | None:
    try:
        with open(path, encoding="utf-8") as f:
            value = f.read().strip()
    except OSError:
        return None
    if prefix:
        if not value.startswith(prefix):
            return None
        value = value[len(prefix) :].strip()
    return value or None


def _is_bare_gitdir(path: str) -> bool:
    return os.path.isfile(os.path.join(path, "HEAD")) and os.path.isdir(
        os.path.join(path, "objects")
    )


class RepositoryResolver:
    """Opens local repositories and maintains bare clones of remote ones."""

    def __init__(
        self,
        cache_dir: str,
        *,
        fetch: bool = False,
        limiters: Limiters | None = None,
        credential_store: CredentialStore | None = None,
        runner: GitRunner | None = None,
    ) -> None:
        self.cache_dir = cache_dir
        self.fetch = fetch
        self.limiters = limiters or Limiters.create()
        self.credential_store = credential_store
        self._runner = runner or run_git
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def resolve(
        self, source: ContentSource, playbook_dir: str | None = None
    ) -> ResolvedSource:
        if is_local_url(source.url):
            return self._resolve_local(source, playbook_dir)
        return self._resolve_remote(source)

    def _resolve_local(
        self, source: ContentSource, playbook_dir: str | None
    ) -> ResolvedSource:
        path = os.path.expanduser(source.url or ".")
        if not os.path.isabs(path):
            path = os.path.join(playbook_dir or os.getcwd(), path)
        path = os.path.normpath(path)
        if not os.path.exists(path):
            raise ConfigurationError(
                "Local content source does not exist", location=source.url
            )

        dotgit = os.path.join(path, ".git")
        worktree: str | None = path
        if os.path.isdir(dotgit):
            gitdir = dotgit
            current_branch = _read_head_branch(gitdir)
        elif os.path.isfile(dotgit):
            # linked worktree: .git names a per-worktree gitdir inside the main repository
            worktree_gitdir = _read_pointer(dotgit, "gitdir:")
            if worktree_gitdir is None:
                raise ConfigurationError(
                    "Local content source has an unreadable .git file",
                    location=source.url,
                )
            worktree_gitdir = os.path.normpath(os.path.join(path, worktree_gitdir))
            commondir = _read_pointer(os.path.join(worktree_gitdir, "commondir"))
            gitdir = (
                os.path.normpath(os.path.join(worktree_gitdir, commondir))
                if commondir
                else worktree_gitdir
            )
            current_branch = _read_head_branch(worktree_gitdir)
        elif _is_bare_gitdir(path):
            gitdir, worktree = path, None
            current_branch = _read_head_branch(gitdir)
        else:
            raise ConfigurationError(
                "Local content source must be a git repository", location=source.url
            )

        repository = GitRepository(gitdir, worktree=worktree, runner=self._runner)
        remote_url = repository.remote_url("origin")
        url = extract_credentials(remote_url)[0] if remote_url else Path(path).as_uri()
        return ResolvedSource(
            source=source,
            repository=repository,
            url=url,
            local=True,
            worktree_path=worktree,
            current_branch=current_branch,
        )

    def _resolve_remote(self, source: ContentSource) -> ResolvedSource:
        url, username, password = extract_credentials(source.url)
        embedded = Credentials(username or "", password) if username or password else None
        gitdir = cache_dir_for(self.cache_dir, url)
        repository = GitRepository(gitdir, runner=self._runner)
        auth_status = "always-auth" if embedded else None

        with self._lock_for(gitdir):
            if not _is_bare_gitdir(gitdir):
                auth_status = self._with_auth(
                    url, embedded, lambda remote: self._clone(remote, url, gitdir)
                )
            elif self.fetch:
                auth_status = self._with_auth(
                    url, embedded, lambda remote: self._fetch(repository, remote)
                )

        return ResolvedSource(
            source=source,
            repository=repository,
            url=url,
            local=False,
            current_branch=repository.current_branch(),
            auth_status=auth_status,
        )

    def _clone(self, remote: str, url: str, gitdir: str) -> None:
        os.makedirs(os.path.dirname(gitdir), exist_ok=True)
        logger.info("cloning %s", url)
        with self.limiters.fetch:
            try:
                self._runner(["git", "clone", "--bare", "--quiet", remote, gitdir])
                # keep credentials out of the stored remote url
                self._runner(
                    ["git", f"--git-dir={gitdir}", "remote", "set-url", "origin", url]
                )
            except subprocess.CalledProcessError:
                shutil.rmtree(gitdir, ignore_errors=True)
                raise

    def _fetch(self, repository: GitRepository, remote: str) -> None:
        logger.info("fetching %s", repository.gitdir)
        with self.limiters.fetch:
            repository.run(
                "fetch",
                "--quiet",
                "--prune",
                "--tags",
                remote,
                "+refs/heads/*:refs/heads/*",
            )

    def _with_auth(
        self,
        url: str,
        embedded: Credentials | None,
        operation: Callable[[str], None],
    ) -> str | None:
        """Run ``operation`` against ``url``; return the resulting auth status.

        Embedded credentials are used as is. Otherwise the credential store is
        consulted for http(s) urls; rejected credentials are refilled once.
        """
        store = self.credential_store if url.startswith(("http://", "https://")) else None
        creds, auth_status = embedded, "always-auth" if embedded else None
        if creds is None and store is not None:
            creds = store.fill(url)
            if creds is not None:
                auth_status = "auth-required"

        try:
            self._attempt(operation, url, creds)
        except AuthenticationError:
            if store is None or embedded is not None:
                raise
            store.rejected(url)
            if creds is None:
                raise
            creds = store.fill(url)
            if creds is None:
                raise
            try:
                self._attempt(operation, url, creds)
            except AuthenticationError:
                store.rejected(url)
                raise
            auth_status = "auth-required"

        if creds is not None and store is not None and embedded is None:
            store.approved(url)
        return auth_status

    def _attempt(
        self,
        operation: Callable[[str], None],
        url: str,
        creds: Credentials | None,
    ) -> None:
        remote = (
            inject_credentials(url, creds.username, creds.password) if creds else url
        )
        try:
            operation(remote)
        except subprocess.CalledProcessError as err:
            stderr = _stderr_text(err)
            if _is_auth_failure(stderr):
                raise AuthenticationError(
                    "Content repository not found or credentials were rejected",
                    location=url,
                    stderr=stderr,
                ) from None
            summary = stderr.splitlines()[-1] if stderr else f"exit status {err.returncode}"
            raise TransportError(
                f"Failed to retrieve content repository: {summary}",
                location=url,
                stderr=stderr,
            ) from None
