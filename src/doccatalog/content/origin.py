from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from ..git.cache import ResolvedSource
from ..git.refs import Ref
from ..git.target import default_edit_url_pattern, expand_edit_url_pattern, web_url_for
from .models import Origin


def compute_origin(
    resolved: ResolvedSource,
    ref: Ref,
    refhash: str | None,
    start_path: str,
    *,
    edit_url: bool | str | None = True,
    descriptor: Mapping[str, Any] | None = None,
) -> Origin:
    """Build the Origin shared by every file of one (source, ref, start path)."""
    web_url = web_url_for(resolved.url)
    pattern: str | None = None
    if edit_url is True:
        pattern = default_edit_url_pattern(web_url, ref.reftype)
    elif isinstance(edit_url, str) and edit_url:
        pattern = edit_url
    if pattern is not None:
        pattern = expand_edit_url_pattern(
            pattern,
            web_url=web_url,
            refname=ref.name,
            reftype=ref.reftype,
            refhash=refhash,
        )

    file_uri_pattern = None
    if ref.worktree_path:
        root = Path(ref.worktree_path)
        if start_path:
            root = root.joinpath(*start_path.split("/"))
        file_uri_pattern = root.as_uri() + "/{path}"

    return Origin(
        url=resolved.url,
        gitdir=resolved.repository.gitdir,
        refname=ref.name,
        reftype=ref.reftype,
        refhash=None if ref.worktree_path else refhash,
        start_path=start_path,
        worktree_path=ref.worktree_path,
        remote=ref.remote or (None if resolved.local else resolved.remote),
        web_url=web_url,
        edit_url_pattern=pattern,
        file_uri_pattern=file_uri_pattern,
        auth_status=resolved.auth_status,
        local=resolved.local,
        descriptor=dict(descriptor or {}),
    )
