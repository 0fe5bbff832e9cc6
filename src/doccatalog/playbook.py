"""Playbook loading: YAML configuration validated into frozen dataclasses."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any

import yaml

from .errors import ConfigurationError
from .runtime import (
    DEFAULT_CACHE_DIR,
    get_cache_dir,
    get_fetch_concurrency,
    get_read_concurrency,
)

DEFAULT_BRANCHES: tuple[str, ...] = ("HEAD", "v{0..9}*")


@dataclass(frozen=True)
class ContentSource:
    url: str
    branches: tuple[str, ...] | None = None
    tags: tuple[str, ...] | None = None
    start_path: str = ""
    start_paths: tuple[str, ...] | None = None
    edit_url: bool | str | None = None
    worktrees: bool = True


@dataclass(frozen=True)
class ContentConfig:
    sources: tuple[ContentSource, ...] = ()
    branches: tuple[str, ...] = DEFAULT_BRANCHES
    tags: tuple[str, ...] = ()
    edit_url: bool | str = True
    duplicate_policy: str = "last-wins"


@dataclass(frozen=True)
class RuntimeConfig:
    cache_dir: str = DEFAULT_CACHE_DIR
    fetch: bool = False


@dataclass(frozen=True)
class GitConfig:
    fetch_concurrency: int = 1
    read_concurrency: int = 0
    credentials_store: str = "git"
    credentials_path: str | None = None
    credentials_contents: str | None = None


@dataclass(frozen=True)
class UrlConfig:
    html_extension_style: str = "default"
    latest_version_segment: str | None = None
    latest_prerelease_version_segment: str | None = None
    latest_version_segment_strategy: str | None = None


@dataclass(frozen=True)
class SiteConfig:
    title: str | None = None
    url: str | None = None
    start_page: str | None = None


@dataclass(frozen=True)
class Playbook:
    dir: str = "."
    site: SiteConfig = field(default_factory=SiteConfig)
    content: ContentConfig = field(default_factory=ContentConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    git: GitConfig = field(default_factory=GitConfig)
    urls: UrlConfig = field(default_factory=UrlConfig)

    def source_branches(self, source: ContentSource) -> tuple[str, ...]:
        return self.content.branches if source.branches is None else source.branches

    def source_tags(self, source: ContentSource) -> tuple[str, ...]:
        return self.content.tags if source.tags is None else source.tags

    def source_edit_url(self, source: ContentSource) -> bool | str:
        return self.content.edit_url if source.edit_url is None else source.edit_url


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"playbook key '{key}' must be a mapping")
    return value


def _patterns(value: Any, key: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        # a comma-separated string is shorthand for a list
        return tuple(p.strip() for p in str(value).split(",") if p.strip())
    if isinstance(value, list):
        return tuple(str(p) for p in value)
    raise ConfigurationError(f"'{key}' must be a string or a list of strings")


def _optional_str(value: Any, key: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigurationError(f"'{key}' must be a string")
    return str(value)


def _as_int(value: Any, key: str, default: int, *, minimum: int = 0) -> int:
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"'{key}' must be an integer") from None
    if number < minimum:
        raise ConfigurationError(f"'{key}' must be at least {minimum}")
    return number


def _edit_url(value: Any, key: str) -> bool | str | None:
    if value is None or isinstance(value, (bool, str)):
        return value
    raise ConfigurationError(f"'{key}' must be true, false or a url pattern")


def _content_source(entry: Any, idx: int) -> ContentSource:
    if isinstance(entry, str):
        entry = {"url": entry}
    if not isinstance(entry, dict) or "url" not in entry:
        raise ConfigurationError(f"content source #{idx + 1} must define a url")
    start_paths = _patterns(entry.get("start_paths"), "start_paths")
    start_path = _optional_str(entry.get("start_path"), "start_path") or ""
    if start_paths is not None and entry.get("start_path") is not None:
        raise ConfigurationError(
            f"content source #{idx + 1} cannot set both start_path and start_paths"
        )
    return ContentSource(
        url=str(entry["url"]),
        branches=_patterns(entry.get("branches"), "branches"),
        tags=_patterns(entry.get("tags"), "tags"),
        start_path=start_path.strip("/"),
        start_paths=start_paths,
        edit_url=_edit_url(entry.get("edit_url"), "edit_url"),
        worktrees=bool(entry.get("worktrees", True)),
    )


def build_playbook(data: dict[str, Any] | None, playbook_dir: str = ".") -> Playbook:
    """Validate parsed playbook data; environment variables override run settings."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigurationError("playbook must contain a mapping")

    site = _section(data, "site")
    content = _section(data, "content")
    runtime = _section(data, "runtime")
    git = _section(data, "git")
    urls = _section(data, "urls")

    sources = content.get("sources") or []
    if not isinstance(sources, list):
        raise ConfigurationError("'content.sources' must be a list")

    branches = _patterns(content.get("branches"), "content.branches")
    tags = _patterns(content.get("tags"), "content.tags")
    edit_url = _edit_url(content.get("edit_url"), "content.edit_url")
    content_config = ContentConfig(
        sources=tuple(_content_source(entry, idx) for idx, entry in enumerate(sources)),
        branches=DEFAULT_BRANCHES if branches is None else branches,
        tags=() if tags is None else tags,
        edit_url=True if edit_url is None else edit_url,
        duplicate_policy=str(content.get("duplicate_policy") or "last-wins"),
    )

    cache_dir = get_cache_dir(
        os.path.expanduser(_optional_str(runtime.get("cache_dir"), "runtime.cache_dir") or "")
        or DEFAULT_CACHE_DIR
    )
    if not os.path.isabs(cache_dir):
        cache_dir = os.path.normpath(os.path.join(playbook_dir, cache_dir))
    runtime_config = RuntimeConfig(cache_dir=cache_dir, fetch=bool(runtime.get("fetch", False)))

    credentials = git.get("credentials") or {}
    if not isinstance(credentials, dict):
        raise ConfigurationError("'git.credentials' must be a mapping")
    git_config = GitConfig(
        fetch_concurrency=get_fetch_concurrency(
            _as_int(git.get("fetch_concurrency"), "git.fetch_concurrency", 1, minimum=1)
        ),
        read_concurrency=get_read_concurrency(
            _as_int(git.get("read_concurrency"), "git.read_concurrency", 0)
        ),
        credentials_store=str(credentials.get("store") or "git"),
        credentials_path=_optional_str(credentials.get("path"), "git.credentials.path"),
        credentials_contents=_optional_str(
            credentials.get("contents"), "git.credentials.contents"
        ),
    )

    url_config = UrlConfig(
        html_extension_style=str(urls.get("html_extension_style") or "default"),
        latest_version_segment=_optional_str(
            urls.get("latest_version_segment"), "urls.latest_version_segment"
        ),
        latest_prerelease_version_segment=_optional_str(
            urls.get("latest_prerelease_version_segment"),
            "urls.latest_prerelease_version_segment",
        ),
        latest_version_segment_strategy=_optional_str(
            urls.get("latest_version_segment_strategy"),
            "urls.latest_version_segment_strategy",
        ),
    )

    site_config = SiteConfig(
        title=_optional_str(site.get("title"), "site.title"),
        url=_optional_str(site.get("url"), "site.url"),
        start_page=_optional_str(site.get("start_page"), "site.start_page"),
    )

    return Playbook(
        dir=playbook_dir,
        site=site_config,
        content=content_config,
        runtime=runtime_config,
        git=git_config,
        urls=url_config,
    )


def load_playbook(path: str, **runtime_overrides: Any) -> Playbook:
    """Read the playbook at ``path``; ``fetch`` and ``cache_dir`` may be overridden."""
    try:
        with open(path, "r", encoding="utf-8") as file:
            data = yaml.safe_load(file)
    except FileNotFoundError:
        raise ConfigurationError(f"playbook file not found: {path}") from None
    except yaml.YAMLError as err:
        raise ConfigurationError(f"playbook has invalid syntax: {err}") from err

    playbook = build_playbook(data, os.path.dirname(os.path.abspath(path)))
    overrides = {k: v for k, v in runtime_overrides.items() if v is not None}
    if overrides:
        if "cache_dir" in overrides:
            overrides["cache_dir"] = os.path.abspath(os.path.expanduser(overrides["cache_dir"]))
        playbook = replace(playbook, runtime=replace(playbook.runtime, **overrides))
    return playbook
