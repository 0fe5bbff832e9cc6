from __future__ import annotations

import logging
from dataclasses import replace
from functools import partial
from urllib.parse import quote

from ..concurrency import Limiters, run_indexed_tasks_settled
from ..core.matcher import PatternCache
from ..errors import ContentError, raise_collected
from ..git.cache import RepositoryResolver, ResolvedSource
from ..git.credentials import CredentialStore, create_credential_store
from ..git.globs import resolve_path_globs
from ..git.refs import Ref, enumerate_refs
from ..git.repository import GitRunner
from ..git.tree import ContentTree, FsTree, GitTree, join_path
from ..hooks import BucketBuilt, PipelineHooks, SourcesResolved
from ..playbook import Playbook
from ..runtime import max_workers
from .descriptor import DESCRIPTOR_FILENAME, ComponentDescriptor, parse_descriptor
from .models import (
    Aggregate,
    ComponentVersionBucket,
    Origin,
    SourceFile,
    SourceFileSrc,
    media_type_for,
    split_basename,
)
from .origin import compute_origin

logger = logging.getLogger(__name__)


def _describe(resolved: ResolvedSource, ref: Ref, start_path: str = "") -> str:
    details = f"{ref.reftype}: {ref.name}"
    if ref.worktree_path:
        details += " <worktree>"
    if start_path:
        details += f" | start path: {start_path}"
    return f"{resolved.url} ({details})"


def _is_file(tree: ContentTree, path: str) -> bool:
    entry = tree.lookup(path)
    return entry is not None and not entry.is_dir


def _resolve_files(
    tree: ContentTree, start_path: str, patterns: tuple[str, ...] | list[str]
) -> list[str]:
    """Files below ``start_path`` selected by ``patterns``.

    A matched directory contributes every file beneath it.
    """
    paths: list[str] = []
    for path in resolve_path_globs(tree, list(patterns), base=start_path):
        entry = tree.lookup(join_path(start_path, path))
        if entry is None:
            logger.warning("file listed in %s does not exist: %s", DESCRIPTOR_FILENAME, path)
        elif entry.is_dir:
            paths.extend(join_path(path, it) for it in tree.walk(join_path(start_path, path)))
        else:
            paths.append(path)
    return [p for p in dict.fromkeys(paths) if p != DESCRIPTOR_FILENAME]


def merge_buckets(buckets: list[ComponentVersionBucket]) -> Aggregate:
    """Combine buckets that share (name, version), keeping their order.

    Files are concatenated and origins unioned. Descriptor values of a later
    bucket replace earlier ones when they are set.
    """
    merged: dict[tuple[str, str], ComponentVersionBucket] = {}
    for bucket in buckets:
        existing = merged.get(bucket.key)
        if existing is None:
            merged[bucket.key] = replace(
                bucket,
                asciidoc_attributes=dict(bucket.asciidoc_attributes),
                origins=list(bucket.origins),
                files=list(bucket.files),
            )
            continue
        for attr in ("display_version", "title", "prerelease", "start_page", "nav"):
            value = getattr(bucket, attr)
            if value is not None:
                setattr(existing, attr, value)
        existing.asciidoc_attributes.update(bucket.asciidoc_attributes)
        existing.files.extend(bucket.files)
        for origin in bucket.origins:
            if origin not in existing.origins:
                existing.origins.append(origin)
    return tuple(merged.values())


class ContentAggregator:
    """Collects the files of every content source into component version buckets.

    All sources are resolved (cloned or fetched) before any ref is read.
    """

    def __init__(
        self,
        playbook: Playbook,
        *,
        hooks: PipelineHooks | None = None,
        credential_store: CredentialStore | None = None,
        runner: GitRunner | None = None,
        limiters: Limiters | None = None,
        pattern_cache: PatternCache | None = None,
    ) -> None:
        self.playbook = playbook
        self.hooks = hooks or PipelineHooks()
        self.limiters = limiters or Limiters.create(
            playbook.git.fetch_concurrency, playbook.git.read_concurrency
        )
        self.pattern_cache = pattern_cache or PatternCache()
        if credential_store is None:
            credential_store = create_credential_store(
                playbook.git.credentials_store,
                path=playbook.git.credentials_path,
                contents=playbook.git.credentials_contents,
                start_dir=playbook.dir,
            )
        self.resolver = RepositoryResolver(
            playbook.runtime.cache_dir,
            fetch=playbook.runtime.fetch,
            limiters=self.limiters,
            credential_store=credential_store,
            runner=runner,
        )

    def run(self) -> Aggregate:
        resolved = self.resolve_sources()
        self.hooks.sources_resolved(SourcesResolved(self.playbook, resolved))
        buckets = self.read_sources(resolved)
        for bucket in buckets:
            self.hooks.bucket_built(BucketBuilt(self.playbook, bucket))
        return merge_buckets(buckets)

    def resolve_sources(self) -> tuple[ResolvedSource, ...]:
        sources = self.playbook.content.sources
        tasks = [
            (idx, partial(self._resolve_source, source)) for idx, source in enumerate(sources)
        ]
        results, errors = run_indexed_tasks_settled(tasks, max_workers=max_workers(len(tasks)))
        raise_collected([err for _, err in errors])
        return tuple(result for _, result in results)

    def _resolve_source(self, source) -> ResolvedSource:
        return self.resolver.resolve(source, self.playbook.dir)

    def refs_for(self, resolved: ResolvedSource) -> list[Ref]:
        source = resolved.source
        return enumerate_refs(
            resolved,
            self.playbook.source_branches(source),
            self.playbook.source_tags(source),
            self.pattern_cache,
        )

    def read_sources(
        self, resolved: tuple[ResolvedSource, ...]
    ) -> list[ComponentVersionBucket]:
        tasks = []
        for source in resolved:
            refs = self.refs_for(source)
            if not refs:
                logger.info("no refs matched in %s", source.url)
            for ref in refs:
                tasks.append((len(tasks), partial(self._read_ref, source, ref)))
        results, errors = run_indexed_tasks_settled(tasks, max_workers=max_workers(len(tasks)))
        raise_collected([err for _, err in errors])
        return [bucket for _, buckets in results for bucket in buckets]

    def _open_tree(self, resolved: ResolvedSource, ref: Ref) -> tuple[ContentTree, str | None]:
        repository = resolved.repository
        if ref.worktree_path:
            return FsTree(ref.worktree_path), None
        refhash = repository.resolve_commit(ref.qualified)
        tree_oid = repository.resolve_tree(ref.qualified)
        if tree_oid is None:
            raise ContentError(f"ref not found: {ref.qualified}", location=resolved.url)
        return GitTree(repository, tree_oid), refhash

    def _read_ref(
        self, resolved: ResolvedSource, ref: Ref
    ) -> list[ComponentVersionBucket]:
        with self.limiters.read:
            tree, refhash = self._open_tree(resolved, ref)
            source = resolved.source
            if source.start_paths is not None:
                start_paths = [
                    path
                    for path in resolve_path_globs(tree, list(source.start_paths))
                    if not _is_file(tree, path)
                ]
            else:
                start_paths = [source.start_path]

            buckets = []
            for start_path in start_paths:
                bucket = self._read_start_path(resolved, ref, refhash, tree, start_path)
                if bucket is not None:
                    buckets.append(bucket)
            return buckets

    def _read_start_path(
        self,
        resolved: ResolvedSource,
        ref: Ref,
        refhash: str | None,
        tree: ContentTree,
        start_path: str,
    ) -> ComponentVersionBucket | None:
        location = _describe(resolved, ref, start_path)
        start = tree.lookup(start_path)
        if start is None or not start.is_dir:
            logger.warning("start path does not exist in %s", location)
            return None
        descriptor_path = join_path(start_path, DESCRIPTOR_FILENAME)
        if tree.lookup(descriptor_path) is None:
            logger.warning("could not find %s in %s", DESCRIPTOR_FILENAME, location)
            return None

        descriptor = parse_descriptor(
            tree.read(descriptor_path), refname=ref.name, location=location
        )
        origin = compute_origin(
            resolved,
            ref,
            refhash,
            start_path,
            edit_url=self.playbook.source_edit_url(resolved.source),
            descriptor=descriptor.data,
        )
        files = self._read_files(tree, start_path, descriptor, origin)
        return ComponentVersionBucket(
            name=descriptor.name,
            version=descriptor.version,
            display_version=descriptor.display_version,
            title=descriptor.title,
            prerelease=descriptor.prerelease,
            start_page=descriptor.start_page,
            asciidoc_attributes=dict(descriptor.asciidoc_attributes),
            nav=descriptor.nav,
            origins=[origin],
            files=files,
        )

    def _read_files(
        self,
        tree: ContentTree,
        start_path: str,
        descriptor: ComponentDescriptor,
        origin: Origin,
    ) -> list[SourceFile]:
        if descriptor.files:
            paths = _resolve_files(tree, start_path, descriptor.files)
        else:
            paths = [p for p in tree.walk(start_path) if p != DESCRIPTOR_FILENAME]

        files = []
        for path in paths:
            full_path = join_path(start_path, path)
            basename, stem, extname = split_basename(path)
            abspath = file_uri = None
            if isinstance(tree, FsTree):
                abspath = tree.abspath(full_path)
            if origin.file_uri_pattern:
                file_uri = origin.file_uri_pattern.replace("{path}", quote(path))
            edit_url = file_uri
            if origin.edit_url_pattern:
                edit_url = origin.edit_url_pattern.replace("{path}", full_path)
            src = SourceFileSrc(
                path=path,
                basename=basename,
                stem=stem,
                extname=extname,
                media_type=media_type_for(path),
                origin=origin,
                abspath=abspath,
                edit_url=edit_url,
                file_uri=file_uri,
            )
            files.append(SourceFile(path=path, contents=tree.read(full_path), src=src))
        return files


def aggregate_content(
    playbook: Playbook,
    *,
    hooks: PipelineHooks | None = None,
    credential_store: CredentialStore | None = None,
    runner: GitRunner | None = None,
) -> Aggregate:
    return ContentAggregator(
        playbook, hooks=hooks, credential_store=credential_store, runner=runner
    ).run()
