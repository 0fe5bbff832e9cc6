"""Typed extension points called at fixed stages of a catalog build."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .content.catalog import ContentCatalog
    from .content.models import ComponentVersionBucket
    from .git.cache import ResolvedSource
    from .playbook import Playbook


@dataclass(frozen=True)
class SourcesResolved:
    playbook: Playbook
    sources: tuple[ResolvedSource, ...]


@dataclass(frozen=True)
class BucketBuilt:
    playbook: Playbook
    bucket: ComponentVersionBucket


@dataclass(frozen=True)
class CatalogBuilt:
    playbook: Playbook | None
    catalog: ContentCatalog


OnSourcesResolved = Callable[[SourcesResolved], None]
OnBucketBuilt = Callable[[BucketBuilt], None]
OnCatalogBuilt = Callable[[CatalogBuilt], None]


@dataclass
class PipelineHooks:
    """Listeners run in registration order on the calling thread."""

    on_sources_resolved: list[OnSourcesResolved] = field(default_factory=list)
    on_bucket_built: list[OnBucketBuilt] = field(default_factory=list)
    on_catalog_built: list[OnCatalogBuilt] = field(default_factory=list)

    def sources_resolved(self, event: SourcesResolved) -> None:
        for listener in self.on_sources_resolved:
            listener(event)

    def bucket_built(self, event: BucketBuilt) -> None:
        for listener in self.on_bucket_built:
            listener(event)

    def catalog_built(self, event: CatalogBuilt) -> None:
        for listener in self.on_catalog_built:
            listener(event)
