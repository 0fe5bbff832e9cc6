"""Sort aggregated files into families and build the ContentCatalog."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Iterator

from ..errors import ContentError
from ..hooks import CatalogBuilt, PipelineHooks
from .catalog import ContentCatalog
from .models import (
    Aggregate,
    Attachment,
    CatalogFile,
    ComponentVersionBucket,
    Example,
    FileSrc,
    Image,
    Navigation,
    Page,
    Partial,
    SourceFile,
    split_basename,
)

if TYPE_CHECKING:
    from ..playbook import Playbook, UrlConfig

logger = logging.getLogger(__name__)

PAGE_EXTENSION = ".adoc"

_ATTRIBUTE_ENTRY_RX = re.compile(r"^:([a-zA-Z0-9_][\w-]*):(?:[ \t]+(.*))?$")
_FAMILY_CLASSES = {"partial": Partial, "example": Example, "image": Image, "attachment": Attachment}


def _module_root_path(depth: int) -> str:
    return "/".join([".."] * depth) if depth else "."


def read_header_attribute(contents: bytes | str, name: str) -> str | None:
    """Return the value of attribute ``name`` set in the document header.

    The header ends at the first blank line after it begins. Comment lines
    are skipped and a trailing `` \\`` continues a value onto the next line.
    """
    if isinstance(contents, bytes):
        contents = contents.decode("utf-8", errors="replace")
    lines = iter(contents.lstrip("\ufeff").splitlines())
    started = False
    for line in lines:
        line = line.rstrip()
        if not line:
            if started:
                break
            continue
        started = True
        if line.startswith("//"):
            continue
        m = _ATTRIBUTE_ENTRY_RX.match(line)
        if not m or m.group(1) != name:
            continue
        value = m.group(2) or ""
        while value.endswith(" \\"):
            value = value[:-2]
            continuation = next(lines, "").strip()
            value = f"{value} {continuation}" if continuation else value
        return value.strip()
    return None


def parse_page_aliases(contents: bytes | str) -> tuple[str, ...]:
    value = read_header_attribute(contents, "page-aliases")
    if not value:
        return ()
    return tuple(spec.strip() for spec in value.split(",") if spec.strip())


class ContentClassifier:
    """Three passes over an aggregate: versions, files, then links between them.

    Every component version is registered before the first file so that the
    latest version is known when URLs are computed.
    """

    def __init__(
        self,
        urls: UrlConfig | None = None,
        *,
        duplicate_policy: str = "last-wins",
        site_start_page: str | None = None,
    ) -> None:
        self.catalog = ContentCatalog(urls, duplicate_policy=duplicate_policy)
        self.site_start_page = site_start_page

    def classify(self, aggregate: Aggregate) -> ContentCatalog:
        catalog = self.catalog
        versions = []
        for bucket in aggregate:
            component_version = catalog.register_component_version(
                bucket.name,
                bucket.version,
                title=bucket.title,
                display_version=bucket.display_version,
                prerelease=bucket.prerelease,
                asciidoc_attributes=bucket.asciidoc_attributes,
                start_page=bucket.start_page,
                origins=bucket.origins,
            )
            versions.append((bucket, component_version))

        for bucket in aggregate:
            for file in self.classify_bucket(bucket):
                catalog.add_file(file)

        for bucket, component_version in versions:
            catalog.register_component_version_start_page(
                bucket.name, component_version, bucket.start_page
            )
            self._check_nav(bucket)
        catalog.register_site_start_page(self.site_start_page)
        self._register_page_aliases()
        return catalog

    def classify_bucket(self, bucket: ComponentVersionBucket) -> Iterator[CatalogFile]:
        nav = list(bucket.nav or ())
        for file in bucket.files:
            classified = self.classify_file(bucket, file, nav)
            if classified is None:
                logger.warning(
                    "Skipping file in %s@%s that does not belong to a known family: %s",
                    bucket.version or "_",
                    bucket.name,
                    file.path,
                )
                continue
            yield classified

    def classify_file(
        self, bucket: ComponentVersionBucket, file: SourceFile, nav: list[str]
    ) -> CatalogFile | None:
        """Map ``file`` to a family by its location in the start path, if it has one."""
        segments = file.path.split("/")
        if ".." in segments:
            return None
        extname = file.src.extname

        if file.path in nav:
            if extname != PAGE_EXTENSION:
                return None
            if segments[0] == "modules" and len(segments) > 2:
                module = segments[1]
                relative = "/".join(segments[2:])
                root_path = _module_root_path(len(segments) - 3)
            else:
                module, relative, root_path = None, file.path, None
            src = self._src(bucket, file, module, "navigation", relative, root_path)
            return Navigation(
                src=src, path=file.path, contents=file.contents, index=nav.index(file.path)
            )

        if segments[0] != "modules" or len(segments) < 4:
            return None
        module, family_dir = segments[1], segments[2]
        root_path = _module_root_path(len(segments) - 3)
        if family_dir == "pages":
            if segments[3] == "_partials":
                family, relative = "partial", "/".join(segments[4:])
            elif extname == PAGE_EXTENSION:
                family, relative = "page", "/".join(segments[3:])
            else:
                return None
        elif family_dir == "assets" and segments[3] in ("images", "attachments"):
            if not extname:
                return None
            family, relative = segments[3][:-1], "/".join(segments[4:])
        elif family_dir in ("images", "attachments"):
            if not extname:
                return None
            family, relative = family_dir[:-1], "/".join(segments[3:])
        elif family_dir in ("partials", "examples"):
            family, relative = family_dir[:-1], "/".join(segments[3:])
        else:
            return None
        if not relative:
            return None

        src = self._src(bucket, file, module, family, relative, root_path)
        if family == "page":
            return Page(
                src=src,
                path=file.path,
                contents=file.contents,
                aliases=parse_page_aliases(file.contents),
            )
        file_type = _FAMILY_CLASSES[family]
        return file_type(src=src, path=file.path, contents=file.contents)

    def _src(
        self,
        bucket: ComponentVersionBucket,
        file: SourceFile,
        module: str | None,
        family: str,
        relative: str,
        module_root_path: str | None,
    ) -> FileSrc:
        basename, stem, extname = split_basename(relative)
        return FileSrc(
            component=bucket.name,
            version=bucket.version,
            module=module,
            family=family,
            relative=relative,
            basename=basename,
            stem=stem,
            extname=extname,
            media_type=file.src.media_type,
            origin=file.src.origin,
            path=file.path,
            abspath=file.src.abspath,
            edit_url=file.src.edit_url,
            file_uri=file.src.file_uri,
            module_root_path=module_root_path,
        )

    def _check_nav(self, bucket: ComponentVersionBucket) -> None:
        if not bucket.nav:
            return
        registered = {
            f.path
            for f in self.catalog.find_by(
                component=bucket.name, version=bucket.version, family="navigation"
            )
        }
        origin = bucket.origins[0] if bucket.origins else None
        where = ""
        if origin is not None:
            where = f" in {origin.url} ({origin.reftype}: {origin.refname})"
        for entry in bucket.nav:
            if entry not in registered:
                logger.warning(
                    "Could not resolve nav entry for %s@%s defined in antora.yml%s: %s",
                    bucket.version or "_",
                    bucket.name,
                    where,
                    entry,
                )

    def _register_page_aliases(self) -> None:
        for page in self.catalog.get_pages():
            for spec in page.aliases:
                try:
                    self.catalog.register_page_alias(spec, page)
                except ContentError as err:
                    logger.warning("%s", err)


def classify_content(
    aggregate: Aggregate,
    *,
    urls: UrlConfig | None = None,
    duplicate_policy: str = "last-wins",
    site_start_page: str | None = None,
    hooks: PipelineHooks | None = None,
    playbook: Playbook | None = None,
) -> ContentCatalog:
    if playbook is not None:
        urls = urls or playbook.urls
        site_start_page = site_start_page or playbook.site.start_page
    catalog = ContentClassifier(
        urls, duplicate_policy=duplicate_policy, site_start_page=site_start_page
    ).classify(aggregate)
    if hooks is not None:
        hooks.catalog_built(CatalogBuilt(playbook, catalog))
    return catalog
