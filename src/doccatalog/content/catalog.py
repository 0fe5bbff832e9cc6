from __future__ import annotations

import logging
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any, Callable, Iterable

from ..core.resource_id import ResourceId, format_resource_spec, parse_resource_id
from ..core.versions import is_semantic_version, version_compare_desc
from ..errors import ConfigurationError, ContentError, DuplicateFileError, InvalidResourceIdError
from .models import (
    Alias,
    Attachment,
    CatalogFile,
    Component,
    ComponentVersion,
    FilePub,
    FileSrc,
    Image,
    Navigation,
    Origin,
    Page,
    media_type_for,
    split_basename,
)
from .urls import (
    HTML_EXTENSION_STYLES,
    VERSION_SEGMENT_STRATEGIES,
    compute_out,
    compute_pub,
)

if TYPE_CHECKING:
    from ..playbook import UrlConfig

logger = logging.getLogger(__name__)

DUPLICATE_POLICIES = ("last-wins", "first-wins", "error")

START_PAGE_ID = ("ROOT", "", "ROOT", "page", "index.adoc")
START_ALIAS_ID = ("ROOT", "", "ROOT", "alias", "index.adoc")

FileKey = tuple[str, str, str, str, str]


def _sort_component_versions(versions: list[ComponentVersion]) -> list[ComponentVersion]:
    """Order versions newest first.

    Named versions precede semantic ones, with named prereleases ahead of
    named stable versions. A versionless entry goes first when it is a
    prerelease, otherwise directly after the leading run of prereleases.
    """

    def compare(a: ComponentVersion, b: ComponentVersion) -> int:
        named = not is_semantic_version(a.version) and not is_semantic_version(b.version)
        if named and bool(a.prerelease) != bool(b.prerelease):
            return -1 if a.prerelease else 1
        return version_compare_desc(a.version, b.version)

    versionless = [cv for cv in versions if not cv.version]
    ordered = sorted((cv for cv in versions if cv.version), key=cmp_to_key(compare))
    for cv in versionless:
        if cv.prerelease:
            idx = 0
        else:
            idx = next(
                (i for i, candidate in enumerate(ordered) if not candidate.prerelease),
                len(ordered),
            )
        ordered.insert(idx, cv)
    return ordered


def _display_version(
    version: str, display_version: str | None, prerelease: bool | str | None
) -> str:
    if display_version:
        return display_version
    if isinstance(prerelease, str) and prerelease:
        if not version:
            return prerelease
        sep = "" if prerelease[0] in "-." else " "
        return f"{version}{sep}{prerelease}"
    return version or "default"


def _inflate_src(
    key: tuple[str, str, str, str, str], *, origin: Origin | None = None
) -> FileSrc:
    component, version, module, family, relative = key
    basename, stem, extname = split_basename(relative)
    return FileSrc(
        component=component,
        version=version,
        module=module,
        family=family,
        relative=relative,
        basename=basename,
        stem=stem,
        extname=extname,
        media_type=media_type_for(relative) if relative else "text/html",
        origin=origin,
    )


class ContentCatalog:
    """Components, component versions and classified files of one site."""

    def __init__(
        self,
        urls: UrlConfig | None = None,
        *,
        duplicate_policy: str = "last-wins",
    ) -> None:
        if duplicate_policy not in DUPLICATE_POLICIES:
            raise ConfigurationError(f"Unknown duplicate policy: {duplicate_policy}")
        self.duplicate_policy = duplicate_policy
        self._components: dict[str, Component] = {}
        self._files: dict[FileKey, CatalogFile] = {}

        self.html_extension_style = getattr(urls, "html_extension_style", None) or "default"
        if self.html_extension_style not in HTML_EXTENSION_STYLES:
            raise ConfigurationError(
                f"Unknown html extension style: {self.html_extension_style}"
            )
        self.latest_version_segment: str | None = getattr(urls, "latest_version_segment", None)
        self.latest_prerelease_version_segment: str | None = getattr(
            urls, "latest_prerelease_version_segment", None
        )
        strategy: str | None = None
        if self.latest_version_segment is not None or self.latest_prerelease_version_segment is not None:
            strategy = getattr(urls, "latest_version_segment_strategy", None) or "replace"
            if strategy not in VERSION_SEGMENT_STRATEGIES:
                raise ConfigurationError(f"Unknown version segment strategy: {strategy}")
            if strategy == "redirect:from":
                if not self.latest_version_segment:
                    self.latest_version_segment = None
                if not self.latest_prerelease_version_segment:
                    self.latest_prerelease_version_segment = None
                    if not self.latest_version_segment:
                        strategy = None
        self.latest_version_segment_strategy = strategy

    def __repr__(self) -> str:
        return (
            f"ContentCatalog(components={len(self._components)}, files={len(self._files)})"
        )

    # components

    def register_component_version(
        self,
        name: str,
        version: str,
        *,
        title: str | None = None,
        display_version: str | None = None,
        prerelease: bool | str | None = None,
        asciidoc_attributes: dict[str, Any] | None = None,
        start_page: str | None = None,
        origins: Iterable[Origin] = (),
    ) -> ComponentVersion:
        component_version = ComponentVersion(
            name=name,
            version=version,
            title=title or name,
            display_version=_display_version(version, display_version, prerelease),
            prerelease=prerelease or None,
            asciidoc_attributes=dict(asciidoc_attributes or {}),
            start_page=start_page,
            origins=list(origins),
        )
        component = self._components.get(name)
        if component is None:
            self._components[name] = Component(name, [component_version])
        else:
            if any(cv.version == version for cv in component.versions):
                raise ContentError(
                    f"Duplicate version detected for component {name}: {version}"
                )
            component.versions = _sort_component_versions(
                [*component.versions, component_version]
            )
        return component_version

    def get_component(self, name: str) -> Component | None:
        return self._components.get(name)

    def get_component_version(
        self, component: str | Component, version: str
    ) -> ComponentVersion | None:
        if isinstance(component, str):
            found = self._components.get(component)
            if found is None:
                return None
            component = found
        for candidate in component.versions:
            if candidate.version == version:
                return candidate
        return None

    def get_components(self) -> list[Component]:
        return list(self._components.values())

    def get_components_sorted_by(self, attribute: str) -> list[Component]:
        return sorted(self._components.values(), key=lambda c: getattr(c, attribute).lower())

    def compute_version_segment(
        self, name: str, version: str, mode: str | None = None
    ) -> str | None:
        """URL segment for ``version``; ``mode`` is None, ``alias`` or ``original``."""
        if mode == "original":
            return "" if not version or version == "master" else version
        strategy = self.latest_version_segment_strategy
        if not version or version == "master":
            if mode != "alias":
                return ""
            if strategy == "redirect:to":
                return None
        if strategy == "redirect:to" or strategy == (
            "redirect:from" if mode == "alias" else "replace"
        ):
            component = self._components.get(name)
            component_version = (
                self.get_component_version(component, version) if component else None
            )
            if component is not None and component_version is not None:
                if component_version is component.latest:
                    segment = self.latest_version_segment
                elif component_version.prerelease and component_version is component.versions[0]:
                    segment = self.latest_prerelease_version_segment
                else:
                    segment = None
                return version if segment is None else segment
        return version

    # files

    def add_file(self, file: CatalogFile) -> CatalogFile:
        """Index ``file``, assigning ``out`` and ``pub`` where it is publishable.

        Returns the file kept in the catalog, which is the existing one when a
        duplicate is resolved in its favour.
        """
        src = file.src
        key = src.key()
        existing = self._files.get(key)
        if existing is not None:
            resolved = self._resolve_duplicate(existing, file)
            if resolved is existing:
                return existing

        if isinstance(file, (Page, Image, Attachment, Alias)) and file.pub is None:
            # an alias is published the way its target is
            family = file.rel.src.family if isinstance(file, Alias) else src.family
            if "/_" not in "/" + src.relative:
                segment = self.compute_version_segment(src.component, src.version) or ""
                out = compute_out(src, family, segment, self.html_extension_style)
                file.out = out
                file.pub = compute_pub(src, out, family, segment, self.html_extension_style)
        elif isinstance(file, Navigation) and file.pub is None:
            segment = self.compute_version_segment(src.component, src.version) or ""
            file.pub = compute_pub(src, None, src.family, segment, self.html_extension_style)

        self._files[key] = file
        return file

    def _resolve_duplicate(self, existing: CatalogFile, file: CatalogFile) -> CatalogFile:
        src = file.src
        spec = format_resource_spec(
            src.component, src.version, src.module, src.family, src.relative
        )
        if src.family == "alias":
            raise ContentError(f"Duplicate alias: {spec}")
        if src.family == "navigation":
            headline = f"Duplicate nav in {src.version or '_'}@{src.component}: {file.path}"
        else:
            headline = f"Duplicate {src.family}: {spec}"
        message = (
            f"{headline}\n    1: {existing.location()}\n    2: {file.location()}"
        )
        if self.duplicate_policy == "error":
            raise DuplicateFileError(message)
        if self.duplicate_policy == "first-wins":
            logger.warning("%s\n    keeping 1", message)
            return existing
        logger.warning("%s\n    keeping 2", message)
        return file

    def remove_file(self, file: CatalogFile) -> bool:
        key = file.src.key()
        if self._files.get(key) is file:
            del self._files[key]
            return True
        return False

    def find_by(self, **criteria: Any) -> list[CatalogFile]:
        return [
            candidate
            for candidate in self._files.values()
            if all(getattr(candidate.src, k, None) == v for k, v in criteria.items())
        ]

    def get_by_id(
        self,
        component: str,
        version: str,
        module: str | None,
        family: str,
        relative: str,
    ) -> CatalogFile | None:
        return self._files.get((component, version, module or "", family, relative))

    def get_by_path(self, component: str, version: str, path: str) -> CatalogFile | None:
        for candidate in self._files.values():
            src = candidate.src
            if candidate.path == path and src.component == component and src.version == version:
                return candidate
        return None

    def get_all(self) -> list[CatalogFile]:
        return list(self._files.values())

    def get_pages(self, predicate: Callable[[Page], bool] | None = None) -> list[Page]:
        return [
            f
            for f in self._files.values()
            if isinstance(f, Page) and (predicate is None or predicate(f))
        ]

    # start pages

    def register_component_version_start_page(
        self, name: str, component_version: ComponentVersion, start_page: str | None = None
    ) -> CatalogFile | None:
        version = component_version.version
        index_id = (name, version, "ROOT", "page", "index.adoc")
        index_context = dict(zip(("component", "version", "module", "family", "relative"), index_id))
        found: CatalogFile | None = None
        if start_page:
            try:
                found = self.resolve_page(start_page, index_context)
                invalid = False
            except InvalidResourceIdError:
                invalid = True
            if found is not None and found.src.component == name and found.src.version == version:
                if (found.src.module, found.src.relative) != ("ROOT", "index.adoc") and (
                    self.get_by_id(*index_id) is None
                ):
                    self.add_file(
                        Alias(src=_inflate_src(index_id[:3] + ("alias", "index.adoc")), rel=found)
                    )
            else:
                problem = "has invalid syntax" if invalid else "not found"
                logger.warning(
                    "Start page specified for %s@%s %s: %s",
                    version or "_",
                    name,
                    problem,
                    start_page,
                )
                found = self.get_by_id(*index_id)
        else:
            found = self.get_by_id(*index_id)

        if found is not None and found.pub is not None:
            component_version.url = found.pub.url
        else:
            src = _inflate_src(index_id)
            segment = self.compute_version_segment(name, version) or ""
            out = compute_out(src, "page", segment, self.html_extension_style)
            component_version.url = compute_pub(
                src, out, "page", segment, self.html_extension_style
            ).url

        version_alias = self._create_symbolic_version_alias(name, version)
        if version_alias is not None:
            self.add_file(version_alias)
        return found

    def _create_symbolic_version_alias(self, name: str, version: str) -> Alias | None:
        symbolic_segment = self.compute_version_segment(name, version, "alias")
        if symbolic_segment is None or symbolic_segment == version:
            return None
        original_segment = self.compute_version_segment(name, version, "original") or ""

        def splat(segment: str, key_version: str) -> tuple[FileSrc, FilePub]:
            src = _inflate_src((name, key_version, "ROOT", "alias", ""))
            out = compute_out(src, "alias", segment)
            return src, compute_pub(src, out, "alias", segment)

        symbolic_src, symbolic_pub = splat(symbolic_segment, symbolic_segment)
        original_src, original_pub = splat(original_segment, version)
        if self.latest_version_segment_strategy == "redirect:to":
            target = _VersionTarget(symbolic_src, symbolic_pub)
            return Alias(src=original_src, rel=target, pub=original_pub)  # type: ignore[arg-type]
        target = _VersionTarget(original_src, original_pub)
        return Alias(src=symbolic_src, rel=target, pub=symbolic_pub)  # type: ignore[arg-type]

    def register_site_start_page(self, start_page: str | None) -> Alias | None:
        if not start_page:
            return None
        try:
            page_id = parse_resource_id(start_page, {}, "page", ("page",))
            rel = self.resolve_page(start_page)
        except InvalidResourceIdError:
            logger.warning("Start page specified for site has invalid syntax: %s", start_page)
            return None
        if rel is None:
            if page_id.component is None:
                logger.warning("Missing component name in start page for site: %s", start_page)
            else:
                logger.warning("Start page specified for site not found: %s", start_page)
            return None
        if self.get_by_id(*START_PAGE_ID) is not None:
            return None
        existing = self.get_by_id(*START_ALIAS_ID)
        if isinstance(existing, Alias):
            existing.rel = rel
            return existing
        alias = self.add_file(Alias(src=_inflate_src(START_ALIAS_ID), rel=rel))
        return alias if isinstance(alias, Alias) else None

    def get_site_start_page(self) -> CatalogFile | None:
        page = self.get_by_id(*START_PAGE_ID)
        if page is not None:
            return page
        alias = self.get_by_id(*START_ALIAS_ID)
        return alias.rel if isinstance(alias, Alias) else None

    # aliases

    def register_page_alias(self, spec: str, target: Page) -> Alias:
        """Register ``spec`` as an alias that redirects to ``target``.

        Raises InvalidResourceIdError for bad syntax and ContentError when the
        alias collides with a page or another alias.
        """
        context = {
            "component": target.src.component,
            "version": target.src.version,
            "module": target.src.module or "",
            "family": target.src.family,
            "relative": target.src.relative,
        }
        alias_id = parse_resource_id(spec, context, "page", ("page",))
        version = alias_id.version
        component = self._components.get(alias_id.component or "")
        if version is None:
            version = component.latest.version if component is not None else ""
        key = (alias_id.component or "", version, alias_id.module or "ROOT", "page", alias_id.relative)
        display = format_resource_spec(*key)
        if component is not None:
            existing_page = self.get_by_id(*key)
            if existing_page is not None:
                if existing_page is target:
                    raise ContentError(
                        f"Page cannot define alias that references itself: {display}"
                        f" (specified as: {spec})\n    source: {target.location()}"
                    )
                raise ContentError(
                    f"Page alias cannot reference an existing page: {display} (specified as: {spec})\n"
                    f"    source: {target.location()}\n"
                    f"    existing page: {existing_page.location()}"
                )
        alias_key = key[:3] + ("alias", key[4])
        if self.get_by_id(*alias_key) is not None:
            raise ContentError(
                f"Duplicate alias: {display} (specified as: {spec})\n"
                f"    source: {target.location()}"
            )
        alias = self.add_file(Alias(src=_inflate_src(alias_key, origin=target.src.origin), rel=target))
        assert isinstance(alias, Alias)
        return alias

    def get_redirects(self) -> list[tuple[str, str]]:
        """(from url, to url) pairs for every alias with a published url."""
        redirects = []
        for file in self._files.values():
            if isinstance(file, Alias) and file.pub is not None:
                target_url = file.target_url
                if target_url and target_url != file.pub.url:
                    redirects.append((file.pub.url, target_url))
        return redirects

    # resolution

    def resolve_resource(
        self,
        spec: str,
        context: dict[str, str] | None = None,
        default_family: str | None = None,
        permitted_families: tuple[str, ...] | None = None,
    ) -> CatalogFile | None:
        resource_id = parse_resource_id(spec, context, default_family, permitted_families)
        resolved = self._qualify(resource_id)
        if resolved is None:
            return None
        return self.get_by_id(*resolved.key())

    def _qualify(self, resource_id: ResourceId) -> ResourceId | None:
        if resource_id.component is None:
            return None
        if resource_id.version is None:
            component = self._components.get(resource_id.component)
            if component is None:
                return None
            return ResourceId(
                resource_id.component,
                component.latest.version,
                resource_id.module,
                resource_id.family,
                resource_id.relative,
            )
        return resource_id

    def resolve_page(
        self, spec: str, context: dict[str, str] | None = None
    ) -> CatalogFile | None:
        resource_id = self._qualify(parse_resource_id(spec, context, "page", ("page",)))
        if resource_id is None:
            return None
        page = self.get_by_id(*resource_id.key())
        if page is not None:
            return page
        alias = self.get_by_id(*resource_id.with_family("alias").key())
        return alias.rel if isinstance(alias, Alias) else None

    def resolve_page_alias(
        self, spec: str, context: dict[str, str] | None = None
    ) -> Alias | None:
        resource_id = self._qualify(parse_resource_id(spec, context, "page", ("page",)))
        if resource_id is None:
            return None
        alias = self.get_by_id(*resource_id.with_family("alias").key())
        return alias if isinstance(alias, Alias) else None


class _VersionTarget:
    """Redirect target of a splat version alias; it is not itself a catalog file."""

    def __init__(self, src: FileSrc, pub: FilePub) -> None:
        self.src = src
        self.pub = pub

    def __repr__(self) -> str:
        return f"_VersionTarget({self.pub.url!r})"
