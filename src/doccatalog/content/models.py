from __future__ import annotations

import mimetypes
import posixpath
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Union

_MEDIA_TYPES = {
    ".adoc": "text/asciidoc",
    ".asciidoc": "text/asciidoc",
    ".asc": "text/asciidoc",
    ".yml": "text/yaml",
    ".yaml": "text/yaml",
    ".svg": "image/svg+xml",
}


def media_type_for(path: str) -> str | None:
    extname = posixpath.splitext(path)[1].lower()
    if extname in _MEDIA_TYPES:
        return _MEDIA_TYPES[extname]
    guessed, _ = mimetypes.guess_type(path, strict=False)
    return guessed


def split_basename(path: str) -> tuple[str, str, str]:
    """Return (basename, stem, extname); a leading dot is not an extension."""
    basename = posixpath.basename(path)
    stem, extname = posixpath.splitext(basename)
    return basename, stem, extname


@dataclass(frozen=True)
class Origin:
    """Where a group of files came from: one (source, ref, start path)."""

    url: str
    gitdir: str
    refname: str
    reftype: str
    refhash: str | None = None
    start_path: str = ""
    worktree_path: str | None = None
    remote: str | None = None
    web_url: str | None = None
    edit_url_pattern: str | None = None
    file_uri_pattern: str | None = None
    auth_status: str | None = None
    local: bool = False
    descriptor: Mapping[str, Any] = field(
        default_factory=dict, compare=False, hash=False, repr=False
    )

    @property
    def worktree(self) -> bool:
        return self.worktree_path is not None

    @property
    def branch(self) -> str | None:
        return self.refname if self.reftype == "branch" else None

    @property
    def tag(self) -> str | None:
        return self.refname if self.reftype == "tag" else None

    def describe(self) -> str:
        details = f"{self.reftype}: {self.refname}"
        if self.worktree:
            details += " <worktree>"
        if self.start_path:
            details += f" | start path: {self.start_path}"
        return f"{self.url} ({details})"


@dataclass(frozen=True)
class SourceFileSrc:
    path: str
    basename: str
    stem: str
    extname: str
    media_type: str | None
    origin: Origin
    abspath: str | None = None
    edit_url: str | None = None
    file_uri: str | None = None


@dataclass(frozen=True)
class SourceFile:
    path: str
    contents: bytes
    src: SourceFileSrc


@dataclass
class ComponentVersionBucket:
    name: str
    version: str
    display_version: str | None = None
    title: str | None = None
    prerelease: bool | str | None = None
    start_page: str | None = None
    asciidoc_attributes: dict[str, Any] = field(default_factory=dict)
    nav: tuple[str, ...] | None = None
    origins: list[Origin] = field(default_factory=list)
    files: list[SourceFile] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        return self.name, self.version


Aggregate = tuple[ComponentVersionBucket, ...]


@dataclass(frozen=True)
class FileSrc:
    component: str
    version: str
    module: str | None
    family: str
    relative: str
    basename: str
    stem: str
    extname: str
    media_type: str | None = None
    origin: Origin | None = None
    path: str | None = None
    abspath: str | None = None
    edit_url: str | None = None
    file_uri: str | None = None
    module_root_path: str | None = None

    def key(self) -> tuple[str, str, str, str, str]:
        return (self.component, self.version, self.module or "", self.family, self.relative)


@dataclass(frozen=True)
class FileOut:
    dirname: str
    basename: str
    path: str
    module_root_path: str
    root_path: str


@dataclass(frozen=True)
class FilePub:
    url: str
    module_root_path: str | None = None
    root_path: str | None = None
    splat: bool = False


@dataclass(eq=False)
class _ContentFile:
    src: FileSrc
    path: str
    contents: bytes

    family: ClassVar[str] = ""

    def location(self) -> str:
        return file_location(self)


@dataclass(eq=False)
class Page(_ContentFile):
    out: FileOut | None = None
    pub: FilePub | None = None
    aliases: tuple[str, ...] = ()

    family: ClassVar[str] = "page"


@dataclass(eq=False)
class Partial(_ContentFile):
    family: ClassVar[str] = "partial"


@dataclass(eq=False)
class Example(_ContentFile):
    family: ClassVar[str] = "example"


@dataclass(eq=False)
class Image(_ContentFile):
    out: FileOut | None = None
    pub: FilePub | None = None

    family: ClassVar[str] = "image"


@dataclass(eq=False)
class Attachment(_ContentFile):
    out: FileOut | None = None
    pub: FilePub | None = None

    family: ClassVar[str] = "attachment"


@dataclass(eq=False)
class Navigation(_ContentFile):
    index: int = 0
    pub: FilePub | None = None

    family: ClassVar[str] = "navigation"


@dataclass(eq=False)
class Alias:
    """Redirect from ``pub.url`` to the current url of ``rel``."""

    src: FileSrc
    rel: Union[Page, "Alias"]
    out: FileOut | None = None
    pub: FilePub | None = None

    family: ClassVar[str] = "alias"

    @property
    def target_url(self) -> str | None:
        pub = self.rel.pub
        return pub.url if pub is not None else None

    @property
    def path(self) -> str | None:
        return self.src.path

    def location(self) -> str:
        return file_location(self)


CatalogFile = Union[Page, Partial, Example, Image, Attachment, Navigation, Alias]

FAMILY_TYPES: dict[str, type] = {
    cls.family: cls for cls in (Page, Partial, Example, Image, Attachment, Navigation, Alias)
}


def file_location(file: CatalogFile) -> str:
    """Describe where ``file`` was read, for use in warnings and errors."""
    src = file.src
    path = file.path or src.relative
    origin = src.origin
    if origin is None:
        return src.abspath or path
    details = f"{origin.reftype}: {origin.refname}"
    if origin.worktree_path:
        details += " <worktree>"
        where = origin.worktree_path
    elif origin.local and origin.remote:
        details += f" <remotes/{origin.remote}>"
        where = origin.gitdir
    else:
        where = origin.url
    if origin.start_path:
        details += f" | start path: {origin.start_path}"
    if src.abspath:
        return f"{src.abspath} in {where} ({details})"
    full = posixpath.join(origin.start_path, path) if origin.start_path else path
    return f"{full} in {where} ({details})"


@dataclass
class ComponentVersion:
    name: str
    version: str
    title: str
    display_version: str
    prerelease: bool | str | None = None
    asciidoc_attributes: dict[str, Any] = field(default_factory=dict)
    start_page: str | None = None
    url: str | None = None
    origins: list[Origin] = field(default_factory=list)

    def spec(self) -> str:
        return f"{self.version or '_'}@{self.name}"


@dataclass
class Component:
    name: str
    versions: list[ComponentVersion] = field(default_factory=list)

    @property
    def latest(self) -> ComponentVersion:
        for candidate in self.versions:
            if not candidate.prerelease:
                return candidate
        return self.versions[0]

    @property
    def latest_prerelease(self) -> ComponentVersion | None:
        latest = self.latest
        for candidate in self.versions:
            if candidate is latest:
                return None
            if candidate.prerelease:
                return candidate
        return None

    @property
    def title(self) -> str:
        return self.latest.title

    @property
    def url(self) -> str | None:
        return self.latest.url

    @property
    def asciidoc_attributes(self) -> dict[str, Any]:
        return self.latest.asciidoc_attributes
