"""Parsing of contextual resource ids (``version@component:module:family$relative``)."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, replace

from ..errors import InvalidResourceIdError

RESOURCE_ID_RX = re.compile(
    r"^(?:([^@:$]+)@)?(?:(?:([^@:$]+):)?(?:([^@:$]+))?:)?(?:([^@:$]+)\$)?([^:$][^@:$]*)$"
)
VERSIONLESS = "_"


@dataclass(frozen=True)
class ResourceId:
    component: str | None
    version: str | None
    module: str | None
    family: str
    relative: str

    def key(self) -> tuple[str, str, str, str, str]:
        return (
            self.component or "",
            self.version or "",
            self.module or "",
            self.family,
            self.relative,
        )

    def with_family(self, family: str) -> ResourceId:
        return replace(self, family=family)

    def spec(self, shorthand: bool = True) -> str:
        return format_resource_spec(
            self.component, self.version, self.module, self.family, self.relative, shorthand
        )


def format_resource_spec(
    component: str | None,
    version: str | None,
    module: str | None,
    family: str,
    relative: str,
    shorthand: bool = True,
) -> str:
    module_part = "" if shorthand and module == "ROOT" else (module or "")
    family_part = "" if family in ("page", "alias") else f"{family}$"
    version_part = version if version else VERSIONLESS
    return f"{version_part}@{component}:{module_part}:{family_part}{relative}"


def parse_resource_id(
    spec: str,
    context: dict[str, str] | None = None,
    default_family: str | None = "page",
    permitted_families: tuple[str, ...] | None = None,
) -> ResourceId:
    """Parse ``spec`` into a ResourceId, filling gaps from ``context``.

    A spec naming a component but no module targets the ROOT module; a spec
    without a component inherits component, version and module from the
    context. The version is left as None when a component is named without
    one, so the caller can substitute the latest version. ``_`` denotes the
    versionless version. Page specs without a file extension get ``.adoc``.
    """
    ctx = context or {}
    m = RESOURCE_ID_RX.match(spec)
    if not m:
        raise InvalidResourceIdError(f"Invalid resource id syntax: {spec}")
    version, component, module, family, relative = m.groups()
    if family:
        if permitted_families and family not in permitted_families:
            raise InvalidResourceIdError(
                f"Resource family {family!r} not permitted in: {spec}"
            )
    elif default_family:
        family = default_family
    else:
        raise InvalidResourceIdError(f"Resource id does not specify a family: {spec}")

    if family == "page" and not posixpath.splitext(relative)[1]:
        relative += ".adoc"

    if version == VERSIONLESS:
        version = ""

    if component:
        if not module:
            module = "ROOT"
    else:
        component = ctx.get("component")
        if version is None:
            version = ctx.get("version")
        if not module:
            module = ctx.get("module")

    if relative.startswith(("./", "../")):
        same_scope = (
            component == ctx.get("component")
            and module == ctx.get("module")
            and family == ctx.get("family", family)
        )
        ctx_relative = ctx.get("relative") or ""
        base = posixpath.dirname(ctx_relative) if same_scope else ""
        relative = _resolve_relative(base, relative)

    return ResourceId(component, version, module, family, relative)


def _resolve_relative(base: str, relative: str) -> str:
    """Join ``relative`` onto ``base``; ``..`` never climbs above the family root."""
    segments = [seg for seg in base.split("/") if seg]
    for segment in relative.split("/"):
        if segment == "..":
            if segments:
                segments.pop()
        elif segment and segment != ".":
            segments.append(segment)
    return "/".join(segments)
