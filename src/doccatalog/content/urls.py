"""Output paths and publication urls of catalog files."""

from __future__ import annotations

import posixpath

from .models import FileOut, FilePub, FileSrc

HTML_EXTENSION_STYLES = ("default", "drop", "indexify")
VERSION_SEGMENT_STRATEGIES = ("replace", "redirect:to", "redirect:from")


def join_segments(*parts: str) -> str:
    """Join path parts, ignoring empty and ``.`` segments; '' when nothing remains."""
    segments: list[str] = []
    for part in parts:
        segments.extend(seg for seg in part.split("/") if seg and seg != ".")
    return "/".join(segments)


def relative_path(from_dir: str, to_dir: str) -> str:
    """Relative path between two root-relative directories; ``.`` when identical."""
    src = [seg for seg in from_dir.split("/") if seg and seg != "."]
    dst = [seg for seg in to_dir.split("/") if seg and seg != "."]
    common = 0
    while common < min(len(src), len(dst)) and src[common] == dst[common]:
        common += 1
    parts = [".."] * (len(src) - common) + dst[common:]
    return "/".join(parts) or "."


def _module_segment(module: str | None) -> str:
    return "" if not module or module == "ROOT" else module


def _component_segment(component: str) -> str:
    return "" if component == "ROOT" else component


def compute_out(
    src: FileSrc,
    family: str,
    version_segment: str,
    html_extension_style: str = "default",
) -> FileOut:
    module_path = join_segments(
        _component_segment(src.component), version_segment, _module_segment(src.module)
    )
    basename = src.basename
    stem = src.stem
    indexify_segment = ""
    family_segment = ""
    if family == "page":
        if stem != "index" and html_extension_style == "indexify":
            basename = "index.html"
            indexify_segment = stem
        elif src.media_type == "text/asciidoc":
            basename = f"{stem}.html"
    elif family == "image":
        family_segment = "_images"
    elif family == "attachment":
        family_segment = "_attachments"

    dirname = join_segments(
        module_path, family_segment, posixpath.dirname(src.relative), indexify_segment
    )
    return FileOut(
        dirname=dirname or ".",
        basename=basename,
        path=join_segments(dirname, basename),
        module_root_path=relative_path(dirname, module_path),
        root_path=relative_path(dirname, ""),
    )


def compute_pub(
    src: FileSrc,
    out: FileOut | None,
    family: str,
    version_segment: str,
    html_extension_style: str = "default",
) -> FilePub:
    splat = False
    if family == "navigation":
        url = "/" + join_segments(
            _component_segment(src.component), version_segment, _module_segment(src.module)
        )
        # artificial url used to resolve page references in navigation
        url = url.rstrip("/") + "/"
        return FilePub(url=url, module_root_path=".")
    assert out is not None
    if family == "page":
        segments = out.path.split("/")
        last = segments[-1]
        if html_extension_style == "drop":
            segments[-1] = "" if last == "index.html" else last[: -len(".html")]
        elif html_extension_style == "indexify":
            segments[-1] = ""
        url = "/" + "/".join(segments)
    else:
        url = "/" + out.path
        if family == "alias" and not src.relative:
            splat = True
    return FilePub(
        url=url.replace(" ", "%20"),
        module_root_path=out.module_root_path,
        root_path=out.root_path,
        splat=splat,
    )
