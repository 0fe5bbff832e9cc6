from __future__ import annotations

import logging
from dataclasses import replace

import pytest

from doccatalog.content.aggregator import merge_buckets
from doccatalog.content.classifier import (
    ContentClassifier,
    classify_content,
    parse_page_aliases,
    read_header_attribute,
)
from doccatalog.content.models import (
    Attachment,
    ComponentVersionBucket,
    Example,
    Image,
    Navigation,
    Origin,
    Page,
    Partial,
    SourceFile,
    SourceFileSrc,
    media_type_for,
    split_basename,
)
from doccatalog.errors import DuplicateFileError
from doccatalog.hooks import PipelineHooks
from doccatalog.playbook import Playbook, SiteConfig, UrlConfig

ORIGIN = Origin(
    url="https://git.example.org/docs.git",
    gitdir="/cache/docs.git",
    refname="main",
    reftype="branch",
)


def source_file(path: str, contents: str = "", origin: Origin = ORIGIN) -> SourceFile:
    basename, stem, extname = split_basename(path)
    src = SourceFileSrc(
        path=path,
        basename=basename,
        stem=stem,
        extname=extname,
        media_type=media_type_for(path),
        origin=origin,
    )
    return SourceFile(path=path, contents=contents.encode(), src=src)


def bucket(
    files: dict[str, str],
    name: str = "the-component",
    version: str = "1.0",
    origin: Origin = ORIGIN,
    **kwargs,
) -> ComponentVersionBucket:
    return ComponentVersionBucket(
        name=name,
        version=version,
        origins=[origin],
        files=[source_file(path, contents, origin) for path, contents in files.items()],
        **kwargs,
    )


class TestReadHeaderAttribute:
    def test_reads_attribute_entry(self) -> None:
        assert read_header_attribute("= Title\n:foo: bar\n", "foo") == "bar"

    def test_missing_attribute(self) -> None:
        assert read_header_attribute("= Title\n:foo: bar\n", "baz") is None

    def test_empty_value(self) -> None:
        assert read_header_attribute(":foo:\n", "foo") == ""

    def test_header_ends_at_first_blank_line(self) -> None:
        assert read_header_attribute("= Title\n\n:foo: bar\n", "foo") is None

    def test_leading_blank_lines_are_skipped(self) -> None:
        assert read_header_attribute("\n\n:foo: bar\n", "foo") == "bar"

    def test_comment_lines_are_skipped(self) -> None:
        contents = "= Title\n// :foo: commented\n:foo: live\n"
        assert read_header_attribute(contents, "foo") == "live"

    def test_byte_order_mark(self) -> None:
        assert read_header_attribute("\ufeff:foo: bar\n".encode(), "foo") == "bar"

    def test_line_continuation(self) -> None:
        contents = "= Title\n:page-aliases: a.adoc, \\\n  b.adoc\n"
        assert parse_page_aliases(contents) == ("a.adoc", "b.adoc")

    def test_page_aliases_are_trimmed(self) -> None:
        assert parse_page_aliases(":page-aliases: a.adoc ,, b.adoc \n") == ("a.adoc", "b.adoc")
        assert parse_page_aliases("= No aliases\n") == ()


class TestClassifyFamilies:
    def test_files_are_sorted_into_families(self) -> None:
        aggregate = (
            bucket(
                {
                    "modules/ROOT/pages/index.adoc": "= Index\n",
                    "modules/ROOT/pages/topic/deep.adoc": "= Deep\n",
                    "modules/ROOT/pages/_partials/shared.adoc": "shared",
                    "modules/ROOT/partials/snippet.adoc": "snippet",
                    "modules/ROOT/examples/code.rb": "puts 1",
                    "modules/ROOT/images/logo.png": "",
                    "modules/ROOT/assets/images/banner.png": "",
                    "modules/ROOT/assets/attachments/kit.zip": "",
                    "modules/admin/attachments/manual.pdf": "",
                }
            ),
        )
        catalog = ContentClassifier().classify(aggregate)

        def one(family: str, relative: str):
            found = catalog.find_by(family=family, relative=relative)
            assert len(found) == 1
            return found[0]

        index = one("page", "index.adoc")
        assert isinstance(index, Page)
        assert index.src.module == "ROOT"
        assert index.src.module_root_path == ".."
        assert index.pub.url == "/the-component/1.0/index.html"
        assert one("page", "topic/deep.adoc").src.module_root_path == "../.."
        assert isinstance(one("partial", "shared.adoc"), Partial)
        assert isinstance(one("partial", "snippet.adoc"), Partial)
        assert isinstance(one("example", "code.rb"), Example)
        assert isinstance(one("image", "logo.png"), Image)
        banner = one("image", "banner.png")
        assert banner.pub.url == "/the-component/1.0/_images/banner.png"
        assert isinstance(one("attachment", "kit.zip"), Attachment)
        manual = one("attachment", "manual.pdf")
        assert manual.src.module == "admin"
        assert manual.pub.url == "/the-component/1.0/admin/_attachments/manual.pdf"
        assert len(catalog.get_all()) == 9

    @pytest.mark.parametrize(
        "path",
        [
            "README.adoc",
            "modules/ROOT/pages/notes.txt",
            "modules/ROOT/images/no-extension",
            "modules/ROOT/other/file.adoc",
            "modules/ROOT/pages",
            "modules/ROOT/pages/_partials",
        ],
    )
    def test_unrecognized_files_are_skipped(self, path: str, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            catalog = ContentClassifier().classify((bucket({path: ""}),))
        assert catalog.get_all() == []
        assert (
            f"Skipping file in 1.0@the-component that does not belong to a known family: {path}"
            in caplog.text
        )

    def test_component_version_without_files_is_registered(self) -> None:
        catalog = ContentClassifier().classify((bucket({}, title="Empty"),))
        component_version = catalog.get_component_version("the-component", "1.0")
        assert component_version.title == "Empty"
        assert component_version.url == "/the-component/1.0/index.html"

    def test_versions_are_registered_before_files(self) -> None:
        aggregate = (
            bucket({"modules/ROOT/pages/a.adoc": ""}, version="1.0"),
            bucket({"modules/ROOT/pages/a.adoc": ""}, version="2.0"),
        )
        catalog = ContentClassifier(UrlConfig(latest_version_segment="latest")).classify(aggregate)
        urls = sorted(page.pub.url for page in catalog.get_pages())
        assert urls == ["/the-component/1.0/a.html", "/the-component/latest/a.html"]


class TestNavigation:
    def test_nav_files_keep_descriptor_order(self) -> None:
        aggregate = (
            bucket(
                {
                    "modules/ROOT/nav.adoc": "* xref:index.adoc[]",
                    "modules/admin/partials/nav.adoc": "* xref:admin.adoc[]",
                    "nav.adoc": "* xref:other.adoc[]",
                },
                nav=("modules/admin/partials/nav.adoc", "modules/ROOT/nav.adoc", "nav.adoc"),
            ),
        )
        catalog = ContentClassifier().classify(aggregate)
        navs = sorted(catalog.find_by(family="navigation"), key=lambda f: f.index)
        assert all(isinstance(nav, Navigation) for nav in navs)
        assert [nav.path for nav in navs] == [
            "modules/admin/partials/nav.adoc",
            "modules/ROOT/nav.adoc",
            "nav.adoc",
        ]
        admin, root, outside = navs
        assert (admin.src.module, admin.src.relative) == ("admin", "partials/nav.adoc")
        assert admin.src.module_root_path == ".."
        assert admin.pub.url == "/the-component/1.0/admin/"
        assert root.src.module_root_path == "."
        assert root.pub.url == "/the-component/1.0/"
        assert outside.src.module is None
        assert outside.src.relative == "nav.adoc"
        assert outside.pub.url == "/the-component/1.0/"

    def test_nav_file_takes_precedence_over_family(self) -> None:
        aggregate = (
            bucket(
                {"modules/ROOT/partials/nav.adoc": ""},
                nav=("modules/ROOT/partials/nav.adoc",),
            ),
        )
        catalog = ContentClassifier().classify(aggregate)
        assert [f.src.family for f in catalog.get_all()] == ["navigation"]

    def test_unresolved_nav_entry_warns(self, caplog) -> None:
        aggregate = (
            bucket(
                {"modules/ROOT/nav.txt": ""},
                nav=("modules/ROOT/nav.txt", "modules/ROOT/missing.adoc"),
            ),
        )
        with caplog.at_level(logging.WARNING):
            catalog = ContentClassifier().classify(aggregate)
        assert catalog.find_by(family="navigation") == []
        messages = [r.getMessage() for r in caplog.records]
        assert (
            "Could not resolve nav entry for 1.0@the-component defined in antora.yml"
            " in https://git.example.org/docs.git (branch: main): modules/ROOT/missing.adoc"
        ) in messages
        assert (
            "Could not resolve nav entry for 1.0@the-component defined in antora.yml"
            " in https://git.example.org/docs.git (branch: main): modules/ROOT/nav.txt"
        ) in messages


class TestStartPagesAndAliases:
    def test_component_version_start_page(self) -> None:
        aggregate = (
            bucket(
                {"modules/ROOT/pages/home.adoc": "= Home\n"},
                start_page="home.adoc",
            ),
        )
        catalog = ContentClassifier().classify(aggregate)
        assert catalog.get_component("the-component").url == "/the-component/1.0/home.html"
        assert catalog.get_redirects() == [
            ("/the-component/1.0/index.html", "/the-component/1.0/home.html")
        ]

    def test_page_aliases_become_redirects(self) -> None:
        aggregate = (
            bucket(
                {
                    "modules/ROOT/pages/new.adoc": (
                        "= New\n:page-aliases: old.adoc, legacy/older.adoc\n\nBody\n"
                    ),
                }
            ),
        )
        catalog = ContentClassifier().classify(aggregate)
        assert sorted(catalog.get_redirects()) == [
            ("/the-component/1.0/legacy/older.html", "/the-component/1.0/new.html"),
            ("/the-component/1.0/old.html", "/the-component/1.0/new.html"),
        ]

    def test_conflicting_alias_is_reported(self, caplog) -> None:
        aggregate = (
            bucket(
                {
                    "modules/ROOT/pages/a.adoc": "= A\n:page-aliases: b.adoc\n",
                    "modules/ROOT/pages/b.adoc": "= B\n",
                }
            ),
        )
        with caplog.at_level(logging.WARNING):
            catalog = ContentClassifier().classify(aggregate)
        assert catalog.get_redirects() == []
        assert "Page alias cannot reference an existing page: 1.0@the-component::b.adoc" in caplog.text

    def test_site_start_page_from_playbook(self) -> None:
        events = []
        playbook = Playbook(site=SiteConfig(start_page="the-component::index.adoc"))
        aggregate = (bucket({"modules/ROOT/pages/index.adoc": "= Index\n"}),)
        catalog = classify_content(
            aggregate,
            playbook=playbook,
            hooks=PipelineHooks(on_catalog_built=[events.append]),
        )
        assert catalog.get_site_start_page().pub.url == "/the-component/1.0/index.html"
        assert ("/index.html", "/the-component/1.0/index.html") in catalog.get_redirects()
        assert len(events) == 1
        assert events[0].catalog is catalog
        assert events[0].playbook is playbook


class TestDuplicates:
    def test_duplicate_location_names_each_origin(self, caplog) -> None:
        other = Origin(
            url="https://git.example.org/more.git",
            gitdir="/cache/more.git",
            refname="v1.0",
            reftype="tag",
            start_path="docs",
        )
        aggregate = merge_buckets(
            [
                bucket({"modules/ROOT/pages/a.adoc": "one"}),
                bucket({"modules/ROOT/pages/a.adoc": "two"}, origin=other),
            ]
        )
        with caplog.at_level(logging.WARNING):
            catalog = ContentClassifier().classify(aggregate)
        assert catalog.get_pages()[0].contents == b"two"
        assert caplog.records[0].getMessage() == (
            "Duplicate page: 1.0@the-component::a.adoc\n"
            "    1: modules/ROOT/pages/a.adoc in https://git.example.org/docs.git (branch: main)\n"
            "    2: docs/modules/ROOT/pages/a.adoc in https://git.example.org/more.git"
            " (tag: v1.0 | start path: docs)\n"
            "    keeping 2"
        )

    def test_worktree_location_uses_absolute_path(self) -> None:
        worktree = Origin(
            url="/work/docs",
            gitdir="/work/docs/.git",
            refname="main",
            reftype="branch",
            worktree_path="/work/docs",
        )
        file = source_file("modules/ROOT/pages/a.adoc", origin=worktree)
        file = replace(file, src=replace(file.src, abspath="/work/docs/modules/ROOT/pages/a.adoc"))
        catalog = ContentClassifier().classify(
            (ComponentVersionBucket(name="c", version="1.0", origins=[worktree], files=[file]),)
        )
        assert catalog.get_pages()[0].location() == (
            "/work/docs/modules/ROOT/pages/a.adoc in /work/docs (branch: main <worktree>)"
        )

    def test_error_policy_propagates(self) -> None:
        aggregate = merge_buckets(
            [
                bucket({"modules/ROOT/pages/a.adoc": "one"}),
                bucket({"modules/ROOT/pages/a.adoc": "two"}),
            ]
        )
        with pytest.raises(DuplicateFileError):
            ContentClassifier(duplicate_policy="error").classify(aggregate)
