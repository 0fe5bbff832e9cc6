from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from types import SimpleNamespace

import pytest

from doccatalog import build_catalog
from doccatalog.content.aggregator import ContentAggregator, aggregate_content, merge_buckets
from doccatalog.content.models import ComponentVersionBucket, Origin
from doccatalog.errors import AggregateError, ConfigurationError, TransportError
from doccatalog.git.refs import Ref
from doccatalog.hooks import PipelineHooks
from doccatalog.playbook import ContentConfig, ContentSource, Playbook, build_playbook
from tests._fixtures.repo_builder import RepoBuilder, requires_git


def _origin(refname: str) -> Origin:
    return Origin(url="https://git.example.org/docs.git", gitdir="/cache/docs.git", refname=refname, reftype="branch")


class TestMergeBuckets:
    def test_buckets_with_same_key_are_combined(self) -> None:
        first = ComponentVersionBucket(
            name="c",
            version="1.0",
            title="First",
            asciidoc_attributes={"a": "1", "b": "1"},
            origins=[_origin("main")],
            files=["f1"],  # type: ignore[list-item]
        )
        other = ComponentVersionBucket(name="d", version="1.0", origins=[_origin("main")])
        second = ComponentVersionBucket(
            name="c",
            version="1.0",
            title=None,
            start_page="home.adoc",
            asciidoc_attributes={"b": "2"},
            origins=[_origin("v1.0"), _origin("main")],
            files=["f2"],  # type: ignore[list-item]
        )
        merged = merge_buckets([first, other, second])
        assert [bucket.key for bucket in merged] == [("c", "1.0"), ("d", "1.0")]
        combined = merged[0]
        assert combined.title == "First"
        assert combined.start_page == "home.adoc"
        assert combined.asciidoc_attributes == {"a": "1", "b": "2"}
        assert combined.files == ["f1", "f2"]
        assert [o.refname for o in combined.origins] == ["main", "v1.0"]
        # inputs are left untouched
        assert first.files == ["f1"]
        assert first.asciidoc_attributes == {"a": "1", "b": "1"}


class RecordingAggregator(ContentAggregator):
    def __init__(self, playbook: Playbook, failures: dict[str, Exception] | None = None) -> None:
        super().__init__(playbook)
        self.events: list[tuple[str, str]] = []
        self.failures = failures or {}
        self._events_lock = threading.Lock()

    def _record(self, kind: str, url: str) -> None:
        with self._events_lock:
            self.events.append((kind, url))

    def _resolve_source(self, source):
        if source.url == "a":
            time.sleep(0.05)
        if source.url in self.failures:
            raise self.failures[source.url]
        self._record("resolve", source.url)
        return SimpleNamespace(url=source.url, source=source)

    def refs_for(self, resolved):
        return [Ref("main", "branch", "refs/heads/main")]

    def _read_ref(self, resolved, ref):
        self._record("read", resolved.url)
        return [ComponentVersionBucket(name=resolved.url, version="1.0")]


def _playbook(*urls: str) -> Playbook:
    return Playbook(content=ContentConfig(sources=tuple(ContentSource(url=url) for url in urls)))


class TestPhases:
    def test_all_sources_resolve_before_any_ref_is_read(self) -> None:
        aggregator = RecordingAggregator(_playbook("a", "b", "c"))
        aggregate = aggregator.run()
        kinds = [kind for kind, _ in aggregator.events]
        assert kinds == ["resolve"] * 3 + ["read"] * 3
        assert [bucket.name for bucket in aggregate] == ["a", "b", "c"]

    def test_single_failure_is_raised_as_is(self) -> None:
        failure = TransportError("Failed to retrieve content repository", location="b")
        aggregator = RecordingAggregator(_playbook("a", "b", "c"), {"b": failure})
        with pytest.raises(TransportError) as excinfo:
            aggregator.run()
        assert excinfo.value is failure
        assert not any(kind == "read" for kind, _ in aggregator.events)

    def test_failures_are_collected_in_source_order(self) -> None:
        failures = {
            "c": ConfigurationError("third"),
            "a": ConfigurationError("first"),
        }
        aggregator = RecordingAggregator(_playbook("a", "b", "c"), failures)
        with pytest.raises(AggregateError) as excinfo:
            aggregator.run()
        assert [str(err) for err in excinfo.value.errors] == ["first", "third"]
        assert str(excinfo.value).startswith("2 errors occurred:\n  1: first\n  2: third")

    def test_hooks_observe_each_stage(self) -> None:
        resolved_events, bucket_events = [], []
        hooks = PipelineHooks(
            on_sources_resolved=[resolved_events.append],
            on_bucket_built=[bucket_events.append],
        )
        aggregator = RecordingAggregator(_playbook("a", "b"))
        aggregator.hooks = hooks
        aggregator.run()
        assert [len(event.sources) for event in resolved_events] == [2]
        assert [event.bucket.name for event in bucket_events] == ["a", "b"]


@pytest.fixture
def remote_docs(repo_builder: RepoBuilder) -> tuple[Path, str, str]:
    repo = repo_builder.init("docs")
    old = repo_builder.commit(
        repo,
        {
            **repo_builder.component("docs", "1.0", start_path="docs"),
            "README.adoc": "= Outside the start path\n",
        },
    )
    repo_builder.git(repo, "branch", "v1.0")
    new = repo_builder.commit(
        repo,
        repo_builder.component(
            "docs",
            "2.0",
            start_path="docs",
            pages={"index.adoc": "= Index\n", "new.adoc": "= New\n:page-aliases: old.adoc\n"},
            descriptor="title: Documentation\n",
        ),
    )
    bare = repo_builder.bare_clone(repo, "docs-remote.git")
    return bare, old, new


@pytest.fixture
def local_guides(repo_builder: RepoBuilder) -> Path:
    repo = repo_builder.init("guides")
    repo_builder.commit(
        repo,
        repo_builder.component(
            "guides", None, extra={"modules/ROOT/images/logo.png": b"\x89PNG"}
        ),
    )
    repo_builder.write(repo, {"modules/ROOT/pages/draft.adoc": "= Draft\n"})
    return repo


@requires_git
class TestAggregateContent:
    def test_remote_and_worktree_sources(
        self, repo_builder: RepoBuilder, cache_dir: str, remote_docs, local_guides: Path
    ) -> None:
        bare, old, new = remote_docs
        playbook = build_playbook(
            {
                "runtime": {"cache_dir": cache_dir},
                "content": {
                    "sources": [
                        {"url": bare.as_uri(), "start_path": "docs", "branches": ["main", "v*"]},
                        {"url": "./guides", "branches": "HEAD"},
                    ]
                },
            },
            str(repo_builder.base),
        )
        aggregate = aggregate_content(playbook)
        assert [bucket.key for bucket in aggregate] == [
            ("docs", "2.0"),
            ("docs", "1.0"),
            ("guides", ""),
        ]
        docs_2, docs_1, guides = aggregate

        assert docs_2.title == "Documentation"
        assert [f.path for f in docs_2.files] == [
            "modules/ROOT/pages/index.adoc",
            "modules/ROOT/pages/new.adoc",
        ]
        origin = docs_2.origins[0]
        assert origin.url == bare.as_uri()
        assert (origin.reftype, origin.refname, origin.refhash) == ("branch", "main", new)
        assert origin.start_path == "docs"
        assert origin.worktree_path is None
        assert origin.remote == "origin"
        assert docs_1.origins[0].refhash == old
        assert [f.path for f in docs_1.files] == ["modules/ROOT/pages/index.adoc"]
        assert docs_1.files[0].contents == b"= Index\n"
        assert docs_1.files[0].src.abspath is None

        assert [f.path for f in guides.files] == [
            "modules/ROOT/images/logo.png",
            "modules/ROOT/pages/draft.adoc",
            "modules/ROOT/pages/index.adoc",
        ]
        worktree_origin = guides.origins[0]
        assert worktree_origin.worktree_path == str(local_guides)
        assert worktree_origin.refname == "main"
        assert worktree_origin.refhash is None
        assert worktree_origin.local
        draft = guides.files[1]
        assert draft.contents == b"= Draft\n"
        assert draft.src.abspath == str(local_guides / "modules" / "ROOT" / "pages" / "draft.adoc")
        assert draft.src.file_uri == (local_guides / "modules/ROOT/pages/draft.adoc").as_uri()
        assert draft.src.edit_url == draft.src.file_uri
        assert guides.files[0].src.media_type == "image/png"

    def test_start_paths_glob(self, repo_builder: RepoBuilder, cache_dir: str) -> None:
        repo = repo_builder.init("multi")
        repo_builder.commit(
            repo,
            {
                **repo_builder.component("one", "1.0", start_path="components/one"),
                **repo_builder.component("two", "1.0", start_path="components/two"),
                **repo_builder.component("legacy", "0.1", start_path="components/legacy"),
            },
        )
        playbook = build_playbook(
            {
                "runtime": {"cache_dir": cache_dir},
                "content": {
                    "sources": [
                        {"url": str(repo), "start_paths": ["components/*", "!components/legacy"]}
                    ]
                },
            }
        )
        aggregate = aggregate_content(playbook)
        assert [bucket.key for bucket in aggregate] == [("one", "1.0"), ("two", "1.0")]
        assert aggregate[1].origins[0].start_path == "components/two"

    def test_start_paths_brace_group_with_literal_segment(
        self, repo_builder: RepoBuilder, cache_dir: str, caplog
    ) -> None:
        repo = repo_builder.init("grouped")
        repo_builder.commit(
            repo,
            {
                **repo_builder.component("docs", "1.0", start_path="docs/content"),
                **repo_builder.component("guides", "2.0", start_path="guides/content"),
                "README.adoc": "= Readme\n",
            },
        )
        playbook = build_playbook(
            {
                "runtime": {"cache_dir": cache_dir},
                "content": {
                    "sources": [
                        {"url": str(repo), "start_paths": ["{docs,guides,archive}/content", "README*"]}
                    ]
                },
            }
        )
        with caplog.at_level(logging.WARNING):
            aggregate = aggregate_content(playbook)
        assert [bucket.key for bucket in aggregate] == [("docs", "1.0"), ("guides", "2.0")]
        assert [b.origins[0].start_path for b in aggregate] == ["docs/content", "guides/content"]
        assert [r for r in caplog.records if r.levelno >= logging.WARNING] == []

    def test_missing_start_path_and_descriptor_are_skipped(
        self, repo_builder: RepoBuilder, cache_dir: str, caplog
    ) -> None:
        repo = repo_builder.init("sparse")
        repo_builder.commit(repo, {"docs/modules/ROOT/pages/index.adoc": "= Index\n"})
        playbook = build_playbook(
            {
                "runtime": {"cache_dir": cache_dir},
                "content": {
                    "sources": [
                        {"url": str(repo), "start_path": "nope"},
                        {"url": str(repo), "start_path": "docs"},
                    ]
                },
            }
        )
        with caplog.at_level(logging.WARNING):
            assert aggregate_content(playbook) == ()
        messages = [r.getMessage() for r in caplog.records]
        assert any(
            m.startswith("start path does not exist in") and "start path: nope" in m for m in messages
        )
        assert any(
            m.startswith("could not find antora.yml in") and "start path: docs" in m for m in messages
        )

    def test_descriptor_files_filter(self, repo_builder: RepoBuilder, cache_dir: str) -> None:
        repo = repo_builder.init("filtered")
        repo_builder.commit(
            repo,
            repo_builder.component(
                "filtered",
                "1.0",
                extra={"modules/ROOT/examples/big.bin": b"\0", "notes/todo.txt": "x"},
                descriptor="files:\n- modules/**\n- '!**/*.bin'\n",
            ),
        )
        playbook = build_playbook(
            {"runtime": {"cache_dir": cache_dir}, "content": {"sources": [str(repo)]}}
        )
        (bucket,) = aggregate_content(playbook)
        assert [f.path for f in bucket.files] == ["modules/ROOT/pages/index.adoc"]

    def test_descriptor_files_name_directories_and_missing_paths(
        self, repo_builder: RepoBuilder, cache_dir: str, caplog
    ) -> None:
        repo = repo_builder.init("listed")
        repo_builder.commit(
            repo,
            repo_builder.component(
                "listed",
                "1.0",
                pages={"index.adoc": "= Index\n", "topic/a.adoc": "= A\n"},
                extra={"modules/ROOT/images/logo.png": b"\x89PNG", "notes/todo.txt": "x"},
                descriptor="files:\n- modules/ROOT/pages\n- '{modules,extra}/*/images/*.png'\n- gone.adoc\n",
            ),
        )
        playbook = build_playbook(
            {"runtime": {"cache_dir": cache_dir}, "content": {"sources": [str(repo)]}}
        )
        with caplog.at_level(logging.WARNING):
            (bucket,) = aggregate_content(playbook)
        assert [f.path for f in bucket.files] == [
            "modules/ROOT/pages/index.adoc",
            "modules/ROOT/pages/topic/a.adoc",
            "modules/ROOT/images/logo.png",
        ]
        assert [r.getMessage() for r in caplog.records if r.levelno >= logging.WARNING] == [
            "file listed in antora.yml does not exist: gone.adoc"
        ]

    def test_same_component_version_from_two_sources_is_merged(
        self, repo_builder: RepoBuilder, cache_dir: str
    ) -> None:
        first = repo_builder.init("first")
        repo_builder.commit(first, repo_builder.component("shared", "1.0"))
        second = repo_builder.init("second")
        repo_builder.commit(
            second, repo_builder.component("shared", "1.0", pages={"extra.adoc": "= Extra\n"})
        )
        playbook = build_playbook(
            {
                "runtime": {"cache_dir": cache_dir},
                "content": {"sources": [str(first), str(second)]},
            }
        )
        (bucket,) = aggregate_content(playbook)
        assert [f.path for f in bucket.files] == [
            "modules/ROOT/pages/index.adoc",
            "modules/ROOT/pages/extra.adoc",
        ]
        assert [o.worktree_path for o in bucket.origins] == [str(first), str(second)]

    def test_build_catalog(
        self, repo_builder: RepoBuilder, cache_dir: str, remote_docs, local_guides: Path, tmp_path: Path
    ) -> None:
        bare, _, _ = remote_docs
        playbook_file = tmp_path / "playbook.yml"
        playbook_file.write_text(
            f"""\
site:
  start_page: docs::index.adoc
content:
  sources:
  - url: {bare.as_uri()}
    start_path: docs
    branches: [main, v*]
  - url: {local_guides}
urls:
  latest_version_segment: current
""",
            encoding="utf-8",
        )
        catalog = build_catalog(str(playbook_file), cache_dir=cache_dir)
        docs = catalog.get_component("docs")
        assert [cv.version for cv in docs.versions] == ["2.0", "1.0"]
        assert docs.title == "Documentation"
        assert docs.url == "/docs/current/index.html"
        assert catalog.get_component_version("docs", "1.0").url == "/docs/1.0/index.html"
        guides = catalog.get_component("guides")
        assert guides.url == "/guides/index.html"
        assert catalog.resolve_page("guides::draft.adoc") is not None
        logo = catalog.resolve_resource("guides::image$logo.png")
        assert logo.pub.url == "/guides/_images/logo.png"
        assert ("/docs/current/old.html", "/docs/current/new.html") in catalog.get_redirects()
        assert catalog.get_site_start_page().pub.url == "/docs/current/index.html"
