from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def cache_dir(tmp_path: Path) -> str:
    path = tmp_path / "cache"
    path.mkdir()
    return str(path)


@pytest.fixture(autouse=True)
def _isolate_runtime(monkeypatch):
    for name in (
        "DOCCATALOG_CACHE_DIR",
        "DOCCATALOG_FETCH_CONCURRENCY",
        "DOCCATALOG_READ_CONCURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)
    logger = logging.getLogger("doccatalog")
    yield
    # the CLI detaches the package logger from the root logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
