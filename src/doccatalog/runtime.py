from __future__ import annotations

from contextvars import ContextVar, Token
import os

_VERBOSE: ContextVar[bool] = ContextVar("doccatalog_verbose", default=False)

DEFAULT_CACHE_DIR = os.path.expanduser("~/.local/share/doccatalog/cache/content")
_DEFAULT_FETCH_CONCURRENCY = 1
_DEFAULT_READ_CONCURRENCY = 0
_MAX_JOBS = 64


def _read_int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value < minimum:
        return default
    return min(value, _MAX_JOBS)


def get_verbose() -> bool:
    return _VERBOSE.get()


def set_verbose(enabled: bool) -> Token[bool]:
    return _VERBOSE.set(bool(enabled))


def reset_verbose(token: Token[bool]) -> None:
    _VERBOSE.reset(token)


def get_cache_dir(default: str = DEFAULT_CACHE_DIR) -> str:
    raw = (os.environ.get("DOCCATALOG_CACHE_DIR") or "").strip()
    return os.path.expanduser(raw) if raw else default


def get_fetch_concurrency(default: int = _DEFAULT_FETCH_CONCURRENCY) -> int:
    return _read_int_env("DOCCATALOG_FETCH_CONCURRENCY", default, minimum=1)


def get_read_concurrency(default: int = _DEFAULT_READ_CONCURRENCY) -> int:
    return _read_int_env("DOCCATALOG_READ_CONCURRENCY", default)


def max_workers(task_count: int) -> int:
    if task_count <= 0:
        return 1
    return min(task_count, _MAX_JOBS)
