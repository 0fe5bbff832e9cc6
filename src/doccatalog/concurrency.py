from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextvars import copy_context
from dataclasses import dataclass
from typing import Any, Callable


class ConcurrencyLimiter:
    """Counting semaphore; a capacity of 0 imposes no bound."""

    def __init__(self, name: str, capacity: int = 0) -> None:
        if capacity < 0:
            raise ValueError(f"{name} concurrency must not be negative: {capacity}")
        self.name = name
        self.capacity = capacity
        self._semaphore = threading.Semaphore(capacity) if capacity else None
        self._lock = threading.Lock()
        self._active = 0

    @property
    def active(self) -> int:
        return self._active

    def acquire(self) -> None:
        if self._semaphore is not None:
            self._semaphore.acquire()
        with self._lock:
            self._active += 1

    def release(self) -> None:
        with self._lock:
            if self._active == 0:
                raise RuntimeError(f"{self.name} limiter released more than acquired")
            self._active -= 1
        if self._semaphore is not None:
            self._semaphore.release()

    def __enter__(self) -> ConcurrencyLimiter:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"ConcurrencyLimiter({self.name!r}, capacity={self.capacity})"


@dataclass(frozen=True)
class Limiters:
    fetch: ConcurrencyLimiter
    read: ConcurrencyLimiter

    @classmethod
    def create(cls, fetch: int = 1, read: int = 0) -> Limiters:
        return cls(ConcurrencyLimiter("fetch", fetch), ConcurrencyLimiter("read", read))


def run_indexed_tasks_settled(
    tasks: list[tuple[int, Callable[[], Any]]],
    *,
    max_workers: int,
) -> tuple[list[tuple[int, Any]], list[tuple[int, BaseException]]]:
    """Run every task to completion; return (results, errors), each sorted by index.

    A failing task never cancels its siblings, so partially completed work is
    always accounted for before the caller decides what to raise.
    """
    if not tasks:
        return [], []

    results: dict[int, Any] = {}
    errors: dict[int, BaseException] = {}
    if max_workers <= 1 or len(tasks) == 1:
        for index, task in tasks:
            try:
                results[index] = task()
            except Exception as err:
                errors[index] = err
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(copy_context().run, task): index
                for index, task in tasks
            }
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                err = future.exception()
                if err is None:
                    results[index] = future.result()
                else:
                    errors[index] = err

    return (
        [(index, results[index]) for index in sorted(results)],
        [(index, errors[index]) for index in sorted(errors)],
    )
