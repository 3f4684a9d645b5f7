from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Protocol, TypeVar

T = TypeVar("T")


class StageExecutor(Protocol):
    workers: int

    def map(self, fn: Callable[[int], T], count: int) -> List[T]: ...

    def close(self) -> None: ...


class SerialExecutor:
    workers = 1

    def map(self, fn: Callable[[int], T], count: int) -> List[T]:
        return [fn(index) for index in range(count)]

    def close(self) -> None:
        return None


class ThreadedExecutor:
    """Runs one pass of per-agent reducers on a thread pool; results keep slot order."""

    def __init__(self, workers: int) -> None:
        self.workers = max(1, workers)
        self._pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="crowdsim-stage")

    def map(self, fn: Callable[[int], T], count: int) -> List[T]:
        return list(self._pool.map(fn, range(count)))

    def close(self) -> None:
        self._pool.shutdown(wait=True)


def make_executor(workers: int) -> StageExecutor:
    """``workers`` of 1 runs serially, 0 uses one thread per CPU."""
    if workers == 0:
        workers = os.cpu_count() or 1
    if workers <= 1:
        return SerialExecutor()
    return ThreadedExecutor(workers)
