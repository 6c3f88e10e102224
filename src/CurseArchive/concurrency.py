"""Executor factory shared by the driver and the per-project file workers."""

from __future__ import annotations

from concurrent import futures
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")
R = TypeVar("R")

__all__ = ["create_executor", "map_bounded"]


def create_executor(workers: int, *, name: str = "archive") -> Tuple[Optional[futures.Executor], bool]:
    """
    Return a thread pool bounded to ``workers``.

    Args:
        workers: Desired concurrency level.
        name: Thread name prefix, visible in log records.

    Returns:
        Tuple of (executor, needs_shutdown). ``(None, False)`` means the
        caller should run work inline on the current thread.
    """
    if workers <= 1:
        return None, False
    return futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix=name), True


def map_bounded(
    func: Callable[[T], R], items: Iterable[T], *, workers: int, name: str = "archive"
) -> List[R]:
    """Apply ``func`` to every item with at most ``workers`` in flight.

    Results are returned in completion order. ``func`` is expected to handle
    its own errors; an exception escaping it propagates once every submitted
    item has finished.
    """
    executor, needs_shutdown = create_executor(workers, name=name)
    if executor is None:
        return [func(item) for item in items]
    try:
        pending = [executor.submit(func, item) for item in items]
        return [future.result() for future in futures.as_completed(pending)]
    finally:
        if needs_shutdown:
            executor.shutdown(wait=True)
