"""Parallel execution helpers for map generation."""
from __future__ import annotations

import concurrent.futures
import logging
from typing import Callable, Optional, Sequence, Tuple, TypeVar


LOGGER = logging.getLogger("material_pipeline.parallel")

T = TypeVar("T")
R = TypeVar("R")

_SHARED_POOL: Optional[concurrent.futures.ThreadPoolExecutor] = None


def create_thread_pool(max_workers: Optional[int] = None) -> concurrent.futures.ThreadPoolExecutor:
    """Create a thread pool executor with sane defaults."""

    return concurrent.futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="material")


def shared_pool() -> concurrent.futures.ThreadPoolExecutor:
    """Lazily created single-worker pool for one-off background tasks."""

    global _SHARED_POOL
    if _SHARED_POOL is None:
        _SHARED_POOL = create_thread_pool(max_workers=1)
    return _SHARED_POOL


def run_parallel(
    function: Callable[[T], R], items: Sequence[T], *, max_workers: Optional[int] = None
) -> list[Tuple[T, R]]:
    """Run *function* for each element in *items* concurrently.

    Returns ``(item, result)`` pairs in completion order. A worker failure is
    logged and re-raised once every submitted task has finished.
    """

    if not items:
        return []
    LOGGER.debug("Starting thread pool with up to %s workers", max_workers)
    first_error: Optional[BaseException] = None
    results: list[Tuple[T, R]] = []
    with create_thread_pool(max_workers=max_workers) as executor:
        futures = {executor.submit(function, item): item for item in items}
        for future in concurrent.futures.as_completed(futures):
            try:
                results.append((futures[future], future.result()))
            except Exception as exc:
                LOGGER.exception("Parallel worker failure: %s", exc)
                first_error = first_error or exc
    if first_error is not None:
        raise first_error
    return results
