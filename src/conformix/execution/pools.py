"""Bounded worker pools for the two execution tiers.

Tier 1 drives protocol interactions, tier 2 drives declared test cases. Both
wrap a ThreadPoolExecutor whose size is the concurrency cap; submissions
beyond the cap queue until a worker frees up.

Example:
    >>> from conformix.execution.pools import WorkerPool
    >>> with WorkerPool("interaction", max_workers=4) as pool:
    ...     future = pool.submit(sum, [1, 2, 3])
    ...     future.result()
    6
"""

from __future__ import annotations

import math
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, TypeVar

from conformix.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def available_parallelism() -> int:
    return os.cpu_count() or 1


def interaction_worker_count(requested: int | None = None) -> int:
    """Return the tier-1 size: ``requested`` capped at the available parallelism.

    Raises:
        ValueError: If requested is less than 1
    """
    cpus = available_parallelism()
    if requested is None:
        return cpus
    if requested < 1:
        raise ValueError(f"interaction workers must be >= 1, got {requested}")
    return min(requested, cpus)


def case_worker_count(interaction_workers: int) -> int:
    """Return the default tier-2 size, ceil(1.5 * P)."""
    return math.ceil(1.5 * interaction_workers)


class WorkerPool:
    """Fixed-size thread pool that tracks how many tasks are running.

    Attributes:
        name: Tier name used in logs
        max_workers: Maximum number of concurrently running tasks
    """

    def __init__(self, name: str, max_workers: int) -> None:
        """Initialize the pool.

        Raises:
            ValueError: If max_workers is less than 1
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.name = name
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=f"conformix-{name}"
        )
        self._lock = threading.Lock()
        self._active = 0

        logger.info(
            "conformix.pool.created",
            pool=name,
            max_workers=max_workers,
            cpu_count=os.cpu_count(),
        )

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    def submit(self, fn: Callable[..., T], /, *args: object, **kwargs: object) -> Future[T]:
        """Queue ``fn`` for execution on the pool."""

        def run() -> T:
            with self._lock:
                self._active += 1
            try:
                return fn(*args, **kwargs)
            finally:
                with self._lock:
                    self._active -= 1

        return self._executor.submit(run)

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)
        logger.info("conformix.pool.shutdown", pool=self.name, max_workers=self.max_workers)

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.shutdown(wait=True)
