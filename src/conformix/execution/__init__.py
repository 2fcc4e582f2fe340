"""Concurrent execution: worker tiers, engine and idle watchdog."""

from conformix.execution.engine import ExecutionEngine, classify
from conformix.execution.pools import (
    WorkerPool,
    available_parallelism,
    case_worker_count,
    interaction_worker_count,
)
from conformix.execution.watchdog import IdleWatchdog

__all__ = [
    "ExecutionEngine",
    "IdleWatchdog",
    "WorkerPool",
    "available_parallelism",
    "case_worker_count",
    "classify",
    "interaction_worker_count",
]
