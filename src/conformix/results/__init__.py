"""Result aggregation: verdict state machine, containers and run reports."""

from conformix.results.aggregator import ResultAggregator
from conformix.results.machine import VALID_TRANSITIONS, can_transition, check_transition
from conformix.results.report import RunReport, RunSummary, TestCaseReport, VolumeEntry
from conformix.results.result import DEFAULT_DISABLED_REASON, TestCaseResult

__all__ = [
    "DEFAULT_DISABLED_REASON",
    "VALID_TRANSITIONS",
    "ResultAggregator",
    "RunReport",
    "RunSummary",
    "TestCaseReport",
    "TestCaseResult",
    "VolumeEntry",
    "can_transition",
    "check_transition",
]
