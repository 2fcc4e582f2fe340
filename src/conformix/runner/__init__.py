"""Conformance runner: declared tests, handles, assertions and the runner itself."""

from conformix.runner.assertions import (
    assert_alert_received,
    assert_executed_as_planned,
    assert_message_received,
)
from conformix.runner.catalogue import default_registry
from conformix.runner.declarations import TestDeclaration, TestRegistry
from conformix.runner.handle import TestCaseHandle
from conformix.runner.runner import ConformanceRunner, RunContext, run_conformance

__all__ = [
    "ConformanceRunner",
    "RunContext",
    "TestCaseHandle",
    "TestDeclaration",
    "TestRegistry",
    "assert_alert_received",
    "assert_executed_as_planned",
    "assert_message_received",
    "default_registry",
    "run_conformance",
]
