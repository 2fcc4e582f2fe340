"""conformix testing utilities for easier test authoring.

This package provides scripted stand-ins for the external collaborators,
pytest fixtures and report assertions.

Modules:
    mocks: MockDriver, MockScanner and MockListener with pre-set behaviour
           and execution recording.
    fixtures: Pytest fixtures (mock_driver, server_features, client_features)
              and the test_engine() context manager.
    assertions: Report assertions (assert_verdict, assert_all_terminal).

Example:
    >>> from conformix.testing import MockDriver, assert_verdict
    >>> from conformix.testing.fixtures import make_feature_report, test_engine
"""

from conformix.testing.assertions import assert_all_terminal, assert_verdict
from conformix.testing.mocks import (
    MockDriver,
    MockListener,
    MockScanner,
    completed_result,
    deviated_result,
    handshake_result,
)

__all__ = [
    "MockDriver",
    "MockListener",
    "MockScanner",
    "assert_all_terminal",
    "assert_verdict",
    "completed_result",
    "deviated_result",
    "handshake_result",
]
