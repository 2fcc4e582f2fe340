"""Shared pytest fixtures for conformix tests.

Fixtures from ``conformix.testing.fixtures`` (mock_driver, server_features,
client_features) are loaded as a plugin so every test module can use them.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from conformix.observability.metrics import reset_metrics

pytest_plugins = ["conformix.testing.fixtures"]


@pytest.fixture(autouse=True)
def isolated_metrics() -> Iterator[None]:
    """Give every test a fresh global metrics collector."""
    reset_metrics()
    yield
    reset_metrics()
