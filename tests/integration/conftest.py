"""
Integration test fixtures for the carpool scheduling core.

Integration tests share the database fixtures from tests/conftest.py and
drive the slot store from several threads at once.
"""

import threading
from typing import Callable

import pytest


# =============================================================================
# Pytest Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


# =============================================================================
# Concurrency helpers
# =============================================================================


@pytest.fixture
def run_concurrently() -> Callable:
    """
    Run callables on separate threads released by a shared barrier.

    Returns a list of (result, error) pairs in the order of the callables.
    """

    def _run(*calls: Callable) -> list:
        barrier = threading.Barrier(len(calls))
        outcomes = [None] * len(calls)

        def worker(index, call):
            barrier.wait()
            try:
                outcomes[index] = (call(), None)
            except Exception as e:
                outcomes[index] = (None, e)

        threads = [
            threading.Thread(target=worker, args=(index, call))
            for index, call in enumerate(calls)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        return outcomes

    return _run
