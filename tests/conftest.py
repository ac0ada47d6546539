"""Shared test fixtures."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo global structlog configuration made by a test (e.g. CLI runs
    that bind the logger to a temporary stderr stream)."""
    yield
    structlog.reset_defaults()
