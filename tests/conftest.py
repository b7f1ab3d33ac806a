"""Pytest configuration and shared fixtures."""

import pytest

from shiftmatch.domain.db import get_session_factory


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def session_factory(tmp_path):
    """Session factory over a fresh file-backed SQLite database.

    A file database is shared safely by the loader worker threads.
    """
    return get_session_factory(f"sqlite:///{tmp_path / 'shiftmatch.db'}", create_tables=True)
