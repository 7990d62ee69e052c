"""
Pytest configuration for the wine graph tests.
"""

import pytest

from sample_records import CHIANTI, make_raw


def pytest_configure(config):
    """Register the asyncio marker and mark the app ready."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test"
    )

    # Mark the service as ready for tests (bypasses warmup middleware)
    # This is needed because TestClient doesn't trigger lifespan events
    from main import set_ready
    set_ready(True)


@pytest.fixture
def raw_records():
    """25 valid raw records with ids 1..25."""
    return [make_raw(i) for i in range(1, 26)]


@pytest.fixture
def chianti_record():
    return dict(CHIANTI)
