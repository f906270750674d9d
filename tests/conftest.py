"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest  # type: ignore[import-not-found]

from framelog.core.storage import StorageManager
from framelog.core.tracker import FrameTracker


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "integration: Integration tests")


@pytest.fixture
def storage(tmp_path: Path) -> StorageManager:
    """Create a storage manager in a temporary directory."""
    return StorageManager(tmp_path / "data")


@pytest.fixture
def tracker(storage: StorageManager) -> FrameTracker:
    """Create a frame tracker with temporary storage."""
    return FrameTracker(storage)
