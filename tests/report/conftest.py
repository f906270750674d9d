"""Fixtures shared by report tests."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest  # type: ignore[import-not-found]

from framelog.core.config import ReportConfig
from framelog.core.models import Frame
from framelog.core.storage import StorageManager

NEW_YORK = ZoneInfo("America/New_York")


def new_york(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    """Wall-clock time in New York."""
    return datetime(year, month, day, hour, minute, tzinfo=NEW_YORK)


@pytest.fixture
def report_config() -> ReportConfig:
    return ReportConfig(timezone="America/New_York")


@pytest.fixture
def blog_storage(storage: StorageManager) -> StorageManager:
    """Two closed 'blog' frames with notes and 30 minute estimates."""
    project = storage.find_or_create_project("blog")
    storage.save_frame(
        Frame(
            project=project,
            notes="Starting work on the new theme",
            started_at=new_york(2019, 5, 4, 12, 0),
            stopped_at=new_york(2019, 5, 4, 12, 30),
            estimate=timedelta(minutes=30),
        )
    )
    storage.save_frame(
        Frame(
            project=project,
            notes="Adding the mailing list signup component",
            started_at=new_york(2019, 5, 5, 12, 0),
            stopped_at=new_york(2019, 5, 5, 13, 30),
            estimate=timedelta(minutes=30),
        )
    )
    return storage
