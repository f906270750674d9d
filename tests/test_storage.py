"""Tests for storage manager."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest  # type: ignore[import-not-found]

from framelog.core.models import Frame, Project, Tag
from framelog.core.storage import FrameFilter, StorageManager

UTC = timezone.utc


def _closed(
    project: Project, start: datetime, minutes: int, tags: Optional[list[Tag]] = None
) -> Frame:
    return Frame(
        project=project,
        started_at=start,
        stopped_at=start + timedelta(minutes=minutes),
        tags=tags or [],
    )


class TestStorageManager:
    """Test StorageManager."""

    def test_initialization_creates_csv_files(self, storage: StorageManager) -> None:
        """Test that initialization creates CSV files with headers."""
        assert storage.frames_file.exists()
        assert storage.projects_file.exists()
        assert storage.tags_file.exists()
        assert storage.frame_tags_file.exists()

        with open(storage.frames_file) as f:
            header = f.readline().strip()
            assert "started_at" in header
            assert "project_id" in header

    def test_find_or_create_project(self, storage: StorageManager) -> None:
        """Test projects are created once per name."""
        first = storage.find_or_create_project("blog")
        second = storage.find_or_create_project("blog")

        assert first.id == second.id
        assert [p.name for p in storage.load_projects()] == ["blog"]

    def test_find_or_create_tag(self, storage: StorageManager) -> None:
        """Test tags are created once per name."""
        first = storage.find_or_create_tag("writing")
        second = storage.find_or_create_tag("writing")

        assert first.id == second.id
        assert len(storage.load_tags()) == 1

    def test_save_and_load_frame(self, storage: StorageManager) -> None:
        """Test a frame round-trips with its project and tags."""
        project = storage.find_or_create_project("blog")
        frame = _closed(
            project,
            datetime(2019, 5, 4, 16, 0, tzinfo=UTC),
            30,
            tags=[storage.find_or_create_tag("writing")],
        )
        frame.notes = "Starting work on the new theme"
        frame.estimate = timedelta(minutes=30)

        storage.save_frame(frame)
        frames = storage.load_frames()

        assert len(frames) == 1
        loaded = frames[0]
        assert loaded.id == frame.id
        assert loaded.project.name == "blog"
        assert loaded.tag_names == ["writing"]
        assert loaded.notes == "Starting work on the new theme"
        assert loaded.estimate == timedelta(minutes=30)
        assert loaded.started_at == datetime(2019, 5, 4, 16, 0, tzinfo=UTC)

    def test_save_frame_reuses_existing_project_by_name(self, storage: StorageManager) -> None:
        """Test an unsaved project with a known name binds to the stored one."""
        stored = storage.find_or_create_project("blog")
        frame = _closed(Project(name="blog"), datetime(2019, 5, 4, 16, 0, tzinfo=UTC), 30)

        storage.save_frame(frame)

        assert frame.project.id == stored.id
        assert len(storage.load_projects()) == 1
        assert storage.load_frames()[0].project.id == stored.id

    def test_update_existing_frame(self, storage: StorageManager) -> None:
        """Test saving a frame twice updates it in place."""
        frame = Frame.start(Project(name="blog"), datetime(2019, 5, 4, 16, 0, tzinfo=UTC))
        storage.save_frame(frame)

        frame.stop(datetime(2019, 5, 4, 17, 0, tzinfo=UTC))
        storage.save_frame(frame)

        frames = storage.load_frames()
        assert len(frames) == 1
        assert frames[0].stopped_at == datetime(2019, 5, 4, 17, 0, tzinfo=UTC)

    def test_load_frames_sorted_by_start(self, storage: StorageManager) -> None:
        """Test frames load oldest first regardless of save order."""
        project = Project(name="blog")
        later = _closed(project, datetime(2019, 5, 5, 16, 0, tzinfo=UTC), 90)
        earlier = _closed(project, datetime(2019, 5, 4, 16, 0, tzinfo=UTC), 30)
        storage.save_frame(later)
        storage.save_frame(earlier)

        assert [f.id for f in storage.load_frames()] == [earlier.id, later.id]

    def test_get_frame_by_prefix(self, storage: StorageManager) -> None:
        """Test frames can be looked up by id prefix."""
        frame = Frame.start(Project(name="blog"))
        storage.save_frame(frame)

        found = storage.get_frame(str(frame.id)[:8])

        assert found is not None
        assert found.id == frame.id
        assert storage.get_frame("not-an-id") is None

    def test_delete_frame(self, storage: StorageManager) -> None:
        """Test deleting a frame removes its tag links too."""
        frame = Frame.start(Project(name="blog"))
        frame.add_tag(Tag(name="writing"))
        storage.save_frame(frame)

        assert storage.delete_frame(str(frame.id)) is True
        assert storage.load_frames() == []
        assert storage.delete_frame(str(frame.id)) is False

        with open(storage.frame_tags_file) as f:
            assert str(frame.id) not in f.read()

    def test_active_frames_and_latest_closed(self, storage: StorageManager) -> None:
        """Test active frames and the latest closed frame are found."""
        blog = Project(name="blog")
        docs = Project(name="docs")
        old = _closed(blog, datetime(2019, 5, 4, 16, 0, tzinfo=UTC), 30)
        recent = _closed(docs, datetime(2019, 5, 5, 16, 0, tzinfo=UTC), 30)
        running = Frame.start(blog, datetime(2019, 5, 6, 16, 0, tzinfo=UTC))
        for frame in (old, recent, running):
            storage.save_frame(frame)

        assert [f.id for f in storage.active_frames()] == [running.id]
        latest = storage.latest_closed()
        assert latest is not None
        assert latest.id == recent.id

    def test_malformed_rows_propagate(self, storage: StorageManager) -> None:
        """Test a frame pointing at an unknown project is an error, not skipped."""
        with open(storage.frames_file, "a", encoding="utf-8") as f:
            f.write(
                "7d6f1f1e-0000-4000-8000-000000000000,2019-05-04T16:00:00+00:00,,missing,,0,"
                "2019-05-04T16:00:00+00:00,2019-05-04T16:00:00+00:00\n"
            )

        with pytest.raises(KeyError):
            storage.load_frames()


class TestQueryFrames:
    """Test filtered frame queries."""

    @pytest.fixture
    def populated(self, storage: StorageManager) -> StorageManager:
        blog = Project(name="blog")
        docs = Project(name="docs")
        writing = Tag(name="writing")
        review = Tag(name="review")

        storage.save_frame(_closed(blog, datetime(2019, 5, 3, 16, 0, tzinfo=UTC), 30, [writing]))
        storage.save_frame(_closed(blog, datetime(2019, 5, 4, 16, 0, tzinfo=UTC), 30))
        storage.save_frame(_closed(docs, datetime(2019, 5, 4, 18, 0, tzinfo=UTC), 60, [review]))
        # Spans midnight UTC into the next day
        storage.save_frame(_closed(docs, datetime(2019, 5, 4, 23, 30, tzinfo=UTC), 60))
        storage.save_frame(Frame.start(blog, datetime(2019, 5, 4, 20, 0, tzinfo=UTC)))
        return storage

    def test_single_day_closed(self, populated: StorageManager) -> None:
        """Test from == to keeps only frames within that calendar day."""
        frames = populated.query_frames(FrameFilter(start=date(2019, 5, 4), end=date(2019, 5, 4)))

        assert [f.started_at.hour for f in frames] == [16, 18]
        assert all(not f.is_active for f in frames)

    def test_span_must_end_in_range(self, populated: StorageManager) -> None:
        """Test a frame stopping after the last day is excluded until the range covers it."""
        frames = populated.query_frames(FrameFilter(start=date(2019, 5, 4), end=date(2019, 5, 5)))

        assert len(frames) == 3

    def test_project_filter(self, populated: StorageManager) -> None:
        frames = populated.query_frames(
            FrameFilter(start=date(2019, 5, 1), end=date(2019, 5, 31), projects=["docs"])
        )

        assert {f.project.name for f in frames} == {"docs"}
        assert len(frames) == 2

    def test_tag_filter_is_any_of(self, populated: StorageManager) -> None:
        frames = populated.query_frames(
            FrameFilter(start=date(2019, 5, 1), end=date(2019, 5, 31), tags=["writing", "review"])
        )

        assert [f.tag_names for f in frames] == [["writing"], ["review"]]

    def test_include_active_frames(self, populated: StorageManager) -> None:
        frames = populated.query_frames(
            FrameFilter(start=date(2019, 5, 4), end=date(2019, 5, 4), only_closed=False)
        )

        assert len(frames) == 3
        assert any(f.is_active for f in frames)

    def test_results_ordered_by_start(self, populated: StorageManager) -> None:
        frames = populated.query_frames(FrameFilter(start=date(2019, 5, 1), end=date(2019, 5, 31)))
        starts = [f.started_at for f in frames]

        assert starts == sorted(starts)
