"""Frame lifecycle operations backed by storage."""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from framelog.core.errors import FrameError
from framelog.core.models import Frame, Project, Tag
from framelog.core.storage import StorageManager

logger = logging.getLogger(__name__)


class FrameTracker:
    """Start, stop, restart and annotate frames.

    Every mutating operation is saved immediately.
    """

    def __init__(self, storage: Optional[StorageManager] = None):
        """Initialize frame tracker.

        Args:
            storage: Storage manager instance. Creates default if None.
        """
        self.storage = storage or StorageManager()

    def _resolve_project(self, project: Union[Project, str]) -> Project:
        if isinstance(project, Project):
            return project
        return self.storage.find_or_create_project(project)

    def _ensure_inactive(self, project: Project) -> None:
        """Only one frame per project may be active at a time."""
        for active in self.storage.active_frames():
            if active.project.name == project.name:
                raise FrameError(
                    f"Project {project.name} already has an active frame ({active.id}). "
                    f"Stop it first."
                )

    def start(self, project: Union[Project, str], started_at: Optional[datetime] = None) -> Frame:
        """Start a new frame for the given project.

        Args:
            project: Project or project name (created if it doesn't exist)
            started_at: Start instant. Defaults to now.

        Returns:
            Created frame

        Raises:
            FrameError: If the project already has an active frame
        """
        project = self._resolve_project(project)
        self._ensure_inactive(project)

        frame = Frame.start(project, started_at)
        self.storage.save_frame(frame)
        logger.info(f"Started frame {frame.id} for {project.name}")
        return frame

    def stop(self, frame: Frame, stopped_at: Optional[datetime] = None) -> Frame:
        """Stop a frame.

        Args:
            frame: Frame to stop
            stopped_at: Stop instant. Defaults to now.

        Returns:
            The stopped frame

        Raises:
            InvalidFrameError: If the frame would stop before it started
        """
        frame.stop(stopped_at)
        self.storage.save_frame(frame)
        logger.info(f"Stopped frame {frame.id} for {frame.project.name}")
        return frame

    def restart(self, frame: Frame, started_at: Optional[datetime] = None) -> Frame:
        """Start a new frame copying the project, tags, notes and estimate of another.

        Args:
            frame: Frame to copy
            started_at: Start instant of the new frame. Defaults to now.

        Returns:
            The new active frame

        Raises:
            FrameError: If the project already has an active frame
        """
        self._ensure_inactive(frame.project)
        restarted = frame.restart(started_at)
        self.storage.save_frame(restarted)
        logger.info(f"Restarted frame {frame.id} as {restarted.id}")
        return restarted

    def add(
        self,
        project: Union[Project, str],
        started_at: datetime,
        stopped_at: Optional[datetime] = None,
    ) -> Frame:
        """Add a frame that was not tracked live.

        Args:
            project: Project or project name
            started_at: Start instant
            stopped_at: Stop instant. Defaults to now.

        Returns:
            The closed frame

        Raises:
            InvalidFrameError: If stopped_at is before started_at
        """
        frame = Frame.start(self._resolve_project(project), started_at)
        frame.stop(stopped_at)
        self.storage.save_frame(frame)
        logger.info(f"Added frame {frame.id} for {frame.project.name}")
        return frame

    def add_tags(self, frame: Frame, tags: Union[Tag, str, Iterable[Union[Tag, str]]]) -> Frame:
        """Attach tags to a frame, creating unknown tags.  Known tags are skipped.

        Args:
            frame: Frame to tag
            tags: Tag, tag name, or an iterable of either

        Returns:
            The frame
        """
        if isinstance(tags, (Tag, str)):
            tags = [tags]

        for tag in tags:
            name = tag.name if isinstance(tag, Tag) else tag
            frame.add_tag(self.storage.find_or_create_tag(name))

        self.storage.save_frame(frame)
        return frame

    def add_notes(self, frame: Frame, notes: Optional[str]) -> Frame:
        """Replace the notes of a frame."""
        frame.notes = notes
        self.storage.save_frame(frame)
        return frame

    def set_estimate(self, frame: Frame, estimate: timedelta) -> Frame:
        """Replace the estimate of a frame.

        Raises:
            ValueError: If the estimate is negative
        """
        if estimate < timedelta(0):
            raise ValueError("Estimate cannot be negative")
        frame.estimate = estimate
        self.storage.save_frame(frame)
        return frame

    def active(self) -> list[Frame]:
        """Get active frames, most recently started first."""
        return self.storage.active_frames()

    def latest_closed(self) -> Optional[Frame]:
        """Get the most recently stopped frame."""
        return self.storage.latest_closed()

    def get(self, frame_id: str) -> Frame:
        """Get a frame by id or unique id prefix.

        Raises:
            FrameError: If no single frame matches
        """
        frame = self.storage.get_frame(frame_id)
        if frame is None:
            raise FrameError(f"Frame not found: {frame_id}")
        return frame
