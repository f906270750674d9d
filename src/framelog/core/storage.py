"""CSV storage manager for frames, projects and tags."""

import csv
import logging
import os
import sys
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Optional

from framelog.core.models import Frame, Project, Tag

logger = logging.getLogger(__name__)

FRAME_FIELDS = [
    "id",
    "started_at",
    "stopped_at",
    "project_id",
    "notes",
    "estimate_seconds",
    "created_at",
    "updated_at",
]
PROJECT_FIELDS = ["id", "name", "created_at"]
TAG_FIELDS = ["id", "name", "created_at"]
FRAME_TAG_FIELDS = ["frame_id", "tag_id"]


def _lock_file(file_obj: Any, exclusive: bool = True) -> None:
    """Lock a file in a cross-platform way.

    Args:
        file_obj: File object to lock
        exclusive: If True, acquire exclusive lock; if False, acquire shared lock
    """
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        mode = msvcrt.LK_NBLCK if exclusive else msvcrt.LK_NBRLCK
        msvcrt.locking(file_obj.fileno(), mode, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(file_obj.fileno(), mode)


def _unlock_file(file_obj: Any) -> None:
    """Unlock a file in a cross-platform way."""
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        msvcrt.locking(file_obj.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        fcntl.flock(file_obj.fileno(), fcntl.LOCK_UN)


@dataclass
class FrameFilter:
    """Criteria for querying frames.

    Dates are compared against the calendar date of the stored (UTC) instants.
    For closed frames the whole span must fall inside ``[start, end]``; active
    frames are matched on their start date.

    Attributes:
        start: First calendar date to include (None for unbounded)
        end: Last calendar date to include (None for unbounded)
        projects: Project names to include (None for all projects)
        tags: Tag names to include (None for all tags)
        only_closed: Exclude active frames
    """

    start: Optional[date] = None
    end: Optional[date] = None
    projects: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    only_closed: bool = True

    def matches(self, frame: Frame) -> bool:
        """Check whether a frame satisfies every criterion."""
        if self.only_closed and frame.is_active:
            return False

        first_day = frame.started_at.date()
        last_day = frame.stopped_at.date() if frame.stopped_at else first_day
        if self.start and first_day < self.start:
            return False
        if self.end and last_day > self.end:
            return False

        if self.projects is not None and frame.project.name not in self.projects:
            return False
        if self.tags is not None and not set(frame.tag_names) & set(self.tags):
            return False
        return True


class StorageManager:
    """Manages CSV storage for frames, projects and tags with atomic writes."""

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize storage manager.

        Args:
            data_dir: Custom data directory. Defaults to ~/.framelog/data
        """
        if data_dir is None:
            data_dir = Path.home() / ".framelog" / "data"

        self.data_dir = Path(data_dir)
        self.frames_file = self.data_dir / "frames.csv"
        self.projects_file = self.data_dir / "projects.csv"
        self.tags_file = self.data_dir / "tags.csv"
        self.frame_tags_file = self.data_dir / "frame_tags.csv"

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._initialize_files()

    def _initialize_files(self) -> None:
        """Create CSV files with headers if they don't exist."""
        for file_path, fieldnames in (
            (self.frames_file, FRAME_FIELDS),
            (self.projects_file, PROJECT_FIELDS),
            (self.tags_file, TAG_FIELDS),
            (self.frame_tags_file, FRAME_TAG_FIELDS),
        ):
            if not file_path.exists():
                self._write_csv_atomic(file_path, fieldnames, [])

    def _write_csv_atomic(
        self, file_path: Path, fieldnames: list[str], rows: list[dict[str, Any]]
    ) -> None:
        """Write CSV file atomically using temporary file and rename.

        Args:
            file_path: Target file path
            fieldnames: CSV field names
            rows: List of row dictionaries
        """
        temp_file = file_path.with_suffix(".tmp")

        try:
            with open(temp_file, "w", newline="", encoding="utf-8") as f:
                _lock_file(f, exclusive=True)

                writer = csv.DictWriter(f, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(rows)

                f.flush()
                os.fsync(f.fileno())

                _unlock_file(f)

            temp_file.replace(file_path)
            logger.debug(f"Wrote {len(rows)} rows to {file_path.name}")

        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def _read_csv(self, file_path: Path) -> list[dict[str, Any]]:
        """Read CSV file with a shared lock.

        Args:
            file_path: CSV file to read

        Returns:
            List of row dictionaries
        """
        if not file_path.exists():
            return []

        with open(file_path, newline="", encoding="utf-8") as f:
            _lock_file(f, exclusive=False)

            try:
                reader = csv.DictReader(f)
                rows = list(reader)
            finally:
                _unlock_file(f)

        return rows

    def _upsert(
        self, file_path: Path, fieldnames: list[str], row: dict[str, Any]
    ) -> None:
        """Replace the row with the same id, or append it."""
        rows = self._read_csv(file_path)
        for i, existing in enumerate(rows):
            if existing["id"] == row["id"]:
                rows[i] = row
                break
        else:
            rows.append(row)
        self._write_csv_atomic(file_path, fieldnames, rows)

    # Project operations

    def load_projects(self) -> list[Project]:
        """Load all projects."""
        return [Project.from_dict(row) for row in self._read_csv(self.projects_file)]

    def get_project(self, name: str) -> Optional[Project]:
        """Get project by name.

        Args:
            name: Project name

        Returns:
            Project or None if not found
        """
        for project in self.load_projects():
            if project.name == name:
                return project
        return None

    def save_project(self, project: Project) -> None:
        """Save or update a project."""
        self._upsert(self.projects_file, PROJECT_FIELDS, project.to_dict())

    def find_or_create_project(self, name: str) -> Project:
        """Get the project with this name, creating it if needed."""
        project = self.get_project(name)
        if project is None:
            project = Project(name=name)
            self.save_project(project)
            logger.info(f"Created project {name}")
        return project

    # Tag operations

    def load_tags(self) -> list[Tag]:
        """Load all tags."""
        return [Tag.from_dict(row) for row in self._read_csv(self.tags_file)]

    def get_tag(self, name: str) -> Optional[Tag]:
        """Get tag by name, or None if not found."""
        for tag in self.load_tags():
            if tag.name == name:
                return tag
        return None

    def save_tag(self, tag: Tag) -> None:
        """Save or update a tag."""
        self._upsert(self.tags_file, TAG_FIELDS, tag.to_dict())

    def find_or_create_tag(self, name: str) -> Tag:
        """Get the tag with this name, creating it if needed."""
        tag = self.get_tag(name)
        if tag is None:
            tag = Tag(name=name)
            self.save_tag(tag)
            logger.info(f"Created tag {name}")
        return tag

    # Frame operations

    def save_frame(self, frame: Frame) -> None:
        """Save or update a frame along with its project and tag associations.

        Args:
            frame: Frame to save
        """
        # Names are unique, so bind to already stored projects and tags by name
        project = self.get_project(frame.project.name)
        if project is None:
            self.save_project(frame.project)
        else:
            frame.project = project

        known_tags = {tag.name: tag for tag in self.load_tags()}
        for i, tag in enumerate(frame.tags):
            if tag.name in known_tags:
                frame.tags[i] = known_tags[tag.name]
            else:
                self.save_tag(tag)
                known_tags[tag.name] = tag

        self._upsert(self.frames_file, FRAME_FIELDS, frame.to_dict())

        frame_id = str(frame.id)
        links = [
            row for row in self._read_csv(self.frame_tags_file) if row["frame_id"] != frame_id
        ]
        links.extend({"frame_id": frame_id, "tag_id": tag.id} for tag in frame.tags)
        self._write_csv_atomic(self.frame_tags_file, FRAME_TAG_FIELDS, links)

    def load_frames(self) -> list[Frame]:
        """Load all frames, oldest first.

        Raises:
            KeyError: If a frame references an unknown project
        """
        projects = {project.id: project for project in self.load_projects()}
        tags = {tag.id: tag for tag in self.load_tags()}
        frame_tags: dict[str, list[Tag]] = defaultdict(list)
        for link in self._read_csv(self.frame_tags_file):
            frame_tags[link["frame_id"]].append(tags[link["tag_id"]])

        frames = [
            Frame.from_dict(row, projects[row["project_id"]], frame_tags.get(row["id"]))
            for row in self._read_csv(self.frames_file)
        ]
        frames.sort(key=lambda f: f.started_at)
        return frames

    def query_frames(self, frame_filter: FrameFilter) -> list[Frame]:
        """Load the frames matching a filter, ordered by start instant.

        Args:
            frame_filter: Query criteria

        Returns:
            Matching frames, oldest first
        """
        frames = [frame for frame in self.load_frames() if frame_filter.matches(frame)]
        logger.debug(f"Query {frame_filter} matched {len(frames)} frames")
        return frames

    def get_frame(self, frame_id: str) -> Optional[Frame]:
        """Get a frame by full id or unique id prefix.

        Args:
            frame_id: Frame id or prefix

        Returns:
            Frame or None if no frame (or more than one) matches
        """
        matches = [f for f in self.load_frames() if str(f.id).startswith(frame_id)]
        if len(matches) != 1:
            return None
        return matches[0]

    def delete_frame(self, frame_id: str) -> bool:
        """Delete a frame by id.

        Args:
            frame_id: ID of frame to delete

        Returns:
            True if frame was deleted, False if not found
        """
        frames = self._read_csv(self.frames_file)
        remaining = [row for row in frames if row["id"] != frame_id]
        if len(remaining) == len(frames):
            return False

        self._write_csv_atomic(self.frames_file, FRAME_FIELDS, remaining)
        links = [row for row in self._read_csv(self.frame_tags_file) if row["frame_id"] != frame_id]
        self._write_csv_atomic(self.frame_tags_file, FRAME_TAG_FIELDS, links)
        return True

    def active_frames(self) -> list[Frame]:
        """Get running frames, most recently started first."""
        return sorted(
            (f for f in self.load_frames() if f.is_active),
            key=lambda f: f.started_at,
            reverse=True,
        )

    def latest_closed(self) -> Optional[Frame]:
        """Get the most recently stopped frame, if any."""
        closed = [f for f in self.load_frames() if not f.is_active]
        if not closed:
            return None
        return max(closed, key=lambda f: f.stopped_at)  # type: ignore[arg-type, return-value]
