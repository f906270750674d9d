"""Core data models for time tracking."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from framelog.core.errors import InvalidFrameError
from framelog.core.timefmt import to_utc, utcnow

logger = logging.getLogger(__name__)

_ONE_MICROSECOND = timedelta(microseconds=1)


def velocity_ratio(estimate: timedelta, elapsed: timedelta, places: int) -> Optional[float]:
    """Compute estimate / elapsed rounded half-up to the given decimal places.

    Args:
        estimate: Estimated duration
        elapsed: Actual duration
        places: Number of decimal places to keep

    Returns:
        Rounded ratio, or None when elapsed is zero (velocity is undefined)
    """
    elapsed_us = elapsed // _ONE_MICROSECOND
    if elapsed_us <= 0:
        return None
    ratio = Decimal(estimate // _ONE_MICROSECOND) / Decimal(elapsed_us)
    return float(ratio.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


@dataclass
class Project:
    """Project that frames are tracked against.

    Attributes:
        name: Unique project name
        id: Unique identifier
        created_at: Creation timestamp
    """

    name: str
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        """Create Project from dictionary (CSV deserialization)."""
        return cls(
            id=data["id"],
            name=data["name"],
            created_at=to_utc(datetime.fromisoformat(data["created_at"])),
        )


@dataclass
class Tag:
    """Free-form label attached to frames."""

    name: str
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tag":
        """Create Tag from dictionary (CSV deserialization)."""
        return cls(
            id=data["id"],
            name=data["name"],
            created_at=to_utc(datetime.fromisoformat(data["created_at"])),
        )


@dataclass
class Frame:
    """A tracked interval of work on a project.

    Instants are kept in UTC.  A frame without ``stopped_at`` is active.

    Attributes:
        project: Project the frame belongs to
        started_at: When the frame started
        id: Unique identifier (UUID)
        stopped_at: When the frame stopped (None while active)
        notes: Free-text notes
        estimate: Estimated duration of the work, stored in whole seconds
        tags: Tags attached to the frame
        created_at: When this record was created
        updated_at: Last update time
    """

    project: Project
    started_at: datetime
    id: UUID = field(default_factory=uuid4)
    stopped_at: Optional[datetime] = None
    notes: Optional[str] = None
    estimate: timedelta = field(default_factory=timedelta)
    tags: list[Tag] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.started_at = to_utc(self.started_at)
        if self.stopped_at is not None:
            self.stopped_at = to_utc(self.stopped_at)

    @classmethod
    def start(cls, project: Project, started_at: Optional[datetime] = None) -> "Frame":
        """Create an active frame for the project.

        Args:
            project: Project to track against
            started_at: Start instant. Defaults to now.
        """
        return cls(project=project, started_at=started_at or utcnow())

    def stop(self, stopped_at: Optional[datetime] = None) -> None:
        """Stop the frame.

        Stopping a frame that is already stopped overwrites its stop instant.

        Args:
            stopped_at: Stop instant. Defaults to now.

        Raises:
            InvalidFrameError: If the stop instant is before the start instant
        """
        stopped_at = to_utc(stopped_at or utcnow())
        if stopped_at < self.started_at:
            raise InvalidFrameError(
                f"Frame cannot stop ({stopped_at.isoformat()}) "
                f"before it started ({self.started_at.isoformat()})"
            )
        if self.stopped_at is not None:
            logger.warning(
                f"Frame {self.id} already stopped at {self.stopped_at.isoformat()}, overwriting"
            )
        self.stopped_at = stopped_at
        self.updated_at = utcnow()

    def restart(self, started_at: Optional[datetime] = None) -> "Frame":
        """Return a new active frame with this frame's project, tags, notes and estimate.

        A closed frame is never re-opened; this frame is left untouched.
        """
        return Frame(
            project=self.project,
            started_at=started_at or utcnow(),
            notes=self.notes,
            estimate=self.estimate,
            tags=list(self.tags),
        )

    def add_tag(self, tag: Tag) -> bool:
        """Attach a tag.  Returns False if a tag with that name is already attached."""
        if tag.name in self.tag_names:
            return False
        self.tags.append(tag)
        return True

    @property
    def is_active(self) -> bool:
        """Check if this frame is still running."""
        return self.stopped_at is None

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]

    @property
    def elapsed(self) -> timedelta:
        """Time between start and stop, or between start and now while active."""
        end = self.stopped_at if self.stopped_at is not None else utcnow()
        return max(timedelta(0), end - self.started_at)

    @property
    def velocity(self) -> Optional[float]:
        """Estimate divided by elapsed, to 1 decimal place.  None if nothing elapsed."""
        return velocity_ratio(self.estimate, self.elapsed, 1)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV serialization.

        Tags are stored separately in the frame/tag association file.
        """
        return {
            "id": str(self.id),
            "started_at": self.started_at.isoformat(),
            "stopped_at": self.stopped_at.isoformat() if self.stopped_at else "",
            "project_id": self.project.id,
            "notes": self.notes or "",
            "estimate_seconds": int(self.estimate.total_seconds()),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], project: Project, tags: Optional[list[Tag]] = None
    ) -> "Frame":
        """Create Frame from a CSV row and its resolved project and tags."""
        return cls(
            id=UUID(data["id"]),
            project=project,
            started_at=datetime.fromisoformat(data["started_at"]),
            stopped_at=datetime.fromisoformat(data["stopped_at"]) if data["stopped_at"] else None,
            notes=data["notes"] if data["notes"] else None,
            estimate=timedelta(seconds=int(data["estimate_seconds"] or 0)),
            tags=tags or [],
            created_at=to_utc(datetime.fromisoformat(data["created_at"])),
            updated_at=to_utc(datetime.fromisoformat(data["updated_at"])),
        )
