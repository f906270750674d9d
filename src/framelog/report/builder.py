"""Report building: filter frames, project them into rows and total them up."""

import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional, TextIO, Union

from framelog.core.config import ReportConfig
from framelog.core.errors import InvalidRangeError, ReportError
from framelog.core.models import Frame, Project, Tag, velocity_ratio
from framelog.core.storage import FrameFilter, StorageManager
from framelog.core.timefmt import (
    format_date,
    format_datetime,
    format_duration,
    format_time,
    start_of_day,
)
from framelog.report.renderers import OutputFormat, get_renderer

logger = logging.getLogger(__name__)

NameOrNames = Union[str, Project, Tag, Iterable[Union[str, Project, Tag]]]


def _as_date(value: Union[date, datetime]) -> date:
    """Reduce a date or datetime to a UTC calendar date."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def _names(value: NameOrNames) -> list[str]:
    if isinstance(value, (str, Project, Tag)):
        value = [value]
    return [item if isinstance(item, str) else item.name for item in value]


@dataclass(frozen=True)
class ReportRow:
    """Display projection of a single frame."""

    project: str
    tags: str
    notes: str
    date: str
    start: str
    end: str
    elapsed: timedelta
    estimate: timedelta
    velocity: Optional[float]

    @classmethod
    def from_frame(cls, frame: Frame, config: ReportConfig) -> "ReportRow":
        """Localize a closed frame for display."""
        tz = config.tz
        stopped_at = frame.stopped_at or frame.started_at
        return cls(
            project=frame.project.name,
            tags=",".join(frame.tag_names),
            notes=frame.notes or "",
            date=format_date(frame.started_at, tz, config.date_format),
            start=format_time(frame.started_at, tz, config.time_format),
            end=format_time(stopped_at, tz, config.time_format),
            elapsed=frame.elapsed,
            estimate=frame.estimate,
            velocity=frame.velocity,
        )

    def to_dict(self, duration_format: str) -> dict[str, Any]:
        """Column mapping shared by every renderer."""
        return {
            "Project": self.project,
            "Tags": self.tags,
            "Notes": self.notes,
            "Date": self.date,
            "Start": self.start,
            "End": self.end,
            "Elapsed": format_duration(self.elapsed, duration_format),
            "Estimate": format_duration(self.estimate, duration_format),
            "Velocity": self.velocity,
        }


@dataclass(frozen=True)
class ReportTotals:
    """Summed durations and aggregate velocity of a report.

    The aggregate velocity is rounded to 2 decimal places, unlike the
    1 decimal place of a single row.
    """

    elapsed: timedelta = field(default_factory=timedelta)
    estimate: timedelta = field(default_factory=timedelta)
    velocity: Optional[float] = None

    @classmethod
    def from_rows(cls, rows: Iterable[ReportRow]) -> "ReportTotals":
        elapsed = timedelta(0)
        estimate = timedelta(0)
        for row in rows:
            elapsed += row.elapsed
            estimate += row.estimate
        return cls(
            elapsed=elapsed,
            estimate=estimate,
            velocity=velocity_ratio(estimate, elapsed, 2),
        )

    def to_dict(self, duration_format: str) -> dict[str, Any]:
        return {
            "Elapsed": format_duration(self.elapsed, duration_format),
            "Estimate": format_duration(self.estimate, duration_format),
            "Velocity": self.velocity,
        }


@dataclass(frozen=True)
class Report:
    """A built report: matching closed frames, their rows and totals.

    Attributes:
        config: Display settings used for rows and rendering
        start: First calendar date of the report
        end: Last calendar date of the report
        frames: Matching frames, oldest first
        rows: One display row per frame
        totals: Aggregates over all rows
    """

    config: ReportConfig
    start: date
    end: date
    frames: tuple[Frame, ...] = ()
    rows: tuple[ReportRow, ...] = ()
    totals: ReportTotals = field(default_factory=ReportTotals)

    @property
    def range_start(self) -> datetime:
        """Instant at which the report window opens (midnight UTC of ``start``)."""
        return start_of_day(self.start)

    @property
    def range_end(self) -> datetime:
        """Midnight UTC of ``end``."""
        return start_of_day(self.end)

    def date_range(self) -> dict[str, str]:
        """Boundary instants formatted in the display timezone."""
        config = self.config
        return {
            "from": format_datetime(
                self.range_start, config.tz, config.date_format, config.time_format
            ),
            "to": format_datetime(
                self.range_end, config.tz, config.date_format, config.time_format
            ),
        }

    def render(self, sink: TextIO, fmt: Union[OutputFormat, str] = OutputFormat.TABLE) -> None:
        """Write the report to a text stream.

        Args:
            sink: Stream to write to
            fmt: Output format, or its name ('csv', 'json', 'table')

        Raises:
            ReportError: If the format name is unknown
        """
        get_renderer(fmt).render(self, sink)

    def render_to_string(self, fmt: Union[OutputFormat, str] = OutputFormat.TABLE) -> str:
        buffer = io.StringIO()
        self.render(buffer, fmt)
        return buffer.getvalue()


class ReportBuilder:
    """Fluent builder for reports.

    Example:
        >>> report = (
        ...     ReportBuilder.build(storage, config)
        ...     .from_date(date(2019, 5, 3))
        ...     .to_date(date(2019, 5, 5))
        ...     .for_project("blog")
        ...     .create()
        ... )
        >>> report.render(sys.stdout, "csv")
    """

    def __init__(self, storage: StorageManager, config: Optional[ReportConfig] = None):
        """Initialize report builder.

        Args:
            storage: Storage to query frames from
            config: Display settings. Defaults to UTC and default patterns.
        """
        self.storage = storage
        self.config = config or ReportConfig()
        self._start: Optional[date] = None
        self._end: Optional[date] = None
        self._projects: Optional[list[str]] = None
        self._tags: Optional[list[str]] = None

    @classmethod
    def build(
        cls, storage: StorageManager, config: Optional[ReportConfig] = None
    ) -> "ReportBuilder":
        """Return a fresh builder."""
        return cls(storage, config)

    def from_date(self, value: Union[date, datetime]) -> "ReportBuilder":
        """Set the first calendar date to include."""
        self._start = _as_date(value)
        return self

    def to_date(self, value: Union[date, datetime]) -> "ReportBuilder":
        """Set the last calendar date to include."""
        self._end = _as_date(value)
        return self

    def for_project(self, projects: NameOrNames) -> "ReportBuilder":
        """Only include frames of these projects."""
        self._projects = _names(projects)
        return self

    def for_tag(self, tags: NameOrNames) -> "ReportBuilder":
        """Only include frames carrying at least one of these tags."""
        self._tags = _names(tags)
        return self

    def create(self) -> Report:
        """Query the store and build the report.

        Returns:
            Built report

        Raises:
            ReportError: If either date bound is missing
            InvalidRangeError: If the end date is before the start date
        """
        if self._start is None or self._end is None:
            raise ReportError("Both a start and an end date are required to build a report")
        if self._end < self._start:
            raise InvalidRangeError(
                f"Report end date {self._end.isoformat()} is before "
                f"start date {self._start.isoformat()}"
            )

        frames = self.storage.query_frames(
            FrameFilter(
                start=self._start,
                end=self._end,
                projects=self._projects,
                tags=self._tags,
                only_closed=True,
            )
        )
        rows = tuple(ReportRow.from_frame(frame, self.config) for frame in frames)
        logger.debug(f"Built report for {self._start} to {self._end} with {len(rows)} rows")

        return Report(
            config=self.config,
            start=self._start,
            end=self._end,
            frames=tuple(frames),
            rows=rows,
            totals=ReportTotals.from_rows(rows),
        )
