"""Core functionality for time tracking."""

from framelog.core.models import Frame, Project, Tag
from framelog.core.tracker import FrameTracker

__all__ = ["Frame", "Project", "Tag", "FrameTracker"]
