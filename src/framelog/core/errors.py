"""Exception hierarchy for framelog."""


class FramelogError(Exception):
    """Base exception for framelog errors."""

    pass


class FrameError(FramelogError):
    """Raised when a frame lifecycle operation cannot be performed."""

    pass


class InvalidFrameError(FrameError, ValueError):
    """Raised when a frame would stop before it started."""

    pass


class ReportError(FramelogError):
    """Raised when a report is misconfigured."""

    pass


class InvalidRangeError(ReportError, ValueError):
    """Raised when a report's end date is earlier than its start date."""

    pass
