"""Report building and rendering."""

from framelog.report.builder import Report, ReportBuilder, ReportRow, ReportTotals
from framelog.report.renderers import (
    CSVRenderer,
    JSONRenderer,
    OutputFormat,
    Renderer,
    TableRenderer,
)

__all__ = [
    "Report",
    "ReportBuilder",
    "ReportRow",
    "ReportTotals",
    "OutputFormat",
    "Renderer",
    "CSVRenderer",
    "JSONRenderer",
    "TableRenderer",
]
