"""Report renderers for CSV, JSON and terminal table output."""

import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, TextIO, Union

from rich import box  # type: ignore[import-not-found]
from rich.console import Console  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]

from framelog.core.errors import ReportError

if TYPE_CHECKING:
    from framelog.report.builder import Report


class OutputFormat(str, Enum):
    """Supported report output formats."""

    CSV = "csv"
    JSON = "json"
    TABLE = "table"


class Renderer(ABC):
    """Base class for all report renderers."""

    @abstractmethod
    def render(self, report: "Report", sink: TextIO) -> None:
        """Write a report to a text stream.

        Args:
            report: Built report
            sink: Stream to write to
        """
        pass


class CSVRenderer(Renderer):
    """Render frames as CSV without totals.

    A field is quoted when it contains the delimiter, a quote, whitespace or a
    backslash, so ``12:00 pm`` is written as ``"12:00 pm"``.  The csv module
    only quotes on delimiters, quotes and line breaks.
    """

    COLUMNS = ["Project", "Tags", "Date", "Start", "End", "Elapsed"]
    DELIMITER = ","
    _QUOTE_TRIGGERS = frozenset(',"\\ \t\r\n')

    def _field(self, value: Any) -> str:
        text = "" if value is None else str(value)
        if any(char in self._QUOTE_TRIGGERS for char in text):
            return '"' + text.replace('"', '""') + '"'
        return text

    def _line(self, values: list[Any]) -> str:
        return self.DELIMITER.join(self._field(value) for value in values) + "\n"

    def render(self, report: "Report", sink: TextIO) -> None:
        duration_format = report.config.duration_format
        sink.write(self._line(self.COLUMNS))
        for row in report.rows:
            data = row.to_dict(duration_format)
            sink.write(self._line([data[column] for column in self.COLUMNS]))


class JSONRenderer(Renderer):
    """Render the date range, frames and totals as one JSON object."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def render(self, report: "Report", sink: TextIO) -> None:
        duration_format = report.config.duration_format
        payload = {
            "date_range": report.date_range(),
            "frames": [row.to_dict(duration_format) for row in report.rows],
            "totals": report.totals.to_dict(duration_format),
        }
        json.dump(payload, sink, indent=self.indent, ensure_ascii=False)
        sink.write("\n")


class TableRenderer(Renderer):
    """Render a bordered terminal table with a totals footer."""

    def __init__(self, width: int = 120):
        self.width = width

    @staticmethod
    def _velocity(value: Any) -> str:
        return "-" if value is None else str(value)

    def render(self, report: "Report", sink: TextIO) -> None:
        config = report.config
        duration_format = config.table_duration_format or config.duration_format
        date_range = report.date_range()
        totals = report.totals.to_dict(duration_format)

        table = Table(
            title=f"{date_range['from']} → {date_range['to']}",
            box=box.SQUARE if config.table_style == "box" else None,
            show_footer=True,
        )
        # Only free text wraps when the table is wider than the sink
        table.add_column("Project", style="cyan", footer="Total", no_wrap=True)
        table.add_column("Tags", style="blue")
        table.add_column("Notes")
        table.add_column("Date", no_wrap=True)
        table.add_column("Start", no_wrap=True)
        table.add_column("End", no_wrap=True)
        table.add_column(
            "Elapsed", style="magenta", justify="right", footer=totals["Elapsed"], no_wrap=True
        )
        table.add_column("Estimate", justify="right", footer=totals["Estimate"], no_wrap=True)
        table.add_column(
            "Velocity",
            style="green",
            justify="right",
            footer=self._velocity(totals["Velocity"]),
            no_wrap=True,
        )

        for row in report.rows:
            data = row.to_dict(duration_format)
            table.add_row(
                data["Project"],
                data["Tags"],
                data["Notes"],
                data["Date"],
                data["Start"],
                data["End"],
                data["Elapsed"],
                data["Estimate"],
                self._velocity(data["Velocity"]),
            )

        console = Console(file=sink, width=self.width, highlight=False)
        console.print(table)


_RENDERERS: dict[OutputFormat, type[Renderer]] = {
    OutputFormat.CSV: CSVRenderer,
    OutputFormat.JSON: JSONRenderer,
    OutputFormat.TABLE: TableRenderer,
}


def get_renderer(fmt: Union[OutputFormat, str]) -> Renderer:
    """Get the renderer for an output format.

    Raises:
        ReportError: If the format is unknown
    """
    if not isinstance(fmt, OutputFormat):
        try:
            fmt = OutputFormat(str(fmt).lower())
        except ValueError:
            choices = ", ".join(f.value for f in OutputFormat)
            raise ReportError(f"Unknown report format '{fmt}'. Choose from: {choices}")
    return _RENDERERS[fmt]()
