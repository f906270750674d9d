"""Main CLI application."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn, Optional

import click  # type: ignore[import-not-found]
from rich.console import Console  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]

from framelog.cli.config_commands import config
from framelog.core.config import ConfigManager, ReportConfig
from framelog.core.errors import FramelogError
from framelog.core.storage import StorageManager
from framelog.core.timefmt import (
    format_datetime,
    format_duration,
    get_timezone,
    localize,
    parse_interval,
    to_utc,
    utcnow,
)
from framelog.core.tracker import FrameTracker
from framelog.report.builder import ReportBuilder
from framelog.report.renderers import OutputFormat

console = Console()
error_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_log_handler: Optional[logging.Handler] = None


def setup_logging(level_name: str) -> None:
    """Send log records at or above the given level to stderr."""
    global _log_handler

    level = getattr(logging, level_name.upper(), logging.WARNING)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if _log_handler is not None:
        root_logger.removeHandler(_log_handler)
    _log_handler = logging.StreamHandler(sys.stderr)
    _log_handler.setLevel(level)
    _log_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(_log_handler)


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    error_console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def get_config(ctx: click.Context) -> ConfigManager:
    return ctx.obj["config"]


def get_tracker(ctx: click.Context) -> FrameTracker:
    """Get FrameTracker using the data directory from options or configuration."""
    data_dir = ctx.obj.get("data_dir")
    storage = StorageManager(Path(data_dir) if data_dir else get_config(ctx).data_dir)
    return FrameTracker(storage)


def get_report_config(ctx: click.Context) -> ReportConfig:
    """Get display settings, exiting with an error if the configuration holds bad values."""
    if "report_config" not in ctx.obj:
        try:
            ctx.obj["report_config"] = ReportConfig.from_manager(get_config(ctx))
        except ValueError as e:
            fail(f"{e}. Fix it with 'framelog config set'")
    return ctx.obj["report_config"]


def parse_when(text: str, timezone_name: str) -> datetime:
    """Parse a command line time in the configured timezone and return it in UTC.

    Accepts 'YYYY-MM-DD HH:MM', 'YYYY-MM-DD' and 'HH:MM' (today).

    Raises:
        ValueError: If the text matches none of the formats
    """
    tz = get_timezone(timezone_name)
    for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return to_utc(datetime.strptime(text, fmt).replace(tzinfo=tz))
        except ValueError:
            pass

    try:
        time_part = datetime.strptime(text, "%H:%M").time()
    except ValueError:
        raise ValueError(
            f"Invalid time format: {text}. Use 'HH:MM', 'YYYY-MM-DD' or 'YYYY-MM-DD HH:MM'"
        )
    today = localize(utcnow(), tz).date()
    return to_utc(datetime.combine(today, time_part, tzinfo=tz))


def split_tags(tags: Optional[str]) -> list[str]:
    return [t.strip() for t in tags.split(",") if t.strip()] if tags else []


def describe(instant: Optional[datetime], report_config: ReportConfig) -> str:
    if instant is None:
        return "-"
    return format_datetime(
        instant, report_config.tz, report_config.date_format, report_config.time_format
    )


@click.group()
@click.version_option(version="0.1.0")
@click.option("--data-dir", help="Custom data directory", type=click.Path())
@click.option("--config", "config_path", help="Custom config file", type=click.Path())
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(
    ctx: click.Context, data_dir: Optional[str], config_path: Optional[str], verbose: bool
) -> None:
    """framelog - track frames of work against projects and report on them."""
    ctx.ensure_object(dict)
    try:
        config_mgr = ConfigManager(Path(config_path) if config_path else None)
    except ValueError as e:
        fail(str(e))

    ctx.obj["config"] = config_mgr
    ctx.obj["data_dir"] = data_dir
    setup_logging("DEBUG" if verbose else config_mgr.get("advanced.log_level", "WARNING"))


cli.add_command(config)


@cli.command()
@click.argument("project")
@click.option("--at", "at", help="Start time (default: now)")
@click.option("-t", "--tags", help="Comma-separated tags")
@click.option("-n", "--notes", help="Notes for the frame")
@click.pass_context
def start(
    ctx: click.Context,
    project: str,
    at: Optional[str],
    tags: Optional[str],
    notes: Optional[str],
) -> None:
    """Start a frame for PROJECT.

    Example:
        framelog start blog -t writing
    """
    tracker = get_tracker(ctx)
    report_config = get_report_config(ctx)

    try:
        started_at = parse_when(at, report_config.timezone) if at else None
        frame = tracker.start(project, started_at)
        if tags:
            tracker.add_tags(frame, split_tags(tags))
        if notes:
            tracker.add_notes(frame, notes)
    except (FramelogError, ValueError) as e:
        fail(str(e))

    console.print(f"[green]✓[/green] Started tracking {frame.project.name}")
    console.print(f"  Started: {describe(frame.started_at, report_config)}")


@cli.command()
@click.argument("project", required=False)
@click.option("--at", "at", help="Stop time (default: now)")
@click.pass_context
def stop(ctx: click.Context, project: Optional[str], at: Optional[str]) -> None:
    """Stop the active frame, or the active frame of PROJECT.

    Example:
        framelog stop
        framelog stop blog --at 17:30
    """
    tracker = get_tracker(ctx)
    report_config = get_report_config(ctx)

    active = tracker.active()
    if project:
        active = [f for f in active if f.project.name == project]
    if not active:
        fail(f"No active frame for {project}" if project else "No active frame")
    if len(active) > 1:
        names = ", ".join(f.project.name for f in active)
        fail(f"Several frames are active ({names}). Name the project to stop.")

    try:
        stopped_at = parse_when(at, report_config.timezone) if at else None
        frame = tracker.stop(active[0], stopped_at)
    except (FramelogError, ValueError) as e:
        fail(str(e))

    console.print(f"[green]✓[/green] Stopped tracking {frame.project.name}")
    console.print(f"  Elapsed: {format_duration(frame.elapsed, report_config.duration_format)}")


@cli.command()
@click.argument("frame_id", required=False)
@click.option("--at", "at", help="Start time of the new frame (default: now)")
@click.pass_context
def restart(ctx: click.Context, frame_id: Optional[str], at: Optional[str]) -> None:
    """Start a new frame like FRAME_ID, or like the last stopped frame.

    Example:
        framelog restart
        framelog restart 3f2a
    """
    tracker = get_tracker(ctx)
    report_config = get_report_config(ctx)

    try:
        source = tracker.get(frame_id) if frame_id else tracker.latest_closed()
        if source is None:
            fail("No stopped frame to restart")
        started_at = parse_when(at, report_config.timezone) if at else None
        frame = tracker.restart(source, started_at)
    except (FramelogError, ValueError) as e:
        fail(str(e))

    console.print(f"[green]✓[/green] Restarted {frame.project.name}")
    if frame.tags:
        console.print(f"  Tags: {', '.join(frame.tag_names)}")


@cli.command()
@click.argument("project")
@click.option("-f", "--from", "from_", required=True, help="Start time of the frame")
@click.option("-t", "--to", "to", help="End time of the frame")
@click.option("-i", "--interval", help="Length of the frame, e.g. '3h 12m'")
@click.option("--tags", help="Comma-separated tags")
@click.option("-n", "--notes", help="Notes for the frame")
@click.option("-e", "--estimate", help="Estimate, e.g. '1h 30m'")
@click.pass_context
def add(
    ctx: click.Context,
    project: str,
    from_: str,
    to: Optional[str],
    interval: Optional[str],
    tags: Optional[str],
    notes: Optional[str],
    estimate: Optional[str],
) -> None:
    """Add a frame that happened in the past to PROJECT.

    The end of the frame is --to, or --from plus --interval.  Without either
    the frame ends now.

    Example:
        framelog add blog --from "2019-05-04 12:00" --to "2019-05-04 12:30"
        framelog add blog --from "2019-05-04 12:00" --interval "1h 30m"
    """
    tracker = get_tracker(ctx)
    report_config = get_report_config(ctx)

    try:
        started_at = parse_when(from_, report_config.timezone)
        stopped_at: Optional[datetime] = None
        if to:
            stopped_at = parse_when(to, report_config.timezone)
        if interval:
            stopped_at = started_at + parse_interval(interval)

        frame = tracker.add(project, started_at, stopped_at)
        if tags:
            tracker.add_tags(frame, split_tags(tags))
        if notes:
            tracker.add_notes(frame, notes)
        if estimate:
            tracker.set_estimate(frame, parse_interval(estimate))
    except (FramelogError, ValueError) as e:
        fail(str(e))

    console.print(
        f"[green]✓[/green] Added frame for {frame.project.name} from "
        f"{describe(frame.started_at, report_config)} to "
        f"{describe(frame.stopped_at, report_config)} "
        f"({format_duration(frame.elapsed, report_config.duration_format)})"
    )


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show active frames.

    Example:
        framelog status
    """
    tracker = get_tracker(ctx)
    report_config = get_report_config(ctx)

    active = tracker.active()
    if not active:
        console.print("[yellow]No active frames[/yellow]")
        return

    table = Table(title="Active Frames")
    table.add_column("ID", style="dim")
    table.add_column("Project", style="cyan")
    table.add_column("Tags", style="blue")
    table.add_column("Started")
    table.add_column("Elapsed", style="magenta", justify="right")

    for frame in active:
        table.add_row(
            str(frame.id)[:8],
            frame.project.name,
            ", ".join(frame.tag_names) or "-",
            describe(frame.started_at, report_config),
            format_duration(frame.elapsed, report_config.duration_format),
        )

    console.print(table)


@cli.command()
@click.argument("frame_id")
@click.argument("text", required=False)
@click.pass_context
def notes(ctx: click.Context, frame_id: str, text: Optional[str]) -> None:
    """Replace the notes of FRAME_ID.  Omit TEXT to clear them."""
    tracker = get_tracker(ctx)

    try:
        frame = tracker.add_notes(tracker.get(frame_id), text)
    except FramelogError as e:
        fail(str(e))

    console.print(f"[green]✓[/green] Updated notes of {str(frame.id)[:8]}")


@cli.command()
@click.argument("frame_id")
@click.argument("tags")
@click.pass_context
def tag(ctx: click.Context, frame_id: str, tags: str) -> None:
    """Add comma-separated TAGS to FRAME_ID."""
    tracker = get_tracker(ctx)

    try:
        frame = tracker.add_tags(tracker.get(frame_id), split_tags(tags))
    except FramelogError as e:
        fail(str(e))

    console.print(f"[green]✓[/green] Tags of {str(frame.id)[:8]}: {', '.join(frame.tag_names)}")


@cli.command()
@click.argument("frame_id")
@click.argument("interval")
@click.pass_context
def estimate(ctx: click.Context, frame_id: str, interval: str) -> None:
    """Set the estimate of FRAME_ID, e.g. '1h 30m'."""
    tracker = get_tracker(ctx)
    report_config = get_report_config(ctx)

    try:
        frame = tracker.set_estimate(tracker.get(frame_id), parse_interval(interval))
    except (FramelogError, ValueError) as e:
        fail(str(e))

    console.print(
        f"[green]✓[/green] Estimate of {str(frame.id)[:8]}: "
        f"{format_duration(frame.estimate, report_config.duration_format)}"
    )


@cli.command()
@click.option("--from", "from_date", help="First date (YYYY-MM-DD, default: today)")
@click.option("--to", "to_date", help="Last date (YYYY-MM-DD, default: today)")
@click.option("-p", "--project", "projects", multiple=True, help="Filter by project")
@click.option("-t", "--tag", "tags", multiple=True, help="Filter by tag")
@click.option(
    "--format",
    "fmt",
    type=click.Choice([f.value for f in OutputFormat]),
    help="Output format (default: report.default_format)",
)
@click.pass_context
def report(
    ctx: click.Context,
    from_date: Optional[str],
    to_date: Optional[str],
    projects: tuple[str, ...],
    tags: tuple[str, ...],
    fmt: Optional[str],
) -> None:
    """Report frames, estimates and velocity over a date range.

    Examples:
        framelog report --from 2019-05-01 --to 2019-05-31
        framelog report --from 2019-05-01 --to 2019-05-31 -p blog --format csv
    """
    tracker = get_tracker(ctx)
    report_config = get_report_config(ctx)
    today = localize(utcnow(), report_config.tz).date()

    try:
        start_day = datetime.strptime(from_date, "%Y-%m-%d").date() if from_date else today
        end_day = datetime.strptime(to_date, "%Y-%m-%d").date() if to_date else today
    except ValueError:
        fail("Invalid date format for --from/--to. Use YYYY-MM-DD")

    builder = ReportBuilder.build(tracker.storage, report_config).from_date(start_day)
    builder.to_date(end_day)
    if projects:
        builder.for_project(projects)
    if tags:
        builder.for_tag(tags)

    try:
        built = builder.create()
        built.render(sys.stdout, fmt or get_config(ctx).get("report.default_format", "table"))
    except (FramelogError, ValueError) as e:
        fail(str(e))


if __name__ == "__main__":
    cli(obj={})
