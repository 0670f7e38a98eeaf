import typer
import logging
import yaml
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError
from rich.console import Console

from flvtools.config.loader import load_config
from flvtools.config.models import AppConfig
from flvtools.infrastructure.logging import setup_logging
from flvtools.infrastructure.event_bus import EventBus
from flvtools.infrastructure.source import open_source
from flvtools.infrastructure.output import ensure_output_absent, write_plan
from flvtools.domain.errors import FlvError
from flvtools.domain.events import OutputWritten
from flvtools.domain.models import SplicePlan
from flvtools.pipeline.cut import cut_stream
from flvtools.pipeline.fix import fix_stream
from flvtools.pipeline.merge import merge_streams
from flvtools.pipeline.fix_seek import fix_seek_streams
from flvtools.pipeline.inspect import inspect_stream
from flvtools.ui.reporter import ConsoleReporter, format_tag_line, render_inspect_report, render_match_report
from flvtools.utils.timecode import parse_time

app = typer.Typer(help="flvtools - cut, repair and splice FLV tag streams")

logger = logging.getLogger(__name__)
console = Console()


def _parse_time_option(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return parse_time(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


@contextmanager
def _fatal_errors() -> Iterator[None]:
    """Turns errors into a red diagnostic and a non-zero exit status."""
    try:
        yield
    except KeyboardInterrupt:
        typer.secho("\n✗ Stopped by user (Ctrl+C)", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)
    except typer.Exit:
        raise
    except (FlvError, FileExistsError, FileNotFoundError, ValueError) as exc:
        logger.debug(f"{type(exc).__name__}: {exc}")
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        logger.exception("Unhandled error")
        typer.secho(f"Fatal Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _make_bus(config: AppConfig) -> EventBus:
    bus = EventBus()
    ConsoleReporter(bus, console, verbose=config.general.debug)
    return bus


def _write(plan: SplicePlan, output_path: Path, config: AppConfig, bus: EventBus) -> None:
    console.print(f"Writing {output_path}")
    written = write_plan(plan, output_path, delete_on_failure=config.general.delete_partial_output)
    bus.publish(OutputWritten(path=output_path, bytes_written=written, ranges=len(plan)))


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
):
    """Tools for FLV files: every command refuses to overwrite an existing output."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValidationError, yaml.YAMLError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if debug: config.general.debug = True
    if log_path is not None: config.general.log_path = str(log_path)

    log_path_value = Path(config.general.log_path) if config.general.log_path else None
    setup_logging(debug=config.general.debug, log_path=log_path_value)
    ctx.obj = config


@app.command()
def cut(
    ctx: typer.Context,
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source FLV file"),
    output_path: Path = typer.Argument(..., help="Output FLV file (must not exist)"),
    begin: Optional[str] = typer.Option(None, "--begin", "-b", help="Keep tags from this time (mm:ss:ms)"),
    end: Optional[str] = typer.Option(None, "--end", "-e", help="Stop after this time (mm:ss:ms)"),
    ignore_bad_tags: Optional[bool] = typer.Option(
        None,
        "--ignore-bad-tags/--strict",
        help="Skip malformed tags instead of aborting"
    ),
):
    """Extract the tags between --begin and --end. Timestamps are not rebased."""
    config: AppConfig = ctx.obj
    begin_ms = _parse_time_option(begin) or 0
    end_ms = _parse_time_option(end)
    if ignore_bad_tags is not None: config.cut.ignore_bad_tags = ignore_bad_tags

    with _fatal_errors():
        ensure_output_absent(output_path)
        bus = _make_bus(config)
        with open_source(input_path) as buffer:
            plan = cut_stream(
                buffer,
                begin_ms=begin_ms,
                end_ms=end_ms,
                ignore_bad_tags=config.cut.ignore_bad_tags,
                event_bus=bus,
                source=str(input_path),
            )
            _write(plan, output_path, config, bus)


@app.command()
def fix(
    ctx: typer.Context,
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Damaged FLV file"),
    output_path: Path = typer.Argument(..., help="Output FLV file (must not exist)"),
):
    """Drop malformed tags and tags whose timestamp goes backwards."""
    config: AppConfig = ctx.obj
    with _fatal_errors():
        ensure_output_absent(output_path)
        bus = _make_bus(config)
        with open_source(input_path) as buffer:
            plan = fix_stream(buffer, event_bus=bus, source=str(input_path))
            _write(plan, output_path, config, bus)


@app.command()
def merge(
    ctx: typer.Context,
    head_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Earlier capture"),
    tail_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Continuation overlapping the end of head"),
    output_path: Path = typer.Argument(..., help="Output FLV file (must not exist)"),
    skip_frames: Optional[int] = typer.Option(
        None,
        "--skip-frames",
        "-s",
        min=0,
        help="Video frames to skip at the start of tail before picking the search frame"
    ),
    time_clue: Optional[str] = typer.Option(
        None,
        "--time-clue",
        "-t",
        help="Pick the search frame near this tail time instead (mm:ss:ms)"
    ),
):
    """Merge two overlapping captures by matching one video frame byte for byte."""
    config: AppConfig = ctx.obj
    if skip_frames is not None and time_clue is not None:
        typer.secho("Error: --skip-frames and --time-clue are mutually exclusive.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    time_clue_ms = _parse_time_option(time_clue)
    if skip_frames is not None: config.merge.skip_frames = skip_frames

    with _fatal_errors():
        ensure_output_absent(output_path)
        bus = _make_bus(config)
        with open_source(head_path) as head, open_source(tail_path) as tail:
            result = merge_streams(
                head,
                tail,
                skip_frames=None if time_clue_ms is not None else config.merge.skip_frames,
                time_clue=time_clue_ms,
                time_clue_tolerance_ms=config.merge.time_clue_tolerance_ms,
                tail_corruption_tolerance_pct=config.merge.tail_corruption_tolerance_pct,
                expected_junction_min_pct=config.merge.expected_junction_min_pct,
                event_bus=bus,
                head_source=str(head_path),
                tail_source=str(tail_path),
            )
            _write(result.plan, output_path, config, bus)
        render_match_report(console, result.report)


@app.command("fix-seek")
def fix_seek(
    ctx: typer.Context,
    head_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Capture with a good header"),
    broken_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Capture started mid-stream"),
    output_path: Path = typer.Argument(..., help="Output FLV file (must not exist)"),
    anchor_tags: Optional[int] = typer.Option(
        None,
        "--anchor-tags",
        min=0,
        help="Tags kept from head after its metadata tag"
    ),
):
    """Put the header of HEAD in front of BROKEN from its first video tag (heuristic)."""
    config: AppConfig = ctx.obj
    if anchor_tags is not None: config.fix_seek.anchor_tags = anchor_tags

    with _fatal_errors():
        ensure_output_absent(output_path)
        bus = _make_bus(config)
        with open_source(head_path) as head, open_source(broken_path) as broken:
            plan = fix_seek_streams(
                head,
                broken,
                anchor_tags=config.fix_seek.anchor_tags,
                event_bus=bus,
                head_source=str(head_path),
                broken_source=str(broken_path),
            )
            _write(plan, output_path, config, bus)


@app.command()
def inspect(
    ctx: typer.Context,
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="FLV file to inspect"),
    tolerant: Optional[bool] = typer.Option(
        None,
        "--tolerant/--no-tolerant",
        help="Resynchronize past malformed tags instead of stopping"
    ),
    tags: bool = typer.Option(False, "--tags", help="Print one line per tag"),
    gap_threshold: Optional[int] = typer.Option(
        None,
        "--gap-threshold",
        min=0,
        help="Forward time jump (ms) reported as a gap"
    ),
):
    """Summarise tag kinds, covered time ranges and time gaps."""
    config: AppConfig = ctx.obj
    if tolerant is not None: config.inspect.tolerant = tolerant
    if gap_threshold is not None: config.inspect.gap_threshold_ms = gap_threshold

    with _fatal_errors():
        with open_source(input_path) as buffer:
            report = inspect_stream(
                buffer,
                tolerant=config.inspect.tolerant,
                gap_threshold_ms=config.inspect.gap_threshold_ms,
                on_tag=(lambda tag: console.print(format_tag_line(tag), markup=False)) if tags else None,
                source=str(input_path),
            )
        render_inspect_report(console, report)


if __name__ == "__main__":
    app()
