from rich.console import Console
from rich.table import Table

from flvtools.infrastructure.event_bus import EventBus
from flvtools.domain.events import GapSkipped, TagDropped, NeedleSelected, JunctionFound, OutputWritten
from flvtools.domain.models import InspectReport, MatchReport, Tag
from flvtools.utils.timecode import format_time

class ConsoleReporter:
    """Subscribes to EventBus and reports pipeline progress on the console."""

    def __init__(self, bus: EventBus, console: Console, verbose: bool = False):
        self.bus = bus
        self.console = console
        self.verbose = verbose
        self.gaps = 0
        self.skipped_bytes = 0
        self.dropped_tags = 0
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(GapSkipped, self.on_gap_skipped)
        self.bus.subscribe(TagDropped, self.on_tag_dropped)
        self.bus.subscribe(NeedleSelected, self.on_needle_selected)
        self.bus.subscribe(JunctionFound, self.on_junction_found)
        self.bus.subscribe(OutputWritten, self.on_output_written)

    def on_gap_skipped(self, event: GapSkipped):
        self.gaps += 1
        self.skipped_bytes += event.length
        if self.verbose:
            self.console.print(
                f"[yellow]{event.source}: skipped {event.length} bytes at offset {event.offset} ({event.cause})[/yellow]"
            )

    def on_tag_dropped(self, event: TagDropped):
        self.dropped_tags += 1
        if self.verbose:
            self.console.print(
                f"[yellow]{event.source}: backward timestamp at offset {event.offset} "
                f"({format_time(event.timestamp)} < {format_time(event.last_timestamp)}), skipping[/yellow]"
            )

    def on_needle_selected(self, event: NeedleSelected):
        self.console.print(
            f"{event.source}: will search for video frame at {format_time(event.timestamp)} "
            f"(offset {event.offset}, len={event.body_length})"
        )

    def on_junction_found(self, event: JunctionFound):
        self.console.print(
            f"[green]{event.source}: junction point found at {event.percent:.0f}% of file (offset {event.offset})[/green]"
        )

    def on_output_written(self, event: OutputWritten):
        if self.gaps or self.dropped_tags:
            self.console.print(
                f"[yellow]Recovered: {self.gaps} gaps ({self.skipped_bytes} bytes) skipped, "
                f"{self.dropped_tags} backward tags dropped[/yellow]"
            )
        self.console.print(f"[green]✓ Wrote {event.path} ({event.bytes_written} bytes, {event.ranges} ranges)[/green]")


def format_tag_line(tag: Tag) -> str:
    return (
        f"{tag.offset:08d}: Found TAG type {int(tag.kind):#04x}, len {tag.body_length:5d}, "
        f"time {format_time(tag.timestamp)}, stream_id {tag.stream_id}"
    )


def render_match_report(console: Console, report: MatchReport) -> None:
    table = Table(title="Merge", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Needle", f"offset {report.needle_offset}, {format_time(report.needle_timestamp)}, len {report.needle_length}")
    table.add_row("Junction", f"offset {report.junction_offset} ({report.junction_percent:.0f}% of head)")
    if report.head_time_min is not None:
        table.add_row("Head time range", f"[{format_time(report.head_time_min)}, {format_time(report.head_time_max)}]")
    table.add_row("Output size", f"{report.output_length} bytes")
    console.print(table)


def render_inspect_report(console: Console, report: InspectReport) -> None:
    table = Table(title="Tags")
    table.add_column("Kind", style="cyan")
    table.add_column("Count", justify="right")
    for kind, count in report.tag_counts.items():
        table.add_row(kind.name, str(count))
    table.add_row("TOTAL", str(report.total_tags), style="bold")
    console.print(table)

    ranges = " ".join(f"[{format_time(s.start_ms)}, {format_time(s.end_ms)}]" for s in report.spans)
    console.print(f"Time range: {ranges or 'none'}", markup=False)
    if report.time_gaps:
        console.print(f"[yellow]WARNING: {report.time_gaps} time gap(s) found.[/yellow]")
    if report.skipped_bytes:
        console.print(f"[yellow]Skipped {report.skipped_bytes} corrupt bytes in {report.gaps} gap(s).[/yellow]")
    if report.stopped_at is not None:
        console.print(
            f"[red]Broken file, stopped at offset {report.stopped_at} ({report.stopped_percent}%): {report.stop_reason}[/red]"
        )
