import logging
from typing import Callable, Optional

from flvtools.domain.errors import TagError
from flvtools.domain.models import Gap, InspectReport, Tag, TimeSpan
from flvtools.stream.cursor import BufferLike, as_view, check_header, warn_if_not_metadata
from flvtools.stream.walker import StreamWalker
from flvtools.utils.timecode import format_time

logger = logging.getLogger(__name__)

DEFAULT_GAP_THRESHOLD_MS = 500


def inspect_stream(
    buffer: BufferLike,
    tolerant: bool = False,
    gap_threshold_ms: int = DEFAULT_GAP_THRESHOLD_MS,
    on_tag: Optional[Callable[[Tag], None]] = None,
    source: str = "input",
) -> InspectReport:
    """Walks the whole stream and summarises tag kinds and covered time spans.

    A forward jump larger than ``gap_threshold_ms`` between consecutive tags
    starts a new time span. In strict mode a malformed tag ends the scan
    without raising; the report records where.
    """
    view = as_view(buffer)
    check_header(view, source)
    warn_if_not_metadata(view)

    report = InspectReport(file_length=len(view))
    walker = StreamWalker(view, resync=tolerant, warn=False, source=source)
    prev_time: Optional[int] = None
    span: Optional[TimeSpan] = None

    try:
        for item in walker:
            if isinstance(item, Gap):
                continue
            if on_tag is not None:
                on_tag(item)
            report.tag_counts[item.kind] += 1

            timestamp = item.timestamp
            if span is None or (prev_time is not None and timestamp - prev_time > gap_threshold_ms):
                if span is not None:
                    logger.warning(
                        f"{source}: time gap in file at offset {item.offset} "
                        f"(jump by {format_time(timestamp - prev_time)})"
                    )
                span = TimeSpan(start_ms=timestamp, end_ms=timestamp)
                report.spans.append(span)
            prev_time = timestamp
            span.start_ms = min(span.start_ms, timestamp)
            span.end_ms = max(span.end_ms, timestamp)
    except TagError as exc:
        report.stopped_at = exc.offset
        report.stop_reason = str(exc)
        logger.warning(f"{source}: broken file, stopping at {report.stopped_percent}% ({exc})")

    report.gaps = walker.gaps
    report.skipped_bytes = walker.skipped_bytes
    return report
