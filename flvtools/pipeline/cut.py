import logging
from typing import Optional

from flvtools.domain.events import GapSkipped
from flvtools.domain.models import FLV_HEADER_SIZE, Gap, SplicePlan
from flvtools.infrastructure.event_bus import EventBus, publish
from flvtools.stream.cursor import BufferLike, as_view, check_header, has_signature, warn_if_not_metadata
from flvtools.stream.walker import StreamWalker
from flvtools.utils.timecode import format_time

logger = logging.getLogger(__name__)


def header_start(view: memoryview, plan: SplicePlan, strict: bool, source: str) -> int:
    """Copies the file header into ``plan`` and returns the offset of the first tag.

    Without a signature, strict callers fail; tolerant callers scan from
    offset 0 and emit no header.
    """
    if strict:
        check_header(view, source)
    elif not has_signature(view) or len(view) < FLV_HEADER_SIZE:
        logger.warning(f"file {source}: invalid FLV header, scanning from offset 0")
        return 0
    plan.add(view, 0, FLV_HEADER_SIZE)
    warn_if_not_metadata(view)
    return FLV_HEADER_SIZE


def cut_stream(
    buffer: BufferLike,
    begin_ms: int = 0,
    end_ms: Optional[int] = None,
    ignore_bad_tags: bool = False,
    event_bus: Optional[EventBus] = None,
    source: str = "input",
) -> SplicePlan:
    """Selects the tags whose timestamps fall in ``[begin_ms, end_ms]``.

    Scanning stops at the first tag later than ``end_ms``; without ``end_ms``
    the range is open and every tag from ``begin_ms`` on is kept. A
    ``begin_ms`` past the last tag yields the header alone. Timestamps are
    kept as they are, so a cut with ``begin_ms > 0`` does not start at zero.
    With ``ignore_bad_tags`` malformed tags are skipped byte by byte,
    otherwise the first one aborts the cut.
    """
    if begin_ms < 0 or (end_ms is not None and end_ms < 0):
        raise ValueError("time bounds must be >= 0")
    if end_ms is not None and begin_ms > end_ms:
        raise ValueError(f"begin ({format_time(begin_ms)}) is after end ({format_time(end_ms)})")

    view = as_view(buffer)
    plan = SplicePlan()
    start = header_start(view, plan, strict=not ignore_bad_tags, source=source)

    walker = StreamWalker(view, start=start, resync=ignore_bad_tags, source=source)
    for item in walker:
        if isinstance(item, Gap):
            publish(event_bus, GapSkipped(source=source, offset=item.offset, length=item.length, cause=item.cause))
            continue
        if end_ms is not None and item.timestamp > end_ms:
            logger.debug(f"{source}: end reached at offset {item.offset} ({format_time(item.timestamp)})")
            break
        if item.timestamp >= begin_ms:
            plan.add_tag(item)

    end_text = format_time(end_ms) if end_ms is not None else "end"
    logger.info(
        f"{source}: cut [{format_time(begin_ms)}, {end_text}] -> "
        f"{plan.total_length} bytes, {walker.skipped_bytes} bytes skipped"
    )
    return plan
