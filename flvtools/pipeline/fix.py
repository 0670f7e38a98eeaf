import logging
from typing import Optional

from flvtools.domain.events import GapSkipped, TagDropped
from flvtools.domain.models import Gap, SplicePlan, Tag
from flvtools.infrastructure.event_bus import EventBus, publish
from flvtools.pipeline.cut import header_start
from flvtools.stream.cursor import BufferLike, as_view
from flvtools.stream.walker import StreamWalker

logger = logging.getLogger(__name__)


class MonotonicFilter:
    """Accepts a tag only if its timestamp does not go backwards.

    Used as the walker's ``accept`` predicate, so a dropped tag is followed by
    the same one-byte resynchronization as a malformed one.
    """

    def __init__(self, source: str = "input", event_bus: Optional[EventBus] = None):
        self.source = source
        self.event_bus = event_bus
        self.last_timestamp = 0
        self.dropped = 0

    def __call__(self, tag: Tag) -> bool:
        if tag.timestamp < self.last_timestamp:
            self.dropped += 1
            logger.debug(
                f"{self.source}: backward timestamp at offset {tag.offset} "
                f"({tag.timestamp} < {self.last_timestamp}), skipping"
            )
            publish(
                self.event_bus,
                TagDropped(
                    source=self.source,
                    offset=tag.offset,
                    timestamp=tag.timestamp,
                    last_timestamp=self.last_timestamp,
                ),
            )
            return False
        self.last_timestamp = tag.timestamp
        return True


def fix_stream(
    buffer: BufferLike,
    event_bus: Optional[EventBus] = None,
    source: str = "input",
) -> SplicePlan:
    """Best-effort repair: keeps every well-formed tag that does not regress in time."""
    view = as_view(buffer)
    plan = SplicePlan()
    start = header_start(view, plan, strict=False, source=source)

    monotonic = MonotonicFilter(source=source, event_bus=event_bus)
    walker = StreamWalker(view, start=start, resync=True, accept=monotonic, source=source)
    for item in walker:
        if isinstance(item, Gap):
            publish(event_bus, GapSkipped(source=source, offset=item.offset, length=item.length, cause=item.cause))
            continue
        plan.add_tag(item)

    if monotonic.dropped or walker.skipped_bytes:
        logger.warning(
            f"{source}: dropped {monotonic.dropped} backward tags, "
            f"skipped {walker.skipped_bytes} bytes in {walker.gaps} gaps"
        )
    logger.info(f"{source}: fix kept {walker.tags} tags, {plan.total_length} bytes")
    return plan
