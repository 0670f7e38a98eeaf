"""Forward-only traversal of an FLV tag stream with optional resynchronization.

The walker drives ``read_tag`` from a start offset to the end of the buffer.
On a structural error it either aborts (strict mode, the error propagates) or
slides forward by exactly one byte and retries (resync mode). Skipped bytes
are coalesced into ``Gap`` items so callers can count and report them.

Termination: every loop iteration advances ``offset`` by at least one byte
(one on rejection, ``body_length + 15`` on success), and the loop stops once
``offset >= len(buffer)``, so a walk performs at most ``len(buffer) - start``
iterations whatever the byte content.
"""

import logging
from enum import Enum
from typing import Callable, Iterator, Optional

from flvtools.domain.errors import TagError
from flvtools.domain.models import FLV_HEADER_SIZE, Gap, Tag, TagKind, WalkItem
from flvtools.stream.cursor import BufferLike, as_view, read_tag

logger = logging.getLogger(__name__)

REJECTED = "rejected"


class WalkerState(str, Enum):
    SCANNING = "SCANNING"
    ABORTED = "ABORTED"
    FINISHED = "FINISHED"


class StreamWalker:
    """Lazy sequence of validated tags (and skipped gaps) over one buffer.

    Args:
        buffer: Source bytes; never modified.
        start: Offset of the first tag (13 skips the file header).
        resync: Slide one byte forward after a rejection instead of aborting.
        accept: Optional predicate; a tag for which it returns False is
            rejected like a structurally invalid one.
        warn: Log each structural rejection. Defaults to ``not resync``.
        source: Name used in diagnostics.
    """

    def __init__(
        self,
        buffer: BufferLike,
        start: int = FLV_HEADER_SIZE,
        resync: bool = False,
        accept: Optional[Callable[[Tag], bool]] = None,
        warn: Optional[bool] = None,
        source: str = "input",
    ):
        if start < 0:
            raise ValueError("start must be >= 0")
        self.buffer = as_view(buffer)
        self.start = start
        self.resync = resync
        self.accept = accept
        self.warn = (not resync) if warn is None else warn
        self.source = source
        self.state = WalkerState.SCANNING
        self.offset = start
        self.tags = 0
        self.gaps = 0
        self.skipped_bytes = 0

    def __iter__(self) -> Iterator[WalkItem]:
        return self._walk()

    def _walk(self) -> Iterator[WalkItem]:
        buffer = self.buffer
        length = len(buffer)
        self.state = WalkerState.SCANNING
        self.offset = self.start
        self.tags = self.gaps = self.skipped_bytes = 0
        gap_start: Optional[int] = None
        gap_cause = ""

        while self.offset < length:
            offset = self.offset
            try:
                tag, next_offset = read_tag(buffer, offset, warn=self.warn)
            except TagError as exc:
                if not self.resync:
                    self.state = WalkerState.ABORTED
                    logger.debug(f"{self.source}: walk aborted at offset {offset} ({exc.code})")
                    raise
                cause = exc.code
            else:
                if self.accept is None or self.accept(tag):
                    if gap_start is not None:
                        yield self._close_gap(gap_start, offset, gap_cause)
                        gap_start = None
                    self.tags += 1
                    self.offset = next_offset
                    yield tag
                    continue
                cause = REJECTED

            if gap_start is None:
                gap_start, gap_cause = offset, cause
            self.offset = offset + 1

        if gap_start is not None:
            yield self._close_gap(gap_start, self.offset, gap_cause)
        self.state = WalkerState.FINISHED

    def _close_gap(self, start: int, end: int, cause: str) -> Gap:
        gap = Gap(offset=start, length=end - start, cause=cause)
        self.gaps += 1
        self.skipped_bytes += gap.length
        logger.debug(f"{self.source}: skipped {gap.length} bytes at offset {start} ({cause})")
        return gap


def iter_tags(items: Iterator[WalkItem]) -> Iterator[Tag]:
    for item in items:
        if isinstance(item, Tag):
            yield item


def iter_video_tags(items: Iterator[WalkItem]) -> Iterator[Tag]:
    for tag in iter_tags(items):
        if tag.kind == TagKind.VIDEO:
            yield tag
