"""Splicing of two overlapping captures of the same stream.

A video frame is picked near the start of the tail capture and searched for,
byte for byte, among the video tags of the head capture. Compressed video
frames are close to unique, so an exact payload match marks the junction:
the output is the head up to the matching tag followed by the tail from the
picked tag onwards.
"""

import logging
from typing import Optional

from flvtools.domain.errors import AmbiguousMatch, JunctionNotFound, NeedleNotFound, SuspiciousMatch
from flvtools.domain.events import GapSkipped, JunctionFound, NeedleSelected
from flvtools.domain.models import MAX_TIMESTAMP, Gap, MatchReport, MergeResult, SplicePlan, Tag, TagKind
from flvtools.infrastructure.event_bus import EventBus, publish
from flvtools.stream.cursor import BufferLike, as_view, check_header
from flvtools.stream.walker import StreamWalker, iter_video_tags
from flvtools.utils.timecode import format_time

logger = logging.getLogger(__name__)

DEFAULT_SKIP_FRAMES = 100
DEFAULT_TIME_CLUE_TOLERANCE_MS = 500


def select_needle(
    tail: memoryview,
    skip_frames: Optional[int] = DEFAULT_SKIP_FRAMES,
    time_clue: Optional[int] = None,
    time_clue_tolerance_ms: int = DEFAULT_TIME_CLUE_TOLERANCE_MS,
    source: str = "tail",
) -> Tag:
    """Picks the video tag of ``tail`` whose payload becomes the fingerprint.

    With ``time_clue`` the first video tag within the tolerance of the clue is
    used, otherwise the video tag following the first ``skip_frames`` ones.
    The tail is walked strictly: a corrupt tail cannot yield a trustworthy needle.
    """
    check_header(tail, source)
    walker = StreamWalker(tail, resync=False, source=source)
    skipped = 0
    for tag in iter_video_tags(iter(walker)):
        if time_clue is not None:
            if abs(tag.timestamp - time_clue) < time_clue_tolerance_ms:
                return tag
        elif skipped >= skip_frames:
            return tag
        skipped += 1

    if time_clue is not None:
        raise NeedleNotFound(
            f"{source}: no video frame within {time_clue_tolerance_ms} ms of {format_time(time_clue)}"
        )
    raise NeedleNotFound(
        f"{source}: only {skipped} video frames, cannot skip {skip_frames}. Lower skip_frames."
    )


class FrameFingerprintMatcher:
    """Finds the unique video tag of ``head`` whose payload equals the needle."""

    def __init__(
        self,
        needle: Tag,
        tail_corruption_tolerance_pct: float = 5.0,
        event_bus: Optional[EventBus] = None,
        source: str = "head",
    ):
        self.needle = bytes(needle.body)
        self.tail_corruption_tolerance_pct = tail_corruption_tolerance_pct
        self.event_bus = event_bus
        self.source = source
        self.time_min: Optional[int] = None
        self.time_max: Optional[int] = None

    def _note_time(self, timestamp: int) -> None:
        if self.time_min is None or timestamp < self.time_min:
            self.time_min = timestamp
        if self.time_max is None or timestamp > self.time_max:
            self.time_max = timestamp

    def _note_gap(self, gap: Gap, length: int) -> None:
        percent = gap.offset * 100 / length if length else 100.0
        if percent >= 100 - self.tail_corruption_tolerance_pct:
            logger.info(f"{self.source}: corruption at {percent:.0f}% of file, that's ok")
        else:
            logger.warning(
                f"{self.source}: skipped {gap.length} corrupt bytes at offset {gap.offset} "
                f"({percent:.0f}% of file)"
            )
        publish(self.event_bus, GapSkipped(source=self.source, offset=gap.offset, length=gap.length, cause=gap.cause))

    def find(self, head: memoryview) -> Tag:
        """Scans the whole of ``head``; raises unless exactly one tag matches.

        Corruption anywhere in ``head`` is skipped by one-byte resync and the
        search goes on past it, so a match after mid-file corruption is
        accepted. Resync can lock onto a fake tag inside a payload; such a tag
        only matters if its body equals the needle exactly.
        """
        check_header(head, self.source)
        needle = self.needle
        found: Optional[Tag] = None

        for item in StreamWalker(head, resync=True, source=self.source):
            if isinstance(item, Gap):
                self._note_gap(item, len(head))
                continue
            self._note_time(item.timestamp)
            if item.kind != TagKind.VIDEO or item.body_length != len(needle):
                continue
            if item.body != needle:
                continue
            if found is not None:
                raise AmbiguousMatch(
                    f"{self.source}: found multiple matches (offsets {found.offset} and {item.offset}). "
                    "Change skip_frames to use another frame!",
                    item.offset,
                )
            logger.info(f"{self.source}: match found at offset {item.offset}, making sure it's the only one")
            found = item

        if self.time_min is not None:
            logger.info(
                f"{self.source}: time range scanned [{format_time(self.time_min)}, {format_time(self.time_max)}]"
            )
        if found is None:
            raise JunctionNotFound(
                f"{self.source}: couldn't find common part. Make sure the two files are overlapping. "
                "If they are, then try changing skip_frames"
            )
        return found


def merge_streams(
    head: BufferLike,
    tail: BufferLike,
    skip_frames: Optional[int] = None,
    time_clue: Optional[int] = None,
    time_clue_tolerance_ms: int = DEFAULT_TIME_CLUE_TOLERANCE_MS,
    tail_corruption_tolerance_pct: float = 5.0,
    expected_junction_min_pct: float = 80.0,
    event_bus: Optional[EventBus] = None,
    head_source: str = "head",
    tail_source: str = "tail",
) -> MergeResult:
    """Merges ``head`` and the overlapping ``tail`` into one stream.

    ``skip_frames`` (default 100) and ``time_clue`` are mutually exclusive.
    """
    if skip_frames is not None and time_clue is not None:
        raise ValueError("skip_frames and time_clue are mutually exclusive")
    if skip_frames is None:
        skip_frames = DEFAULT_SKIP_FRAMES
    if skip_frames < 0:
        raise ValueError("skip_frames must be >= 0")
    if time_clue is not None and not 0 <= time_clue <= MAX_TIMESTAMP:
        raise ValueError(f"time_clue must be within [0, {MAX_TIMESTAMP}] ms")

    head_view = as_view(head)
    tail_view = as_view(tail)

    if time_clue is None:
        logger.info(f"{tail_source}: skipping first {skip_frames} video frames")
    needle = select_needle(
        tail_view,
        skip_frames=skip_frames,
        time_clue=time_clue,
        time_clue_tolerance_ms=time_clue_tolerance_ms,
        source=tail_source,
    )
    logger.info(
        f"{tail_source}: will search for video frame at {format_time(needle.timestamp)} "
        f"(offset {needle.offset}, len={needle.body_length})"
    )
    publish(
        event_bus,
        NeedleSelected(
            source=tail_source,
            offset=needle.offset,
            timestamp=needle.timestamp,
            body_length=needle.body_length,
        ),
    )

    matcher = FrameFingerprintMatcher(
        needle,
        tail_corruption_tolerance_pct=tail_corruption_tolerance_pct,
        event_bus=event_bus,
        source=head_source,
    )
    match = matcher.find(head_view)

    junction = match.offset
    percent = junction * 100 / len(head_view)
    output_length = junction + (len(tail_view) - needle.offset)
    if output_length <= len(head_view):
        raise SuspiciousMatch(
            f"{head_source}: bad search frame, junction at offset {junction} would clobber head "
            f"(output {output_length} bytes <= head {len(head_view)} bytes). Increase skip_frames",
            junction,
        )
    logger.info(f"{head_source}: junction point found at {percent:.0f}% of file (offset {junction})")
    if percent < expected_junction_min_pct:
        logger.warning(
            f"{head_source}: match usually is near the end (found at {percent:.0f}%). "
            "Make sure resulting file is ok, otherwise increase skip_frames"
        )
    publish(event_bus, JunctionFound(source=head_source, offset=junction, percent=percent))

    plan = SplicePlan()
    plan.add(head_view, 0, junction)
    plan.add(tail_view, needle.offset, len(tail_view) - needle.offset)

    report = MatchReport(
        needle_offset=needle.offset,
        needle_timestamp=needle.timestamp,
        needle_length=needle.body_length,
        junction_offset=junction,
        junction_percent=percent,
        head_time_min=matcher.time_min,
        head_time_max=matcher.time_max,
        output_length=output_length,
    )
    return MergeResult(plan=plan, report=report)
