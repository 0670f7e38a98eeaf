from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterator, List, Optional, Union

FLV_SIGNATURE = b"FLV"
FLV_HEADER_SIZE = 13
TAG_HEADER_SIZE = 11
TAG_TRAILER_SIZE = 4
TAG_OVERHEAD = TAG_HEADER_SIZE + TAG_TRAILER_SIZE
MAX_TIMESTAMP = 0xFFFFFF


class TagKind(IntEnum):
    AUDIO = 0x08
    VIDEO = 0x09
    METADATA = 0x12


@dataclass(frozen=True)
class Tag:
    """Transient view of one validated tag inside a source buffer.

    The payload is not copied: ``body`` slices the source buffer on access.
    """

    kind: TagKind
    offset: int
    body_length: int
    timestamp: int
    stream_id: int
    trailer: int
    source: memoryview = field(repr=False, compare=False)

    @property
    def size(self) -> int:
        return self.body_length + TAG_OVERHEAD

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def body(self) -> memoryview:
        start = self.offset + TAG_HEADER_SIZE
        return self.source[start:start + self.body_length]


@dataclass(frozen=True)
class Gap:
    """Run of bytes skipped by one-byte resynchronization."""

    offset: int
    length: int
    cause: str

    @property
    def end(self) -> int:
        return self.offset + self.length


WalkItem = Union[Tag, Gap]


@dataclass(frozen=True)
class ByteRange:
    start: int
    length: int
    buffer: memoryview = field(repr=False, compare=False)

    @property
    def end(self) -> int:
        return self.start + self.length

    def view(self) -> memoryview:
        return self.buffer[self.start:self.end]


class SplicePlan:
    """Ordered list of byte ranges whose concatenation is the output file.

    A plan is built completely before the output is opened, so a fatal
    stream or matching error never leaves a partial file. The cost is one
    range per kept run of bytes held until the write; contiguous tags of one
    buffer share a range.
    """

    def __init__(self):
        self.ranges: List[ByteRange] = []

    def add(self, buffer: memoryview, start: int, length: int) -> None:
        if length <= 0:
            return
        if self.ranges:
            last = self.ranges[-1]
            # Adjacent ranges on the same buffer collapse into one write.
            if last.buffer is buffer and last.end == start:
                self.ranges[-1] = ByteRange(last.start, last.length + length, buffer)
                return
        self.ranges.append(ByteRange(start, length, buffer))

    def add_tag(self, tag: Tag) -> None:
        self.add(tag.source, tag.offset, tag.size)

    @property
    def total_length(self) -> int:
        return sum(r.length for r in self.ranges)

    def render(self) -> bytes:
        return b"".join(bytes(r.view()) for r in self.ranges)

    def __iter__(self) -> Iterator[ByteRange]:
        return iter(self.ranges)

    def __len__(self) -> int:
        return len(self.ranges)


@dataclass
class TimeSpan:
    start_ms: int
    end_ms: int


@dataclass
class MatchReport:
    needle_offset: int
    needle_timestamp: int
    needle_length: int
    junction_offset: int
    junction_percent: float
    head_time_min: Optional[int]
    head_time_max: Optional[int]
    output_length: int


@dataclass
class MergeResult:
    plan: SplicePlan
    report: MatchReport


@dataclass
class InspectReport:
    file_length: int
    tag_counts: Dict[TagKind, int] = field(default_factory=lambda: {kind: 0 for kind in TagKind})
    spans: List[TimeSpan] = field(default_factory=list)
    gaps: int = 0
    skipped_bytes: int = 0
    stopped_at: Optional[int] = None
    stop_reason: Optional[str] = None

    @property
    def total_tags(self) -> int:
        return sum(self.tag_counts.values())

    @property
    def time_gaps(self) -> int:
        return max(0, len(self.spans) - 1)

    @property
    def stopped_percent(self) -> Optional[int]:
        if self.stopped_at is None or not self.file_length:
            return None
        return self.stopped_at * 100 // self.file_length
