"""Grafting a clean header onto a capture that started mid-stream.

A seek in the middle of a live download produces a file whose header and
metadata do not describe the data that follows. This rebuilds a playable file
from the beginning of a good capture (header, metadata and a fixed number of
anchor tags) followed by the broken capture from its first video tag.

This is a heuristic: it assumes the first video tag of the broken capture
continues the stream, and the anchor count was chosen empirically. No content
is compared.
"""

import logging
from typing import Optional

from flvtools.domain.errors import HeaderSignatureInvalid, JunctionNotFound, UnexpectedKind
from flvtools.domain.events import JunctionFound
from flvtools.domain.models import FLV_HEADER_SIZE, SplicePlan, Tag, TagKind
from flvtools.infrastructure.event_bus import EventBus, publish
from flvtools.stream.cursor import BufferLike, as_view, check_header, has_signature, read_tag
from flvtools.stream.walker import StreamWalker, iter_tags

logger = logging.getLogger(__name__)

DEFAULT_ANCHOR_TAGS = 2

_MEDIA_KINDS = (TagKind.AUDIO, TagKind.VIDEO)


def _unexpected(tag: Tag, expected, message: str) -> UnexpectedKind:
    return UnexpectedKind(
        f"{message} (found {tag.kind.name} at offset {tag.offset})",
        tag.offset,
        expected=expected,
        observed=tag.kind,
    )


def find_head_anchor(head: memoryview, anchor_tags: int = DEFAULT_ANCHOR_TAGS, source: str = "head") -> int:
    """Returns the offset just past the metadata tag and ``anchor_tags`` more tags."""
    check_header(head, source)
    metadata, offset = read_tag(head, FLV_HEADER_SIZE, warn=True)
    if metadata.kind != TagKind.METADATA:
        raise _unexpected(metadata, TagKind.METADATA, f"{source}: non metadata tag at offset {FLV_HEADER_SIZE}")

    for index in range(anchor_tags):
        tag, next_offset = read_tag(head, offset, warn=True)
        if index == 0 and tag.kind not in _MEDIA_KINDS:
            raise _unexpected(tag, list(_MEDIA_KINDS), f"{source}: second tag neither audio nor video")
        offset = next_offset
    logger.info(f"{source}: header anchor at offset {offset}")
    return offset


def find_first_video(broken: memoryview, source: str = "broken") -> int:
    """Returns the offset of the first video tag after the (untrusted) header."""
    if not has_signature(broken):
        raise HeaderSignatureInvalid(f"file {source}: invalid FLV header", 0)

    walker = StreamWalker(broken, resync=False, source=source)
    for index, tag in enumerate(iter_tags(iter(walker))):
        if tag.kind == TagKind.VIDEO:
            logger.info(f"{source}: first video tag at offset {tag.offset}")
            return tag.offset
        if index > 0 and tag.kind not in _MEDIA_KINDS:
            raise _unexpected(tag, list(_MEDIA_KINDS), f"{source}: tag neither audio nor video")
    raise JunctionNotFound(f"{source}: no video tag found")


def fix_seek_streams(
    head: BufferLike,
    broken: BufferLike,
    anchor_tags: int = DEFAULT_ANCHOR_TAGS,
    event_bus: Optional[EventBus] = None,
    head_source: str = "head",
    broken_source: str = "broken",
) -> SplicePlan:
    if anchor_tags < 0:
        raise ValueError("anchor_tags must be >= 0")
    head_view = as_view(head)
    broken_view = as_view(broken)

    head_pt = find_head_anchor(head_view, anchor_tags, source=head_source)
    broken_pt = find_first_video(broken_view, source=broken_source)
    percent = broken_pt * 100 / len(broken_view)
    publish(event_bus, JunctionFound(source=broken_source, offset=broken_pt, percent=percent))

    plan = SplicePlan()
    plan.add(head_view, 0, head_pt)
    plan.add(broken_view, broken_pt, len(broken_view) - broken_pt)
    return plan
