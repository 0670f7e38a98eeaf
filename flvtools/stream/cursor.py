"""Single-tag decoding and validation.

A tag on disk is an 11-byte header (kind, 24-bit body length, 24-bit
timestamp, 32-bit stream id), ``body_length`` payload bytes and a 32-bit
trailer that must equal ``body_length + 11``. The trailer is the only
structural self-check the format offers.
"""

import logging
from typing import Tuple, Union

from flvtools.domain.errors import (
    HeaderSignatureInvalid,
    InvalidKind,
    OutOfBounds,
    TagError,
    TrailerMismatch,
)
from flvtools.domain.models import (
    FLV_HEADER_SIZE,
    FLV_SIGNATURE,
    TAG_HEADER_SIZE,
    TAG_OVERHEAD,
    Tag,
    TagKind,
)

logger = logging.getLogger(__name__)

BufferLike = Union[bytes, bytearray, memoryview]

_VALID_KINDS = frozenset(int(kind) for kind in TagKind)


def as_view(buffer: BufferLike) -> memoryview:
    """Returns a read-only byte view of ``buffer`` (the same object if it already is one)."""
    if isinstance(buffer, memoryview) and buffer.readonly:
        return buffer
    return memoryview(buffer).toreadonly()


def read_uint(buffer: memoryview, offset: int, width: int) -> int:
    """Big-endian unsigned read of ``width`` bytes; never reads past the buffer end."""
    if offset < 0 or offset + width > len(buffer):
        raise OutOfBounds(
            f"Read of {width} bytes at offset {offset} exceeds buffer length {len(buffer)}",
            offset,
            expected=offset + width,
            observed=len(buffer),
        )
    return int.from_bytes(buffer[offset:offset + width], "big")


def _reject(error: TagError, warn: bool) -> TagError:
    if warn:
        logger.warning(str(error))
    return error


def read_tag(buffer: memoryview, offset: int, warn: bool = False) -> Tuple[Tag, int]:
    """Decodes the tag at ``offset``.

    Returns the tag and the offset of the following tag, which may point past
    the end of the buffer. Raises ``OutOfBounds``, ``InvalidKind`` or
    ``TrailerMismatch``. With ``warn`` an ``InvalidKind`` or
    ``TrailerMismatch`` is also logged; running out of buffer never is.
    """
    length = len(buffer)
    if length - offset < TAG_OVERHEAD:
        raise OutOfBounds(
            f"Tag at offset {offset} exceeds file boundaries "
            f"(need {TAG_OVERHEAD} bytes, {max(0, length - offset)} left)",
            offset,
            expected=TAG_OVERHEAD,
            observed=max(0, length - offset),
        )

    kind = read_uint(buffer, offset, 1)
    if kind not in _VALID_KINDS:
        raise _reject(
            InvalidKind(
                f"Invalid tag type {kind:#04x} at offset {offset}",
                offset,
                expected=sorted(_VALID_KINDS),
                observed=kind,
            ),
            warn,
        )

    body_length = read_uint(buffer, offset + 1, 3)
    timestamp = read_uint(buffer, offset + 4, 3)
    stream_id = read_uint(buffer, offset + 7, 4)

    next_offset = offset + body_length + TAG_OVERHEAD
    if next_offset > length:
        raise OutOfBounds(
            f"Tag at offset {offset} with body length {body_length} exceeds "
            f"file boundaries (ends at {next_offset}, file length {length})",
            offset,
            expected=next_offset,
            observed=length,
        )

    trailer = read_uint(buffer, offset + TAG_HEADER_SIZE + body_length, 4)
    if trailer != body_length + TAG_HEADER_SIZE:
        raise _reject(
            TrailerMismatch(
                f"Invalid tag at offset {offset}: end of tag length mismatch "
                f"(expected {body_length + TAG_HEADER_SIZE}, found {trailer})",
                offset,
                expected=body_length + TAG_HEADER_SIZE,
                observed=trailer,
            ),
            warn,
        )

    tag = Tag(
        kind=TagKind(kind),
        offset=offset,
        body_length=body_length,
        timestamp=timestamp,
        stream_id=stream_id,
        trailer=trailer,
        source=buffer,
    )
    return tag, next_offset


def has_signature(buffer: memoryview) -> bool:
    return bytes(buffer[:len(FLV_SIGNATURE)]) == FLV_SIGNATURE


def check_header(buffer: memoryview, source: str = "input") -> None:
    """Raises ``HeaderSignatureInvalid`` unless ``buffer`` opens with a full FLV header.

    Only the signature is checked; the declared header size is trusted to be 13.
    """
    if not has_signature(buffer):
        raise HeaderSignatureInvalid(
            f"file {source}: invalid FLV header (expected {FLV_SIGNATURE!r}, "
            f"found {bytes(buffer[:len(FLV_SIGNATURE)])!r})",
            0,
        )
    if len(buffer) < FLV_HEADER_SIZE:
        raise HeaderSignatureInvalid(
            f"file {source}: truncated FLV header ({len(buffer)} of {FLV_HEADER_SIZE} bytes)",
            0,
        )


def warn_if_not_metadata(buffer: memoryview, offset: int = FLV_HEADER_SIZE) -> None:
    """Players tolerate a non-metadata first tag, so this is only a warning."""
    if offset < len(buffer) and buffer[offset] != TagKind.METADATA:
        logger.warning(f"Non metadata tag ({buffer[offset]:#04x}) at offset {offset}")
