"""Error taxonomy for FLV stream processing.

Structural tag errors (``TagError`` subclasses) are raised by the cursor and
either surface to the caller (strict walks) or are absorbed as gaps by
one-byte resynchronization (tolerant walks). Junction errors are always fatal.
"""

from typing import Any, Optional


class FlvError(Exception):
    """Base class for all errors raised by flvtools."""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset


class TagError(FlvError):
    """A tag at ``offset`` failed structural validation."""

    code = "tag_error"

    def __init__(self, message: str, offset: int, expected: Any = None, observed: Any = None):
        super().__init__(message, offset)
        self.expected = expected
        self.observed = observed


class OutOfBounds(TagError):
    code = "out_of_bounds"


class InvalidKind(TagError):
    code = "invalid_kind"


class TrailerMismatch(TagError):
    code = "trailer_mismatch"


class UnexpectedKind(TagError):
    """A valid tag kind found where the stream layout requires another one."""

    code = "unexpected_kind"


class HeaderSignatureInvalid(FlvError):
    """The buffer does not start with the ``FLV`` signature."""


class JunctionError(FlvError):
    """Base class for splice point discovery failures."""


class AmbiguousMatch(JunctionError):
    pass


class JunctionNotFound(JunctionError):
    pass


class NeedleNotFound(JunctionNotFound):
    """The tail ran out of video tags before a fingerprint could be chosen."""


class SuspiciousMatch(JunctionError):
    pass
