import logging
import mmap
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


@contextmanager
def open_source(path: Path) -> Iterator[memoryview]:
    """Maps ``path`` read-only and yields a view of its full content.

    Views derived from the yielded one must not outlive the ``with`` block.
    """
    with open(path, "rb") as src:
        size = src.seek(0, 2)
        if size == 0:
            # mmap refuses empty files.
            yield memoryview(b"")
            return
        mapped = mmap.mmap(src.fileno(), 0, access=mmap.ACCESS_READ)
        view = memoryview(mapped)
        try:
            yield view
        finally:
            try:
                view.release()
                mapped.close()
            except BufferError:
                # A slice is still referenced (e.g. by a traceback); the
                # mapping is unmapped when that slice is collected.
                logger.debug(f"{path}: mapping still referenced, deferring unmap")
