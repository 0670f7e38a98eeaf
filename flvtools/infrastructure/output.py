import logging
from pathlib import Path
from typing import BinaryIO, Optional

from flvtools.domain.models import SplicePlan

logger = logging.getLogger(__name__)


def ensure_output_absent(output_path: Path) -> None:
    """Refuses to go on when ``output_path`` already exists."""
    if output_path.exists():
        raise FileExistsError(f"{output_path}: File exists, aborting")


class OutputSink:
    """Append-only output file written in plan order.

    The file is created exclusively, so an existing file is never clobbered
    even if it appears after ``ensure_output_absent`` ran. When writing fails
    the partial file is removed unless ``delete_on_failure`` is False.
    """

    def __init__(self, output_path: Path, delete_on_failure: bool = True):
        self.output_path = Path(output_path)
        self.delete_on_failure = delete_on_failure
        self.bytes_written = 0
        self._file: Optional[BinaryIO] = None

    def __enter__(self) -> "OutputSink":
        self._file = open(self.output_path, "xb")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._file.close()
        self._file = None
        if exc_type is not None and self.delete_on_failure:
            logger.warning(f"{self.output_path}: write failed, removing partial output")
            self.output_path.unlink(missing_ok=True)
        return False

    def write(self, data) -> int:
        if self._file is None:
            raise RuntimeError("OutputSink is not open")
        written = self._file.write(data)
        self.bytes_written += written
        return written

    def write_plan(self, plan: SplicePlan) -> int:
        """Writes every range of ``plan`` in order; returns total bytes written."""
        total = 0
        for byte_range in plan:
            total += self.write(byte_range.view())
        logger.info(f"{self.output_path}: wrote {total} bytes from {len(plan)} ranges")
        return total


def write_plan(plan: SplicePlan, output_path: Path, delete_on_failure: bool = True) -> int:
    with OutputSink(output_path, delete_on_failure=delete_on_failure) as sink:
        return sink.write_plan(plan)
