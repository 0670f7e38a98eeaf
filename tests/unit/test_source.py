"""Unit tests for memory-mapped input sources."""
import pytest

from flvtools.infrastructure.source import open_source


def test_open_source_maps_file_read_only(sample_file, sample_stream):
    with open_source(sample_file) as view:
        assert view.readonly
        assert len(view) == len(sample_stream)
        assert bytes(view[:3]) == b"FLV"
        assert bytes(view) == sample_stream


def test_open_source_empty_file(tmp_path):
    path = tmp_path / "empty.flv"
    path.touch()

    with open_source(path) as view:
        assert len(view) == 0


def test_open_source_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        with open_source(tmp_path / "missing.flv"):
            pass


def test_open_source_releases_view_on_exit(sample_file):
    with open_source(sample_file) as view:
        pass

    with pytest.raises(ValueError):
        len(view)


def test_open_source_tolerates_outstanding_slices(sample_file):
    with open_source(sample_file) as view:
        kept = view[3:5]

    # Exiting did not raise although a derived view is still alive.
    assert bytes(kept) == sample_file.read_bytes()[3:5]
