import pytest
from typer.testing import CliRunner

from flvtools import main as flv_main
from flvtools.stream.walker import StreamWalker, iter_tags


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """No repository config file, no global logging changes."""
    calls = []
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(flv_main, "setup_logging", lambda debug=False, log_path=None: calls.append((debug, log_path)))
    return calls


@pytest.fixture
def runner():
    return CliRunner()


def _timestamps(data):
    return [tag.timestamp for tag in iter_tags(iter(StreamWalker(data)))]


def _overlap(flv, tmp_path):
    head = flv.stream(flv.metadata(), *flv.av_tags(40))
    k = head.index(flv.tag(flv.VIDEO, 1200, flv.frame(30)))
    extra = b"".join(flv.av_tags(5, start_ms=1600, first=40))
    tail = flv.stream(flv.metadata(), head[k:], extra)
    head_path, tail_path = tmp_path / "head.flv", tmp_path / "tail.flv"
    head_path.write_bytes(head)
    tail_path.write_bytes(tail)
    return head_path, tail_path, head + extra


def test_main_missing_input_exits(runner, tmp_path):
    result = runner.invoke(flv_main.app, ["cut", str(tmp_path / "missing.flv"), str(tmp_path / "out.flv")])

    assert result.exit_code != 0
    assert not (tmp_path / "out.flv").exists()


def test_main_cut_writes_range(runner, tmp_path, sample_file):
    output = tmp_path / "out.flv"

    result = runner.invoke(flv_main.app, ["cut", str(sample_file), str(output), "-b", "00:00:080", "-e", "00:00:160"])

    assert result.exit_code == 0, result.output
    assert _timestamps(output.read_bytes()) == [80, 80, 120, 120, 160, 160]
    assert "Wrote" in result.output


def test_main_cut_refuses_existing_output(runner, tmp_path, sample_file):
    output = tmp_path / "out.flv"
    output.write_bytes(b"keep me")

    result = runner.invoke(flv_main.app, ["cut", str(sample_file), str(output)])

    assert result.exit_code == 1
    assert "File exists" in result.output
    assert output.read_bytes() == b"keep me"


def test_main_cut_rejects_malformed_time(runner, tmp_path, sample_file):
    result = runner.invoke(flv_main.app, ["cut", str(sample_file), str(tmp_path / "out.flv"), "--begin", "90"])

    assert result.exit_code == 2
    assert not (tmp_path / "out.flv").exists()


def test_main_cut_strict_failure_leaves_no_output(runner, tmp_path, sample_stream):
    source = tmp_path / "bad.flv"
    source.write_bytes(sample_stream[:200] + b"\x07" + sample_stream[200:])
    output = tmp_path / "out.flv"

    result = runner.invoke(flv_main.app, ["cut", str(source), str(output)])

    assert result.exit_code == 1
    assert "Invalid tag type" in result.output
    assert not output.exists()

    result = runner.invoke(flv_main.app, ["cut", str(source), str(output), "--ignore-bad-tags"])

    assert result.exit_code == 0, result.output
    assert output.read_bytes() == sample_stream


def test_main_config_file_enables_tolerant_cut(runner, tmp_path, sample_stream, config_yaml_path):
    source = tmp_path / "bad.flv"
    source.write_bytes(sample_stream[:200] + b"\x07" + sample_stream[200:])
    output = tmp_path / "out.flv"

    result = runner.invoke(flv_main.app, ["--config", str(config_yaml_path), "cut", str(source), str(output)])

    assert result.exit_code == 0, result.output
    assert output.read_bytes() == sample_stream


def test_main_missing_config_exits(runner, tmp_path, sample_file):
    result = runner.invoke(
        flv_main.app, ["-c", str(tmp_path / "nope.yaml"), "cut", str(sample_file), str(tmp_path / "out.flv")]
    )

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_main_global_logging_options(runner, tmp_path, sample_file, isolated):
    log_file = tmp_path / "logs" / "flvtools.log"

    result = runner.invoke(
        flv_main.app,
        ["--debug", "--log-path", str(log_file), "inspect", str(sample_file)],
    )

    assert result.exit_code == 0, result.output
    assert isolated == [(True, log_file)]


def test_main_fix(runner, tmp_path, flv):
    tags = [flv.tag(flv.VIDEO, ts, flv.frame(i)) for i, ts in enumerate([0, 100, 50, 200])]
    source = tmp_path / "in.flv"
    source.write_bytes(flv.stream(flv.metadata(), *tags))
    output = tmp_path / "out.flv"

    result = runner.invoke(flv_main.app, ["fix", str(source), str(output)])

    assert result.exit_code == 0, result.output
    assert _timestamps(output.read_bytes()) == [0, 0, 100, 200]
    assert "1 backward tags dropped" in result.output


def test_main_merge(runner, tmp_path, flv):
    head_path, tail_path, expected = _overlap(flv, tmp_path)
    output = tmp_path / "out.flv"

    result = runner.invoke(flv_main.app, ["merge", str(head_path), str(tail_path), str(output), "-s", "0"])

    assert result.exit_code == 0, result.output
    assert output.read_bytes() == expected


def test_main_merge_with_time_clue(runner, tmp_path, flv):
    head_path, tail_path, expected = _overlap(flv, tmp_path)
    output = tmp_path / "out.flv"

    result = runner.invoke(flv_main.app, ["merge", str(head_path), str(tail_path), str(output), "-t", "00:01:200"])

    assert result.exit_code == 0, result.output
    assert output.read_bytes() == expected


def test_main_merge_options_mutually_exclusive(runner, tmp_path, flv):
    head_path, tail_path, _ = _overlap(flv, tmp_path)

    result = runner.invoke(
        flv_main.app,
        ["merge", str(head_path), str(tail_path), str(tmp_path / "out.flv"), "-s", "0", "-t", "00:01:200"],
    )

    assert result.exit_code == 1
    assert "mutually exclusive" in result.output


def test_main_merge_without_junction_leaves_no_output(runner, tmp_path, flv):
    head_path, tail_path, _ = _overlap(flv, tmp_path)
    output = tmp_path / "out.flv"

    # The tail has only 15 video frames.
    result = runner.invoke(flv_main.app, ["merge", str(head_path), str(tail_path), str(output), "-s", "100"])

    assert result.exit_code == 1
    assert "Lower skip_frames" in result.output
    assert not output.exists()


def test_main_fix_seek(runner, tmp_path, flv):
    head = flv.stream(flv.metadata(), *flv.av_tags(10))
    broken = flv.stream(flv.metadata(), *flv.av_tags(5, start_ms=5000, first=200))
    head_path, broken_path = tmp_path / "head.flv", tmp_path / "broken.flv"
    head_path.write_bytes(head)
    broken_path.write_bytes(broken)
    output = tmp_path / "out.flv"

    result = runner.invoke(
        flv_main.app, ["fix-seek", str(head_path), str(broken_path), str(output), "--anchor-tags", "1"]
    )

    assert result.exit_code == 0, result.output
    # header + metadata (38 bytes) + one anchor tag, then broken from its first video tag.
    assert output.read_bytes() == head[:65] + broken[65:]


def test_main_inspect(runner, sample_file):
    result = runner.invoke(flv_main.app, ["inspect", str(sample_file)])

    assert result.exit_code == 0, result.output
    assert "TOTAL" in result.output
    assert "[00:00:000, 00:00:760]" in result.output


def test_main_inspect_tag_lines(runner, sample_file):
    result = runner.invoke(flv_main.app, ["inspect", str(sample_file), "--tags"])

    assert result.exit_code == 0, result.output
    assert result.output.count("Found TAG") == 41


def test_main_inspect_broken_file_reports_stop(runner, tmp_path, sample_stream):
    source = tmp_path / "bad.flv"
    source.write_bytes(sample_stream[:200] + b"\x07" + sample_stream[200:])

    result = runner.invoke(flv_main.app, ["inspect", str(source)])

    assert result.exit_code == 0, result.output
    assert "stopped at offset 200" in result.output


def test_main_inspect_bad_header_exits(runner, tmp_path):
    source = tmp_path / "bad.flv"
    source.write_bytes(b"MP4 not an flv file")

    result = runner.invoke(flv_main.app, ["inspect", str(source)])

    assert result.exit_code == 1
    assert "invalid FLV header" in result.output


def test_main_cut_begin_past_end_of_stream_writes_header(runner, tmp_path, sample_file):
    output = tmp_path / "out.flv"

    result = runner.invoke(flv_main.app, ["cut", str(sample_file), str(output), "--begin", "280:00:000"])

    assert result.exit_code == 0, result.output
    assert output.read_bytes() == sample_file.read_bytes()[:13]


def test_main_cut_begin_after_explicit_end_exits(runner, tmp_path, sample_file):
    output = tmp_path / "out.flv"

    result = runner.invoke(flv_main.app, ["cut", str(sample_file), str(output), "-b", "00:01:000", "-e", "00:00:500"])

    assert result.exit_code == 1
    assert "is after end" in result.output
    assert not output.exists()
