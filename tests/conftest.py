import pytest
import yaml
from flvtools.infrastructure.event_bus import EventBus

AUDIO, VIDEO, META = 0x08, 0x09, 0x12

# ============================================================================
# Synthetic FLV builders
# ============================================================================

class FlvBuilder:
    """Builds FLV byte streams for tests.

    Default payloads are ASCII, so one-byte resynchronization inside a tag
    never finds a matching trailer and only locks onto real tag boundaries.
    """

    AUDIO, VIDEO, META = AUDIO, VIDEO, META
    HEADER = b"FLV\x01\x05\x00\x00\x00\x09\x00\x00\x00\x00"

    @staticmethod
    def tag(kind: int, timestamp: int = 0, body: bytes = b"", stream_id: int = 0, trailer=None) -> bytes:
        if trailer is None:
            trailer = len(body) + 11
        return (
            bytes([kind])
            + len(body).to_bytes(3, "big")
            + timestamp.to_bytes(3, "big")
            + stream_id.to_bytes(4, "big")
            + body
            + trailer.to_bytes(4, "big")
        )

    @classmethod
    def stream(cls, *tags: bytes, header: bool = True) -> bytes:
        return (cls.HEADER if header else b"") + b"".join(tags)

    @staticmethod
    def frame(n: int, prefix: str = "frame") -> bytes:
        return f"{prefix}-{n:06d}".encode("ascii")

    @classmethod
    def metadata(cls) -> bytes:
        return cls.tag(META, 0, b"onMetaData")

    @classmethod
    def av_tags(cls, count: int, start_ms: int = 0, step_ms: int = 40, prefix: str = "frame", first: int = 0):
        """Alternating audio/video tags; video payloads are unique per index."""
        tags = []
        for i in range(count):
            timestamp = start_ms + i * step_ms
            tags.append(cls.tag(AUDIO, timestamp, f"audio-{first + i:06d}".encode("ascii")))
            tags.append(cls.tag(VIDEO, timestamp, cls.frame(first + i, prefix)))
        return tags


@pytest.fixture
def flv():
    """Returns the FlvBuilder class."""
    return FlvBuilder


@pytest.fixture
def sample_stream(flv):
    """Header + metadata + 20 audio/video pairs, 40 ms apart (timestamps 0..760)."""
    return flv.stream(flv.metadata(), *flv.av_tags(20))


@pytest.fixture
def sample_file(tmp_path, sample_stream):
    path = tmp_path / "sample.flv"
    path.write_bytes(sample_stream)
    return path

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "flvtools.yaml"

    content = {
        'general': {
            'debug': False,
            'delete_partial_output': True,
        },
        'cut': {
            'ignore_bad_tags': True,
        },
        'merge': {
            'skip_frames': 3,
            'time_clue_tolerance_ms': 250,
        },
        'fix_seek': {
            'anchor_tags': 1,
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()


@pytest.fixture
def recorded_events(event_bus):
    """EventBus that records every published event in a list."""
    from flvtools.domain.events import Event

    events = []
    event_bus.subscribe(Event, events.append)
    return event_bus, events
