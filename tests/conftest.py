import threading
import pytest
import yaml
from pathlib import Path
from comva.config.models import AppConfig
from comva.domain.errors import CodecError
from comva.infrastructure.event_bus import EventBus
from comva.infrastructure.file_scanner import FileScanner
from comva.pipeline.orchestrator import Orchestrator

# ============================================================================
# Fake codecs
# ============================================================================

class FakeCodec:
    """Stands in for a codec adapter: writes `compressed:` + input bytes to the output.

    Files whose name starts with one of `fail_on` (the part before the first
    dot, so `a.png` and `a.png.tmp` both match "a") raise CodecError instead.
    """

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []
        self.initialize_calls = 0
        self.shutdown_calls = 0
        self._lock = threading.Lock()

    def initialize(self):
        self.initialize_calls += 1

    def shutdown(self):
        self.shutdown_calls += 1

    def compress(self, input_path: Path, output_path: Path, *args, **kwargs):
        with self._lock:
            self.calls.append((input_path, output_path, args, kwargs))
        if input_path.name.split(".")[0] in self.fail_on:
            raise CodecError("Failed to read image.", f"cannot identify image file {input_path}")
        output_path.write_bytes(b"compressed:" + input_path.read_bytes())

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Image -> webp, audio keeps its extension, video disabled."""
    return AppConfig(
        general={
            "threads": 2,
            "keep_originals": False,
            "quality": None,
            "debug": False,
        },
        targets={
            "image": {"extension": "webp"},
            "audio": {"extension": None},
        },
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "comva.yaml"

    content = {
        'general': {
            'threads': 3,
            'keep_originals': True,
            'quality': 75,
            'debug': False,
        },
        'targets': {
            'image': {'extension': 'webp'},
            'audio': 'keep',
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus / Orchestrator Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def image_codec():
    return FakeCodec()

@pytest.fixture
def media_codec():
    return FakeCodec()

@pytest.fixture
def make_codec():
    """Factory for extra fake codecs, e.g. `make_codec(fail_on={"a"})`."""
    return FakeCodec

@pytest.fixture
def make_orchestrator(event_bus, image_codec, media_codec):
    """Factory building an Orchestrator wired to the fake codecs."""
    def _make(config: AppConfig, image=None, media=None) -> Orchestrator:
        return Orchestrator(
            config=config,
            event_bus=event_bus,
            file_scanner=FileScanner(),
            image_adapter=image or image_codec,
            ffmpeg_adapter=media or media_codec,
        )
    return _make

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def media_dir(tmp_path):
    """a.png (image), b.mp3 (audio), c.txt (unmapped)."""
    root = tmp_path / "media"
    root.mkdir()
    (root / "a.png").write_bytes(b"png-data")
    (root / "b.mp3").write_bytes(b"mp3-data")
    (root / "c.txt").write_text("not media")
    return root


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "slow: needs external tools such as ffmpeg"
    )
