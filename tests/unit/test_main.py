from unittest.mock import MagicMock
import pytest
from typer.testing import CliRunner

from comva import main as comva_main
from comva.domain.errors import IndexingError


@pytest.fixture
def fake_codecs(monkeypatch, make_codec):
    created = {}

    def fake_image_adapter():
        created["image"] = make_codec(fail_on=created.get("fail_on", ()))
        return created["image"]

    def fake_ffmpeg_adapter(ffmpeg_path="ffmpeg"):
        created["ffmpeg_path"] = ffmpeg_path
        created["media"] = make_codec()
        return created["media"]

    monkeypatch.setattr(comva_main, "ImageCodecAdapter", fake_image_adapter)
    monkeypatch.setattr(comva_main, "FFmpegAdapter", fake_ffmpeg_adapter)
    return created


def _invoke(*args):
    return CliRunner().invoke(comva_main.app, [str(a) for a in args])


def test_main_compresses_directory(media_dir, tmp_path, fake_codecs):
    log_file = tmp_path / "logs" / "comva.log"
    result = _invoke(media_dir, "-i", "webp", "-a", "keep", "--log-path", log_file)

    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in media_dir.iterdir()) == ["a.webp", "b.mp3", "c.txt"]
    assert (media_dir / "b.mp3").read_bytes() == b"compressed:mp3-data"
    assert "Operation completed." in result.output
    assert log_file.exists()
    assert "JOB_DONE" in log_file.read_text()


def test_main_per_file_failure_still_exits_zero(media_dir, tmp_path, fake_codecs):
    fake_codecs["fail_on"] = {"a"}
    result = _invoke(media_dir, "-i", "keep", "--log-path", tmp_path / "comva.log")

    assert result.exit_code == 0, result.output
    assert "failed" in result.output
    assert (media_dir / "a.png.tmp").read_bytes() == b"png-data"
    assert not (media_dir / "a.png").exists()


def test_main_without_targets_only_indexes(media_dir, tmp_path, fake_codecs):
    result = _invoke(media_dir, "--log-path", tmp_path / "comva.log")

    assert result.exit_code == 0
    assert "No media type enabled" in result.output
    assert sorted(p.name for p in media_dir.iterdir()) == ["a.png", "b.mp3", "c.txt"]


def test_main_missing_input_dir_exits(tmp_path, fake_codecs):
    result = _invoke(tmp_path / "missing", "-i", "webp")

    assert result.exit_code == 1
    assert "Failed path canonicalization" in result.output


def test_main_file_instead_of_directory_exits(media_dir, fake_codecs):
    result = _invoke(media_dir / "c.txt", "-i", "webp")

    assert result.exit_code == 1
    assert "is not a directory" in result.output


@pytest.mark.parametrize("args", [["-t", "0"], ["-q", "0"], ["-q", "101"], ["-i", "../webp"]])
def test_main_invalid_options_exit(media_dir, fake_codecs, args):
    result = _invoke(media_dir, *args)

    assert result.exit_code == 1
    assert sorted(p.name for p in media_dir.iterdir()) == ["a.png", "b.mp3", "c.txt"]


def test_main_missing_config_file_exits(media_dir, tmp_path, fake_codecs):
    result = _invoke(media_dir, "-c", tmp_path / "nope.yaml")

    assert result.exit_code == 1


def test_main_config_file_and_overrides(media_dir, tmp_path, config_yaml_path, monkeypatch, fake_codecs):
    created = {}

    class DummyOrchestrator:
        def __init__(self, config, event_bus, file_scanner, image_adapter, ffmpeg_adapter):
            created["config"] = config

        def run(self, directory):
            created["run_dir"] = directory

    monkeypatch.setattr(comva_main, "Orchestrator", DummyOrchestrator)
    monkeypatch.setattr(comva_main, "setup_logging", lambda path, debug=False: MagicMock())

    result = _invoke(media_dir, "-c", config_yaml_path, "-t", "5", "-v", ".mkv", "-q", "60")

    assert result.exit_code == 0, result.output
    config = created["config"]
    assert config.general.threads == 5
    assert config.general.quality == 60
    assert config.general.keep_originals is True
    assert config.targets.image.extension == "webp"
    assert config.targets.audio.extension is None
    assert config.targets.video.extension == "mkv"
    assert created["run_dir"] == media_dir.resolve()


def test_main_indexing_error_exits(media_dir, tmp_path, monkeypatch, fake_codecs):
    class FailingOrchestrator:
        def __init__(self, **kwargs):
            pass

        def run(self, directory):
            raise IndexingError(f"Failed to read directory {directory}: Permission denied")

    monkeypatch.setattr(comva_main, "Orchestrator", FailingOrchestrator)
    result = _invoke(media_dir, "-i", "webp", "--log-path", tmp_path / "comva.log")

    assert result.exit_code == 1
    assert "Failed to index files" in result.output


def test_main_keyboard_interrupt_exits_130(media_dir, tmp_path, monkeypatch, fake_codecs):
    class InterruptedOrchestrator:
        def __init__(self, **kwargs):
            pass

        def run(self, directory):
            raise KeyboardInterrupt

    monkeypatch.setattr(comva_main, "Orchestrator", InterruptedOrchestrator)
    result = _invoke(media_dir, "-i", "webp", "--log-path", tmp_path / "comva.log")

    assert result.exit_code == 130
