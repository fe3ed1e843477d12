import typer
from pathlib import Path
from typing import Optional
from pydantic import ValidationError

from comva.config.loader import load_config
from comva.config.models import AppConfig, TargetFormat
from comva.domain.errors import ComvaError, IndexingError
from comva.infrastructure.logging import setup_logging
from comva.infrastructure.event_bus import EventBus
from comva.infrastructure.file_scanner import FileScanner
from comva.infrastructure.image_codec import ImageCodecAdapter
from comva.infrastructure.ffmpeg import FFmpegAdapter
from comva.pipeline.orchestrator import Orchestrator
from comva.ui.reporter import ConsoleReporter

app = typer.Typer(help="comva - compress media files in place")

EXT_HELP = "target extension, or 'keep' to keep each file's extension"


def _apply_overrides(
    config: AppConfig,
    image: Optional[str],
    audio: Optional[str],
    video: Optional[str],
    keep_files: bool,
    quality: Optional[int],
    threads: Optional[int],
    log_path: Optional[Path],
    debug: bool,
) -> AppConfig:
    if image is not None: config.targets.image = TargetFormat(extension=image)
    if audio is not None: config.targets.audio = TargetFormat(extension=audio)
    if video is not None: config.targets.video = TargetFormat(extension=video)
    if keep_files: config.general.keep_originals = True
    if quality is not None: config.general.quality = quality
    if threads is not None: config.general.threads = threads
    if log_path is not None: config.general.log_path = str(log_path)
    if debug: config.general.debug = True
    # Re-validate the merged result (threads > 0, quality range, ...)
    return AppConfig.model_validate(config.model_dump())


@app.command()
def compress(
    directory: Optional[Path] = typer.Argument(
        None,
        help="Directory to compress recursively (default: current directory)"
    ),
    image: Optional[str] = typer.Option(None, "--image", "-i", help=f"Compress image files: {EXT_HELP}"),
    audio: Optional[str] = typer.Option(None, "--audio", "-a", help=f"Compress audio files: {EXT_HELP}"),
    video: Optional[str] = typer.Option(None, "--video", "-v", help=f"Compress video files: {EXT_HELP}"),
    keep_files: bool = typer.Option(
        False, "--keep-files", "-k",
        help="Keep the original files; overwritten originals are kept as .backup files"
    ),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="Image compression quality (1-100)"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Number of worker threads (default 8)"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Recompress every image, audio and video file below DIRECTORY in place."""
    try:
        config = load_config(config_path) if config_path else AppConfig()
        config = _apply_overrides(config, image, audio, video, keep_files, quality, threads, log_path, debug)
    except (ValidationError, ValueError, FileNotFoundError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        root = (directory or Path.cwd()).resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        typer.secho(f"Error: Failed path canonicalization: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if not root.is_dir():
        typer.secho(f"Error: {root} is not a directory", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    logger = None
    if config.general.log_path:
        logger = setup_logging(Path(config.general.log_path), debug=config.general.debug)
        logger.info(f"comva started: directory={root}")
        logger.info(
            f"Config: threads={config.general.threads}, keep_originals={config.general.keep_originals}, "
            f"quality={config.general.quality}, image={config.targets.image}, "
            f"audio={config.targets.audio}, video={config.targets.video}"
        )

    if not (config.targets.image or config.targets.audio or config.targets.video):
        typer.secho(
            "No media type enabled (use -i, -a or -v); files will only be indexed.",
            fg=typer.colors.YELLOW,
        )

    bus = EventBus()
    ConsoleReporter(bus)
    orchestrator = Orchestrator(
        config=config,
        event_bus=bus,
        file_scanner=FileScanner(),
        image_adapter=ImageCodecAdapter(),
        ffmpeg_adapter=FFmpegAdapter(ffmpeg_path=config.general.ffmpeg_path),
    )

    try:
        orchestrator.run(root)
    except KeyboardInterrupt:
        typer.secho("\nCompression stopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)
    except IndexingError as exc:
        if logger:
            logger.error(f"Failed to index files: {exc}")
        typer.secho(f"Fatal Error: Failed to index files: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    except ComvaError as exc:
        if logger:
            logger.error(f"Fatal error: {exc}")
        typer.secho(f"Fatal Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
