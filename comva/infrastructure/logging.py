import logging
from pathlib import Path

# Third-party loggers that flood a debug log with per-chunk records
_CHATTY_LOGGERS = ("PIL",)


def setup_logging(log_path: Path, debug: bool = False) -> logging.Logger:
    """Routes every comva record to a single log file.

    The console belongs to the per-file status lines of the reporter, so the
    root logger gets only a FileHandler. In debug mode ffmpeg command lines and
    per-job timings are written too; Pillow's plugin chatter stays at INFO.
    """
    log_file = Path(log_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file)],
        force=True  # a second run in the same process starts a fresh handler
    )
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)

    logger = logging.getLogger("comva")
    logger.info(f"comva log opened: {log_file} (level={logging.getLevelName(level)})")

    return logger
