"""In-process image codec backed by Pillow.

Pillow registers its format plugins lazily; `initialize()` forces the full
registration once for the whole process so worker threads never race on it.
The lifecycle is explicit: the orchestrator calls `initialize()` before the
first job and `shutdown()` after the pool has drained.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional
from PIL import Image
from comva.domain.errors import CodecError

_state_lock = threading.Lock()
_initialized = False

# Formats Pillow can write as multi-frame files
_ANIMATED_FORMATS = {"GIF", "WEBP", "PNG"}
# Formats without an alpha channel
_OPAQUE_FORMATS = {"JPEG", "BMP"}


def initialize() -> None:
    global _initialized
    with _state_lock:
        if not _initialized:
            Image.init()
            _initialized = True


def shutdown() -> None:
    global _initialized
    with _state_lock:
        _initialized = False


def is_initialized() -> bool:
    with _state_lock:
        return _initialized


class ImageCodecAdapter:
    """Wrapper around Pillow for image recompression."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def initialize(self) -> None:
        initialize()
        self.logger.info("Image codec initialized (Pillow)")

    def shutdown(self) -> None:
        shutdown()
        self.logger.info("Image codec shut down")

    def _output_format(self, output_path: Path) -> str:
        fmt = Image.registered_extensions().get(output_path.suffix.lower())
        if fmt is None:
            raise CodecError("Failed to write image.", f"Unknown image extension: {output_path.suffix}")
        return fmt

    def _save_options(self, image: Image.Image, fmt: str, quality: Optional[int]) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        if quality is not None:
            if fmt == "PNG":
                # Same mapping ImageMagick uses: tens digit is the zlib level
                options["compress_level"] = min(9, quality // 10)
            else:
                options["quality"] = quality
        if fmt in _ANIMATED_FORMATS and getattr(image, "is_animated", False):
            options["save_all"] = True
        return options

    def compress(self, input_path: Path, output_path: Path, quality: Optional[int] = None) -> None:
        """Re-encodes input_path into output_path; format follows output_path's extension.

        Raises CodecError on any load or write failure. A failed write may leave
        a partial output file behind.
        """
        if not is_initialized():
            raise CodecError("Image codec is not initialized.")

        fmt = self._output_format(output_path)

        try:
            image = Image.open(input_path)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise CodecError("Failed to read image.", str(e)) from e

        with image:
            try:
                image.load()
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                raise CodecError("Failed to read image.", str(e)) from e

            options = self._save_options(image, fmt, quality)
            to_save = image
            if fmt in _OPAQUE_FORMATS and image.mode not in ("RGB", "L"):
                to_save = image.convert("RGB")
                options.pop("save_all", None)
            try:
                to_save.save(output_path, format=fmt, **options)
            except (OSError, ValueError, KeyError) as e:
                raise CodecError("Failed to write image.", str(e)) from e
            finally:
                if to_save is not image:
                    to_save.close()

        self.logger.debug(f"IMAGE_DONE: {input_path.name} -> {output_path.name} (format={fmt}, quality={quality})")
