import subprocess
import logging
import time
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Tuple
from comva.domain.errors import CodecError

# Extra encoder flags per output extension. Extensions not listed get a plain
# re-encode / container change with ffmpeg's defaults.
ENCODER_FLAGS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    # Audio lossy, see https://trac.ffmpeg.org/wiki/Encode/MP3
    "mp3": ("-qscale:a", "2"),
    # Audio lossless, max FLAC compression
    "flac": ("-compression_level", "12"),
    # Video lossy, H.265 at CRF 28
    "mp4": ("-vcodec", "libx265", "-crf", "28"),
    "mkv": ("-vcodec", "libx265", "-crf", "28"),
    "mov": ("-vcodec", "libx265", "-crf", "28"),
    "avi": ("-vcodec", "libx265", "-crf", "28"),
})

class FFmpegAdapter:
    """Wrapper around ffmpeg for audio and video recompression."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path
        self.logger = logging.getLogger(__name__)

    def _build_command(self, input_path: Path, output_path: Path, target_extension: str) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            self.ffmpeg_path,
            "-i", str(input_path),
            str(output_path),
        ]
        cmd.extend(ENCODER_FLAGS.get(target_extension.lower(), ()))
        cmd.append("-y")  # Overwrite output files
        return cmd

    def compress(self, input_path: Path, output_path: Path, target_extension: str) -> None:
        """Runs ffmpeg to completion. Raises CodecError on a non-zero exit."""
        cmd = self._build_command(input_path, output_path, target_extension)
        self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")
        start_time = time.monotonic()

        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise CodecError("Failed to run command", f"{self.ffmpeg_path}: {e}") from e

        elapsed = time.monotonic() - start_time
        if result.returncode != 0:
            self.logger.debug(
                f"FFMPEG_END: {input_path.name} status=failed code={result.returncode} elapsed={elapsed:.2f}s"
            )
            raise CodecError(
                "Failed FFMPEG execution!",
                f"StdErr: {result.stderr}\nStdOut: {result.stdout}",
            )

        self.logger.debug(f"FFMPEG_END: {input_path.name} status=completed elapsed={elapsed:.2f}s")
