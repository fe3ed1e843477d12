from enum import Enum, IntEnum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional
from pydantic import BaseModel, ConfigDict

class MediaType(IntEnum):
    """Coarse media category. Ordering groups batches by codec."""
    IMAGE = 1
    AUDIO = 2
    VIDEO = 3

    @property
    def label(self) -> str:
        return self.name.lower()

# Lowercase extension (no dot) -> media type. Anything else is not indexed.
MEDIA_EXTENSIONS: Mapping[str, MediaType] = MappingProxyType({
    "gif": MediaType.IMAGE,
    "jpg": MediaType.IMAGE,
    "jpeg": MediaType.IMAGE,
    "png": MediaType.IMAGE,
    "bmp": MediaType.IMAGE,
    "webp": MediaType.IMAGE,
    "avif": MediaType.IMAGE,
    "mp4": MediaType.VIDEO,
    "avi": MediaType.VIDEO,
    "mov": MediaType.VIDEO,
    "flv": MediaType.VIDEO,
    "mkv": MediaType.VIDEO,
    "mp3": MediaType.AUDIO,
    "wav": MediaType.AUDIO,
    "ogg": MediaType.AUDIO,
    "flac": MediaType.AUDIO,
    "opus": MediaType.AUDIO,
    "m4a": MediaType.AUDIO,
    "webm": MediaType.AUDIO,
})

class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"

class SkipReason(str, Enum):
    NOT_CONFIGURED = "NOT_CONFIGURED"
    OUTPUT_EXISTS = "OUTPUT_EXISTS"
    OUTPUT_CLAIMED = "OUTPUT_CLAIMED"  # another job of this run owns the output path
    TEMP_EXISTS = "TEMP_EXISTS"

class Retention(str, Enum):
    DELETED = "DELETED"
    BACKED_UP = "BACKED_UP"
    KEPT = "KEPT"

class IndexEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path
    media_type: MediaType

class CompressionJob(BaseModel):
    entry: IndexEntry
    status: JobStatus = JobStatus.PENDING
    input_path: Optional[Path] = None
    output_path: Optional[Path] = None
    target_extension: Optional[str] = None
    overwritten_in_place: bool = False
    skip_reason: Optional[SkipReason] = None
    retention: Optional[Retention] = None
    error_message: Optional[str] = None
