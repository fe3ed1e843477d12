from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from comva.domain.models import MediaType

DEFAULT_LOG_PATH = "/tmp/comva/compression.log"
KEEP_EXTENSION = "keep"


def normalize_extension(value: Optional[str]) -> Optional[str]:
    """Strips a leading dot; `keep` and empty values mean "keep the original extension"."""
    if value is None:
        return None
    value = value.strip()
    if value.startswith("."):
        value = value[1:]
    if not value or value.lower() == KEEP_EXTENSION:
        return None
    return value


class TargetFormat(BaseModel):
    """Enables a media type. `extension=None` keeps each file's own extension."""
    extension: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_shorthand(cls, data):
        # `image: webp` / `audio: keep` in YAML
        if isinstance(data, str):
            return {"extension": data}
        return data

    @field_validator("extension")
    @classmethod
    def validate_extension(cls, v: Optional[str]) -> Optional[str]:
        v = normalize_extension(v)
        if v is not None and ("/" in v or "\\" in v):
            raise ValueError(f"Invalid target extension: {v}")
        return v


class TargetsConfig(BaseModel):
    image: Optional[TargetFormat] = None
    audio: Optional[TargetFormat] = None
    video: Optional[TargetFormat] = None

    def for_media_type(self, media_type: MediaType) -> Optional[TargetFormat]:
        return getattr(self, media_type.label)


class GeneralConfig(BaseModel):
    threads: int = Field(default=8, gt=0)
    keep_originals: bool = False
    quality: Optional[int] = Field(default=None, ge=1, le=100)
    ffmpeg_path: str = "ffmpeg"
    log_path: Optional[str] = DEFAULT_LOG_PATH
    debug: bool = False


class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    targets: TargetsConfig = Field(default_factory=TargetsConfig)

    @model_validator(mode="before")
    @classmethod
    def fill_missing_targets(cls, data):
        # `targets:` with no body in YAML parses as None
        if isinstance(data, dict) and data.get("targets") is None:
            data = {k: v for k, v in data.items() if k != "targets"}
        return data
