from pathlib import Path
from typing import Optional


class ComvaError(Exception):
    """Base class for all errors raised by comva."""


class InvalidConfigurationError(ComvaError, ValueError):
    """Raised for settings the pipeline cannot run with (e.g. zero workers)."""


class IndexingError(ComvaError):
    """Raised when the directory walk cannot read a directory. Fatal for the run."""


class CodecError(ComvaError):
    """A codec adapter could not produce the output file.

    `diagnostics` holds the raw text reported by the codec (ffmpeg streams,
    Pillow error message) so it can be shown to the operator verbatim.
    """

    def __init__(self, message: str, diagnostics: Optional[str] = None):
        super().__init__(message)
        self.diagnostics = diagnostics

    def __str__(self) -> str:
        message = super().__str__()
        if self.diagnostics:
            return f"{message}\n{self.diagnostics}"
        return message


class FileOperationError(ComvaError):
    """A rename or delete in the per-file replace protocol failed."""

    def __init__(self, message: str, path: Path):
        super().__init__(message)
        self.path = path
