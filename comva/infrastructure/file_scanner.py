import os
import logging
from pathlib import Path
from typing import Generator, List, Mapping, Optional
from comva.domain.errors import IndexingError
from comva.domain.models import IndexEntry, MediaType, MEDIA_EXTENSIONS

class FileScanner:
    """Recursively indexes media files under a directory."""

    def __init__(self, extension_map: Optional[Mapping[str, MediaType]] = None):
        self.extension_map = MEDIA_EXTENSIONS if extension_map is None else extension_map
        self.logger = logging.getLogger(__name__)

    def classify(self, path: Path) -> Optional[MediaType]:
        """Media type for `path` from its lowercase extension, None when unmapped."""
        suffix = path.suffix
        if not suffix:
            return None
        return self.extension_map.get(suffix[1:].lower())

    def scan(self, root_dir: Path) -> Generator[IndexEntry, None, None]:
        """Walks root_dir and yields an IndexEntry per mapped regular file.

        Symlinks (files and directories) are neither followed nor indexed.
        Raises IndexingError if root_dir or any subdirectory cannot be read.
        """
        root_dir = Path(root_dir).absolute()
        if not root_dir.is_dir():
            raise IndexingError(f"Not a readable directory: {root_dir}")

        def _raise(error: OSError):
            raise IndexingError(f"Failed to read directory {error.filename}: {error.strerror}") from error

        for root, dirs, files in os.walk(str(root_dir), onerror=_raise):
            root_path = Path(root)

            # Deterministic traversal
            dirs[:] = sorted(d for d in dirs if not (root_path / d).is_symlink())
            files.sort()

            for file_name in files:
                file_path = root_path / file_name
                media_type = self.classify(file_path)
                if media_type is None:
                    continue
                if file_path.is_symlink() or not file_path.is_file():
                    continue
                yield IndexEntry(path=file_path, media_type=media_type)

    def index(self, root_dir: Path) -> List[IndexEntry]:
        """Full index of root_dir, grouped by media type (stable within a type)."""
        entries = sorted(self.scan(root_dir), key=lambda entry: entry.media_type)
        self.logger.info(f"INDEX_DONE: {root_dir} entries={len(entries)}")
        return entries
