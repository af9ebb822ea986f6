"""Archive readers for source downloads.

Each reader handles one container format and returns the archive's regular
files as ArchiveEntry objects. The reader is chosen once per archive by
file extension.
"""

from pathlib import Path
from typing import Dict, List, Type

from ..errors import UnsupportedFormatError
from ..models import ArchiveEntry


class ArchiveReader:
    """Base class for archive container formats."""

    # Lower-case filename suffixes handled by this reader
    extensions: tuple = ()

    def read(self, path: Path) -> List[ArchiveEntry]:
        raise NotImplementedError


# Registry of available readers, keyed by extension
READER_REGISTRY: Dict[str, Type[ArchiveReader]] = {}


def register_reader(cls: Type[ArchiveReader]) -> Type[ArchiveReader]:
    """Decorator to register a reader class for its extensions."""
    for extension in cls.extensions:
        READER_REGISTRY[extension] = cls
    return cls


def detect_format(path) -> ArchiveReader:
    """Pick the reader for an archive by its filename suffix."""
    name = Path(path).name.lower()
    # Longest suffix first so ".tar.gz" wins over a shorter match
    for extension in sorted(READER_REGISTRY, key=len, reverse=True):
        if name.endswith(extension):
            return READER_REGISTRY[extension]()
    raise UnsupportedFormatError(path)


def extract(path) -> List[ArchiveEntry]:
    """Extract the regular files of an archive, skipping directories."""
    return detect_format(path).read(Path(path))


# Import readers to trigger registration
from . import tar_archive, zip_archive  # noqa: E402, F401
