"""Zip archives."""

import logging
import zipfile
import zlib
from pathlib import Path
from typing import List

from ..errors import CorruptArchiveError, StorageError
from ..models import ArchiveEntry
from . import ArchiveReader, register_reader

logger = logging.getLogger(__name__)


@register_reader
class ZipReader(ArchiveReader):
    extensions = (".zip",)

    def read(self, path: Path) -> List[ArchiveEntry]:
        entries = []
        try:
            with zipfile.ZipFile(path) as archive:
                for info in archive.infolist():
                    if info.is_dir():
                        continue
                    entries.append(ArchiveEntry(filename=info.filename, content=archive.read(info)))
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
            # RuntimeError: encrypted entry, no password
            raise CorruptArchiveError(path, str(e)) from e
        except OSError as e:
            raise StorageError(path, "read", e) from e

        logger.debug(f"Extracted {len(entries)} files from {path}")
        return entries
