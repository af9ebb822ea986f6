"""Gzip-compressed tar archives (the format most rule vendors publish)."""

import logging
import tarfile
import zlib
from pathlib import Path
from typing import List

from ..errors import CorruptArchiveError, StorageError
from ..models import ArchiveEntry
from . import ArchiveReader, register_reader

logger = logging.getLogger(__name__)


@register_reader
class TarGzReader(ArchiveReader):
    extensions = (".tar.gz", ".tgz")

    def read(self, path: Path) -> List[ArchiveEntry]:
        entries = []
        try:
            with tarfile.open(path, mode="r:gz") as archive:
                for member in archive:
                    if not member.isfile():
                        continue
                    fileobj = archive.extractfile(member)
                    if fileobj is None:
                        continue
                    with fileobj:
                        entries.append(ArchiveEntry(filename=member.name, content=fileobj.read()))
        except (tarfile.TarError, zlib.error, EOFError) as e:
            raise CorruptArchiveError(path, str(e)) from e
        except OSError as e:
            # gzip raises BadGzipFile (an OSError) for non-gzip input
            if e.filename is None and not isinstance(e, PermissionError):
                raise CorruptArchiveError(path, str(e)) from e
            raise StorageError(path, "read", e) from e

        logger.debug(f"Extracted {len(entries)} files from {path}")
        return entries
