import os
import tempfile
import time
from pathlib import Path
from typing import Optional

from rulesync.errors import StorageError


def ensure_dir_exists(path: Path) -> Path:
    """
    Create a directory (and parents) if it doesn't exist.
    Args:
        path (Path): Directory to create.
    Raises:
        StorageError: If the directory cannot be created.
    """
    path = Path(path)
    if not path.exists():
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(path, "create directory", e) from e
    return path


def file_age_seconds(path: Path, now: Optional[float] = None) -> Optional[float]:
    """Seconds since the file was last modified, or None if it can't be stat'ed."""
    try:
        mtime = os.stat(path).st_mtime
    except OSError:
        return None
    if now is None:
        now = time.time()
    return now - mtime


def atomic_write_bytes(path: Path, data: bytes):
    """
    Write data to path by way of a temporary file in the same directory.
    Args:
        path (Path): Destination file; its parent must exist.
        data (bytes): Content to write.
    """
    path = Path(path)
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise StorageError(path, "create file", e) from e
    try:
        with os.fdopen(fd, "wb") as fileobj:
            fileobj.write(data)
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise StorageError(path, "write", e) from e
