"""Download cache for source archives.

Archives are stored in the cache directory under the MD5 of their resolved
URL. A cached archive younger than the freshness window is reused unless a
forced refresh is requested.
"""

import hashlib
import logging
import sys
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm

from my_config import Config

from .errors import NetworkError
from .models import EnabledSourceRecord, SourceDescriptor
from .paths import PathProvider
from .utils.fs_utils import atomic_write_bytes, ensure_dir_exists, file_age_seconds
from .utils.http_utils import CHUNK_SIZE, HttpClient, parse_header

logger = logging.getLogger(__name__)

VERSION_PLACEHOLDER = "%(__version__)s"


def cache_key(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()


def cache_suffix(url: str) -> str:
    """Archive suffix for a cached download, following the URL's own suffix."""
    if urlparse(url).path.lower().endswith(".zip"):
        return ".zip"
    return ".tar.gz"


class ArchiveCache:
    """Fetches source archives, reusing fresh cached copies."""

    def __init__(self,
                 paths: PathProvider,
                 config: Config,
                 http: HttpClient,
                 clock: Callable[[], float] = time.time,
                 is_tty: Callable[[], bool] = lambda: sys.stdout.isatty()):
        self.paths = paths
        self.config = config
        self.http = http
        self.clock = clock
        self.is_tty = is_tty

    def url_for(self, descriptor: SourceDescriptor, record: Optional[EnabledSourceRecord] = None) -> str:
        """Resolve the download URL, substituting the Suricata version placeholder."""
        template = record.url if record is not None and record.url else descriptor.url
        return template.replace(VERSION_PLACEHOLDER, self.config.suricata_version)

    def path_for(self, url: str) -> Path:
        return self.paths.cache_dir() / f"{cache_key(url)}{cache_suffix(url)}"

    def fetch(self,
              name: str,
              descriptor: SourceDescriptor,
              force: bool = False,
              quiet: bool = False,
              record: Optional[EnabledSourceRecord] = None) -> Path:
        """Return the path of the source's archive, downloading it if needed."""
        url = self.url_for(descriptor, record)
        cache_path = self.path_for(url)

        if not force and cache_path.exists():
            age = file_age_seconds(cache_path, self.clock())
            if age is not None and age < self.config.cache_min_age_secs:
                if not quiet:
                    logger.info(f"  Using cached file (age: {int(age)} seconds)")
                return cache_path

        ensure_dir_exists(self.paths.cache_dir())

        if force and cache_path.exists() and not quiet:
            logger.info("  Forcing download (ignoring cache)")
        if not quiet:
            logger.info(f"  Downloading: {url}")

        headers = parse_header(record.http_header) if record is not None and record.http_header else None
        data = self._download(url, headers, quiet)

        atomic_write_bytes(cache_path, data)
        if not quiet:
            logger.info(f"  Downloaded {len(data)} bytes for {name}")
        return cache_path

    def _download(self, url: str, headers, quiet: bool) -> bytes:
        response = self.http.get(url, stream=True, headers=headers)
        content_length = response.headers.get("Content-Length")
        total = int(content_length) if content_length and content_length.isdigit() else None

        progress = None
        if total is not None and not quiet and self.is_tty():
            progress = tqdm(total=total, unit="B", unit_scale=True, unit_divisor=1024, leave=False)

        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                chunks.append(chunk)
                if progress is not None:
                    progress.update(len(chunk))
        except requests.exceptions.RequestException as e:
            raise NetworkError(url, str(e)) from e
        finally:
            if progress is not None:
                progress.close()
            response.close()

        return b"".join(chunks)
