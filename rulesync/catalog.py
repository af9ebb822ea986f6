"""Local cache of the rule sources index.

The index (index.yaml) lists every known rule source. It is downloaded from
the configured index URL and kept in the cache directory; a copy younger
than the freshness window is reused without touching the network.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

import yaml

from my_config import Config

from .errors import ConsistencyError, ParseError, StorageError
from .models import CatalogDiff, SourceCatalog
from .paths import PathProvider
from .utils.fs_utils import atomic_write_bytes, ensure_dir_exists, file_age_seconds
from .utils.http_utils import HttpClient

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.yaml"


def parse_catalog(text: str, location: str) -> SourceCatalog:
    """Parse index YAML into a SourceCatalog, raising ParseError on any defect."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(location, str(e)) from e
    try:
        return SourceCatalog.from_dict(data)
    except ValueError as e:
        raise ParseError(location, str(e)) from e


def diff_catalogs(old: Optional[SourceCatalog], new: SourceCatalog) -> CatalogDiff:
    """Compare two indexes source by source."""
    if old is None:
        return CatalogDiff(added=sorted(new.sources), initial=True)

    diff = CatalogDiff()
    if old.sources == new.sources:
        return diff

    diff.added = sorted(name for name in new.sources if name not in old.sources)
    diff.removed = sorted(name for name in old.sources if name not in new.sources)
    diff.changed = sorted(
        name for name, descriptor in new.sources.items()
        if name in old.sources and old.sources[name] != descriptor
    )
    return diff


class SourceIndexCache:
    """Reads, downloads and refreshes the cached sources index."""

    def __init__(self,
                 paths: PathProvider,
                 config: Config,
                 http: HttpClient,
                 clock: Callable[[], float] = time.time):
        self.paths = paths
        self.config = config
        self.http = http
        self.clock = clock

    @property
    def index_path(self) -> Path:
        return self.paths.cache_dir() / INDEX_FILENAME

    @property
    def index_url(self) -> str:
        return self.config.source_index_url

    def read(self) -> Optional[SourceCatalog]:
        """Return the cached index, or None if there is no cached copy."""
        path = self.index_path
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(path, "read index from", e) from e
        return parse_catalog(text, str(path))

    def fetch_remote(self) -> SourceCatalog:
        """Download and parse the index without saving it."""
        url = self.index_url
        text = self.http.get_text(url)
        return parse_catalog(text, url)

    def save(self, catalog: SourceCatalog, quiet: bool = False):
        path = self.index_path
        ensure_dir_exists(path.parent)
        content = yaml.safe_dump(catalog.to_dict(), default_flow_style=False, sort_keys=False)
        atomic_write_bytes(path, content.encode("utf-8"))
        if not quiet:
            logger.info(f"Saved {path}")

    def report_changes(self, diff: CatalogDiff):
        if diff.initial:
            logger.info("Adding all sources")
            return
        if not diff.has_changes:
            logger.info("No change in sources")
            return
        for name in diff.added:
            logger.info(f"Source {name} was added")
        for name in diff.removed:
            logger.info(f"Source {name} was removed")
        for name in diff.changed:
            logger.info(f"Source {name} was changed")

    def update_sources(self, quiet: bool = False) -> CatalogDiff:
        """Unconditionally download the index, save it and report what changed."""
        previous = self.read()
        if not quiet:
            logger.info(f"Downloading {self.index_url}")
        catalog = self.fetch_remote()
        self.save(catalog, quiet=quiet)
        diff = diff_catalogs(previous, catalog)
        if not quiet:
            self.report_changes(diff)
        return diff

    def refresh(self, force: bool = False, quiet: bool = False) -> Optional[CatalogDiff]:
        """Download the index unless the cached copy is still fresh.

        Returns:
            The diff against the previous index, or None if the cache was used
        """
        path = self.index_path
        if not force and path.exists():
            age = file_age_seconds(path, self.clock())
            if age is not None and age < self.config.cache_min_age_secs:
                if not quiet:
                    logger.info(f"Using cached sources index (age: {int(age)} seconds)")
                return None

        return self.update_sources(quiet=quiet)

    def get_or_download(self) -> SourceCatalog:
        """Return the cached index, downloading it first if there is none."""
        catalog = self.read()
        if catalog is not None:
            return catalog

        logger.info("No sources index found, downloading...")
        self.update_sources()
        catalog = self.read()
        if catalog is None:
            raise ConsistencyError("Failed to retrieve index after updating sources")
        return catalog
