"""Persistence of enabled/disabled rule sources.

A source is enabled when its marker exists in the enabled form and disabled
when the same marker has been moved to its disabled form. Disabling never
deletes a marker, so any overrides it carries survive a later re-enable.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterator, Optional

import yaml

from .errors import ParseError, StorageError
from .models import EnabledSourceRecord, SourceState
from .utils.fs_utils import atomic_write_bytes, ensure_dir_exists

logger = logging.getLogger(__name__)

MARKER_SUFFIX = ".yaml"
DISABLED_SUFFIX = ".yaml.disabled"


def safe_filename(name: str) -> str:
    """Flatten a source name like "et/open" into "et-open"."""
    return name.replace("/", "-").replace("\\", "-")


class SourceStateStore:
    """Key-value view of source enablement, keyed by source name."""

    def state(self, name: str) -> SourceState:
        raise NotImplementedError

    def load(self, name: str) -> Optional[EnabledSourceRecord]:
        """Return the record for a source in either state, or None."""
        raise NotImplementedError

    def create(self, record: EnabledSourceRecord):
        """Store a new record in the enabled state."""
        raise NotImplementedError

    def set_state(self, name: str, state: SourceState):
        """Move an existing record between ENABLED and DISABLED."""
        raise NotImplementedError

    def enabled_records(self) -> Iterator[EnabledSourceRecord]:
        """Yield the records of all enabled sources, rescanning on every call."""
        raise NotImplementedError


class FileMarkerStore(SourceStateStore):
    """One YAML marker file per source in the sources directory."""

    def __init__(self, sources_dir: Path):
        self.sources_dir = Path(sources_dir)

    def enabled_path(self, name: str) -> Path:
        return self.sources_dir / f"{safe_filename(name)}{MARKER_SUFFIX}"

    def disabled_path(self, name: str) -> Path:
        return self.sources_dir / f"{safe_filename(name)}{DISABLED_SUFFIX}"

    def state(self, name: str) -> SourceState:
        if self.enabled_path(name).exists():
            return SourceState.ENABLED
        if self.disabled_path(name).exists():
            return SourceState.DISABLED
        return SourceState.UNKNOWN

    def _read_marker(self, path: Path) -> EnabledSourceRecord:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(path, "read", e) from e
        try:
            return EnabledSourceRecord.from_dict(yaml.safe_load(text))
        except (yaml.YAMLError, ValueError) as e:
            raise ParseError(str(path), str(e)) from e

    def load(self, name: str) -> Optional[EnabledSourceRecord]:
        for path in (self.enabled_path(name), self.disabled_path(name)):
            if path.exists():
                return self._read_marker(path)
        return None

    def create(self, record: EnabledSourceRecord):
        ensure_dir_exists(self.sources_dir)
        content = yaml.safe_dump(record.to_dict(), default_flow_style=False, sort_keys=False)
        atomic_write_bytes(self.enabled_path(record.source), content.encode("utf-8"))

    def set_state(self, name: str, state: SourceState):
        if state == SourceState.ENABLED:
            src, dst = self.disabled_path(name), self.enabled_path(name)
            action = f"re-enable source {name}: rename"
        elif state == SourceState.DISABLED:
            src, dst = self.enabled_path(name), self.disabled_path(name)
            action = f"disable source {name}: rename"
        else:
            raise ValueError(f"Cannot move a source to state {state}")
        try:
            os.rename(src, dst)
        except OSError as e:
            raise StorageError(src, action, e) from e

    def enabled_records(self) -> Iterator[EnabledSourceRecord]:
        if not self.sources_dir.exists():
            return
        try:
            filenames = sorted(os.listdir(self.sources_dir))
        except OSError as e:
            raise StorageError(self.sources_dir, "read sources directory", e) from e

        for filename in filenames:
            # "x.yaml.yaml" is not a marker; neither is "x.yaml.disabled"
            if not filename.endswith(MARKER_SUFFIX) or filename[:-len(MARKER_SUFFIX)].lower().endswith(MARKER_SUFFIX):
                continue
            path = self.sources_dir / filename
            if not path.is_file():
                continue
            yield self._read_marker(path)


class InMemoryStateStore(SourceStateStore):
    """Dictionary-backed store, used by tests."""

    def __init__(self):
        self.records: Dict[str, EnabledSourceRecord] = {}
        self.states: Dict[str, SourceState] = {}

    def state(self, name: str) -> SourceState:
        return self.states.get(name, SourceState.UNKNOWN)

    def load(self, name: str) -> Optional[EnabledSourceRecord]:
        return self.records.get(name)

    def create(self, record: EnabledSourceRecord):
        self.records[record.source] = record
        self.states[record.source] = SourceState.ENABLED

    def set_state(self, name: str, state: SourceState):
        if name not in self.records or state == SourceState.UNKNOWN:
            raise ValueError(f"Cannot move source {name} to state {state}")
        self.states[name] = state

    def enabled_records(self) -> Iterator[EnabledSourceRecord]:
        for name in sorted(self.records):
            if self.states.get(name) == SourceState.ENABLED:
                yield self.records[name]
