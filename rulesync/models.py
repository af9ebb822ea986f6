"""Data models for the rule synchronizer."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# Wire names differing from attribute names
_DESCRIPTOR_WIRE_NAMES = {
    "min_version": "min-version",
    "checksum_required": "checksum",
}


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, (str, int, float)):
        raise ValueError(f"field '{key}' must be a string")
    return str(value)


def _required_str(data: Dict[str, Any], key: str, owner: str) -> str:
    value = data.get(key)
    if value is None:
        raise ValueError(f"{owner}: missing required field '{key}'")
    if not isinstance(value, str):
        raise ValueError(f"{owner}: field '{key}' must be a string")
    return value


@dataclass(frozen=True)
class SourceDescriptor:
    """A rule source as described by the sources index."""
    vendor: str
    summary: str
    url: str                                    # May contain %(__version__)s
    description: Optional[str] = None
    license: Optional[str] = None
    homepage: Optional[str] = None
    min_version: Optional[str] = None
    checksum_required: Optional[bool] = None
    parameters: Optional[Dict[str, Any]] = None  # Present means not auto-selectable
    replaces: Optional[List[str]] = None
    deprecated: Optional[str] = None            # Advisory only
    obsolete: Optional[str] = None              # Blocks enabling

    @property
    def is_obsolete(self) -> bool:
        return bool(self.obsolete)

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "SourceDescriptor":
        if not isinstance(data, dict):
            raise ValueError(f"source '{name}' is not a mapping")

        parameters = data.get("parameters")
        if parameters is not None and not isinstance(parameters, dict):
            raise ValueError(f"source '{name}': 'parameters' must be a mapping")

        replaces = data.get("replaces")
        if replaces is not None:
            if not isinstance(replaces, list):
                raise ValueError(f"source '{name}': 'replaces' must be a list")
            replaces = [str(r) for r in replaces]

        checksum = data.get("checksum")
        if checksum is not None and not isinstance(checksum, bool):
            raise ValueError(f"source '{name}': 'checksum' must be a boolean")

        return cls(
            vendor=_required_str(data, "vendor", f"source '{name}'"),
            summary=_required_str(data, "summary", f"source '{name}'"),
            url=_required_str(data, "url", f"source '{name}'"),
            description=_optional_str(data, "description"),
            license=_optional_str(data, "license"),
            homepage=_optional_str(data, "homepage"),
            min_version=_optional_str(data, "min-version"),
            checksum_required=checksum,
            parameters=parameters,
            replaces=replaces,
            deprecated=_optional_str(data, "deprecated"),
            obsolete=_optional_str(data, "obsolete"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for attr in ("vendor", "summary", "url", "description", "license", "homepage",
                     "min_version", "checksum_required", "parameters", "replaces",
                     "deprecated", "obsolete"):
            value = getattr(self, attr)
            if value is not None:
                data[_DESCRIPTOR_WIRE_NAMES.get(attr, attr)] = value
        return data


@dataclass
class SourceCatalog:
    """The sources index: every known vendor source, keyed by name."""
    version: int
    sources: Dict[str, SourceDescriptor] = field(default_factory=dict)

    def get(self, name: str) -> Optional[SourceDescriptor]:
        return self.sources.get(name)

    def names(self) -> List[str]:
        return sorted(self.sources)

    @classmethod
    def from_dict(cls, data: Any) -> "SourceCatalog":
        if not isinstance(data, dict):
            raise ValueError("index is not a mapping")

        version = data.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError("missing or non-integer 'version'")

        raw_sources = data.get("sources")
        if not isinstance(raw_sources, dict):
            raise ValueError("missing or invalid 'sources' mapping")

        sources = {
            str(name): SourceDescriptor.from_dict(str(name), entry)
            for name, entry in raw_sources.items()
        }
        return cls(version=version, sources=sources)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "sources": {name: self.sources[name].to_dict() for name in sorted(self.sources)},
        }


@dataclass
class CatalogDiff:
    """Changes between two versions of the sources index."""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    initial: bool = False  # No previous index existed

    @property
    def has_changes(self) -> bool:
        return self.initial or bool(self.added or self.removed or self.changed)


@dataclass
class EnabledSourceRecord:
    """Contents of an enabled-source marker file."""
    source: str
    url: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    http_header: Optional[str] = None
    checksum: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Any) -> "EnabledSourceRecord":
        if not isinstance(data, dict):
            raise ValueError("marker is not a mapping")
        source = data.get("source")
        if not isinstance(source, str) or not source:
            raise ValueError("missing required field 'source'")
        params = data.get("params")
        if params is not None and not isinstance(params, dict):
            raise ValueError("'params' must be a mapping")
        checksum = data.get("checksum")
        if checksum is not None and not isinstance(checksum, bool):
            raise ValueError("'checksum' must be a boolean")
        return cls(
            source=source,
            url=_optional_str(data, "url"),
            params=params,
            http_header=_optional_str(data, "http-header"),
            checksum=checksum,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"source": self.source}
        if self.url is not None:
            data["url"] = self.url
        if self.params is not None:
            data["params"] = self.params
        if self.http_header is not None:
            data["http-header"] = self.http_header
        if self.checksum is not None:
            data["checksum"] = self.checksum
        return data


class SourceState(Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNKNOWN = "unknown"


@dataclass
class RuleRecord:
    """One parsed rule line."""
    raw: str
    enabled: bool
    sid: int
    gid: int = 1
    rev: int = 1
    msg: str = ""

    @property
    def key(self) -> Tuple[int, int]:
        return (self.gid, self.sid)


@dataclass
class ArchiveEntry:
    """A regular file extracted from a source archive."""
    filename: str
    content: bytes


class UpdateStage(Enum):
    IDLE = "idle"
    INDEX_READY = "index_ready"
    PROCESSING = "processing"
    MERGED = "merged"
    WRITTEN = "written"


@dataclass
class SourceSyncStatus:
    """Outcome of processing a single source."""
    source: str
    success: bool = True
    rules_loaded: int = 0
    error: str = ""


@dataclass
class UpdateResult:
    """Result of one update run across all enabled sources."""
    sources: List[SourceSyncStatus] = field(default_factory=list)
    total_rules: int = 0      # Distinct gid:sid keys after merging
    rules_written: int = 0    # Enabled rules written to the output file
    output_path: Optional[Path] = None
    fallback_used: bool = False

    @property
    def all_success(self) -> bool:
        return all(s.success for s in self.sources)

    @property
    def summary(self) -> str:
        parts = []
        for s in self.sources:
            status = "OK" if s.success else f"FAILED: {s.error}"
            parts.append(f"  {s.source}: {s.rules_loaded} rules ({status})")
        return "\n".join(parts)
