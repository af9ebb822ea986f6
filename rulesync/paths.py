"""Directory layout for sources, caches and the output rules file."""

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


class PathProvider:
    """Where enabled-source markers, downloads and output rules live."""

    def sources_dir(self) -> Path:
        raise NotImplementedError

    def cache_dir(self) -> Path:
        raise NotImplementedError

    def rules_dir(self) -> Path:
        raise NotImplementedError


class SystemPaths(PathProvider):
    def sources_dir(self) -> Path:
        return Path("/var/lib/suricata/update/sources")

    def cache_dir(self) -> Path:
        return Path("/var/lib/suricata/update/cache")

    def rules_dir(self) -> Path:
        return Path("/var/lib/suricata/rules")


class UserPaths(PathProvider):
    """Per-user directories, matching the suricata-update layout under XDG dirs."""

    def __init__(self, home: Path):
        self.home = Path(home)

    @classmethod
    def from_environment(cls):
        home = os.environ.get("HOME") or os.path.expanduser("~")
        if not home or home == "~":
            return None
        return cls(Path(home))

    def _data_home(self) -> Path:
        return Path(os.environ.get("XDG_DATA_HOME") or self.home / ".local" / "share")

    def _cache_home(self) -> Path:
        return Path(os.environ.get("XDG_CACHE_HOME") or self.home / ".cache")

    def sources_dir(self) -> Path:
        return self._data_home() / "suricata" / "update" / "sources"

    def cache_dir(self) -> Path:
        return self._cache_home() / "suricata" / "update"

    def rules_dir(self) -> Path:
        return self._data_home() / "suricata" / "rules"


class StaticPaths(PathProvider):
    """All directories under a single root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def sources_dir(self) -> Path:
        return self.root / "sources"

    def cache_dir(self) -> Path:
        return self.root / "cache"

    def rules_dir(self) -> Path:
        return self.root / "rules"


def get_path_provider(user_mode: bool) -> PathProvider:
    # Windows has no system layout, always use per-user directories there
    if user_mode or sys.platform.startswith("win"):
        paths = UserPaths.from_environment()
        if paths is not None:
            return paths
        logger.warning("Could not determine user directories, falling back to system paths")
    return SystemPaths()
