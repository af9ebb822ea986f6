"""Suricata rule synchronization from the rule sources index.

Public API:
    build_services(config, paths) - Wire up caches, rulesets and the updater
    run_update(force, quiet) - Update and merge all enabled sources
    enable_ruleset(name) / disable_ruleset(name) - Toggle a source
"""

from dataclasses import dataclass
from typing import Optional

from my_config import Config, get_config

from .cache import ArchiveCache
from .catalog import SourceIndexCache
from .errors import UnknownSourceError
from .models import UpdateResult
from .paths import PathProvider, get_path_provider
from .rulesets import RulesetManager
from .state_store import FileMarkerStore
from .sync import UpdateManager
from .utils.http_utils import HttpClient
from .utils.user_agent import build_user_agent

__version__ = "0.3.0"


@dataclass
class Services:
    """The components of one command invocation, sharing config and paths."""
    config: Config
    paths: PathProvider
    http: HttpClient
    index_cache: SourceIndexCache
    rulesets: RulesetManager
    archive_cache: ArchiveCache
    updater: UpdateManager


def build_services(config: Optional[Config] = None,
                   paths: Optional[PathProvider] = None,
                   http: Optional[HttpClient] = None) -> Services:
    config = config or get_config()
    paths = paths or get_path_provider(config.user_mode)
    http = http or HttpClient(build_user_agent(__version__), timeout=config.http_timeout)

    index_cache = SourceIndexCache(paths, config, http)
    rulesets = RulesetManager(FileMarkerStore(paths.sources_dir()), config)
    archive_cache = ArchiveCache(paths, config, http)
    updater = UpdateManager(paths, config, index_cache, rulesets, archive_cache)
    return Services(config, paths, http, index_cache, rulesets, archive_cache, updater)


def run_update(force: bool = False, quiet: bool = False,
               config: Optional[Config] = None, paths: Optional[PathProvider] = None) -> UpdateResult:
    """Update all enabled sources and write the merged rules file."""
    return build_services(config, paths).updater.run_update(force=force, quiet=quiet)


def enable_ruleset(name: str, config: Optional[Config] = None, paths: Optional[PathProvider] = None) -> bool:
    services = build_services(config, paths)
    catalog = services.index_cache.get_or_download()
    descriptor = catalog.get(name)
    if descriptor is None:
        raise UnknownSourceError(name)
    return services.rulesets.enable(name, descriptor)


def disable_ruleset(name: str, config: Optional[Config] = None, paths: Optional[PathProvider] = None) -> bool:
    return build_services(config, paths).rulesets.disable(name)
