"""Update run: download every enabled source and merge it into one rules file.

The run follows this sequence:
1. Refresh the sources index (reusing a fresh cached copy)
2. Enumerate enabled sources, falling back to the default source
3. For each source in listing order: fetch, extract and parse its archive
4. Fold all rules into one map keyed by gid:sid, keeping the highest rev
5. Write the enabled rules, sorted by gid:sid, to the output file

Failures in steps 1, 2 and 5 abort the run. A source that fails in step 3
is logged and skipped; the remaining sources still produce output.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from my_config import Config

from .cache import ArchiveCache
from .catalog import SourceIndexCache
from .errors import ConsistencyError, RuleSyncError
from .models import (EnabledSourceRecord, RuleRecord, SourceDescriptor, SourceSyncStatus, UpdateResult,
                     UpdateStage)
from .parser import is_rule_file, parse_rules
from .paths import PathProvider
from .readers import extract
from .rulesets import RulesetManager
from .utils.fs_utils import atomic_write_bytes, ensure_dir_exists

logger = logging.getLogger(__name__)

RuleMap = Dict[Tuple[int, int], RuleRecord]


def merge_rules(merged: RuleMap, incoming: Iterable[RuleRecord]) -> RuleMap:
    """Fold rules into merged, replacing an entry only on a strictly higher rev.

    With equal revisions the rule already in the map is kept, so the source
    processed first wins.
    """
    for rule in incoming:
        existing = merged.get(rule.key)
        if existing is None or rule.rev > existing.rev:
            merged[rule.key] = rule
    return merged


def render_rules(rules: RuleMap) -> str:
    """Enabled rules only, one per line, ascending by gid then sid."""
    lines = [rule.raw for key, rule in sorted(rules.items()) if rule.enabled]
    return "".join(f"{line}\n" for line in lines)


def write_rules(rules: RuleMap, output_path: Path) -> int:
    """Write the merged rules file and return the number of rules written."""
    output_path = Path(output_path)
    ensure_dir_exists(output_path.parent)
    content = render_rules(rules)
    atomic_write_bytes(output_path, content.encode("utf-8"))
    return content.count("\n")


class UpdateManager:
    """Drives an update across all enabled sources."""

    def __init__(self,
                 paths: PathProvider,
                 config: Config,
                 index_cache: SourceIndexCache,
                 rulesets: RulesetManager,
                 archive_cache: ArchiveCache):
        self.paths = paths
        self.config = config
        self.index_cache = index_cache
        self.rulesets = rulesets
        self.archive_cache = archive_cache
        self.stage = UpdateStage.IDLE

    @property
    def output_path(self) -> Path:
        return self.paths.rules_dir() / self.config.output_filename

    def _enabled_records(self) -> List[EnabledSourceRecord]:
        records = []
        seen = set()
        for record in self.rulesets.enabled_records():
            if record.source in seen:
                logger.warning(f"Source {record.source} is enabled more than once, using the first marker")
                continue
            seen.add(record.source)
            records.append(record)
        return records

    def process_source(self,
                       name: str,
                       descriptor: SourceDescriptor,
                       force: bool = False,
                       quiet: bool = False,
                       record: Optional[EnabledSourceRecord] = None) -> RuleMap:
        """Fetch, extract and parse one source.

        Within a single source a later duplicate gid:sid replaces an earlier one.
        """
        archive_path = self.archive_cache.fetch(name, descriptor, force=force, quiet=quiet, record=record)

        rules: RuleMap = {}
        for entry in extract(archive_path):
            if not is_rule_file(entry.filename):
                continue
            for rule in parse_rules(entry.content):
                rules[rule.key] = rule
        return rules

    def run_update(self, force: bool = False, quiet: bool = False) -> UpdateResult:
        result = UpdateResult(output_path=self.output_path)
        self.stage = UpdateStage.IDLE

        if not quiet:
            logger.info("Running Suricata rule update...")
            logger.info("Updating sources...")
        self.index_cache.refresh(force=force, quiet=quiet)

        records = self._enabled_records()
        if not records:
            # Fallback only; the default source is not persisted as enabled
            logger.info(
                f"No sources configured, will use {self.config.default_source} as fallback")
            records = [EnabledSourceRecord(source=self.config.default_source)]
            result.fallback_used = True

        catalog = self.index_cache.read()
        if catalog is None:
            raise ConsistencyError(
                "No sources index found after updating sources. The index download may have failed.")
        self.stage = UpdateStage.INDEX_READY

        all_rules: RuleMap = {}
        self.stage = UpdateStage.PROCESSING
        for record in records:
            name = record.source
            if not quiet:
                logger.info(f"Processing source: {name}")

            descriptor = catalog.get(name)
            if descriptor is None:
                logger.warning(f"Source {name} not found in index")
                result.sources.append(SourceSyncStatus(source=name, success=False, error="not found in index"))
                continue

            try:
                rules = self.process_source(name, descriptor, force=force, quiet=quiet, record=record)
            except (RuleSyncError, OSError) as e:
                logger.error(f"Failed to process {name}: {e}")
                result.sources.append(SourceSyncStatus(source=name, success=False, error=str(e)))
                continue

            if not quiet:
                logger.info(f"  Loaded {len(rules)} rules from {name}")
            merge_rules(all_rules, rules.values())
            result.sources.append(SourceSyncStatus(source=name, rules_loaded=len(rules)))
        self.stage = UpdateStage.MERGED

        result.rules_written = write_rules(all_rules, self.output_path)
        result.total_rules = len(all_rules)
        self.stage = UpdateStage.WRITTEN

        if not quiet:
            failed = sum(1 for s in result.sources if not s.success)
            logger.info(
                f"Merged {result.total_rules} rules "
                f"({result.rules_written} enabled) from {len(result.sources) - failed} source(s), "
                f"{failed} failed")
        return result
