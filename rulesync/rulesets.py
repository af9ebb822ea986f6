"""Enabling, disabling and listing rule sources."""

import logging
from typing import Callable, Iterator, List, Optional, Sequence

from my_config import Config

from .errors import ConflictError
from .models import EnabledSourceRecord, SourceCatalog, SourceDescriptor, SourceState
from .state_store import SourceStateStore

logger = logging.getLogger(__name__)

# prompt(title, options) -> chosen option, or None when cancelled
Prompt = Callable[[str, Sequence[str]], Optional[str]]


def console_prompt(title: str, options: Sequence[str]) -> Optional[str]:
    """Numbered menu on stdin/stdout."""
    print(title)
    for number, option in enumerate(options, start=1):
        print(f"  {number:>3}) {option}")
    try:
        answer = input("Selection (empty to cancel): ").strip()
    except EOFError:
        return None
    if not answer:
        return None
    if answer.isdigit() and 1 <= int(answer) <= len(options):
        return options[int(answer) - 1]
    logger.warning(f"Invalid selection: {answer}")
    return None


class EnabledSources:
    """Names of the enabled sources; every iteration rescans the store."""

    def __init__(self, store: SourceStateStore):
        self.store = store

    def __iter__(self) -> Iterator[str]:
        for record in self.store.enabled_records():
            yield record.source


class RulesetManager:
    """Tracks which sources take part in an update."""

    def __init__(self, store: SourceStateStore, config: Config, prompt: Prompt = console_prompt):
        self.store = store
        self.config = config
        self.prompt = prompt

    def is_enabled(self, name: str) -> bool:
        return self.store.state(name) == SourceState.ENABLED

    def list_enabled(self) -> EnabledSources:
        return EnabledSources(self.store)

    def enabled_records(self) -> Iterator[EnabledSourceRecord]:
        return self.store.enabled_records()

    def enable(self, name: str, descriptor: Optional[SourceDescriptor] = None) -> bool:
        """Enable a source.

        A previously disabled source is restored with its overrides intact.

        Returns:
            True if the source was not enabled before this call

        Raises:
            ConflictError: The source is marked obsolete in the index
        """
        if descriptor is not None and descriptor.is_obsolete:
            raise ConflictError(name, descriptor.obsolete)

        state = self.store.state(name)
        if state == SourceState.ENABLED:
            logger.info(f"Ruleset {name} is already enabled")
            return False

        if state == SourceState.DISABLED:
            self.store.set_state(name, SourceState.ENABLED)
            logger.info(f"Re-enabled previously disabled ruleset: {name}")
        else:
            self.store.create(EnabledSourceRecord(source=name))
            logger.info(f"Enabled ruleset: {name}")

        if descriptor is not None:
            logger.info(f"  Vendor: {descriptor.vendor.split('/')[0]}")
            logger.info(f"  Summary: {descriptor.summary}")

        self.ensure_default_source(name)
        return True

    def ensure_default_source(self, enabled_name: str) -> bool:
        """Enable the default source alongside the first user-enabled one.

        Applies only when exactly one source is enabled and it is not the
        default source itself.

        Returns:
            True if the default source was enabled by this call
        """
        if not self.config.auto_enable_default:
            return False

        default = self.config.default_source
        if enabled_name == default:
            return False

        enabled = list(self.list_enabled())
        if len(enabled) != 1 or self.is_enabled(default):
            return False

        logger.info(f"Enabling default ruleset: {default}")
        if self.store.state(default) == SourceState.DISABLED:
            self.store.set_state(default, SourceState.ENABLED)
        else:
            self.store.create(EnabledSourceRecord(source=default))
        return True

    def disable(self, name: str) -> bool:
        """Disable a source.

        Returns:
            True if the source was enabled before this call
        """
        if not self.is_enabled(name):
            logger.info(f"Ruleset {name} is not enabled")
            return False

        self.store.set_state(name, SourceState.DISABLED)
        logger.info(f"Disabled ruleset: {name}")
        return True

    def candidates_for_enable(self, catalog: SourceCatalog) -> List[str]:
        """Sources that can be enabled without extra parameters, sorted by name."""
        return sorted(
            name for name, descriptor in catalog.sources.items()
            if descriptor.parameters is None and descriptor.obsolete is None and descriptor.deprecated is None
        )

    def candidates_for_disable(self) -> List[str]:
        return sorted(self.list_enabled())

    def select_source(self, catalog: SourceCatalog) -> Optional[str]:
        names = self.candidates_for_enable(catalog)
        if not names:
            logger.warning("No sources available without parameters")
            return None

        options = [f"{name} - {catalog.sources[name].summary}" for name in names]
        selection = self.prompt("Select a ruleset to enable:", options)
        if selection is None:
            return None
        return names[options.index(selection)]

    def select_enabled_source(self) -> Optional[str]:
        names = self.candidates_for_disable()
        if not names:
            logger.info("No rulesets are currently enabled")
            return None
        return self.prompt("Select a ruleset to disable:", names)
