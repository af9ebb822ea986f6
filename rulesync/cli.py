"""CLI entry points for rule synchronization.

Usage:
    # Update enabled sources and write suricata.rules
    python -m rulesync update [--force] [--quiet]

    # Enable or disable a ruleset (prompts when no name is given)
    python -m rulesync enable-ruleset et/open
    python -m rulesync disable-ruleset

    # Refresh the sources index
    python -m rulesync update-sources
"""

import argparse
import logging
import sys
from typing import List, Optional

from my_config import get_config

from . import __version__, build_services
from .errors import RuleSyncError, UnknownSourceError
from .utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="suricata-rulesync", description="Suricata Rule Manager")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--user", action="store_true", default=False,
                        help="Use user-specific directories instead of system directories")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase verbosity (can be used multiple times)")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    update = subparsers.add_parser("update", help="Update rule sources and rulesets")
    update.add_argument("-f", "--force", action="store_true", default=False,
                        help="Force download even if cache is recent")
    update.add_argument("-q", "--quiet", action="store_true", default=False,
                        help="Only output warnings and errors")

    enable = subparsers.add_parser("enable-ruleset", help="Enable a ruleset")
    enable.add_argument("name", nargs="?", help="Name of the ruleset to enable")

    disable = subparsers.add_parser("disable-ruleset", help="Disable a ruleset")
    disable.add_argument("name", nargs="?", help="Name of the ruleset to disable")

    subparsers.add_parser("update-sources", help="Update rule sources")

    list_sources = subparsers.add_parser("list-sources", help="List available rule sources")
    list_sources.add_argument("--enabled", action="store_true", default=False,
                              help="Only list enabled sources")

    return parser


def cmd_update(services, args) -> int:
    result = services.updater.run_update(force=args.force, quiet=args.quiet)
    if args.verbose:
        print(result.summary)
    print(f"Success: Wrote {result.total_rules} rules to {result.output_path}")
    return 0


def cmd_enable(services, args) -> int:
    catalog = services.index_cache.get_or_download()
    name = args.name or services.rulesets.select_source(catalog)
    if name is None:
        return 0
    descriptor = catalog.get(name)
    if descriptor is None:
        raise UnknownSourceError(name)
    services.rulesets.enable(name, descriptor)
    return 0


def cmd_disable(services, args) -> int:
    name = args.name or services.rulesets.select_enabled_source()
    if name is None:
        return 0
    services.rulesets.disable(name)
    return 0


def cmd_update_sources(services, args) -> int:
    services.index_cache.update_sources()
    return 0


def cmd_list_sources(services, args) -> int:
    catalog = services.index_cache.get_or_download()
    enabled = set(services.rulesets.list_enabled())
    for name in catalog.names():
        if args.enabled and name not in enabled:
            continue
        descriptor = catalog.sources[name]
        flags = []
        if name in enabled:
            flags.append("enabled")
        if descriptor.deprecated:
            flags.append("deprecated")
        if descriptor.obsolete:
            flags.append("obsolete")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"{name} - {descriptor.summary}{suffix}")
    return 0


COMMANDS = {
    "update": cmd_update,
    "enable-ruleset": cmd_enable,
    "disable-ruleset": cmd_disable,
    "update-sources": cmd_update_sources,
    "list-sources": cmd_list_sources,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    if args.user:
        config.user_mode = True

    if args.verbose:
        log_level = logging.DEBUG
    elif getattr(args, "quiet", False):
        log_level = logging.WARNING
    else:
        log_level = config.log_level
    setup_logging(log_level)

    services = build_services(config)
    try:
        return COMMANDS[args.command](services, args)
    except RuleSyncError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        services.http.close()


if __name__ == "__main__":
    sys.exit(main())
