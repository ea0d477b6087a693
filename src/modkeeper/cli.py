# src/modkeeper/cli.py

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from modkeeper import config as config_module
from modkeeper import log_utils
from modkeeper.catalog import (
    DownloadProgress,
    FetchFailure,
    ModEngine,
    PackageEntry,
    Registry,
)
from modkeeper.constants import APP_NAME
from modkeeper.exceptions import ConfigurationError


def get_modkeeper_version() -> str:
    """
    Retrieve the installed Modkeeper package version.

    Returns:
        version (str): The installed version string, or "unknown" if it cannot be determined.
    """
    try:
        return version(APP_NAME)
    except PackageNotFoundError:
        return "unknown"


def print_progress(event: DownloadProgress) -> None:
    """Render one progress event on a single, continuously rewritten console line."""
    detail = event.formatted if event.total_bytes > 0 else ""
    line = f"\r{event.percent_complete:3d}% {event.status} {detail}".rstrip()
    print(f"{line:<79}", end="", flush=True)
    if event.state.is_terminal:
        print()


def format_entry_line(entry: PackageEntry) -> str:
    latest = entry.version or "?"
    if entry.has_update:
        status = f"update v{entry.installed_version} -> v{latest}"
    elif entry.is_installed:
        status = f"installed v{entry.installed_version or '?'}"
    else:
        status = "not installed"
    category = f" [{entry.category}]" if entry.category else ""
    return f"{entry.id:<24} {latest:<12} {status}{category}"


def format_entry_details(entry: PackageEntry) -> List[str]:
    lines = [
        f"{entry.display_name} ({entry.id})",
        f"  Author:        {entry.author or 'unknown'}",
        f"  Category:      {entry.category or '-'}",
        f"  Latest:        {('v' + entry.version) if entry.version else 'version unknown'}",
        f"  Installed:     "
        + (
            f"v{entry.installed_version or '?'}"
            if entry.is_installed
            else "no"
        ),
        f"  Payload file:  {entry.payload_file_name or '-'}",
    ]
    if entry.has_update:
        lines.append("  An update is available.")
    if entry.requirements:
        lines.append(f"  Requirements:  {entry.requirements}")
    if entry.min_launcher_version:
        lines.append(f"  Min launcher:  {entry.min_launcher_version}")
    if entry.tags:
        lines.append(f"  Tags:          {', '.join(entry.tags)}")
    if entry.dependencies:
        lines.append(f"  Dependencies:  {', '.join(entry.dependencies)}")
    if entry.repository_url:
        lines.append(f"  Repository:    {entry.repository_url}")
    if entry.release_url:
        lines.append(f"  Release:       {entry.release_url}")
    if entry.description:
        lines.append("")
        lines.append(f"  {entry.description}")
    if entry.changelog:
        lines.append("")
        lines.append(f"  Changelog: {entry.changelog}")
    return lines


def _load_registry(engine: ModEngine, force_refresh: bool = False) -> Optional[Registry]:
    registry = engine.fetch_registry(force_refresh=force_refresh)
    if isinstance(registry, FetchFailure):
        log_utils.logger.error(registry.message)
        return None
    return registry


def _lookup_entries(registry: Registry, mod_ids: List[str]) -> Optional[List[PackageEntry]]:
    entries = []
    missing = []
    for mod_id in mod_ids:
        entry = registry.get(mod_id)
        if entry is None:
            missing.append(mod_id)
        else:
            entries.append(entry)
    if missing:
        log_utils.logger.error(f"Unknown mod id(s): {', '.join(missing)}")
        return None
    return entries


def _install_entries(engine: ModEngine, entries: List[PackageEntry]) -> int:
    exit_code = 0
    for entry in entries:
        result = engine.download_and_install(entry, print_progress)
        if result.success:
            print(result.message)
        else:
            retry_hint = " (you can retry later)" if result.is_retryable else ""
            print(f"{entry.display_name}: {result.message}{retry_hint}", file=sys.stderr)
            exit_code = 1
    return exit_code


def run_list(engine: ModEngine, args: argparse.Namespace) -> int:
    registry = _load_registry(engine, force_refresh=args.refresh)
    if registry is None:
        return 1
    entries = list(registry.mods)
    if args.category:
        wanted = args.category.lower()
        entries = [entry for entry in entries if entry.category.lower() == wanted]
    if not entries:
        print("No mods found.")
        return 0
    for entry in entries:
        print(format_entry_line(entry))
    return 0


def run_info(engine: ModEngine, args: argparse.Namespace) -> int:
    registry = _load_registry(engine)
    if registry is None:
        return 1
    entries = _lookup_entries(registry, [args.mod_id])
    if entries is None:
        return 1
    print("\n".join(format_entry_details(entries[0])))
    return 0


def run_install(engine: ModEngine, args: argparse.Namespace) -> int:
    registry = _load_registry(engine)
    if registry is None:
        return 1
    entries = _lookup_entries(registry, args.mod_ids)
    if entries is None:
        return 1
    return _install_entries(engine, entries)


def run_uninstall(engine: ModEngine, args: argparse.Namespace) -> int:
    registry = _load_registry(engine)
    if registry is None:
        return 1
    entries = _lookup_entries(registry, args.mod_ids)
    if entries is None:
        return 1
    exit_code = 0
    for entry in entries:
        result = engine.uninstall(entry)
        if result.success:
            print(result.message)
        else:
            print(f"{entry.display_name}: {result.message}", file=sys.stderr)
            exit_code = 1
    return exit_code


def run_updates(engine: ModEngine, args: argparse.Namespace) -> int:
    registry = _load_registry(engine, force_refresh=True)
    if registry is None:
        return 1
    updates = list(registry.updates)
    if not updates:
        print("All installed mods are up to date.")
        return 0
    for entry in updates:
        print(
            f"{entry.display_name}: v{entry.installed_version} -> v{entry.version}"
        )
    if args.install:
        return _install_entries(engine, updates)
    return 0


def run_refresh(engine: ModEngine, args: argparse.Namespace) -> int:
    engine.clear_cache()
    registry = _load_registry(engine, force_refresh=True)
    if registry is None:
        return 1
    unresolved = len(registry.unresolved)
    print(
        f"Registry refreshed: {len(registry.mods)} mod(s), "
        f"{len(registry.updates)} update(s) available"
        + (f", {unresolved} without a known version" if unresolved else "")
    )
    return 0


def run_clear_cache(engine: ModEngine, args: argparse.Namespace) -> int:
    engine.clear_cache()
    print("Registry cache cleared.")
    return 0


def run_browse(engine: ModEngine, args: argparse.Namespace) -> int:
    from modkeeper.menu import run_menu

    failed = run_menu(engine)
    return 1 if failed is None or failed else 0


def run_config(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    config_path = args.config or config_module.get_config_file()
    if args.config_command == "path":
        print(config_path)
        return 0
    if args.config_command == "set":
        try:
            value = config_module.set_config_value(args.key, args.value, config_path)
        except ConfigurationError as e:
            log_utils.logger.error(str(e))
            return 1
        print(f"{args.key} = {value}")
        return 0

    shown = dict(config)
    if shown.get("GITHUB_TOKEN"):
        shown["GITHUB_TOKEN"] = "********"
    print(yaml.safe_dump(shown, default_flow_style=False, sort_keys=True).rstrip())
    return 0


COMMANDS = {
    "list": run_list,
    "info": run_info,
    "install": run_install,
    "uninstall": run_uninstall,
    "updates": run_updates,
    "refresh": run_refresh,
    "clear-cache": run_clear_cache,
    "browse": run_browse,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Modkeeper - mod registry browser and installer",
    )
    parser.add_argument(
        "--log-level",
        help="Console log level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Use this configuration file instead of the per-user one",
    )
    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="List the mods in the registry")
    list_parser.add_argument(
        "--refresh", action="store_true", help="Bypass the registry cache"
    )
    list_parser.add_argument("--category", help="Only show mods in this category")

    info_parser = subparsers.add_parser("info", help="Show details for one mod")
    info_parser.add_argument("mod_id", metavar="ID")

    install_parser = subparsers.add_parser(
        "install", help="Install or update one or more mods"
    )
    install_parser.add_argument("mod_ids", metavar="ID", nargs="+")

    uninstall_parser = subparsers.add_parser(
        "uninstall", help="Remove one or more installed mods"
    )
    uninstall_parser.add_argument("mod_ids", metavar="ID", nargs="+")

    updates_parser = subparsers.add_parser(
        "updates", help="List installed mods with a newer version available"
    )
    updates_parser.add_argument(
        "--install", action="store_true", help="Install every available update"
    )

    subparsers.add_parser(
        "refresh", help="Clear the registry cache and fetch the registry again"
    )
    subparsers.add_parser("clear-cache", help="Clear the registry cache")
    subparsers.add_parser(
        "browse", help="Interactively select mods to install"
    )

    config_parser = subparsers.add_parser("config", help="Show or change settings")
    config_subparsers = config_parser.add_subparsers(
        dest="config_command", required=True
    )
    config_subparsers.add_parser("show", help="Print the effective configuration")
    config_subparsers.add_parser("path", help="Print the configuration file path")
    set_parser = config_subparsers.add_parser("set", help="Set one configuration key")
    set_parser.add_argument("key", metavar="KEY", type=str.upper)
    set_parser.add_argument("value", metavar="VALUE")

    subparsers.add_parser("version", help="Display Modkeeper version")
    return parser


def _configure_logging(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    level = args.log_level or config.get("LOG_LEVEL")
    if level:
        log_utils.set_log_level(level)
    if config.get("LOG_TO_FILE"):
        log_utils.add_file_logging(
            Path(config_module.get_log_dir()), level or "INFO"
        )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the Modkeeper command-line interface.

    Parses arguments, loads the configuration and dispatches the subcommand.

    Returns:
        int: 0 if every requested operation succeeded, 1 otherwise.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0
    if args.command == "version":
        print(f"Modkeeper v{get_modkeeper_version()}")
        return 0

    try:
        config = config_module.load_config(args.config)
    except ConfigurationError as e:
        log_utils.logger.error(str(e))
        if args.command == "config" and args.config_command in ("path", "set"):
            config = dict(config_module.DEFAULTS)
        else:
            return 1

    _configure_logging(args, config)

    if args.command == "config":
        return run_config(args, config)

    engine = ModEngine.from_config(config)
    return COMMANDS[args.command](engine, args)


if __name__ == "__main__":
    sys.exit(main())
