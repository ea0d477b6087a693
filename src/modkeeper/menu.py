# src/modkeeper/menu.py

from typing import List, Optional

from pick import pick

from modkeeper.catalog import FetchFailure, ModEngine, PackageEntry, Registry
from modkeeper.log_utils import logger


def describe_entry(entry: PackageEntry) -> str:
    """
    Build the one-line menu label for a registry entry.

    The label shows the display name, the latest known version (or "version unknown"
    when the entry could not be resolved) and the installed state.
    """
    version = f"v{entry.version}" if entry.version else "version unknown"
    if entry.has_update:
        state = f"update available (installed v{entry.installed_version})"
    elif entry.is_installed:
        state = "installed"
    else:
        state = ""
    label = f"{entry.display_name} ({version})"
    return f"{label} - {state}" if state else label


def select_entries(registry: Registry) -> List[PackageEntry]:
    """
    Present a multi-select prompt of registry entries and return the chosen ones.

    Disabled entries are not offered. Returns an empty list if nothing is selected.
    """
    entries = [entry for entry in registry.mods if entry.is_enabled]
    if not entries:
        print("The mod registry lists no mods.")
        return []

    title = "Select the mods you want to install or update (press SPACE to select, ENTER to confirm):"
    options = [describe_entry(entry) for entry in entries]
    selected_options = pick(
        options, title, multiselect=True, min_selection_count=0, indicator="*"
    )
    selected = [entries[index] for _, index in selected_options]
    if not selected:
        print("No mods selected.")
    return selected


def run_menu(engine: ModEngine) -> Optional[List[str]]:
    """
    Fetch the registry, let the user pick mods and install each of them.

    Returns:
        Optional[List[str]]: Ids of the mods that failed to install (empty if all
        succeeded), or None if the registry could not be fetched.
    """
    registry = engine.fetch_registry()
    if isinstance(registry, FetchFailure):
        logger.error(registry.message)
        return None

    failed: List[str] = []
    for entry in select_entries(registry):
        result = engine.download_and_install(entry)
        if result.success:
            logger.info(result.message)
        else:
            logger.error(f"{entry.display_name}: {result.message}")
            failed.append(entry.id)
    return failed
