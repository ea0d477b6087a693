"""
Local inventory of installed payloads and the installed-status annotation pass.
"""

import os
from typing import Any, Dict, Iterable, List, Optional

from modkeeper.constants import SIDECAR_EXTENSION, TEMP_FILE_SUFFIX
from modkeeper.log_utils import logger

from .files import read_json, sidecar_path
from .interfaces import InventorySource, VersionStore
from .models import InstalledPackage, Registry


def read_sidecar_manifest(payload_path: str) -> Optional[Dict[str, Any]]:
    """
    Read the `<stem>.json` manifest beside a payload, with keys lower-cased.

    Returns:
        Optional[Dict[str, Any]]: The manifest, or None if absent or not a JSON object.
    """
    manifest = read_json(sidecar_path(payload_path))
    if manifest is None:
        return None
    if not isinstance(manifest, dict):
        logger.warning(f"Ignoring malformed manifest for {payload_path}")
        return None
    return {str(key).lower(): value for key, value in manifest.items()}


def _is_payload_candidate(name: str) -> bool:
    lowered = name.lower()
    return not (
        name.startswith(".")
        or lowered.endswith(SIDECAR_EXTENSION)
        or lowered.endswith(TEMP_FILE_SUFFIX)
    )


class LocalInventory(InventorySource):
    """
    Lists payloads in a packages directory.

    A payload's version comes from the ledger first, then from the `version` field of its
    sidecar manifest; it is empty when neither knows it.
    """

    def __init__(self, ledger: VersionStore):
        self.ledger = ledger

    def list_installed(self, packages_dir: str) -> List[InstalledPackage]:
        if not os.path.isdir(packages_dir):
            logger.debug(f"Packages directory {packages_dir} does not exist yet")
            return []

        installed: List[InstalledPackage] = []
        try:
            entries = sorted(os.scandir(packages_dir), key=lambda e: e.name.lower())
        except OSError as e:
            logger.error(f"Failed to list packages directory {packages_dir}: {e}")
            return []

        for entry in entries:
            if not entry.is_file() or not _is_payload_candidate(entry.name):
                continue
            manifest = read_sidecar_manifest(entry.path) or {}
            version = self.ledger.get(entry.name)
            if not version:
                manifest_version = manifest.get("version")
                version = manifest_version if isinstance(manifest_version, str) else ""
            display_name = manifest.get("name")
            installed.append(
                InstalledPackage(
                    file_name=entry.name,
                    version=version,
                    path=entry.path,
                    display_name=display_name if isinstance(display_name, str) else "",
                )
            )

        logger.debug(f"Discovered {len(installed)} installed payload(s) in {packages_dir}")
        return installed


def annotate_installed(
    registry: Registry, installed: Iterable[InstalledPackage]
) -> Registry:
    """
    Return a copy of `registry` with is_installed / installed_version set per entry.

    Entries match installed payloads by case-insensitive file name. Nothing on disk
    is touched.
    """
    by_name = {package.file_name.lower(): package for package in installed}
    annotated = []
    for mod in registry.mods:
        match = by_name.get(mod.payload_file_name.lower()) if mod.payload_file_name else None
        annotated.append(mod.with_install_state(match.version if match else None))
    return registry.with_mods(annotated)
