"""
Registry document parsing.

Turns the JSON catalog into a Registry. Shape problems degrade gracefully: malformed
entries are skipped and an unreadable document yields an empty Registry.
"""

import json
from typing import Any, Dict, List, Optional, Tuple, Union

from modkeeper.log_utils import logger

from .models import PackageEntry, Registry

# Document key (lower-cased) -> PackageEntry field
_ENTRY_STRING_FIELDS = {
    "id": "id",
    "name": "name",
    "description": "description",
    "author": "author",
    "minlauncherversion": "min_launcher_version",
    "requirements": "requirements",
    "category": "category",
    "repositoryurl": "repository_url",
    "dllname": "payload_file_name",
    "payloadfilename": "payload_file_name",
    "iconurl": "icon_url",
    "changelog": "changelog",
    "version": "version",
    "downloadurl": "download_url",
    "releaseurl": "release_url",
}
_ENTRY_LIST_FIELDS = {
    "tags": "tags",
    "screenshots": "screenshots",
    "dependencies": "dependencies",
}


def _lower_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(key).lower(): value for key, value in data.items()}


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _as_text_tuple(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def _as_bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def parse_entry(data: Any) -> Optional[PackageEntry]:
    """
    Build a PackageEntry from one `mods` item.

    Keys are matched case-insensitively. Returns None for items that are not objects
    or have no id.
    """
    if not isinstance(data, dict):
        logger.warning(
            f"Skipping malformed registry entry: expected object, got {type(data).__name__}"
        )
        return None

    raw = _lower_keys(data)
    kwargs: Dict[str, Any] = {}
    for key, attr in _ENTRY_STRING_FIELDS.items():
        if key in raw and not kwargs.get(attr):
            kwargs[attr] = _as_text(raw[key])
    for key, attr in _ENTRY_LIST_FIELDS.items():
        kwargs[attr] = _as_text_tuple(raw.get(key))
    kwargs["is_enabled"] = _as_bool(raw.get("isenabled"), True)

    if not kwargs.get("id"):
        logger.warning("Skipping registry entry with missing or empty id")
        return None
    return PackageEntry(**kwargs)


def parse_registry(document: Any, source_url: str = "") -> Registry:
    """
    Build a Registry from a decoded registry document.

    Entries without an id are skipped; when two entries share an id the first wins.

    Parameters:
        document (Any): Decoded JSON; anything other than an object yields an empty Registry.
        source_url (str): Where the document was fetched from, used when it names no registryUrl.

    Returns:
        Registry: The parsed catalog.
    """
    if not isinstance(document, dict):
        logger.error(
            f"Registry document must be a JSON object, got {type(document).__name__}"
        )
        return Registry(registry_url=source_url)

    raw = _lower_keys(document)
    mods: List[PackageEntry] = []
    seen = set()
    raw_mods = raw.get("mods")
    if not isinstance(raw_mods, list):
        logger.warning("Registry document has no mods list")
        raw_mods = []

    for item in raw_mods:
        entry = parse_entry(item)
        if entry is None:
            continue
        if entry.id in seen:
            logger.warning(f"Skipping duplicate registry entry for mod id {entry.id}")
            continue
        seen.add(entry.id)
        mods.append(entry)

    registry = Registry(
        schema_version=_as_text(raw.get("schemaversion")) or "1.0",
        last_updated=_as_text(raw.get("lastupdated")),
        registry_url=_as_text(raw.get("registryurl")) or source_url,
        releases_api_url=_as_text(raw.get("releasesapiurl")),
        categories=_as_text_tuple(raw.get("categories")),
        mods=tuple(mods),
    )
    logger.info(f"Parsed registry: {len(registry.mods)} mod(s) found")
    return registry


def parse_registry_text(text: Union[str, bytes], source_url: str = "") -> Registry:
    """Decode and parse a registry document; invalid JSON yields an empty Registry."""
    try:
        document = json.loads(text)
    except (ValueError, TypeError) as e:
        logger.error(f"Registry document from {source_url or 'source'} is not valid JSON: {e}")
        return Registry(registry_url=source_url)
    return parse_registry(document, source_url)
