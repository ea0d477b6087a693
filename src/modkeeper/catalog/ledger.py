"""
Ledger of installed package versions.

A small JSON object mapping payload file name to the version last installed. Keys are
matched case-insensitively and the whole file is rewritten on every change.
"""

import os
from typing import Dict, Optional

import platformdirs

from modkeeper.constants import APP_NAME, LEDGER_FILE_NAME
from modkeeper.log_utils import logger

from .files import atomic_write_json, read_json
from .interfaces import VersionStore


def default_ledger_path() -> str:
    return os.path.join(platformdirs.user_data_dir(APP_NAME), LEDGER_FILE_NAME)


class VersionLedger(VersionStore):
    """JSON-file backed VersionStore living in the per-user data directory."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or default_ledger_path()
        self._versions: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._versions is not None:
            return self._versions

        data = read_json(self.path)
        versions: Dict[str, str] = {}
        if isinstance(data, dict):
            for key, value in data.items():
                if isinstance(key, str) and isinstance(value, str):
                    versions[key] = value
        elif data is not None:
            logger.warning(f"Ignoring malformed version ledger at {self.path}")
        self._versions = versions
        return versions

    def _find_key(self, file_name: str) -> Optional[str]:
        lowered = file_name.lower()
        for key in self._load():
            if key.lower() == lowered:
                return key
        return None

    def get(self, file_name: str) -> Optional[str]:
        key = self._find_key(file_name)
        return self._load()[key] if key is not None else None

    def set(self, file_name: str, version: str) -> None:
        versions = self._load()
        existing = self._find_key(file_name)
        if existing is not None and existing != file_name:
            del versions[existing]
        versions[file_name] = version
        self._save()
        logger.info(f"Tracked installed version: {file_name} = v{version}")

    def remove(self, file_name: str) -> bool:
        key = self._find_key(file_name)
        if key is None:
            return False
        del self._load()[key]
        self._save()
        return True

    def as_dict(self) -> Dict[str, str]:
        return dict(self._load())

    def reload(self) -> None:
        """Drop the in-memory copy so the next read comes from disk."""
        self._versions = None

    def _save(self) -> None:
        if not atomic_write_json(self.path, self._load()):
            logger.warning(f"Failed to save installed versions to {self.path}")
