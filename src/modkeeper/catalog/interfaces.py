"""
Capabilities the catalog engine consumes.

The engine talks to the local packages directory, the version ledger and the release
API only through these interfaces, so each can be replaced in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import InstalledPackage


class InventorySource(ABC):
    """Lists payload files already present in a packages directory."""

    @abstractmethod
    def list_installed(self, packages_dir: str) -> List[InstalledPackage]:
        """
        Return every installed payload with its locally known version.

        Parameters:
            packages_dir (str): Directory holding installed payloads.

        Returns:
            List[InstalledPackage]: Installed payloads; empty if the directory is missing.
        """


class VersionStore(ABC):
    """Persisted mapping of payload file name to last installed version."""

    @abstractmethod
    def get(self, file_name: str) -> Optional[str]:
        """Return the recorded version for `file_name` (case-insensitive), or None."""

    @abstractmethod
    def set(self, file_name: str, version: str) -> None:
        """Record `version` for `file_name` and persist the whole mapping."""


class ReleaseSource(ABC):
    """Provides raw release-list pages from a hosting platform."""

    @abstractmethod
    def fetch_releases(
        self, releases_url: str, per_page: int, page: int = 1
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of releases in the order the API returns them (newest first).

        Returns:
            List[Dict[str, Any]]: Raw release objects; malformed items are dropped.

        Raises:
            TransportError: If the request fails.
        """
