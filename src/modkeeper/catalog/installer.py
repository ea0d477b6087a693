"""
Places downloaded payloads into the packages directory and removes them again.

Installs are copy-then-replace: the payload is copied next to its destination and
renamed over it, so a failed install never leaves a half-written or missing payload
where a good one used to be.
"""

import os
from typing import Callable, List, Optional

from modkeeper.constants import MSG_ARCHIVE_MISSING_PAYLOAD
from modkeeper.exceptions import ArchiveError, DocumentError, InstallError
from modkeeper.log_utils import logger

from .downloader import DownloadedPayload
from .files import (
    extract_archive,
    find_file,
    remove_if_present,
    replace_file,
    replace_files,
    sidecar_path,
    temporary_extract_dir,
)
from .models import PackageEntry

# Called with the fraction (0.0-1.0) of the install step that is done
InstallProgress = Callable[[float], None]


def _noop(_fraction: float) -> None:
    return None


class Installer:
    """Installs and uninstalls payloads in one packages directory."""

    def __init__(self, packages_dir: str):
        self.packages_dir = packages_dir

    def payload_path(self, entry: PackageEntry) -> str:
        return os.path.join(self.packages_dir, entry.payload_file_name)

    def install(
        self,
        entry: PackageEntry,
        payload: DownloadedPayload,
        progress: Optional[InstallProgress] = None,
    ) -> str:
        """
        Install a downloaded payload for `entry`.

        Returns:
            str: Path of the installed payload.

        Raises:
            ArchiveError: If the archive is corrupted or does not contain the payload file.
            InstallError: If the packages directory cannot be written.
        """
        if not entry.payload_file_name:
            raise ArchiveError(
                f"Mod {entry.display_name} does not name a payload file",
                archive_path=payload.path,
            )

        progress = progress or _noop
        os.makedirs(self.packages_dir, exist_ok=True)
        if payload.is_archive:
            installed = self._install_from_archive(entry, payload.path, progress)
        else:
            installed = self.payload_path(entry)
            replace_file(payload.path, installed)
            progress(1.0)

        logger.info(f"Installed {entry.display_name} to {installed}")
        return installed

    def _install_from_archive(
        self, entry: PackageEntry, archive_path: str, progress: InstallProgress
    ) -> str:
        with temporary_extract_dir() as extract_dir:
            extract_archive(archive_path, extract_dir)
            progress(0.4)

            found = find_file(extract_dir, entry.payload_file_name)
            if found is None:
                logger.error(
                    f"{entry.payload_file_name} not found in archive for {entry.display_name}"
                )
                raise ArchiveError(
                    MSG_ARCHIVE_MISSING_PAYLOAD.format(payload=entry.payload_file_name),
                    archive_path=archive_path,
                )

            destination = self.payload_path(entry)
            pairs = [(found, destination)]
            manifest = sidecar_path(found)
            if os.path.isfile(manifest):
                pairs.append((manifest, sidecar_path(destination)))
            progress(0.6)

            # Payload and manifest are replaced together or not at all
            replace_files(pairs)
            if len(pairs) > 1:
                logger.debug(f"Installed manifest for {entry.display_name}")
            progress(1.0)
            return destination

    def uninstall(self, entry: PackageEntry) -> List[str]:
        """
        Remove the payload and its sidecar manifest, whichever exist.

        Each file is removed independently; a missing file is not an error.

        Returns:
            List[str]: Paths that were deleted (possibly empty).

        Raises:
            DocumentError: If the entry does not name a payload file.
            InstallError: If a file that exists could not be deleted. Raised after
                attempting both files.
        """
        if not entry.payload_file_name:
            raise DocumentError(
                f"Mod {entry.display_name} does not name a payload file"
            )

        payload = self.payload_path(entry)
        removed: List[str] = []
        errors: List[InstallError] = []

        for path in (payload, sidecar_path(payload)):
            try:
                if remove_if_present(path):
                    removed.append(path)
                    logger.debug(f"Removed {path}")
            except InstallError as e:
                logger.error(f"Failed to remove {path}: {e}")
                errors.append(e)

        if errors:
            raise errors[0]
        if removed:
            logger.info(f"Uninstalled {entry.display_name}")
        else:
            logger.info(f"Nothing to remove for {entry.display_name}")
        return removed
