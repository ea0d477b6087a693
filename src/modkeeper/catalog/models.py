"""
Data model for the mod catalog.

Records are frozen dataclasses: each pipeline stage (parse, resolve, annotate) returns
new records built with `dataclasses.replace` rather than mutating its input.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from modkeeper.exceptions import ErrorCategory
from modkeeper.utils import format_eta, format_file_size

from .version import has_update as _has_update


class OperationState(str, Enum):
    """Lifecycle of a single-package install operation."""

    IDLE = "idle"
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.COMPLETE, OperationState.FAILED)


@dataclass(frozen=True)
class PackageEntry:
    """A package described by the registry, plus resolved and local-only fields."""

    id: str
    name: str = ""
    description: str = ""
    author: str = ""
    min_launcher_version: str = ""
    requirements: str = ""
    category: str = ""
    tags: Tuple[str, ...] = ()
    repository_url: str = ""
    payload_file_name: str = ""
    icon_url: str = ""
    screenshots: Tuple[str, ...] = ()
    changelog: str = ""
    dependencies: Tuple[str, ...] = ()
    is_enabled: bool = True

    # Filled in by the version resolver
    version: str = ""
    download_url: str = ""
    release_url: str = ""

    # Filled in from the local inventory
    is_installed: bool = False
    installed_version: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def is_resolved(self) -> bool:
        return bool(self.version and self.download_url)

    @property
    def has_update(self) -> bool:
        """True only for installed packages whose known version is older than the latest."""
        if not self.is_installed or not self.installed_version or not self.version:
            return False
        return _has_update(self.installed_version, self.version)

    def with_release(
        self, version: str, download_url: str, release_url: str = ""
    ) -> "PackageEntry":
        return replace(
            self, version=version, download_url=download_url, release_url=release_url
        )

    def with_install_state(self, installed_version: Optional[str]) -> "PackageEntry":
        if installed_version is None:
            return replace(self, is_installed=False, installed_version="")
        return replace(self, is_installed=True, installed_version=installed_version)


@dataclass(frozen=True)
class Registry:
    """The catalog of available packages."""

    schema_version: str = "1.0"
    last_updated: str = ""
    registry_url: str = ""
    releases_api_url: str = ""
    categories: Tuple[str, ...] = ()
    mods: Tuple[PackageEntry, ...] = ()

    def get(self, mod_id: str) -> Optional[PackageEntry]:
        """Look up an entry by id, falling back to a case-insensitive match."""
        for mod in self.mods:
            if mod.id == mod_id:
                return mod
        lowered = mod_id.lower()
        for mod in self.mods:
            if mod.id.lower() == lowered:
                return mod
        return None

    def with_mods(self, mods: Iterable[PackageEntry]) -> "Registry":
        return replace(self, mods=tuple(mods))

    @property
    def unresolved(self) -> Tuple[PackageEntry, ...]:
        return tuple(mod for mod in self.mods if not mod.is_resolved)

    @property
    def updates(self) -> Tuple[PackageEntry, ...]:
        return tuple(mod for mod in self.mods if mod.is_installed and mod.has_update)


@dataclass(frozen=True)
class InstalledPackage:
    """A payload file found in the local packages directory."""

    file_name: str
    version: str = ""
    path: str = ""
    display_name: str = ""


@dataclass(frozen=True)
class DownloadProgress:
    """
    One progress event.

    `percent_complete` is an overall percentage for the whole operation; `total_bytes`
    is -1 when the server did not declare a content length.
    """

    percent_complete: int = 0
    bytes_downloaded: int = 0
    total_bytes: int = -1
    bytes_per_second: float = 0.0
    estimated_time_remaining: float = 0.0
    status: str = ""
    state: OperationState = OperationState.IDLE

    @property
    def formatted(self) -> str:
        """Human-readable progress line, e.g. `1.5 MB / 3 MB (512 KB/s) ~00:03`."""
        if self.total_bytes <= 0:
            return self.status
        downloaded = format_file_size(self.bytes_downloaded)
        total = format_file_size(self.total_bytes)
        speed = f"{format_file_size(self.bytes_per_second)}/s"
        eta = (
            f"~{format_eta(self.estimated_time_remaining)}"
            if self.estimated_time_remaining > 0
            else ""
        )
        return f"{downloaded} / {total} ({speed}) {eta}".rstrip()


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an install or uninstall. Engine operations never raise; they return this."""

    success: bool
    message: str
    entry: Optional[PackageEntry] = None
    installed_path: Optional[str] = None
    category: Optional[ErrorCategory] = None
    state: OperationState = OperationState.COMPLETE

    @property
    def is_retryable(self) -> bool:
        return self.category is not None and self.category.is_retryable

    @classmethod
    def ok(
        cls,
        message: str,
        entry: Optional[PackageEntry] = None,
        installed_path: Optional[str] = None,
    ) -> "OperationResult":
        return cls(True, message, entry, installed_path)

    @classmethod
    def failed(
        cls,
        message: str,
        category: ErrorCategory,
        entry: Optional[PackageEntry] = None,
    ) -> "OperationResult":
        return cls(
            False, message, entry, None, category, state=OperationState.FAILED
        )


@dataclass(frozen=True)
class FetchFailure:
    """Returned instead of a Registry when the catalog could not be retrieved."""

    message: str
    category: ErrorCategory = ErrorCategory.TRANSIENT
    attempts: int = 0
    details: Optional[str] = None

    @property
    def is_retryable(self) -> bool:
        return self.category.is_retryable


@dataclass
class ResolutionReport:
    """Which entries each resolution phase resolved, for logging and tests."""

    batch: List[str] = field(default_factory=list)
    fallback: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)
