"""
Modkeeper Catalog Subsystem

Resolves the mod registry against GitHub releases and installs, updates and removes
mod payloads in a local mods folder.

Core Components:
- models: Registry, PackageEntry and operation outcome records
- interfaces: inventory, ledger and release-source capabilities
- parser: registry document parsing
- resolver: version resolution from release tags
- cache: time-boxed registry cache
- registry: registry retrieval and the parse/resolve/annotate pipeline
- inventory: local payload discovery and installed-status annotation
- ledger: installed-version ledger
- downloader: streaming payload downloads
- installer: payload installation and removal
- engine: the operations callers use
"""

from .cache import RegistryCache
from .downloader import DownloadedPayload, PayloadDownloader
from .engine import ModEngine
from .github_source import GithubReleaseSource
from .installer import Installer
from .interfaces import InventorySource, ReleaseSource, VersionStore
from .inventory import LocalInventory, annotate_installed
from .ledger import VersionLedger
from .models import (
    DownloadProgress,
    FetchFailure,
    InstalledPackage,
    OperationResult,
    OperationState,
    PackageEntry,
    Registry,
)
from .parser import parse_registry, parse_registry_text
from .progress import ProgressChannel
from .registry import RegistryFetcher, build_registry
from .resolver import VersionResolver
from .version import Ordering, compare_versions, has_update

__all__ = [
    # Interfaces
    "InventorySource",
    "ReleaseSource",
    "VersionStore",
    # Models
    "DownloadProgress",
    "FetchFailure",
    "InstalledPackage",
    "OperationResult",
    "OperationState",
    "PackageEntry",
    "Registry",
    # Pipeline stages
    "parse_registry",
    "parse_registry_text",
    "VersionResolver",
    "annotate_installed",
    "build_registry",
    # Components
    "GithubReleaseSource",
    "RegistryFetcher",
    "RegistryCache",
    "LocalInventory",
    "VersionLedger",
    "PayloadDownloader",
    "DownloadedPayload",
    "Installer",
    "ProgressChannel",
    # Versions
    "Ordering",
    "compare_versions",
    "has_update",
    # Engine
    "ModEngine",
]
