"""
The mod engine: the operations callers use.

Every public method returns an outcome value (Registry, FetchFailure, OperationResult
or a list) and never lets a network or filesystem fault escape. Failures carry an
ErrorCategory so the caller can decide whether to offer a retry.

One engine instance owns one RegistryCache. The engine is not synchronized: callers
issue one operation at a time per instance and must not start two installs of the
same package concurrently.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import requests

from modkeeper.constants import REGISTRY_CACHE_TTL_SECONDS
from modkeeper.exceptions import (
    AssetNotFoundError,
    InstallError,
    ModkeeperError,
    TransportError,
)
from modkeeper.log_utils import logger
from modkeeper.utils import classify_request_exception, describe_failure

from .cache import RegistryCache
from .downloader import PayloadDownloader
from .github_source import GithubReleaseSource
from .installer import Installer
from .interfaces import InventorySource, VersionStore
from .inventory import LocalInventory
from .ledger import VersionLedger
from .models import (
    FetchFailure,
    InstalledPackage,
    OperationResult,
    OperationState,
    PackageEntry,
    Registry,
)
from .progress import OperationProgress, ProgressCallback
from .registry import RegistryFetcher, build_registry
from .resolver import VersionResolver

RegistryOutcome = Union[Registry, FetchFailure]


def _as_modkeeper_error(error: Exception) -> ModkeeperError:
    if isinstance(error, ModkeeperError):
        return error
    if isinstance(error, requests.RequestException):
        return classify_request_exception(error)
    if isinstance(error, OSError):
        return InstallError(
            "Could not access the mods folder",
            path=getattr(error, "filename", None),
            details=str(error),
        )
    raise error


class ModEngine:
    """
    Fetches the catalog and installs, updates and removes packages.

    Usage:
        engine = ModEngine.from_config(load_config())
        registry = engine.fetch_registry()
        if isinstance(registry, FetchFailure):
            print(registry.message)
        else:
            result = engine.download_and_install(registry.get("Foo"))
    """

    def __init__(
        self,
        packages_dir: str,
        fetcher: RegistryFetcher,
        resolver: VersionResolver,
        ledger: VersionStore,
        inventory: Optional[InventorySource] = None,
        downloader: Optional[PayloadDownloader] = None,
        installer: Optional[Installer] = None,
        cache: Optional[RegistryCache] = None,
    ):
        self.packages_dir = packages_dir
        self.fetcher = fetcher
        self.resolver = resolver
        self.ledger = ledger
        self.inventory = inventory or LocalInventory(ledger)
        self.downloader = downloader or PayloadDownloader()
        self.installer = installer or Installer(packages_dir)
        self.cache = cache or RegistryCache()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ModEngine":
        """Build an engine wired to GitHub from a loaded configuration mapping."""
        token = config.get("GITHUB_TOKEN")
        allow_env_token = bool(config.get("ALLOW_ENV_TOKEN", True))
        ttl = config.get("CACHE_TTL_SECONDS")
        ledger = VersionLedger()
        return cls(
            packages_dir=config["MODS_DIR"],
            fetcher=RegistryFetcher(
                config["REGISTRY_URL"],
                github_token=token,
                allow_env_token=allow_env_token,
            ),
            resolver=VersionResolver(
                GithubReleaseSource(github_token=token, allow_env_token=allow_env_token)
            ),
            ledger=ledger,
            cache=RegistryCache(
                ttl_seconds=REGISTRY_CACHE_TTL_SECONDS if ttl is None else ttl
            ),
        )

    def list_installed(self) -> List[InstalledPackage]:
        return self.inventory.list_installed(self.packages_dir)

    def fetch_registry(self, force_refresh: bool = False) -> RegistryOutcome:
        """
        Return the fully resolved and annotated Registry.

        Within the cache TTL the cached instance is returned without any network access,
        unless `force_refresh` is set.

        Returns:
            Registry | FetchFailure: The catalog, or why it could not be retrieved.
        """
        if not force_refresh:
            cached = self.cache.get()
            if cached is not None:
                logger.info("Using cached registry")
                return cached

        try:
            text = self.fetcher.fetch_text()
        except TransportError as e:
            return FetchFailure(
                message=describe_failure(e, subject="The mod registry"),
                category=e.category,
                attempts=self.fetcher.last_attempts,
                details=str(e),
            )

        registry = build_registry(
            text, self.resolver, self.list_installed(), self.fetcher.registry_url
        )
        logger.info(f"Loaded {len(registry.mods)} mod(s) from registry")
        return self.cache.store(registry)

    def get_latest_release_info(
        self, entry: PackageEntry
    ) -> Optional[Tuple[str, str]]:
        """
        Return (version, download_url) for `entry`, looking it up individually if the
        entry is not resolved yet. None if no release can be found.
        """
        if entry.is_resolved:
            return entry.version, entry.download_url
        try:
            resolved = self.resolver.resolve_entry(entry)
        except ModkeeperError as e:
            logger.warning(f"Could not resolve latest release of {entry.id}: {e}")
            return None
        return resolved.version, resolved.download_url

    def download_and_install(
        self, entry: PackageEntry, on_progress: Optional[ProgressCallback] = None
    ) -> OperationResult:
        """
        Download the latest release of `entry` and install it into the packages directory.

        Progress events report one overall percentage: 0-10% preparing, 10-80%
        downloading, 80-100% installing. The final event of a successful install is 100%.
        """
        progress = OperationProgress(on_progress)
        try:
            progress.preparing(5, "Preparing download...", OperationState.RESOLVING)
            if not entry.is_resolved:
                entry = self.resolver.resolve_entry(entry)
            if not entry.download_url:
                raise AssetNotFoundError(
                    f"No download URL for mod: {entry.display_name}", package_id=entry.id
                )

            progress.preparing(10, "Connecting...", OperationState.CONNECTING)
            logger.info(f"Downloading mod from: {entry.download_url}")
            with self.downloader.download(
                entry.download_url, progress.download_callback()
            ) as payload:
                progress.installing(0.0)
                installed_path = self.installer.install(
                    entry, payload, progress.installing
                )
        except (ModkeeperError, requests.RequestException, OSError) as e:
            error = _as_modkeeper_error(e)
            message = describe_failure(error)
            logger.error(f"Failed to install mod {entry.display_name}: {error}")
            progress.failed(message)
            return OperationResult.failed(message, error.category, entry)

        self.cache.invalidate()
        if entry.version:
            self.ledger.set(entry.payload_file_name, entry.version)

        message = f"Successfully installed {entry.display_name} v{entry.version}"
        logger.info(message)
        progress.complete()
        return OperationResult.ok(
            message, entry.with_install_state(entry.version), installed_path
        )

    def uninstall(self, entry: PackageEntry) -> OperationResult:
        """
        Remove `entry`'s payload and sidecar manifest.

        Succeeds when nothing is left to remove, including when neither file existed.
        Fails only if a file that exists could not be deleted.
        """
        try:
            self.installer.uninstall(entry)
        except (ModkeeperError, OSError) as e:
            error = _as_modkeeper_error(e)
            message = describe_failure(error)
            logger.error(f"Failed to uninstall mod {entry.display_name}: {error}")
            return OperationResult.failed(message, error.category, entry)

        self.cache.invalidate()
        return OperationResult.ok(
            f"Successfully uninstalled {entry.display_name}",
            entry.with_install_state(None),
        )

    def check_for_updates(self) -> List[PackageEntry]:
        """Force a fresh fetch and return installed entries with a newer version available."""
        registry = self.fetch_registry(force_refresh=True)
        if isinstance(registry, FetchFailure):
            logger.warning(f"Update check failed: {registry.message}")
            return []
        updates = list(registry.updates)
        logger.info(f"{len(updates)} mod update(s) available")
        return updates

    def clear_cache(self) -> None:
        self.cache.invalidate()
