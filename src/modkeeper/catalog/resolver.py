"""
Version resolution from release tags.

Registry entries carry no version or download URL; both come from the release API.
A release tagged `<packageId>-v<version>` that is neither a draft nor a prerelease
supplies the version, and its first asset named after the entry's payload file (or
any `.zip` asset) supplies the download URL.

Resolution runs in two phases:

1. Batch: page through the shared releases list (100 per page, at most 3 pages) and
   resolve every entry whose id matches a tag. The first matching release wins, so the
   API's newest-first ordering yields the latest version.
2. Fallback: each entry still unresolved is looked up individually against the
   releases list of its own repository.

Entries that remain unresolved keep an empty version and download URL.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from modkeeper.constants import (
    BATCH_RELEASE_MAX_PAGES,
    FALLBACK_RELEASE_COUNT,
    GITHUB_MAX_PER_PAGE,
    RELEASE_TAG_SEPARATOR,
    ZIP_EXTENSION,
)
from modkeeper.exceptions import AssetNotFoundError, ModkeeperError
from modkeeper.log_utils import logger
from modkeeper.utils import releases_api_url_from_repository

from .interfaces import ReleaseSource
from .models import PackageEntry, Registry, ResolutionReport

ReleaseMatch = Tuple[str, str, str]  # version, download_url, release_url


def parse_release_tag(tag: Any) -> Optional[Tuple[str, str]]:
    """
    Split a `<packageId>-v<version>` tag at its last `-v`.

    Returns:
        Optional[Tuple[str, str]]: (package_id, version), or None if the tag has no `-v`
        or either side is empty.
    """
    if not isinstance(tag, str):
        return None
    package_id, separator, version = tag.rpartition(RELEASE_TAG_SEPARATOR)
    if not separator or not package_id or not version:
        return None
    return package_id, version


def is_stable_release(release: Dict[str, Any]) -> bool:
    return not release.get("draft") and not release.get("prerelease")


def find_payload_asset(
    release: Dict[str, Any], payload_file_name: str
) -> Optional[str]:
    """
    Return the download URL of the first asset named `payload_file_name` or ending in `.zip`.

    Names are compared case-insensitively.
    """
    assets = release.get("assets")
    if not isinstance(assets, list):
        return None

    wanted = payload_file_name.lower() if payload_file_name else None
    for asset in assets:
        if not isinstance(asset, dict):
            continue
        name = asset.get("name")
        if not isinstance(name, str):
            continue
        lowered = name.lower()
        if (wanted and lowered == wanted) or lowered.endswith(ZIP_EXTENSION):
            url = asset.get("browser_download_url")
            if isinstance(url, str) and url:
                return url
    return None


def _release_url(release: Dict[str, Any]) -> str:
    html_url = release.get("html_url")
    return html_url if isinstance(html_url, str) else ""


class VersionResolver:
    """Fills in version, download URL and release page URL for registry entries."""

    def __init__(
        self,
        source: ReleaseSource,
        per_page: int = GITHUB_MAX_PER_PAGE,
        max_pages: int = BATCH_RELEASE_MAX_PAGES,
        fallback_count: int = FALLBACK_RELEASE_COUNT,
    ):
        self.source = source
        self.per_page = per_page
        self.max_pages = max_pages
        self.fallback_count = fallback_count
        self.last_report = ResolutionReport()

    def batch_releases_url(self, registry: Registry) -> Optional[str]:
        """
        Pick the shared releases API URL: the registry's own field, else one derived from
        the first entry that has a repository URL.
        """
        if registry.releases_api_url:
            return registry.releases_api_url
        for mod in registry.mods:
            if mod.repository_url:
                derived = releases_api_url_from_repository(mod.repository_url)
                if derived:
                    logger.info(f"Derived releases API URL from repository: {derived}")
                return derived
        return None

    def resolve(self, registry: Registry) -> Registry:
        """
        Return a copy of `registry` with every resolvable entry populated.

        Never raises for transport or document problems; they are logged and the affected
        entries stay unresolved.
        """
        report = ResolutionReport()
        pending = [mod.id for mod in registry.mods if not mod.is_resolved]
        if not pending:
            self.last_report = report
            return registry

        matches = self._resolve_batch(registry, pending)
        report.batch = list(matches)

        resolved: List[PackageEntry] = []
        for mod in registry.mods:
            if mod.is_resolved:
                resolved.append(mod)
            elif mod.id in matches:
                resolved.append(mod.with_release(*matches[mod.id]))
            else:
                try:
                    entry = self.resolve_entry(mod)
                except ModkeeperError as e:
                    logger.warning(f"No release found for mod {mod.id}: {e}")
                    report.unresolved.append(mod.id)
                    resolved.append(mod)
                else:
                    report.fallback.append(mod.id)
                    resolved.append(entry)

        self.last_report = report
        total = len(registry.mods)
        logger.info(
            f"Version resolution complete: {total - len(report.unresolved)}/{total} mods resolved"
        )
        return registry.with_mods(resolved)

    def _resolve_batch(
        self, registry: Registry, pending: Iterable[str]
    ) -> Dict[str, ReleaseMatch]:
        releases_url = self.batch_releases_url(registry)
        if not releases_url:
            logger.warning(
                "No releases API URL configured and no repository URL found on any mod"
            )
            return {}

        entries = {mod.id: mod for mod in registry.mods}
        unresolved = set(pending)
        matches: Dict[str, ReleaseMatch] = {}

        logger.info(f"Resolving mod versions from releases API: {releases_url}")
        page = 1
        while unresolved and page <= self.max_pages:
            try:
                releases = self.source.fetch_releases(
                    releases_url, per_page=self.per_page, page=page
                )
            except ModkeeperError as e:
                logger.error(f"Failed to resolve mod versions from {releases_url}: {e}")
                break
            if not releases:
                break

            for release in releases:
                if not is_stable_release(release):
                    continue
                parsed = parse_release_tag(release.get("tag_name"))
                if parsed is None:
                    continue
                mod_id, version = parsed
                if mod_id not in unresolved:
                    continue
                download_url = find_payload_asset(
                    release, entries[mod_id].payload_file_name
                )
                if not download_url:
                    continue
                matches[mod_id] = (version, download_url, _release_url(release))
                unresolved.discard(mod_id)
                logger.info(f"Resolved {mod_id}: v{version}")

            if len(releases) < self.per_page:
                break
            page += 1

        return matches

    def resolve_entry(self, entry: PackageEntry) -> PackageEntry:
        """
        Resolve one entry against the releases of its own repository.

        The newest stable release whose tag starts with `<id>-v` decides the outcome:
        if it has no matching asset the entry is not resolved from an older release.

        Returns:
            PackageEntry: A copy with version, download URL and release URL set.

        Raises:
            AssetNotFoundError: No repository URL, no matching tag, or no matching asset.
            TransportError: If the release list cannot be fetched.
        """
        releases_url = releases_api_url_from_repository(entry.repository_url)
        if not releases_url:
            raise AssetNotFoundError(
                f"No repository URL configured for mod: {entry.display_name}",
                package_id=entry.id,
            )

        logger.info(
            f"Download URL not pre-resolved for {entry.display_name}, attempting individual lookup"
        )
        tag_prefix = f"{entry.id}{RELEASE_TAG_SEPARATOR}"
        releases = self.source.fetch_releases(
            releases_url, per_page=self.fallback_count, page=1
        )
        for release in releases:
            if not is_stable_release(release):
                continue
            tag = release.get("tag_name")
            if not isinstance(tag, str) or not tag.startswith(tag_prefix):
                continue

            version = tag[len(tag_prefix) :]
            download_url = find_payload_asset(release, entry.payload_file_name)
            if not version or not download_url:
                raise AssetNotFoundError(
                    f"Release found for {entry.display_name} (v{version}) but no matching "
                    f"asset ({entry.payload_file_name})",
                    package_id=entry.id,
                )
            logger.info(f"Individually resolved {entry.display_name}: v{version}")
            return entry.with_release(version, download_url, _release_url(release))

        raise AssetNotFoundError(
            f"No release found matching tag prefix '{tag_prefix}' for mod: {entry.display_name}",
            package_id=entry.id,
        )
