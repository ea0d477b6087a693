"""
GitHub Release Source

Fetches raw release-list pages from the GitHub REST API.
"""

from typing import Any, Dict, List, Optional

from modkeeper.exceptions import DocumentError
from modkeeper.log_utils import logger
from modkeeper.utils import make_github_api_request

from .interfaces import ReleaseSource


class GithubReleaseSource(ReleaseSource):
    """
    Release source backed by `GET /repos/{owner}/{repo}/releases`.

    Usage:
        source = GithubReleaseSource(github_token=None)
        releases = source.fetch_releases(
            "https://api.github.com/repos/owner/repo/releases", per_page=100, page=1
        )
    """

    def __init__(
        self,
        github_token: Optional[str] = None,
        allow_env_token: bool = True,
        timeout: Optional[float] = None,
    ):
        """
        Parameters:
            github_token (Optional[str]): Token used for authenticated requests.
            allow_env_token (bool): Fall back to the GITHUB_TOKEN environment variable.
            timeout (Optional[float]): Per-request timeout in seconds.
        """
        self.github_token = github_token
        self.allow_env_token = allow_env_token
        self.timeout = timeout

    def fetch_releases(
        self, releases_url: str, per_page: int, page: int = 1
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of releases.

        Returns:
            List[Dict[str, Any]]: Release objects in API order; non-object items are dropped.

        Raises:
            TransportError: If the request fails.
            DocumentError: If the body is not a JSON array.
        """
        response = make_github_api_request(
            releases_url,
            self.github_token,
            allow_env_token=self.allow_env_token,
            params={"per_page": per_page, "page": page},
            timeout=self.timeout,
        )
        try:
            data = response.json()
        except ValueError as e:
            raise DocumentError(
                f"Release list from {releases_url} is not valid JSON", details=str(e)
            ) from e

        if not isinstance(data, list):
            raise DocumentError(
                f"Release list from {releases_url} is not a JSON array",
                details=f"got {type(data).__name__}",
            )

        releases = []
        for item in data:
            if not isinstance(item, dict):
                logger.warning(
                    "Skipping malformed release entry from %s: expected dict, got %s",
                    releases_url,
                    type(item).__name__,
                )
                continue
            releases.append(item)
        logger.debug(
            "Fetched %d releases from %s (page %d)", len(releases), releases_url, page
        )
        return releases
