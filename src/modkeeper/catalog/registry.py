"""
Registry retrieval and the fetch pipeline.

`RegistryFetcher` downloads the raw registry document, retrying transient failures.
`build_registry` turns a raw document into a fully populated Registry by running the
parse, resolve and annotate stages in order; each stage returns new records.
"""

import time
from typing import Callable, Iterable, Optional

from modkeeper.constants import (
    GITHUB_RAW_ACCEPT,
    REGISTRY_FETCH_ATTEMPTS,
    REGISTRY_FETCH_TIMEOUT,
    REGISTRY_RETRY_DELAY,
)
from modkeeper.exceptions import TransportError
from modkeeper.log_utils import logger
from modkeeper.utils import make_github_api_request

from .inventory import annotate_installed
from .models import InstalledPackage, Registry
from .parser import parse_registry_text
from .resolver import VersionResolver


class RegistryFetcher:
    """
    Fetches the registry document from a URL.

    Up to `attempts` requests are made, `retry_delay` seconds apart. Only transient
    failures are retried; a 404 or an auth error fails on the first attempt.
    """

    def __init__(
        self,
        registry_url: str,
        github_token: Optional[str] = None,
        allow_env_token: bool = True,
        attempts: int = REGISTRY_FETCH_ATTEMPTS,
        retry_delay: float = REGISTRY_RETRY_DELAY,
        timeout: float = REGISTRY_FETCH_TIMEOUT,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.registry_url = registry_url
        self.github_token = github_token
        self.allow_env_token = allow_env_token
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.sleep = sleep or time.sleep
        self.last_attempts = 0

    def fetch_text(self) -> str:
        """
        Return the registry document body.

        Raises:
            TransportError: The error from the last attempt once attempts are exhausted,
                or the first non-transient error.
        """
        last_error: Optional[TransportError] = None
        self.last_attempts = 0
        for attempt in range(1, self.attempts + 1):
            self.last_attempts = attempt
            try:
                logger.info(
                    f"Fetching mod registry from {self.registry_url} "
                    f"(attempt {attempt}/{self.attempts})"
                )
                response = make_github_api_request(
                    self.registry_url,
                    self.github_token,
                    allow_env_token=self.allow_env_token,
                    timeout=self.timeout,
                    accept=GITHUB_RAW_ACCEPT,
                )
                return response.text
            except TransportError as e:
                last_error = e
                kind = "timed out" if e.is_timeout else "failed"
                logger.warning(
                    f"Registry fetch attempt {attempt}/{self.attempts} {kind}: {e}"
                )
                if not e.category.is_retryable:
                    break
                if attempt < self.attempts:
                    self.sleep(self.retry_delay)

        assert last_error is not None
        logger.error(
            f"Failed to fetch registry after {self.last_attempts} attempt(s): {last_error}"
        )
        raise last_error


def build_registry(
    document_text: str,
    resolver: VersionResolver,
    installed: Iterable[InstalledPackage],
    source_url: str = "",
) -> Registry:
    """Parse, resolve versions and annotate installed status, in that order."""
    parsed = parse_registry_text(document_text, source_url)
    resolved = resolver.resolve(parsed)
    return annotate_installed(resolved, installed)
