# src/modkeeper/utils.py
import importlib.metadata
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from modkeeper.constants import (
    APP_NAME,
    AUTH_STATUS_CODES,
    GITHUB_API_BASE,
    GITHUB_API_VERSION,
    GITHUB_JSON_ACCEPT,
    GITHUB_TOKEN_ENV_VAR,
    GITHUB_WEB_BASE,
    MSG_AUTH,
    MSG_ENVIRONMENT,
    MSG_PACKAGE,
    MSG_RATE_LIMITED,
    MSG_TRANSIENT,
    RELEASES_API_TIMEOUT,
    TRANSIENT_STATUS_CODES,
)
from modkeeper.exceptions import (
    ErrorCategory,
    HTTPStatusError,
    ModkeeperError,
    NetworkError,
    RateLimitError,
    TransportError,
)
from modkeeper.log_utils import logger

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE: Optional[str] = None

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `modkeeper/{version}`, where `{version}` is the installed package version
        or `unknown` if the version cannot be determined.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version(APP_NAME)
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"

        _USER_AGENT_CACHE = f"{APP_NAME}/{app_version}"

    return _USER_AGENT_CACHE


def get_effective_github_token(
    github_token: Optional[str], allow_env_token: bool = True
) -> Optional[str]:
    """
    Pick the GitHub token to authenticate with.

    An explicit token wins; otherwise the GITHUB_TOKEN environment variable is used when
    `allow_env_token` is true. Blank tokens are treated as absent.
    """
    token = (github_token or "").strip()
    if token:
        return token
    if allow_env_token:
        env_token = os.environ.get(GITHUB_TOKEN_ENV_VAR, "").strip()
        if env_token:
            return env_token
    return None


def _parse_rate_limit_header(header_value: Any) -> Optional[int]:
    try:
        return int(header_value)
    except (TypeError, ValueError):
        return None


def classify_request_exception(
    exc: requests.RequestException, url: Optional[str] = None
) -> TransportError:
    """
    Convert a `requests` exception into a categorized TransportError.

    This is the only place transport failures are classified: the category comes from the
    exception type and, for HTTP errors, the response status code and rate-limit headers.

    Parameters:
        exc (requests.RequestException): The exception raised by requests.
        url (Optional[str]): The URL that was being requested.

    Returns:
        TransportError: A NetworkError, RateLimitError or HTTPStatusError.
    """
    if isinstance(exc, requests.Timeout):
        return NetworkError(
            f"Request to {url} timed out",
            url=url,
            category=ErrorCategory.TRANSIENT,
            is_timeout=True,
            details=str(exc),
        )

    if isinstance(
        exc,
        (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
        ),
    ):
        return NetworkError(
            f"Invalid URL: {url}",
            url=url,
            category=ErrorCategory.PACKAGE,
            details=str(exc),
        )

    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        response = exc.response
        status = response.status_code
        headers = getattr(response, "headers", None) or {}
        remaining = _parse_rate_limit_header(headers.get("X-RateLimit-Remaining"))
        reset_time = _parse_rate_limit_header(headers.get("X-RateLimit-Reset"))

        if status == 429 or (status == 403 and remaining == 0):
            return RateLimitError(url=url, status_code=status, reset_time=reset_time)
        if status in TRANSIENT_STATUS_CODES:
            category = ErrorCategory.TRANSIENT
        elif status in AUTH_STATUS_CODES:
            category = ErrorCategory.ENVIRONMENT
        else:
            category = ErrorCategory.PACKAGE
        return HTTPStatusError(
            f"HTTP {status} from {url}",
            url=url,
            status_code=status,
            category=category,
            details=str(exc),
        )

    return NetworkError(
        f"Network error contacting {url}",
        url=url,
        category=ErrorCategory.TRANSIENT,
        details=str(exc),
    )


def make_github_api_request(
    url: str,
    github_token: Optional[str] = None,
    allow_env_token: bool = True,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
    accept: str = GITHUB_JSON_ACCEPT,
    _is_retry: bool = False,
) -> requests.Response:
    """
    Perform a GitHub API GET request with optional token authentication.

    If token-based authentication is rejected with 401 the request is retried once without
    authentication. Any failure is raised as a categorized TransportError.

    Parameters:
        url (str): GitHub API URL to request.
        github_token (Optional[str]): Explicit GitHub token to prefer for Authorization.
        allow_env_token (bool): Allow falling back to the GITHUB_TOKEN environment variable.
        params (Optional[Dict[str, Any]]): Query parameters to include in the request.
        timeout (Optional[float]): Request timeout in seconds.
        accept (str): Accept header; use the raw media type to fetch file contents.

    Returns:
        requests.Response: The successful HTTP response.

    Raises:
        TransportError: For HTTP error statuses and lower-level network failures.
    """
    headers = {
        "Accept": accept,
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": get_user_agent(),
    }

    effective_token = get_effective_github_token(github_token, allow_env_token)
    if effective_token:
        headers["Authorization"] = f"token {effective_token}"
        logger.debug("Using GitHub token for API authentication")

    actual_timeout = timeout or RELEASES_API_TIMEOUT
    logger.debug(f"Making GitHub API request: {url} params={params}")
    try:
        response = requests.get(
            url, timeout=actual_timeout, headers=headers, params=params
        )
        response.raise_for_status()
    except requests.HTTPError as e:
        if (
            not _is_retry
            and effective_token
            and e.response is not None
            and e.response.status_code == 401
        ):
            logger.warning(
                f"GitHub token authentication failed for {url}. Retrying without authentication."
            )
            return make_github_api_request(
                url,
                github_token=None,
                allow_env_token=False,
                params=params,
                timeout=timeout,
                accept=accept,
                _is_retry=True,
            )
        raise classify_request_exception(e, url) from e
    except requests.RequestException as e:
        raise classify_request_exception(e, url) from e

    remaining = _parse_rate_limit_header(
        (getattr(response, "headers", None) or {}).get("X-RateLimit-Remaining")
    )
    if remaining is not None:
        logger.debug(f"GitHub API rate-limit remaining: {remaining}")
        if remaining <= 10:
            logger.warning(
                f"GitHub API rate limit running low: {remaining} requests remaining"
            )
    return response


def releases_api_url_from_repository(repository_url: Optional[str]) -> Optional[str]:
    """
    Derive the GitHub releases API URL from a repository web URL.

    `https://github.com/owner/repo` becomes `https://api.github.com/repos/owner/repo/releases`.
    Trailing slashes and a `.git` suffix are ignored.

    Returns:
        Optional[str]: The releases API URL, or None if the URL is not a GitHub repository URL.
    """
    if not repository_url:
        return None
    url = repository_url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    if not url.startswith(GITHUB_WEB_BASE):
        return None
    path = url[len(GITHUB_WEB_BASE) :]
    if path.count("/") < 1 or not all(path.split("/")[:2]):
        return None
    owner, repo = path.split("/")[:2]
    return f"{GITHUB_API_BASE}{owner}/{repo}/releases"


def format_file_size(num_bytes: float) -> str:
    """Format a byte count as B/KB/MB/GB with up to two decimals."""
    size = float(max(num_bytes, 0))
    order = 0
    while size >= 1024 and order < len(_SIZE_UNITS) - 1:
        order += 1
        size /= 1024
    text = f"{size:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[order]}"


def format_eta(seconds: float) -> str:
    """Format a duration as mm:ss."""
    total = int(max(seconds, 0))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


def format_reset_time(reset_time: Optional[int]) -> str:
    if not reset_time:
        return "unknown"
    return datetime.fromtimestamp(reset_time, timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S UTC"
    )


def describe_failure(error: ModkeeperError, subject: str = "GitHub") -> str:
    """
    Build the user-facing message for a failure from its category.

    Transient failures tell the user to try again, environment failures carry an actionable
    hint, and package failures say the package has no usable download.
    """
    if isinstance(error, RateLimitError):
        return MSG_RATE_LIMITED
    if error.category is ErrorCategory.TRANSIENT:
        return MSG_TRANSIENT.format(subject=subject)
    if error.category is ErrorCategory.ENVIRONMENT:
        status = getattr(error, "status_code", None)
        if status in AUTH_STATUS_CODES:
            return MSG_AUTH.format(status=status)
        return MSG_ENVIRONMENT.format(detail=error.message)
    if isinstance(error, TransportError) or not error.message:
        return MSG_PACKAGE
    return f"{MSG_PACKAGE} {error.message}"
