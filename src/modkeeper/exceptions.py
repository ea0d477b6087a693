"""
Custom exceptions for the Modkeeper application.

Every exception carries an ErrorCategory so callers can tell a temporary outage
from a broken local environment or a broken package, without inspecting message text.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """How a failure should be communicated to the user."""

    TRANSIENT = "transient"
    """Temporary outage; retrying later may succeed."""

    ENVIRONMENT = "environment"
    """Permanent until the user fixes something locally (locked file, bad token, permissions)."""

    PACKAGE = "package"
    """This package's metadata or release asset is broken or missing."""

    @property
    def is_retryable(self) -> bool:
        return self is ErrorCategory.TRANSIENT


class ModkeeperError(Exception):
    """
    Base exception for all Modkeeper errors.

    Attributes:
        message: The primary error message.
        details: Optional additional context about the error.
        category: How the failure should be surfaced to the user.
    """

    default_category = ErrorCategory.PACKAGE

    def __init__(
        self,
        message: str,
        details: str | None = None,
        category: ErrorCategory | None = None,
    ) -> None:
        self.message = message
        self.details = details
        self.category = category or self.default_category
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ModkeeperError):
    """Exception raised when the configuration file is unreadable or invalid."""

    default_category = ErrorCategory.ENVIRONMENT


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(ModkeeperError):
    """
    Base exception for failures talking to a remote host.

    Built once at the transport boundary (see `utils.classify_request_exception`)
    from the underlying exception type and HTTP status code.

    Attributes:
        url: The URL that was being requested.
        status_code: HTTP status code, if a response was received.
        is_timeout: Whether the request timed out.
    """

    default_category = ErrorCategory.TRANSIENT

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        category: ErrorCategory | None = None,
        is_timeout: bool = False,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details, category)
        self.url = url
        self.status_code = status_code
        self.is_timeout = is_timeout


class NetworkError(TransportError):
    """Connection failures, DNS errors and timeouts."""


class HTTPStatusError(TransportError):
    """The server answered with an error status code."""


class RateLimitError(HTTPStatusError):
    """
    GitHub API rate limit exceeded.

    Attributes:
        reset_time: When the rate limit resets (Unix timestamp), if known.
    """

    def __init__(
        self,
        message: str = "GitHub API rate limit exceeded",
        url: str | None = None,
        status_code: int | None = 429,
        reset_time: int | None = None,
    ) -> None:
        super().__init__(
            message,
            url=url,
            status_code=status_code,
            category=ErrorCategory.TRANSIENT,
            details=f"Resets at: {reset_time}" if reset_time else None,
        )
        self.reset_time = reset_time


# =============================================================================
# Catalog Errors
# =============================================================================


class DocumentError(ModkeeperError):
    """A registry or release-list document has an unexpected shape."""


class AssetNotFoundError(ModkeeperError):
    """
    No release tag or release asset matches a package.

    Attributes:
        package_id: The package that could not be resolved.
    """

    def __init__(self, message: str, package_id: str | None = None) -> None:
        super().__init__(message, category=ErrorCategory.PACKAGE)
        self.package_id = package_id


# =============================================================================
# Install Errors
# =============================================================================


class InstallError(ModkeeperError):
    """
    A file in the packages directory could not be written or removed.

    Attributes:
        path: The file path that caused the error.
    """

    default_category = ErrorCategory.ENVIRONMENT

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


class ArchiveError(ModkeeperError):
    """
    A downloaded archive is corrupted or lacks the expected payload.

    Attributes:
        archive_path: Path to the problematic archive.
    """

    def __init__(
        self,
        message: str,
        archive_path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details, ErrorCategory.PACKAGE)
        self.archive_path = archive_path
