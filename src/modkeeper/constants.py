"""
Constants and configuration values for Modkeeper.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# Application identity
APP_NAME = "modkeeper"

# GitHub API URLs
GITHUB_WEB_BASE = "https://github.com/"
GITHUB_API_BASE = "https://api.github.com/repos/"
DEFAULT_REGISTRY_URL = (
    f"{GITHUB_API_BASE}Xarkanoth/HoldfastModdingLauncher/contents/mod-registry.json"
)
GITHUB_API_VERSION = "2022-11-28"
GITHUB_JSON_ACCEPT = "application/vnd.github+json"
GITHUB_RAW_ACCEPT = "application/vnd.github.v3.raw"

# Network timeouts and delays (in seconds)
REGISTRY_FETCH_TIMEOUT = 30
RELEASES_API_TIMEOUT = 20
DOWNLOAD_CONNECT_TIMEOUT = 30
REGISTRY_FETCH_ATTEMPTS = 3
REGISTRY_RETRY_DELAY = 1.0

# Registry cache
REGISTRY_CACHE_TTL_SECONDS = 300

# Release pagination
GITHUB_MAX_PER_PAGE = 100
BATCH_RELEASE_MAX_PAGES = 3
FALLBACK_RELEASE_COUNT = 50

# Tag format: "<packageId>-v<version>"
RELEASE_TAG_SEPARATOR = "-v"

# Download settings
DEFAULT_CHUNK_SIZE = 8192
PROGRESS_SAMPLE_INTERVAL = 0.1

# Overall operation percentage weights
PREPARE_PHASE_END = 10
DOWNLOAD_PHASE_END = 80
INSTALL_PHASE_END = 100

# HTTP status codes treated as temporary outages
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
AUTH_STATUS_CODES = frozenset({401, 403})

# File extensions and names
ZIP_EXTENSION = ".zip"
SIDECAR_EXTENSION = ".json"
TEMP_FILE_SUFFIX = ".tmp"
LEDGER_FILE_NAME = "installed-versions.json"
MODS_DIR_NAME = "Mods"
TEMP_DOWNLOAD_PREFIX = "modkeeper-dl-"
TEMP_EXTRACT_PREFIX = "modkeeper-extract-"

# Configuration
CONFIG_FILE_NAME = "modkeeper.yaml"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"

# Logging configuration
LOGGER_NAME = "modkeeper"
LOG_FILE_NAME = "modkeeper.log"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Environment variable names
LOG_LEVEL_ENV_VAR = "MODKEEPER_LOG_LEVEL"

# User-facing failure messages, one per error category
MSG_TRANSIENT = "{subject} is temporarily unavailable. Please try again in a few minutes."
MSG_RATE_LIMITED = "Too many requests to GitHub (rate limited). Please wait a minute and try again."
MSG_ENVIRONMENT = "{detail}. Close the running game and try again."
MSG_AUTH = "Access denied by GitHub ({status}). Check the configured GitHub token."
MSG_PACKAGE = "Could not find a download for this package."
MSG_ARCHIVE_MISSING_PAYLOAD = "Could not find {payload} in the downloaded archive."

# Connection establishment only; payload transfers are never retried
DOWNLOAD_CONNECT_RETRIES = 2
DOWNLOAD_BACKOFF_FACTOR = 0.5
DOWNLOAD_MAX_REDIRECTS = 5
