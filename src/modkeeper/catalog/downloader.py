"""
Streaming payload downloader.

Downloads a package payload to a temporary file while reporting progress. The
temporary file only exists inside the `download()` context: it is removed on every
exit path, whether the caller's install succeeds, fails or raises.
"""

import os
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from modkeeper.constants import (
    DEFAULT_CHUNK_SIZE,
    DOWNLOAD_BACKOFF_FACTOR,
    DOWNLOAD_CONNECT_RETRIES,
    DOWNLOAD_CONNECT_TIMEOUT,
    DOWNLOAD_MAX_REDIRECTS,
    PROGRESS_SAMPLE_INTERVAL,
    TEMP_DOWNLOAD_PREFIX,
    ZIP_EXTENSION,
)
from modkeeper.exceptions import InstallError
from modkeeper.log_utils import logger
from modkeeper.utils import (
    classify_request_exception,
    format_file_size,
    get_user_agent,
)

from .progress import ProgressCallback, StreamProgressTracker


def is_archive_url(url: str) -> bool:
    """A `.zip` URL path is an archive; anything else is the payload itself."""
    return urlparse(url).path.lower().endswith(ZIP_EXTENSION)


@dataclass(frozen=True)
class DownloadedPayload:
    """A payload sitting in a temporary file for the duration of a download() context."""

    path: str
    url: str
    bytes_downloaded: int
    total_bytes: int
    is_archive: bool


class PayloadDownloader:
    """
    Streams payloads over HTTP in fixed-size chunks.

    Only connection establishment is retried. A transfer that fails once bytes are
    flowing raises, and the caller decides whether to start over.
    """

    def __init__(
        self,
        session_factory: Callable[[], requests.Session] = requests.Session,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        clock: Callable[[], float] = time.monotonic,
        sample_interval: float = PROGRESS_SAMPLE_INTERVAL,
        connect_timeout: float = DOWNLOAD_CONNECT_TIMEOUT,
    ):
        self.session_factory = session_factory
        self.chunk_size = chunk_size
        self.clock = clock
        self.sample_interval = sample_interval
        self.connect_timeout = connect_timeout

    @contextmanager
    def download(
        self, url: str, on_progress: Optional[ProgressCallback] = None
    ) -> Iterator[DownloadedPayload]:
        """
        Download `url` to a temporary file and yield it.

        Emits sampled progress events while streaming and one final 100% event once the
        whole body has been written.

        Raises:
            TransportError: On HTTP error statuses or network failures.
            InstallError: If the temporary file cannot be written.
        """
        archive = is_archive_url(url)
        suffix = ZIP_EXTENSION if archive else os.path.splitext(urlparse(url).path)[1]
        temp_fd, temp_path = tempfile.mkstemp(prefix=TEMP_DOWNLOAD_PREFIX, suffix=suffix)
        os.close(temp_fd)

        session = None
        response = None
        try:
            session = self._make_session()
            logger.debug(f"Downloading {url} to temp path {temp_path}")
            start_time = self.clock()
            try:
                response = session.get(
                    url,
                    stream=True,
                    timeout=(self.connect_timeout, None),
                    headers={"User-Agent": get_user_agent()},
                )
                logger.debug(
                    f"Received HTTP response status code: {response.status_code} for URL: {url}"
                )
                response.raise_for_status()
                total_bytes = self._content_length(response)
                tracker = StreamProgressTracker(
                    total_bytes, clock=self.clock, sample_interval=self.sample_interval
                )
                self._stream_to_file(response, temp_path, tracker, on_progress)
            except requests.RequestException as e:
                raise classify_request_exception(e, url) from e

            final = tracker.finish()
            if on_progress is not None:
                on_progress(final)

            elapsed = self.clock() - start_time
            logger.info(
                f"Downloaded {os.path.basename(urlparse(url).path) or url} "
                f"({format_file_size(tracker.bytes_downloaded)}) in {elapsed:.2f}s"
            )
            yield DownloadedPayload(
                path=temp_path,
                url=url,
                bytes_downloaded=tracker.bytes_downloaded,
                total_bytes=tracker.total_bytes,
                is_archive=archive,
            )
        finally:
            if response is not None:
                response.close()
            if session is not None:
                session.close()
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as e:
                    logger.warning(f"Error removing temporary file {temp_path}: {e}")

    def _make_session(self) -> requests.Session:
        """
        Build a session that retries connection establishment only.

        Read and status errors are not retried: once bytes start flowing a failure ends
        the download.
        """
        session = self.session_factory()
        retry_strategy = Retry(
            total=None,
            connect=DOWNLOAD_CONNECT_RETRIES,
            read=0,
            status=0,
            other=0,
            redirect=DOWNLOAD_MAX_REDIRECTS,
            backoff_factor=DOWNLOAD_BACKOFF_FACTOR,
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    @staticmethod
    def _content_length(response: requests.Response) -> int:
        raw = response.headers.get("Content-Length")
        try:
            length = int(raw) if raw is not None else -1
        except (TypeError, ValueError):
            length = -1
        return length if length > 0 else -1

    def _stream_to_file(
        self,
        response: requests.Response,
        temp_path: str,
        tracker: StreamProgressTracker,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        try:
            with open(temp_path, "wb") as file:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    file.write(chunk)
                    event = tracker.update(len(chunk))
                    if event is not None and on_progress is not None:
                        on_progress(event)
        except requests.RequestException:
            # A subclass of OSError; classified by the caller as a transport failure
            raise
        except OSError as e:
            raise InstallError(
                "Could not write the downloaded file", path=temp_path, details=str(e)
            ) from e
