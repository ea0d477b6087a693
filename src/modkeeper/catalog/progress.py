"""
Progress reporting for package downloads and installs.

Progress flows through a typed channel: a callable accepting DownloadProgress events.
Events are delivered on whatever thread runs the operation; ProgressChannel hands them
to another thread (for example a UI loop) through a queue.
"""

import queue
import time
from typing import Callable, Iterator, Optional

from modkeeper.constants import (
    DOWNLOAD_PHASE_END,
    INSTALL_PHASE_END,
    PREPARE_PHASE_END,
    PROGRESS_SAMPLE_INTERVAL,
)

from .models import DownloadProgress, OperationState

ProgressCallback = Callable[[DownloadProgress], None]

_CLOSED = object()


class ProgressChannel:
    """
    Thread-safe hand-off of progress events from an operation to a consumer.

    Pass the channel itself as the progress callback, then iterate it from the consuming
    thread; iteration ends once `close()` is called and the queue is drained.

        channel = ProgressChannel()
        worker = Thread(target=lambda: (engine.download_and_install(entry, channel), channel.close()))
        worker.start()
        for event in channel:
            render(event)
    """

    def __init__(self, maxsize: int = 0):
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize)

    def __call__(self, event: DownloadProgress) -> None:
        self._queue.put(event)

    def close(self) -> None:
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[DownloadProgress]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]

    def drain(self) -> list:
        """Return every event queued so far without blocking."""
        events = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return events
            if item is not _CLOSED:
                events.append(item)


class StreamProgressTracker:
    """
    Turns a stream of byte counts into sampled DownloadProgress events.

    `percent_complete` here is the share of bytes transferred (0-100). Throughput is
    instantaneous: bytes since the previous sample over time since the previous sample.
    Samples are taken at most once per `sample_interval` seconds.
    """

    def __init__(
        self,
        total_bytes: int = -1,
        clock: Callable[[], float] = time.monotonic,
        sample_interval: float = PROGRESS_SAMPLE_INTERVAL,
    ):
        self.total_bytes = total_bytes if total_bytes and total_bytes > 0 else -1
        self.clock = clock
        self.sample_interval = sample_interval
        self.bytes_downloaded = 0
        self.bytes_per_second = 0.0
        self._last_sample_time = clock()
        self._last_sample_bytes = 0
        self._last_percent = 0

    def _percent(self) -> int:
        if self.total_bytes <= 0:
            return self._last_percent
        percent = min(100, self.bytes_downloaded * 100 // self.total_bytes)
        self._last_percent = max(self._last_percent, percent)
        return self._last_percent

    def _eta(self) -> float:
        if self.total_bytes <= 0 or self.bytes_per_second <= 0:
            return 0.0
        remaining = max(self.total_bytes - self.bytes_downloaded, 0)
        return remaining / self.bytes_per_second

    def _event(self, status: str) -> DownloadProgress:
        return DownloadProgress(
            percent_complete=self._percent(),
            bytes_downloaded=self.bytes_downloaded,
            total_bytes=self.total_bytes,
            bytes_per_second=self.bytes_per_second,
            estimated_time_remaining=self._eta(),
            status=status,
            state=OperationState.DOWNLOADING,
        )

    def update(self, chunk_length: int) -> Optional[DownloadProgress]:
        """Record `chunk_length` more bytes; return an event if a sample is due."""
        self.bytes_downloaded += chunk_length
        now = self.clock()
        elapsed = now - self._last_sample_time
        if elapsed < self.sample_interval:
            return None

        transferred = self.bytes_downloaded - self._last_sample_bytes
        self.bytes_per_second = transferred / elapsed if elapsed > 0 else 0.0
        self._last_sample_time = now
        self._last_sample_bytes = self.bytes_downloaded
        return self._event("Downloading...")

    def finish(self) -> DownloadProgress:
        """The closing event of a successful transfer: always exactly 100%."""
        self._last_percent = 100
        if self.total_bytes <= 0:
            self.total_bytes = self.bytes_downloaded
        return DownloadProgress(
            percent_complete=100,
            bytes_downloaded=self.bytes_downloaded,
            total_bytes=self.total_bytes,
            bytes_per_second=self.bytes_per_second,
            estimated_time_remaining=0.0,
            status="Download complete",
            state=OperationState.DOWNLOADING,
        )


class OperationProgress:
    """
    Maps each phase of an install onto one overall percentage and forwards it.

    0-10% covers preparation (resolving, connecting), 10-80% is linear in bytes
    transferred, and 80-100% covers installation. Reported percentages never go down.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.percent = 0
        self.state = OperationState.IDLE

    def report(
        self,
        percent: int,
        status: str,
        state: OperationState,
        source: Optional[DownloadProgress] = None,
    ) -> None:
        self.percent = max(self.percent, min(int(percent), INSTALL_PHASE_END))
        self.state = state
        if self.callback is None:
            return
        if source is None:
            event = DownloadProgress(
                percent_complete=self.percent, status=status, state=state
            )
        else:
            event = DownloadProgress(
                percent_complete=self.percent,
                bytes_downloaded=source.bytes_downloaded,
                total_bytes=source.total_bytes,
                bytes_per_second=source.bytes_per_second,
                estimated_time_remaining=source.estimated_time_remaining,
                status=status,
                state=state,
            )
        self.callback(event)

    def preparing(self, percent: int, status: str, state: OperationState) -> None:
        self.report(min(percent, PREPARE_PHASE_END), status, state)

    def download_callback(self) -> ProgressCallback:
        """A callback for the downloader that rescales its 0-100% into 10-80%."""
        span = DOWNLOAD_PHASE_END - PREPARE_PHASE_END

        def _on_download(event: DownloadProgress) -> None:
            overall = PREPARE_PHASE_END + event.percent_complete * span // 100
            self.report(overall, event.status, OperationState.DOWNLOADING, event)

        return _on_download

    def installing(self, fraction: float, status: str = "Installing...") -> None:
        span = INSTALL_PHASE_END - DOWNLOAD_PHASE_END
        fraction = min(max(fraction, 0.0), 1.0)
        self.report(
            DOWNLOAD_PHASE_END + int(span * fraction), status, OperationState.INSTALLING
        )

    def complete(self, status: str = "Complete!") -> None:
        self.report(INSTALL_PHASE_END, status, OperationState.COMPLETE)

    def failed(self, status: str) -> None:
        self.report(self.percent, status, OperationState.FAILED)
