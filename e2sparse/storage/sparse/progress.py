"""Progress estimation and rendering for sparse copies.

The initial ETA is derived from the used/free split of the filesystem using
empirical seconds-per-MiB figures measured for gzip output: zero runs compress
and flush far faster than real data. Uncompressed output uses the same
figures, which makes the initial estimate optimistic there.

After every flush the estimate blends that a-priori figure with the ETA
implied by the elapsed time, weighting the empirical value by the completed
percentage.
"""

from __future__ import annotations

import math
import sys
import time
from dataclasses import dataclass
from typing import Callable, Optional, TextIO

from e2sparse.domain import ProgressSnapshot, RangeModel
from e2sparse.logging import EventLogger, LoggerFactory, ThrottledLogger
from e2sparse.storage.exceptions import PublishError

MIB = 1024 * 1024

# seconds per MiB, measured with gzip output
DATA_SECONDS_PER_MB = 0.09
ZERO_SECONDS_PER_MB = 0.02

BAR_WIDTH = 40


def initial_eta(model: RangeModel) -> float:
    """A-priori ETA in seconds from the used and free block counts."""
    used_mb = model.used_blocks * model.block_size // MIB
    free_mb = model.free_blocks * model.block_size // MIB
    return used_mb * DATA_SECONDS_PER_MB + free_mb * ZERO_SECONDS_PER_MB


@dataclass
class ProgressState:
    total_bytes: int
    start_time: float
    initial_eta_seconds: float
    bytes_written: int = 0
    current_eta_seconds: float = 0.0

    def __post_init__(self) -> None:
        self.current_eta_seconds = self.initial_eta_seconds


class EtaEstimator:
    """Owns the run's ProgressState and turns byte counts into snapshots."""

    def __init__(self, model: RangeModel, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.state = ProgressState(
            total_bytes=model.total_bytes,
            start_time=clock(),
            initial_eta_seconds=initial_eta(model),
        )

    def start(self) -> ProgressSnapshot:
        """Snapshot before any bytes are written (0% and the initial ETA)."""
        return self._snapshot(0.0, self.state.initial_eta_seconds)

    def record(self, count: int) -> ProgressSnapshot:
        """Account for ``count`` flushed bytes and return the updated snapshot."""
        if count < 0:
            raise ValueError(f"byte count must not be negative, got {count}")
        state = self.state
        state.bytes_written += count
        percent = self.percent()
        if percent <= 0:
            state.current_eta_seconds = state.initial_eta_seconds
            return self._snapshot(percent, state.current_eta_seconds)

        elapsed = self.elapsed()
        instantaneous = elapsed / percent * 100 - elapsed
        state.current_eta_seconds = (
            percent * instantaneous + (100 - percent) * state.initial_eta_seconds
        ) / 100
        return self._snapshot(percent, state.current_eta_seconds)

    def percent(self) -> float:
        state = self.state
        if state.total_bytes <= 0:
            return 100.0
        return min(100.0, 100.0 * state.bytes_written / state.total_bytes)

    def elapsed(self) -> float:
        return max(0.0, self.clock() - self.state.start_time)

    def _snapshot(self, percent: float, eta: float) -> ProgressSnapshot:
        return ProgressSnapshot(
            percent=percent,
            eta_seconds=eta,
            bytes_written=self.state.bytes_written,
            total_bytes=self.state.total_bytes,
            elapsed_seconds=self.elapsed(),
        )


def format_clock(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS.s``."""
    seconds = max(0.0, seconds)
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int((seconds % 60) * 10) / 10.0
    return f"{hours:02d}:{minutes:02d}:{secs:04.1f}"


def render_progress_bar(percent: float, eta_seconds: float, verbose: bool = False) -> str:
    """Render the one-line progress bar.

    Non-verbose output ends with a carriage return so the next update
    overwrites it; verbose output ends with a newline.
    """
    bars = min(BAR_WIDTH, max(0, math.ceil(BAR_WIDTH * percent / 100)))
    separator = "\n" if verbose else "\r"
    return (
        f"ETA {format_clock(eta_seconds)} {int(percent):3d}% "
        f"[{'#' * bars}{' ' * (BAR_WIDTH - bars)}] {separator}"
    )


def format_publish_message(percent: float, eta_seconds: float) -> str:
    """Format the ``<pct>%;<eta>`` status string sent to the remote channel."""
    return f"{percent:.2f}%;{eta_seconds:.2f}"


class ProgressSink:
    """Fan snapshots out to the local bar and the optional remote channel.

    ``publisher`` is anything with ``send(message)``; its failures are logged
    and never propagate into the copy.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        publisher=None,
        verbose: bool = False,
    ):
        self.stream = stream if stream is not None else sys.stderr
        self.publisher = publisher
        self.verbose = verbose
        self.log = LoggerFactory.for_copy()
        self.progress_log = ThrottledLogger(self.log, 10.0)

    def update(self, snapshot: ProgressSnapshot) -> None:
        self.stream.write(
            render_progress_bar(snapshot.percent, snapshot.eta_seconds, self.verbose)
        )
        self.stream.flush()
        if snapshot.percent > 0 and not snapshot.is_complete:
            self.progress_log.debug(
                "progress",
                f"{snapshot.percent:.1f}% written, ETA {format_clock(snapshot.eta_seconds)}",
            )
        self._publish(snapshot)

    def _publish(self, snapshot: ProgressSnapshot) -> None:
        if self.publisher is None:
            return
        message = format_publish_message(snapshot.percent, snapshot.eta_seconds)
        try:
            self.publisher.send(message)
        except PublishError as error:
            self.log.warning(f"Progress publish failed: {error}")

    def finish(self, snapshot: ProgressSnapshot) -> None:
        """Terminate the bar line and log the final figures."""
        if not self.verbose:
            self.stream.write("\n")
            self.stream.flush()
        EventLogger.log_copy_progress(self.log, snapshot.to_dict())
