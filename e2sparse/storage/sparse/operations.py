"""Sparse copy orchestration.

Runs the pipeline for one source/destination pair:
pre-flight checks, layout, plan, bounded-buffer copy, progress.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, TextIO

from e2sparse.domain import RangeModel
from e2sparse.logging import EventLogger, operation_context
from e2sparse.services.publish import ChannelPublisher, create_publisher
from e2sparse.storage import validation
from e2sparse.storage.exceptions import InputAccessError

from .command_runners import read_filesystem_layout
from .copier import DEFAULT_BUFFER_SIZE, SparseCopier
from .plan import plan_operations, plan_totals
from .progress import EtaEstimator, ProgressSink, format_clock
from .sinks import get_compression_type, open_output

MIB = 1024 * 1024


@dataclass(frozen=True)
class SparseCopyJob:
    """A sparse copy request."""

    source: str
    destination: str
    channel: Optional[str] = None
    buffer_size: int = DEFAULT_BUFFER_SIZE
    verbose: bool = False
    compression_level: Optional[int] = None


@dataclass(frozen=True)
class CopyResult:
    bytes_written: int
    copied_bytes: int
    zeroed_bytes: int
    operations: int
    elapsed_seconds: float


def sparse_copy(
    job: SparseCopyJob,
    layout: Optional[RangeModel] = None,
    publisher: Optional[ChannelPublisher] = None,
    progress_stream: Optional[TextIO] = None,
    clock: Callable[[], float] = time.monotonic,
) -> CopyResult:
    """Copy the used blocks of ``job.source`` and zero-fill the free ones.

    Args:
        job: Source, destination and tuning for the run
        layout: Pre-parsed layout; read with dumpe2fs when omitted
        publisher: Remote progress channel; built from ``job.channel`` when omitted
        progress_stream: Where the progress bar is drawn (stderr by default)
        clock: Monotonic time source for the ETA estimator

    Raises:
        InputAccessError, OutputConflictError, LayoutParseError, StreamIOError:
            Fatal conditions; partial output is left in place
    """
    compression = get_compression_type(job.destination)
    with operation_context(
        "copy", source_path=job.source, destination_path=job.destination
    ) as log:
        validation.validate_copy_operation(job.source, job.destination)

        model = layout if layout is not None else read_filesystem_layout(job.source)
        operations = list(plan_operations(model))
        totals = plan_totals(operations, model.block_size)
        EventLogger.log_copy_started(
            log,
            job.source,
            job.destination,
            compression,
            total_bytes=model.total_bytes,
            copy_bytes=totals["copy"],
            zero_bytes=totals["zero"],
            operations=len(operations),
        )

        if publisher is None:
            publisher = create_publisher(job.channel)
        estimator = EtaEstimator(model, clock=clock)
        progress = ProgressSink(progress_stream, publisher, verbose=job.verbose)
        snapshot = estimator.start()
        log.info(f"Initial ETA {format_clock(snapshot.eta_seconds)}")
        progress.update(snapshot)

        def on_flush(count: int) -> None:
            nonlocal snapshot
            snapshot = estimator.record(count)
            progress.update(snapshot)

        try:
            try:
                source = open(job.source, "rb")
            except OSError as error:
                raise InputAccessError(job.source, str(error)) from error
            with source, open_output(job.destination, job.compression_level) as sink:
                copier = SparseCopier(
                    source,
                    sink,
                    model.block_size,
                    buffer_size=job.buffer_size,
                    on_flush=on_flush,
                )
                written = copier.run_plan(operations)
        finally:
            publisher.close()

        progress.finish(snapshot)
        elapsed = estimator.elapsed()
        if elapsed > 0:
            EventLogger.log_operation_metric(
                log, "copy", "throughput", written / elapsed / MIB, "MiB/s"
            )
        return CopyResult(
            bytes_written=written,
            copied_bytes=totals["copy"],
            zeroed_bytes=totals["zero"],
            operations=len(operations),
            elapsed_seconds=elapsed,
        )
