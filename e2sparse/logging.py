from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

DEFAULT_LOG_DIR = Path(
    os.environ.get(
        "E2SPARSE_LOG_DIR",
        Path.home() / ".local" / "state" / "e2sparse" / "logs",
    )
)

# Note: TRACE level already exists in loguru at level 5 (below DEBUG which is 10)


def _should_log_chunk(record) -> bool:
    """Filter per-chunk transfer logs - only show in TRACE mode."""
    tags = record["extra"].get("tags", [])

    if record["level"].no >= logger.level("WARNING").no:
        return True

    if "chunk" in tags:
        return record["level"].no <= logger.level("TRACE").no

    return True


def _should_log_publish(record) -> bool:
    """Filter routine publish logs to reduce noise."""
    message = record["message"].lower()
    tags = record["extra"].get("tags", [])

    # Always log errors
    if record["level"].no >= logger.level("WARNING").no:
        return True

    if "publish" in tags and "published" in message:
        return record["level"].no <= logger.level("DEBUG").no

    return True


def _combined_filter(record) -> bool:
    """Combined filter for all log suppression rules."""
    return _should_log_chunk(record) and _should_log_publish(record)


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
    file_logging: bool = True,
) -> Logger:
    """
    Setup multi-tier logging with separate sinks for different log levels.

    Logging Tiers:
    - CRITICAL/ERROR: Unrecoverable failures (parse, I/O, overwrite refusal)
    - SUCCESS/INFO: Copy start/finish, configuration problems
    - DEBUG: Per-operation plan execution, command execution
    - TRACE: Per-chunk transfer throughput

    Log Files:
    - operations.log: INFO+ events (7 day retention)
    - debug.log: DEBUG+ events when --debug is enabled (3 day retention)
    - trace.log: TRACE+ events when --trace is enabled (1 day retention)
    - structured.jsonl: Structured JSON logs for analysis (7 day retention)

    Args:
        debug: Enable DEBUG level logging
        trace: Enable TRACE level logging (very verbose)
        log_dir: Custom log directory (defaults to ~/.local/state/e2sparse/logs)
        file_logging: Add the rotating file sinks in addition to stderr
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    # SINK 1: Console (stderr) - User-facing, filtered
    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        filter=_combined_filter,
        colorize=True,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[source]: <10}</cyan> | "
            "{message}"
        ),
    )

    if not file_logging:
        return logger

    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    # SINK 2: Operations Log - Important events only (INFO+)
    logger.add(
        log_dir / "operations.log",
        level="INFO",
        rotation="5 MB",
        retention="7 days",
        compression="zip",
        backtrace=False,
        diagnose=False,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <10} | "
            "{extra[job_id]: <15} | "
            "{message}"
        ),
    )

    # SINK 3: Debug Log - Detailed diagnostics (DEBUG+ when debug=True)
    if debug or trace:
        logger.add(
            log_dir / "debug.log",
            level="DEBUG",
            rotation="10 MB",
            retention="3 days",
            compression="zip",
            backtrace=True,
            diagnose=True,
            filter=_should_log_chunk,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <10} | "
                "{extra[job_id]: <15} | "
                "{extra[tags]} | "
                "{message}"
            ),
        )

    # SINK 4: Trace Log - Ultra-verbose (TRACE only, when trace=True)
    if trace:
        logger.add(
            log_dir / "trace.log",
            level="TRACE",
            rotation="50 MB",
            retention="1 day",
            compression="zip",
            backtrace=False,
            diagnose=False,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{extra[source]: <10} | "
                "{extra[job_id]: <15} | "
                "{message}"
            ),
        )

    # SINK 5: Structured JSON Log - For analysis tools (INFO+)
    logger.add(
        log_dir / "structured.jsonl",
        level="INFO",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        serialize=True,
        format="{message}",
    )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["copy", "chunk"])
        source: Source component (e.g., "copy", "layout", "publish")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking long-running operations with automatic timing.

    Automatically logs operation start, completion, and failure with duration tracking.

    Args:
        operation: Operation name (e.g., "copy")
        **details: Operation-specific details to log

    Yields:
        Logger bound with job_id and operation context

    Example:
        with operation_context("copy", source="/dev/sda1", destination="sda1.gz") as log:
            log.debug("Reading layout")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.info(f"{operation.capitalize()} started", **details)

        try:
            yield log
            duration = time.time() - start_time
            log.success(
                f"{operation.capitalize()} completed", duration_seconds=round(duration, 2)
            )
        except Exception as e:
            duration = time.time() - start_time
            log.error(
                f"{operation.capitalize()} failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.
    """

    @staticmethod
    def for_copy(job_id: str | None = None, **details) -> Logger:
        """Logger for the streaming copier."""
        if job_id is None:
            job_id = f"copy-{uuid.uuid4().hex[:8]}"
        return logger.bind(job_id=job_id, source="copy", tags=["copy"], **details)

    @staticmethod
    def for_chunks(job_id: str | None = None) -> Logger:
        """Logger for per-chunk transfer details (TRACE only on console)."""
        return get_logger(job_id=job_id, tags=["copy", "chunk"], source="copy")

    @staticmethod
    def for_layout() -> Logger:
        """Logger for filesystem layout parsing."""
        return get_logger(tags=["layout"], source="layout")

    @staticmethod
    def for_publish(channel: str | None = None) -> Logger:
        """Logger for remote progress publishing."""
        return logger.bind(source="publish", tags=["publish"], channel=channel or "-")

    @staticmethod
    def for_system() -> Logger:
        """Logger for system operations (startup, config)."""
        return get_logger(tags=["system"], source="system")


class ThrottledLogger:
    """
    Logger wrapper that throttles high-frequency log events.

    Useful for progress updates or other high-volume logs that should
    only be emitted at intervals.
    """

    def __init__(self, log: Logger, interval_seconds: float = 5.0):
        self.log = log
        self.interval = interval_seconds
        self.last_log_time: dict[str, float] = {}

    def trace(self, key: str, message: str, **kwargs) -> None:
        """Log at TRACE level, throttled by key."""
        self._throttled_log("TRACE", key, message, **kwargs)

    def debug(self, key: str, message: str, **kwargs) -> None:
        """Log at DEBUG level, throttled by key."""
        self._throttled_log("DEBUG", key, message, **kwargs)

    def _throttled_log(self, level: str, key: str, message: str, **kwargs) -> None:
        """
        Log message, but only if interval has passed since last log for this key.
        """
        now = time.time()
        last_time = self.last_log_time.get(key)

        if last_time is None or now - last_time >= self.interval:
            log_method = getattr(self.log, level.lower())
            log_method(message, **kwargs)
            self.last_log_time[key] = now


class EventLogger:
    """
    Structured event logger using standardized schemas.
    """

    @staticmethod
    def log_copy_started(
        log: Logger, source: str, destination: str, compression: str | None, **extra
    ) -> None:
        """Log sparse copy start."""
        log.info(
            "Sparse copy started",
            event_type="copy_started",
            source_path=source,
            destination_path=destination,
            compression=compression or "none",
            **extra,
        )

    @staticmethod
    def log_copy_progress(log: Logger, progress: dict[str, object], **extra) -> None:
        """Log copy progress update from a snapshot dictionary."""
        log.debug(
            "Copy progress update",
            event_type="copy_progress",
            **progress,
            **extra,
        )

    @staticmethod
    def log_operation_metric(
        log: Logger, operation: str, metric_name: str, value: float, unit: str = "", **extra
    ) -> None:
        """Log operation performance metric."""
        log.debug(
            f"{operation} metric: {metric_name}",
            event_type="operation_metric",
            operation=operation,
            metric=metric_name,
            value=round(value, 2),
            unit=unit,
            **extra,
        )
