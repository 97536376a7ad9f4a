"""Bounded-buffer execution of copy plans."""

from __future__ import annotations

import time
from typing import BinaryIO, Callable, Iterable, Optional

from e2sparse.domain import CopyOperation, OperationKind
from e2sparse.logging import LoggerFactory, ThrottledLogger
from e2sparse.storage.exceptions import StreamIOError

DEFAULT_BUFFER_SIZE = 16 * 1024 * 1024

FlushCallback = Callable[[int], None]


class SparseCopier:
    """Execute copy operations through a single bounded buffer.

    ``COPY`` spans are read from ``source`` in chunks of at most
    ``buffer_size`` bytes, ``ZERO`` spans are written from one reusable zero
    buffer of the same bound. ``on_flush`` receives the size of every chunk
    after it has been written to ``sink``.
    """

    def __init__(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        block_size: int,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        on_flush: Optional[FlushCallback] = None,
        job_id: Optional[str] = None,
    ):
        if block_size <= 0:
            raise ValueError(f"block_size must be positive, got {block_size}")
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self.source = source
        self.sink = sink
        self.block_size = block_size
        self.buffer_size = buffer_size
        self.on_flush = on_flush
        self.bytes_written = 0
        self._zero_buffer: Optional[memoryview] = None
        self.log = LoggerFactory.for_copy(job_id)
        self.chunk_log = ThrottledLogger(LoggerFactory.for_chunks(job_id), 1.0)

    def _zeros(self, count: int) -> memoryview:
        if self._zero_buffer is None:
            self._zero_buffer = memoryview(bytes(self.buffer_size))
        return self._zero_buffer[:count]

    def execute(self, operation: CopyOperation) -> int:
        """Write one operation to the sink and return the number of bytes written.

        Raises:
            StreamIOError: On a short read or any read, seek or write failure
        """
        total = operation.byte_count(self.block_size)
        self.log.debug(
            f"{operation.kind.value} from block {operation.from_block} to "
            f"{operation.to_block} number of bytes {total}"
        )
        if operation.kind is OperationKind.COPY:
            offset = operation.from_block * self.block_size
            try:
                self.source.seek(offset)
            except OSError as error:
                raise StreamIOError(f"cannot seek source: {error}", offset) from error
        else:
            offset = None

        remaining = total
        while remaining > 0:
            count = min(self.buffer_size, remaining)
            started = time.monotonic()
            if offset is None:
                chunk = self._zeros(count)
            else:
                chunk = self._read(offset, count)
                offset += count
            self._write(chunk)
            elapsed = time.monotonic() - started
            remaining -= count
            self.bytes_written += count
            self.chunk_log.trace(
                operation.kind.value,
                f"{count} bytes {operation.kind.value} in {elapsed:.3f} sec"
                + (f", {count / elapsed:.0f} bytes/s" if elapsed > 0 else ""),
            )
            if self.on_flush is not None:
                self.on_flush(count)
        return total

    def _read(self, offset: int, count: int) -> bytes:
        try:
            data = self.source.read(count)
        except OSError as error:
            raise StreamIOError(f"read failed: {error}", offset) from error
        if data is None or len(data) != count:
            got = 0 if data is None else len(data)
            raise StreamIOError(f"short read: expected {count} bytes, got {got}", offset)
        return data

    def _write(self, chunk) -> None:
        try:
            self.sink.write(chunk)
        except OSError as error:
            raise StreamIOError(
                f"write failed: {error}", self.bytes_written
            ) from error

    def run_plan(self, operations: Iterable[CopyOperation]) -> int:
        """Execute operations in order, returning the total bytes written."""
        written = 0
        for operation in operations:
            written += self.execute(operation)
        return written
