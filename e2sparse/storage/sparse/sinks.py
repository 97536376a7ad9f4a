"""Output sink selection for sparse copies.

The destination name decides the sink:
    "-"          standard output, uncompressed
    "*.gz"       gzip stream
    "*.zst"      zstd stream
    anything     raw file, created exclusively
"""

from __future__ import annotations

import gzip
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

import zstandard

from e2sparse.storage.exceptions import OutputConflictError, StreamIOError

STDOUT_NAME = "-"

# zlib default level; the ETA constants were measured with it
DEFAULT_GZIP_LEVEL = 6
DEFAULT_ZSTD_LEVEL = 3

COMPRESSION_LEVELS = {
    "gzip": (0, 9),
    "zstd": (1, 22),
}


def is_gzip_path(path: str) -> bool:
    return Path(path).suffix == ".gz"


def is_zstd_path(path: str) -> bool:
    return Path(path).suffix == ".zst"


def get_compression_type(path: str) -> Optional[str]:
    """Detect the compression implied by a destination name.

    Returns:
        "zstd" for .zst names
        "gzip" for .gz names
        None if uncompressed (including stdout)
    """
    if path == STDOUT_NAME:
        return None
    if is_zstd_path(path):
        return "zstd"
    if is_gzip_path(path):
        return "gzip"
    return None


def _open_file(path: str) -> BinaryIO:
    try:
        return open(path, "xb")
    except FileExistsError as error:
        raise OutputConflictError(path) from error
    except OSError as error:
        raise StreamIOError(f"cannot open output file {path} for writing: {error}") from error


@contextmanager
def open_output(path: str, compression_level: Optional[int] = None) -> Iterator[BinaryIO]:
    """Open the sink for ``path`` and close it (flushing any compressor) on exit.

    Standard output is flushed but left open.
    """
    if path == STDOUT_NAME:
        stream = sys.stdout.buffer
        try:
            yield stream
        finally:
            stream.flush()
        return

    compression = get_compression_type(path)
    raw = _open_file(path)
    sink = raw
    try:
        if compression == "gzip":
            level = DEFAULT_GZIP_LEVEL if compression_level is None else compression_level
            sink = gzip.GzipFile(fileobj=raw, mode="wb", compresslevel=level)
        elif compression == "zstd":
            level = DEFAULT_ZSTD_LEVEL if compression_level is None else compression_level
            sink = zstandard.ZstdCompressor(level=level).stream_writer(raw)
        yield sink
    finally:
        try:
            sink.close()
            if sink is not raw:
                raw.close()
        except OSError as error:
            raise StreamIOError(f"cannot close output {path}: {error}") from error
