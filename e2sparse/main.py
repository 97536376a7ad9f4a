"""Command line entry point.

usage:
    e2sparse block_device_or_image_file output_file [stomp_channel_name]

If output_file ends in .gz or .zst the output is compressed; if it is "-" the
output is sent to stdout. If a channel name is given, progress is published
there using the server and credentials from /etc/e2sparse.yml.
"""

import argparse
import sys
from pathlib import Path

from e2sparse.__version__ import __version__
from e2sparse.config import settings
from e2sparse.logging import LoggerFactory, setup_logging
from e2sparse.storage.exceptions import FATAL_ERRORS
from e2sparse.storage.sparse import SparseCopyJob, sparse_copy
from e2sparse.storage.sparse.sinks import (
    COMPRESSION_LEVELS,
    DEFAULT_GZIP_LEVEL,
    DEFAULT_ZSTD_LEVEL,
    get_compression_type,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="e2sparse",
        description=(
            "Copy an ext2/ext3/ext4 filesystem, reading only used blocks and "
            "writing zeros for free ones."
        ),
    )
    parser.add_argument("source", nargs="?", help="Block device or filesystem image")
    parser.add_argument(
        "destination",
        nargs="?",
        help="Output file (.gz/.zst to compress, - for stdout)",
    )
    parser.add_argument("channel", nargs="?", help="STOMP channel for progress updates")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Log every transferred chunk")
    parser.add_argument(
        "--buffer-mb",
        type=int,
        default=None,
        help=f"Copy buffer size in MiB (default {settings.DEFAULT_BUFFER_SIZE_MB})",
    )
    parser.add_argument(
        "--compression-level",
        type=int,
        default=None,
        help=(
            f"gzip (0-9, default {DEFAULT_GZIP_LEVEL}) or zstd "
            f"(1-22, default {DEFAULT_ZSTD_LEVEL}) compression level"
        ),
    )
    parser.add_argument("--log-dir", type=Path, default=None, help="Directory for log files")
    parser.add_argument(
        "--no-log-files", action="store_true", help="Only log to stderr"
    )
    parser.add_argument(
        "--write-sample-config",
        action="store_true",
        help=f"Write a sample config to {settings.CONFIG_PATH} and exit",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.write_sample_config:
        if settings.write_sample_config():
            print(f"Sample config written to {settings.CONFIG_PATH}")
            return 0
        print(
            f"Config {settings.CONFIG_PATH} exists or cannot be written; "
            "it is only needed for STOMP progress publishing.",
            file=sys.stderr,
        )
        return 1

    if not args.source or not args.destination:
        parser.print_usage(sys.stderr)
        return 2

    buffer_mb = args.buffer_mb
    if buffer_mb is None:
        buffer_mb = settings.get_buffer_size_mb()
    if buffer_mb <= 0:
        parser.error("--buffer-mb must be positive")

    if args.compression_level is not None:
        compression = get_compression_type(args.destination)
        if compression is None:
            parser.error("--compression-level needs a .gz or .zst destination")
        low, high = COMPRESSION_LEVELS[compression]
        if not low <= args.compression_level <= high:
            parser.error(
                f"--compression-level for {compression} must be between {low} and {high}"
            )

    setup_logging(
        debug=args.debug,
        trace=args.trace,
        log_dir=args.log_dir,
        file_logging=not args.no_log_files,
    )
    log = LoggerFactory.for_system()
    log.debug(f"e2sparse {__version__} starting")

    job = SparseCopyJob(
        source=args.source,
        destination=args.destination,
        channel=args.channel,
        buffer_size=buffer_mb * 1024 * 1024,
        verbose=args.debug or args.trace,
        compression_level=args.compression_level,
    )
    try:
        result = sparse_copy(job)
    except FATAL_ERRORS as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1
    log.info(
        f"Wrote {result.bytes_written} bytes "
        f"({result.copied_bytes} copied, {result.zeroed_bytes} zero-filled)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
