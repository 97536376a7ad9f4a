"""Sparse copy of ext2/ext3/ext4 filesystems.

Free blocks are written as zeros instead of being read from the source, so
the output compresses far better than a raw device copy while keeping the
same logical size.

Main Functions:
    - sparse_copy(): Run the whole pipeline for a SparseCopyJob
    - parse_layout(): Parse dumpe2fs output into a RangeModel
    - read_filesystem_layout(): Run dumpe2fs and parse its output
    - plan_operations(): Turn a RangeModel into copy/zero operations

Building Blocks:
    - SparseCopier: Bounded-buffer execution of operations
    - EtaEstimator: Progress percentage and blended ETA
    - ProgressSink: Progress bar and remote status publishing
    - open_output(): Raw, gzip, zstd or stdout output sink
"""

from .command_runners import read_filesystem_layout, run_checked_command
from .copier import DEFAULT_BUFFER_SIZE, SparseCopier
from .layout import LayoutParser, parse_free_ranges, parse_layout
from .operations import CopyResult, SparseCopyJob, sparse_copy
from .plan import plan_group, plan_operations, plan_totals
from .progress import (
    EtaEstimator,
    ProgressSink,
    format_clock,
    format_publish_message,
    initial_eta,
    render_progress_bar,
)
from .sinks import get_compression_type, open_output

__all__ = [
    # Main operations
    "sparse_copy",
    "SparseCopyJob",
    "CopyResult",
    # Layout
    "LayoutParser",
    "parse_layout",
    "parse_free_ranges",
    "read_filesystem_layout",
    "run_checked_command",
    # Plan
    "plan_group",
    "plan_operations",
    "plan_totals",
    # Copy
    "DEFAULT_BUFFER_SIZE",
    "SparseCopier",
    # Progress
    "EtaEstimator",
    "ProgressSink",
    "format_clock",
    "format_publish_message",
    "initial_eta",
    "render_progress_bar",
    # Output
    "get_compression_type",
    "open_output",
]
