"""Domain model for sparse filesystem copies.

Type-safe objects describing the block layout of a filesystem, the copy plan
derived from it and the progress snapshots produced while executing it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from e2sparse.storage.exceptions import LayoutParseError


BlockRange = tuple[int, int]


# ==============================================================================
# Layout Domain
# ==============================================================================


@dataclass(frozen=True)
class BlockGroup:
    """A block group with its inclusive block interval and free ranges."""

    index: int
    start_block: int
    end_block: int
    free_ranges: tuple[BlockRange, ...] = ()

    @property
    def block_count(self) -> int:
        """Number of blocks in the group."""
        return self.end_block - self.start_block + 1

    @property
    def free_block_count(self) -> int:
        return sum(end - start + 1 for start, end in self.free_ranges)

    def sorted_free_ranges(self) -> list[BlockRange]:
        return sorted(self.free_ranges)

    def validate(self) -> None:
        """Validate group bounds and free ranges.

        Raises:
            LayoutParseError: If the interval is inverted, a free range falls
                outside the group, or two free ranges overlap
        """
        if self.end_block < self.start_block:
            raise LayoutParseError(
                f"group {self.index}: end block {self.end_block} "
                f"is before start block {self.start_block}"
            )
        previous_end = None
        for start, end in self.sorted_free_ranges():
            if end < start:
                raise LayoutParseError(
                    f"group {self.index}: free range {start}-{end} is inverted"
                )
            if start < self.start_block or end > self.end_block:
                raise LayoutParseError(
                    f"group {self.index}: free range {start}-{end} is outside "
                    f"blocks {self.start_block}-{self.end_block}"
                )
            if previous_end is not None and start <= previous_end:
                raise LayoutParseError(
                    f"group {self.index}: free range {start}-{end} overlaps "
                    f"a previous range"
                )
            previous_end = end


@dataclass(frozen=True)
class RangeModel:
    """Filesystem layout as consumed by the copy planner.

    ``first_block`` is the first block covered by group 0. It is 1 on
    filesystems with 1 KiB blocks, where block 0 holds the boot sector and
    belongs to no group.
    """

    block_size: int
    total_blocks: int
    free_blocks: int
    groups: tuple[BlockGroup, ...]
    first_block: int = 0
    fields: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def total_bytes(self) -> int:
        return self.total_blocks * self.block_size

    @property
    def used_blocks(self) -> int:
        return self.total_blocks - self.free_blocks

    def validate(self) -> None:
        """Validate counts and group coverage of ``[first_block, total_blocks-1]``.

        Raises:
            LayoutParseError: If any layout invariant does not hold
        """
        if self.block_size <= 0:
            raise LayoutParseError(f"invalid block size {self.block_size}")
        if self.total_blocks < 0 or self.free_blocks < 0:
            raise LayoutParseError("block counts must not be negative")
        if self.free_blocks > self.total_blocks:
            raise LayoutParseError(
                f"free blocks ({self.free_blocks}) exceed block count "
                f"({self.total_blocks})"
            )
        if not self.groups:
            if self.total_blocks:
                raise LayoutParseError("no block groups found")
            return

        expected_start = self.first_block
        previous_index = None
        for group in self.groups:
            if previous_index is not None and group.index <= previous_index:
                raise LayoutParseError(
                    f"group {group.index} is out of order after group {previous_index}"
                )
            if group.start_block != expected_start:
                raise LayoutParseError(
                    f"group {group.index} starts at block {group.start_block}, "
                    f"expected {expected_start}"
                )
            group.validate()
            expected_start = group.end_block + 1
            previous_index = group.index

        if expected_start != self.total_blocks:
            raise LayoutParseError(
                f"block groups end at block {expected_start - 1}, "
                f"filesystem has {self.total_blocks} blocks"
            )


# ==============================================================================
# Copy Plan Domain
# ==============================================================================


class OperationKind(Enum):
    """Source of the bytes written for an operation."""

    COPY = "copy"  # read from the live source
    ZERO = "zero"  # free blocks, written as zeros


@dataclass(frozen=True)
class CopyOperation:
    """One contiguous, inclusive block span of the copy plan."""

    kind: OperationKind
    from_block: int
    to_block: int

    @classmethod
    def copy(cls, from_block: int, to_block: int) -> CopyOperation:
        return cls(OperationKind.COPY, from_block, to_block)

    @classmethod
    def zero(cls, from_block: int, to_block: int) -> CopyOperation:
        return cls(OperationKind.ZERO, from_block, to_block)

    @property
    def block_count(self) -> int:
        return self.to_block - self.from_block + 1

    def byte_count(self, block_size: int) -> int:
        return self.block_count * block_size

    def __str__(self) -> str:
        return f"{self.kind.value} {self.from_block}-{self.to_block}"


# ==============================================================================
# Progress Domain
# ==============================================================================


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only view of the estimator state after a flush."""

    percent: float
    eta_seconds: float
    bytes_written: int
    total_bytes: int
    elapsed_seconds: float

    @property
    def is_complete(self) -> bool:
        return self.percent >= 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "percent": round(self.percent, 2),
            "eta_seconds": round(self.eta_seconds, 2),
            "bytes_written": self.bytes_written,
            "total_bytes": self.total_bytes,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
        }
