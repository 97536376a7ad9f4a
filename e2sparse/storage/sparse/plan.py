"""Copy plan generation from a filesystem layout."""

from __future__ import annotations

from typing import Iterator

from e2sparse.domain import BlockGroup, CopyOperation, RangeModel


def plan_group(group: BlockGroup) -> list[CopyOperation]:
    """Split a group into copy and zero-fill spans, left to right.

    Used spans are copied, free ranges are zero-filled. Adjacent free ranges
    are not coalesced.
    """
    free_ranges = group.sorted_free_ranges()
    if not free_ranges:
        return [CopyOperation.copy(group.start_block, group.end_block)]

    operations = []
    cursor = group.start_block
    for range_start, range_end in free_ranges:
        if cursor <= range_start - 1:
            operations.append(CopyOperation.copy(cursor, range_start - 1))
        operations.append(CopyOperation.zero(range_start, range_end))
        cursor = range_end + 1
    if cursor <= group.end_block:
        operations.append(CopyOperation.copy(cursor, group.end_block))
    return operations


def plan_operations(model: RangeModel) -> Iterator[CopyOperation]:
    """Yield the operations for the whole filesystem in output order.

    Blocks preceding the first group (the boot block of 1 KiB-block
    filesystems) are copied first so the output keeps the source's size.
    """
    if model.groups and model.first_block > 0:
        yield CopyOperation.copy(0, model.first_block - 1)
    for group in sorted(model.groups, key=lambda g: g.index):
        yield from plan_group(group)


def plan_totals(operations: list[CopyOperation], block_size: int) -> dict[str, int]:
    """Sum copied and zero-filled bytes of a plan."""
    totals = {"copy": 0, "zero": 0}
    for operation in operations:
        totals[operation.kind.value] += operation.byte_count(block_size)
    return totals
