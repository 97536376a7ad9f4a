"""Tests for copy plan generation."""

import pytest

from e2sparse.domain import BlockGroup, CopyOperation, OperationKind
from e2sparse.storage.sparse.plan import plan_group, plan_operations, plan_totals


def copy(start, end):
    return CopyOperation.copy(start, end)


def zero(start, end):
    return CopyOperation.zero(start, end)


def covered_blocks(operations):
    blocks = []
    for operation in operations:
        blocks.extend(range(operation.from_block, operation.to_block + 1))
    return blocks


class TestPlanGroup:
    """Tests for single-group planning."""

    def test_fully_used_group(self):
        group = BlockGroup(0, 0, 99)
        assert plan_group(group) == [copy(0, 99)]

    def test_free_range_in_the_middle(self):
        group = BlockGroup(0, 0, 99, ((10, 19),))
        assert plan_group(group) == [copy(0, 9), zero(10, 19), copy(20, 99)]

    def test_leading_free_range(self):
        group = BlockGroup(0, 0, 99, ((0, 9),))
        assert plan_group(group) == [zero(0, 9), copy(10, 99)]

    def test_trailing_free_range(self):
        group = BlockGroup(0, 0, 99, ((90, 99),))
        assert plan_group(group) == [copy(0, 89), zero(90, 99)]

    def test_fully_free_group(self):
        group = BlockGroup(3, 96, 127, ((96, 127),))
        assert plan_group(group) == [zero(96, 127)]

    def test_adjacent_free_ranges_are_not_coalesced(self):
        group = BlockGroup(0, 0, 99, ((10, 19), (20, 29)))
        assert plan_group(group) == [copy(0, 9), zero(10, 19), zero(20, 29), copy(30, 99)]

    def test_single_block_ranges(self):
        group = BlockGroup(0, 0, 9, ((0, 0), (5, 5), (9, 9)))
        assert plan_group(group) == [
            zero(0, 0),
            copy(1, 4),
            zero(5, 5),
            copy(6, 8),
            zero(9, 9),
        ]

    def test_unsorted_free_ranges_are_sorted(self):
        group = BlockGroup(0, 0, 99, ((50, 59), (10, 19)))
        assert plan_group(group) == [
            copy(0, 9),
            zero(10, 19),
            copy(20, 49),
            zero(50, 59),
            copy(60, 99),
        ]

    def test_group_not_starting_at_zero(self):
        group = BlockGroup(1, 32, 63, ((32, 40), (50, 63)))
        assert plan_group(group) == [zero(32, 40), copy(41, 49), zero(50, 63)]

    @pytest.mark.parametrize(
        "free_ranges",
        [
            (),
            ((0, 99),),
            ((0, 0),),
            ((99, 99),),
            ((3, 7), (8, 8), (20, 40), (98, 99)),
            ((1, 1), (3, 3), (5, 5), (7, 7)),
        ],
    )
    def test_operations_partition_the_group(self, free_ranges):
        group = BlockGroup(0, 0, 99, free_ranges)
        operations = plan_group(group)

        assert covered_blocks(operations) == list(range(0, 100))
        zeroed = [b for op in operations if op.kind is OperationKind.ZERO
                  for b in range(op.from_block, op.to_block + 1)]
        assert zeroed == covered_blocks(
            [zero(start, end) for start, end in sorted(free_ranges)]
        )


class TestPlanOperations:
    """Tests for whole-filesystem planning."""

    def test_single_group_model(self, single_group_model):
        model = single_group_model([(10, 19)])
        assert list(plan_operations(model)) == [copy(0, 9), zero(10, 19), copy(20, 99)]

    def test_boot_block_is_copied_first(self, sample_model):
        assert list(plan_operations(sample_model)) == [
            copy(0, 0),
            copy(1, 9),
            zero(10, 19),
            copy(20, 24),
            zero(25, 25),
            copy(26, 31),
            zero(32, 40),
            copy(41, 49),
            zero(50, 63),
        ]

    def test_plan_covers_every_block_once(self, sample_model):
        operations = list(plan_operations(sample_model))
        assert covered_blocks(operations) == list(range(sample_model.total_blocks))

    def test_groups_in_ascending_index_order(self):
        from e2sparse.domain import RangeModel

        model = RangeModel(
            block_size=1024,
            total_blocks=20,
            free_blocks=0,
            groups=(BlockGroup(1, 10, 19), BlockGroup(0, 0, 9)),
        )
        assert list(plan_operations(model)) == [copy(0, 9), copy(10, 19)]


class TestPlanTotals:
    """Tests for plan byte totals."""

    def test_totals(self, sample_model):
        operations = list(plan_operations(sample_model))
        totals = plan_totals(operations, sample_model.block_size)

        assert totals["zero"] == 34 * 1024
        assert totals["copy"] == 30 * 1024
        assert totals["copy"] + totals["zero"] == sample_model.total_bytes
