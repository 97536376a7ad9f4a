"""
Pytest configuration and shared fixtures for e2sparse tests.

This module provides common fixtures and utilities used across all test modules.
"""

from pathlib import Path
from typing import List

import pytest

from e2sparse.domain import BlockGroup, RangeModel


BLOCK_SIZE = 1024
TOTAL_BLOCKS = 64


# ==============================================================================
# Layout Fixtures
# ==============================================================================


SAMPLE_DUMPE2FS = """\
dumpe2fs 1.47.0 (5-Feb-2023)
Filesystem volume name:   <none>
Last mounted on:          <not available>
Filesystem UUID:          0b5d6f7e-3c1a-4c52-9a57-4f2f8e1d2c3b
Filesystem magic number:  0xEF53
Filesystem revision #:    1 (dynamic)
Filesystem features:      ext_attr resize_inode dir_index filetype sparse_super
Filesystem state:         clean
Inode count:              32
Block count:              64
Reserved block count:     3
Free blocks:              34
Free inodes:              21
First block:              1
Block size:               1024
Fragment size:            1024
Blocks per group:         32
Inodes per group:         16
Filesystem created:       Mon Oct 19 10:00:00 2026

Journal features:         (none)
Total journal size:       0
Journal sequence:         0x00000001

Group 0: (Blocks 1-31) csum 0x4f3a [ITABLE_ZEROED]
  Primary superblock at 1, Group descriptors at 2-2
  Block bitmap at 3 (+2)
  Inode bitmap at 4 (+3)
  Inode table at 5-8 (+4)
  11 free blocks, 5 free inodes, 2 directories
  Free blocks: 10-19, 25
  Free inodes: 12-16
Group 1: (Blocks 32-63) csum 0x91c2 [INODE_UNINIT]
  Block bitmap at 41 (+9)
  Inode bitmap at 42 (+10)
  Inode table at 43-46 (+11)
  23 free blocks, 16 free inodes, 0 directories
  Free blocks: 32-40, 50-63
  Free inodes: 17-32
"""


@pytest.fixture
def dumpe2fs_lines() -> List[str]:
    """Fixture providing a small dumpe2fs listing split into lines."""
    return SAMPLE_DUMPE2FS.splitlines()


@pytest.fixture
def sample_model() -> RangeModel:
    """
    Fixture providing the RangeModel described by SAMPLE_DUMPE2FS.

    Block 0 is the boot block that precedes group 0 on 1 KiB filesystems.
    """
    return RangeModel(
        block_size=BLOCK_SIZE,
        total_blocks=TOTAL_BLOCKS,
        free_blocks=34,
        first_block=1,
        groups=(
            BlockGroup(0, 1, 31, ((10, 19), (25, 25))),
            BlockGroup(1, 32, 63, ((32, 40), (50, 63))),
        ),
    )


@pytest.fixture
def single_group_model():
    """Factory for a one-group, 100-block filesystem with given free ranges."""

    def _build(free_ranges=(), block_size=1024, total_blocks=100):
        free = tuple(free_ranges)
        return RangeModel(
            block_size=block_size,
            total_blocks=total_blocks,
            free_blocks=sum(end - start + 1 for start, end in free),
            groups=(BlockGroup(0, 0, total_blocks - 1, free),),
        )

    return _build


# ==============================================================================
# File System Fixtures
# ==============================================================================


def block_pattern(block: int, block_size: int = BLOCK_SIZE) -> bytes:
    """Non-zero content that identifies a block."""
    return bytes([block % 251 + 1]) * block_size


def expected_sparse_output(model: RangeModel) -> bytes:
    """Image content with every free block replaced by zeros."""
    free = set()
    for group in model.groups:
        for start, end in group.free_ranges:
            free.update(range(start, end + 1))
    return b"".join(
        bytes(model.block_size) if block in free else block_pattern(block, model.block_size)
        for block in range(model.total_blocks)
    )


@pytest.fixture
def image_file(tmp_path) -> Path:
    """
    Fixture providing a 64-block filesystem image with per-block content.

    Returns:
        Path to the image file.
    """
    path = tmp_path / "fs.img"
    path.write_bytes(b"".join(block_pattern(block) for block in range(TOTAL_BLOCKS)))
    return path


@pytest.fixture
def temp_config_file(tmp_path, monkeypatch) -> Path:
    """
    Fixture providing a temporary config file path wired into settings.

    Returns:
        Path to the (not yet created) YAML config file.
    """
    config_path = tmp_path / "etc" / "e2sparse.yml"
    monkeypatch.setattr("e2sparse.config.settings.CONFIG_PATH", config_path)
    return config_path


# ==============================================================================
# Publisher Fixtures
# ==============================================================================


class RecordingPublisher:
    """Channel publisher double that records messages."""

    def __init__(self, fail: bool = False):
        self.messages: List[str] = []
        self.closed = False
        self.fail = fail

    def send(self, message: str) -> None:
        from e2sparse.storage.exceptions import PublishError

        if self.fail:
            raise PublishError("broker went away", "progress")
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def recording_publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def mock_subprocess_run(mocker):
    """
    Fixture providing a mock for subprocess.run.

    Returns:
        Mock object for subprocess.run
    """
    return mocker.patch("subprocess.run")
