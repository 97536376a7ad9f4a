"""Sparse, block-aware copies of ext2/ext3/ext4 filesystems."""

from .__version__ import __version__

__all__ = ["__version__"]
