"""Domain models for sparse filesystem copies."""

from __future__ import annotations

from .models import (
    BlockGroup,
    BlockRange,
    CopyOperation,
    OperationKind,
    ProgressSnapshot,
    RangeModel,
)


__all__ = [
    "BlockGroup",
    "BlockRange",
    "CopyOperation",
    "OperationKind",
    "ProgressSnapshot",
    "RangeModel",
]
