"""Custom exceptions for sparse copy operations.

This module defines a hierarchy of exceptions for the sparse copy pipeline to
provide more specific error handling and better error messages.

Exception Hierarchy:
    SparseCopyError (base)
        ├── ConfigError          (non-fatal, disables remote publishing)
        ├── InputAccessError     (fatal, before any output is produced)
        ├── OutputConflictError  (fatal, before any output is produced)
        ├── LayoutParseError     (fatal)
        ├── StreamIOError        (fatal, partial output is left in place)
        └── PublishError         (recovered, logged only)

Usage:
    from e2sparse.storage.exceptions import OutputConflictError

    if os.path.exists(destination):
        raise OutputConflictError(destination)
"""

from typing import Optional


class SparseCopyError(Exception):
    """Base exception for all sparse copy operations."""


class ConfigError(SparseCopyError):
    """Remote channel configuration is missing, invalid or unreachable."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class InputAccessError(SparseCopyError):
    """Source image or device cannot be opened or read."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        msg = f"Cannot open input {path}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class OutputConflictError(SparseCopyError):
    """Destination already exists and would be overwritten."""

    def __init__(self, path: str, is_block_device: bool = False):
        self.path = path
        self.is_block_device = is_block_device
        kind = "block device" if is_block_device else "output file"
        super().__init__(f"I will not overwrite {kind} {path}")


class LayoutParseError(SparseCopyError):
    """Filesystem metadata is malformed or internally inconsistent."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class StreamIOError(SparseCopyError):
    """Read or write failure in the middle of a copy."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte offset {offset})"
        super().__init__(message)


class PublishError(SparseCopyError):
    """Remote progress publish failed at runtime."""

    def __init__(self, message: str, channel: Optional[str] = None):
        self.channel = channel
        super().__init__(message)


FATAL_ERRORS = (
    InputAccessError,
    OutputConflictError,
    LayoutParseError,
    StreamIOError,
)
