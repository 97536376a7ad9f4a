"""Pre-flight validation for sparse copies.

All validation functions raise specific exceptions from the exceptions module
rather than returning boolean values, so that nothing is written before a
fatal condition has been ruled out.

Example:
    from e2sparse.storage.validation import validate_copy_operation

    validate_copy_operation("/dev/sdb1", "backup.img.gz")
"""

import os
import stat

from e2sparse.logging import LoggerFactory

from .exceptions import InputAccessError, OutputConflictError
from .sparse.sinks import STDOUT_NAME

log = LoggerFactory.for_system()


def _is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def validate_source_readable(source: str) -> None:
    """Validate that the source image or device can be opened for reading.

    A source that is not a block device is accepted with a warning.

    Raises:
        InputAccessError: If the source is missing or unreadable
    """
    if not source:
        raise InputAccessError("(empty name)", "no source given")
    try:
        with open(source, "rb"):
            pass
    except FileNotFoundError:
        raise InputAccessError(source, "no such file or device") from None
    except PermissionError:
        raise InputAccessError(source, "permission denied") from None
    except OSError as error:
        raise InputAccessError(source, str(error)) from error
    if not _is_block_device(source):
        log.warning(f"Input file {source} is not a block device")


def validate_destination_free(destination: str) -> None:
    """Validate that writing the destination overwrites nothing.

    Raises:
        OutputConflictError: If the destination already exists
    """
    if destination == STDOUT_NAME:
        return
    if os.path.lexists(destination):
        raise OutputConflictError(destination, is_block_device=_is_block_device(destination))


def validate_copy_operation(source: str, destination: str) -> None:
    """Run all pre-flight checks for a copy."""
    validate_source_readable(source)
    validate_destination_free(destination)
