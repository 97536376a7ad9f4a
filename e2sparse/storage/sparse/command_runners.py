"""Command execution utilities for reading filesystem metadata."""

import shutil
import subprocess
from typing import Optional

from e2sparse.domain import RangeModel
from e2sparse.logging import LoggerFactory
from e2sparse.storage.exceptions import LayoutParseError

from .layout import parse_layout

log = LoggerFactory.for_layout()


def run_checked_command(command, input_text=None):
    """Run a command and raise RuntimeError if it fails."""
    log.debug(f"Running command: {' '.join(command)}")
    result = subprocess.run(
        command,
        input=input_text,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    if result.returncode != 0:
        stderr = result.stderr.strip()
        stdout = result.stdout.strip()
        message = stderr or stdout or "Command failed"
        raise RuntimeError(f"Command failed ({' '.join(command)}): {message}")
    return result.stdout


def read_filesystem_layout(source: str, dumpe2fs: Optional[str] = None) -> RangeModel:
    """Run dumpe2fs against ``source`` and parse its output.

    Raises:
        LayoutParseError: If dumpe2fs is unavailable, fails, or prints an
            unusable listing
    """
    dumpe2fs_path = dumpe2fs or shutil.which("dumpe2fs")
    if not dumpe2fs_path:
        raise LayoutParseError("dumpe2fs not found")
    try:
        output = run_checked_command([dumpe2fs_path, source])
    except (RuntimeError, OSError) as error:
        raise LayoutParseError(f"cannot execute dumpe2fs: {error}") from error
    return parse_layout(output.splitlines())
