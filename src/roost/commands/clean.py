"""Clean command implementation.

Removes intermediate object files from a package's build directory.
Libraries, module files and executables are left in place.
"""

import logging
from pathlib import Path

from ..errors import FilesystemError
from ..output import log, log_detail

logger = logging.getLogger(__name__)


def find_object_files(build_directory: Path) -> list[Path]:
    """Every *.o file below the build directory."""
    if not build_directory.is_dir():
        return []
    return [path for path in build_directory.rglob("*.o") if path.is_file()]


def clean_build_directory(build_directory: Path) -> int:
    """
    Delete intermediate object files.

    Args:
        build_directory: The package's build/ directory

    Returns:
        Number of files removed

    Raises:
        FilesystemError: If a file cannot be removed
    """
    log("Cleaning...")
    removed = 0
    for path in find_object_files(build_directory):
        try:
            path.unlink()
        except OSError as e:
            raise FilesystemError(f"Error removing file {path}: {e}") from e
        logger.debug(f"Removed {path}")
        removed += 1

    log_detail(f"Done ({removed} object file(s) removed)")
    return removed
