"""Modification times for staleness decisions.

Timestamps are integer nanoseconds (st_mtime_ns) so comparisons are exact.
Equal timestamps are *not* newer: on filesystems with coarse mtime
resolution a target written in the same tick as its source counts as up to
date, otherwise every build would recompile.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def modification_time(path: PathLike) -> Optional[int]:
    """
    Get the last-modified time of a path.

    Args:
        path: File or directory to inspect

    Returns:
        Modification time in nanoseconds, or None if the path does not exist
        or cannot be read
    """
    try:
        return os.stat(path).st_mtime_ns
    except OSError:
        return None


def source_modification_time(path: PathLike) -> int:
    """
    Get the modification time of a declared source file.

    A source that vanished after being declared is a configuration error,
    not a staleness signal.

    Raises:
        ConfigurationError: If the file cannot be stat'ed
    """
    timestamp = modification_time(path)
    if timestamp is None:
        raise ConfigurationError(f"Failed to lookup attributes for file: {path}")
    return timestamp


def is_newer_than(a: int, b: int) -> bool:
    """Return True if timestamp a is strictly newer than timestamp b."""
    return a > b


def latest(timestamps: Iterable[int]) -> int:
    """
    Reduce source timestamps to the newest one.

    Raises:
        ConfigurationError: If there are no timestamps (a unit with no sources)
    """
    values = list(timestamps)
    if not values:
        raise ConfigurationError("Cannot compute modification time of an empty source list")
    return max(values)


def latest_source_time(paths: Iterable[PathLike]) -> int:
    """Newest modification time over a list of declared source files."""
    return latest(source_modification_time(path) for path in paths)


def is_stale(target: PathLike, source_time: int, force: bool = False) -> bool:
    """
    Decide whether a build output must be regenerated.

    Args:
        target: Output file (object, library, module or binary)
        source_time: Newest modification time of the contributing sources
        force: Global force-rebuild flag

    Returns:
        True if the target is missing, older than the sources, or force is set
    """
    if force:
        return True
    target_time = modification_time(target)
    if target_time is None:
        logger.debug(f"Stale (missing): {target}")
        return True
    if is_newer_than(source_time, target_time):
        logger.debug(f"Stale (sources newer): {target}")
        return True
    return False
