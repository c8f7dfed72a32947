"""
Source entry resolution.

A package lists its sources as a mix of explicit files and directories:

    sources:
      - Sources/          # trailing slash: every .swift file below, recursively
      - main.swift        # .swift suffix: this exact file

Resolution returns every directory expansion first (in declaration order,
each directory in filesystem enumeration order) followed by the explicit
files. That order becomes compiler argument order, so it is kept stable.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Union

from ..errors import EnumerationError, SourceParseError

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".swift"


def filter_sources(entries: Iterable[str]) -> tuple[list[str], list[str], list[str]]:
    """
    Split source entries into directories, files and invalid entries.

    Args:
        entries: Source entries as written in the manifest

    Returns:
        (directories, files, non_matching), each in declaration order
    """
    directories: list[str] = []
    files: list[str] = []
    non_matching: list[str] = []

    for entry in entries:
        if entry.endswith("/"):
            directories.append(entry)
        elif entry.endswith(SOURCE_SUFFIX):
            files.append(entry)
        else:
            non_matching.append(entry)

    return directories, files, non_matching


def scan_directory_for_sources(directory: Union[str, Path]) -> list[str]:
    """
    Recursively collect every source file below a directory.

    Args:
        directory: Directory to walk

    Returns:
        Source file paths in enumeration order

    Raises:
        EnumerationError: If the directory does not exist or cannot be listed
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise EnumerationError(f"Failed to enumerate files in directory: {directory}")

    def _raise(error: OSError) -> None:
        raise EnumerationError(f"Failed to enumerate files in directory: {error.filename}: {error.strerror}")

    sources = []
    for current, _dirs, filenames in os.walk(directory, onerror=_raise):
        for filename in filenames:
            if filename.endswith(SOURCE_SUFFIX):
                sources.append(os.path.join(current, filename))
    return sources


def scan_source_directories(root: Union[str, Path], directories: Iterable[str]) -> list[str]:
    """Expand directory entries (relative to root), concatenated in order."""
    sources: list[str] = []
    for entry in directories:
        sources.extend(scan_directory_for_sources(Path(root) / entry))
    return sources


def resolve_sources(root: Union[str, Path], entries: Iterable[str]) -> list[str]:
    """
    Resolve manifest source entries to concrete source file paths.

    Args:
        root: Package root that entries are relative to
        entries: Source entries from the manifest

    Returns:
        Directory expansions followed by explicit files, without duplicates

    Raises:
        SourceParseError: Naming every entry that is neither a file nor a directory
        EnumerationError: If a declared directory cannot be listed
    """
    directories, files, non_matching = filter_sources(entries)
    if non_matching:
        raise SourceParseError(non_matching)

    resolved = scan_source_directories(root, directories)
    resolved.extend(str(Path(root) / entry) for entry in files)

    # Keep the first occurrence so a file named explicitly and found by a
    # directory walk is only compiled once.
    seen: set[str] = set()
    unique = []
    for path in resolved:
        key = os.path.normpath(path)
        if key in seen:
            continue
        seen.add(key)
        unique.append(path)

    logger.debug(f"Resolved {len(unique)} source(s) under {root}")
    return unique
