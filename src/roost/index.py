"""Local package index.

The index lives at ~/.roost/Index.bin (or $ROOST_HOME/Index.bin). It starts
with a one-line text header followed by a binary payload:

    Roost Index Version 1\\n<payload bytes>

Only version 1 is understood. roost reads the header and reports the
version; the payload is kept as raw bytes.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .errors import IndexFileError

logger = logging.getLogger(__name__)

INDEX_FILENAME = "Index.bin"
SUPPORTED_VERSION = 1

_HEADER_PATTERN = re.compile(r"Roost Index Version (\d+)")


def get_data_directory() -> Path:
    """Get the roost data directory respecting ROOST_HOME.

    Returns:
        $ROOST_HOME if set, otherwise ~/.roost
    """
    home = os.environ.get("ROOST_HOME")
    if home:
        return Path(home).resolve()
    return Path.home() / ".roost"


@dataclass(frozen=True)
class IndexFile:
    """A parsed index file."""

    version: int
    payload: bytes


def find_index_file() -> Path:
    """
    Locate the index file, creating the data directory if needed.

    Raises:
        IndexFileError: If the data directory cannot be created or the index is missing
    """
    directory = get_data_directory()
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IndexFileError(f"Unable to create data directory: {directory}: {e}") from e

    path = directory / INDEX_FILENAME
    if not path.is_file():
        raise IndexFileError(f"Missing index file: {path}")
    return path


def parse_header(header: str) -> int:
    """
    Extract and check the index version from the header line.

    Raises:
        IndexFileError: If the header is malformed or the version is unsupported
    """
    match = _HEADER_PATTERN.search(header)
    if match is None:
        raise IndexFileError("Unable to parse Index header")

    version = int(match.group(1))
    if version != SUPPORTED_VERSION:
        raise IndexFileError(f"Unable to parse Index version {version}")
    return version


def read_index(path: Union[str, Path]) -> IndexFile:
    """
    Read an index file.

    Raises:
        IndexFileError: If the file cannot be read or has no valid header
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise IndexFileError(f"Unable to read Index file: {path}: {e}") from e

    header_bytes, separator, payload = data.partition(b"\n")
    if not separator:
        raise IndexFileError('Unable to find separator "\\n" in Index')

    try:
        header = header_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise IndexFileError("Unable to read Index header data") from e

    version = parse_header(header)
    logger.debug(f"Index {path}: version {version}, {len(payload)} payload bytes")
    return IndexFile(version=version, payload=payload)
