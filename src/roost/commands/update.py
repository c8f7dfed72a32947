"""Update command implementation.

Fetches dependencies into the vendor directory: a missing dependency is
cloned, an existing one is pulled. This is the only place roost talks to
version control; builds only check that dependencies are present.
"""

import logging
from pathlib import Path

from ..errors import FilesystemError
from ..manifest import Dependency, Manifest
from ..output import log_error
from ..process import ProcessRunner

logger = logging.getLogger(__name__)


def clone_dependency(dependency: Dependency, directory: Path, runner: ProcessRunner) -> int:
    return runner.run(
        f"Cloning dependency {dependency.short_name}... ",
        ["git", "clone", "-q", dependency.source_url, str(directory)],
        f"Cloned dependency {dependency.short_name}",
    )


def pull_dependency(dependency: Dependency, directory: Path, runner: ProcessRunner) -> int:
    return runner.run(
        f"Pulling dependency {dependency.short_name}... ",
        ["git", "-C", str(directory), "pull", "-q", "origin", "master"],
        f"Pulled dependency {dependency.short_name}",
    )


def update_dependencies(manifest: Manifest, runner: ProcessRunner) -> bool:
    """
    Clone or pull every declared dependency, test-only ones included.

    Args:
        manifest: Manifest of the package whose vendor directory is updated
        runner: Process runner used for git

    Returns:
        True if every git command succeeded

    Raises:
        FilesystemError: If the vendor directory cannot be created
    """
    vendor_directory = manifest.vendor_directory
    try:
        vendor_directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Failed to create vendor directory: {vendor_directory}: {e}") from e

    succeeded = True
    for dependency in manifest.dependencies:
        directory = dependency.local_directory(vendor_directory)
        if directory.exists():
            status = pull_dependency(dependency, directory, runner)
        else:
            status = clone_dependency(dependency, directory, runner)

        if status != 0:
            log_error(f"Failed to update dependency {dependency.short_name} (exit status {status})")
            succeeded = False
    return succeeded
