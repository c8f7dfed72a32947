"""External tool invocation for roost.

This module is the only place roost starts other processes. Commands run
synchronously, one at a time, with stdout and stderr merged and captured so
they can be shown together after the tool exits.

The runner reports progress but never decides success or failure: callers
receive the exit status and interpret it themselves.
"""

import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from .build.build_context import BuildSettings
from .output import announce, finish_announcement, log, write_output

logger = logging.getLogger(__name__)


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def run_captured(
    arguments: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    **kwargs: Any,
) -> subprocess.CompletedProcess:
    """Run a command to completion with stdout and stderr merged.

    stdin is redirected to DEVNULL so tools never wait on the terminal.

    Args:
        arguments: Command and arguments
        cwd: Working directory for the command
        **kwargs: Additional arguments passed to subprocess.run

    Returns:
        CompletedProcess whose stdout holds the combined output as text
    """
    default_flags = get_subprocess_creation_flags()
    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    return subprocess.run(
        list(arguments),
        cwd=str(cwd) if cwd is not None else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
        check=False,
        **kwargs,
    )


def run_streaming(arguments: Sequence[str], cwd: Optional[Union[str, Path]] = None) -> int:
    """Run a command with its output going straight to the terminal.

    Used for programs whose output is the point (the test binary), not for
    toolchain steps.

    Returns:
        The command's exit status
    """
    kwargs: dict[str, Any] = {}
    default_flags = get_subprocess_creation_flags()
    if default_flags:
        kwargs["creationflags"] = default_flags

    result = subprocess.run(
        list(arguments),
        cwd=str(cwd) if cwd is not None else None,
        stdin=subprocess.DEVNULL,
        check=False,
        **kwargs,
    )
    return result.returncode


class ProcessRunner:
    """Runs external tools and announces them on the console.

    Two reporting modes, selected by BuildSettings.verbose:

    - Quiet: the announcement is printed without a newline. If the tool is
      silent the line is replaced by the finished text; if it printed
      anything the output follows verbatim on the next line.
    - Verbose: the announcement and the full command line are printed on
      their own lines before the tool runs, then any output is shown.
    """

    def __init__(self, settings: BuildSettings):
        self.settings = settings

    def run(
        self,
        announcement: str,
        arguments: Sequence[str],
        finished: str,
        cwd: Optional[Union[str, Path]] = None,
    ) -> int:
        """Run one command and report it.

        Args:
            announcement: Progress text shown while the command runs
            arguments: Command and arguments
            finished: Text shown when a quiet command completes
            cwd: Working directory for the command

        Returns:
            The command's exit status
        """
        if self.settings.verbose:
            log(announcement)
            log(" ".join(arguments))
        else:
            announce(announcement)

        try:
            result = run_captured(arguments, cwd=cwd)
        except FileNotFoundError:
            # The tool itself is missing; report it like any other failed command.
            message = f"Command not found: {arguments[0]}"
            logger.debug(message)
            write_output(message)
            return 127

        output = result.stdout or ""
        has_output = bool(output.strip())

        if self.settings.verbose:
            if has_output:
                write_output(output)
            log(finished)
        elif has_output:
            write_output(output)
        else:
            finish_announcement(finished)

        logger.debug(f"{arguments[0]} exited with status {result.returncode}")
        return result.returncode
