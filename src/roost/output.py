"""
Centralized console output for roost.

All user-facing progress lines are prefixed with the elapsed time since
program launch in MM:SS.cc format (minutes:seconds.centiseconds), which makes
it easy to see where a build spends its time.

Example output:
    00:00.01 Roost v0.3.0
    00:00.02 Compiling main.swift... Compiled main.swift
    00:00.95 Linking /work/demo/bin/demo... Linked Demo to /work/demo/bin/demo

Announcements are written without a trailing newline so that a quiet tool
invocation can replace them in place with its "finished" text:

    from roost.output import announce, finish_announcement, write_output

    announce("Compiling main.swift... ")
    # ... run the tool ...
    finish_announcement("Compiled main.swift")   # erases the line first

Diagnostics (logging module) are separate from this channel; this module is
only for what the user is meant to read.
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

# Erase from cursor to end of line after returning to column 0
_ERASE_LINE = "\r\033[K"

# Global state for the timer
_start_time: Optional[float] = None
_output_stream: Optional[TextIO] = None
_error_stream: Optional[TextIO] = None

# True while an announcement is waiting for its finished text or tool output
_line_open = False


def init_timer(output_stream: Optional[TextIO] = None, error_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    Call this at program startup to set the reference time for all timestamps.
    If not called explicitly, it will be called automatically on first output.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout at write time)
        error_stream: Optional error stream (defaults to sys.stderr at write time)
    """
    global _start_time, _output_stream, _error_stream, _line_open
    _start_time = time.time()
    _line_open = False
    _output_stream = output_stream
    _error_stream = error_stream


def get_elapsed() -> float:
    """Get elapsed time in seconds since timer initialization."""
    global _start_time
    if _start_time is None:
        _start_time = time.time()
    return time.time() - _start_time


def format_timestamp() -> str:
    """
    Format the current elapsed time as MM:SS.cc.

    Returns:
        Formatted timestamp string
    """
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _stdout() -> TextIO:
    return _output_stream if _output_stream is not None else sys.stdout


def _stderr() -> TextIO:
    return _error_stream if _error_stream is not None else sys.stderr


def _print(message: str, end: str = "\n", stream: Optional[TextIO] = None) -> None:
    """
    Internal print function with timestamp.

    Args:
        message: Message to print
        end: End character (default newline)
        stream: Target stream (defaults to stdout)
    """
    global _line_open
    target = stream if stream is not None else _stdout()
    target.write(f"{format_timestamp()} {message}{end}")
    target.flush()
    if target is _stdout():
        _line_open = not end.endswith("\n")


def log(message: str) -> None:
    """Log a message with timestamp."""
    _print(message)


def log_detail(message: str, indent: int = 6) -> None:
    """
    Log a detail message (indented).

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
    """
    _print(f"{' ' * indent}{message}")


def log_header(title: str, version: str) -> None:
    """Log the program banner."""
    _print(f"{title} v{version}")


def log_build_complete(status: str, build_time: float) -> None:
    """
    Log build completion message.

    Args:
        status: Final status name (e.g. "Compiled", "Skipped")
        build_time: Total build time in seconds
    """
    _print(f"{status} in {build_time:.2f}s")


def log_error(message: str) -> None:
    """Log an error message to stderr."""
    _print(f"ERROR: {message}", stream=_stderr())


def log_warning(message: str) -> None:
    """Log a warning message to stderr."""
    _print(f"WARNING: {message}", stream=_stderr())


def announce(message: str) -> None:
    """
    Print an announcement without a trailing newline.

    The line stays open until finish_announcement() replaces it or
    write_output() continues below it.
    """
    _print(message, end="")


def finish_announcement(message: str) -> None:
    """Erase the open announcement line and print the finished text."""
    stream = _stdout()
    stream.write(_ERASE_LINE)
    _print(message, stream=stream)


def write_output(text: str) -> None:
    """
    Write captured tool output verbatim, on a fresh line.

    A newline is inserted first only when an announcement left the line
    open; after a completed line the output starts directly below it.

    Nothing is stripped or reformatted so compiler diagnostics reach the
    user exactly as the tool produced them.
    """
    global _line_open
    stream = _stdout()
    if _line_open:
        stream.write("\n")
        _line_open = False
    stream.write(text)
    if not text.endswith("\n"):
        stream.write("\n")
    stream.flush()


class TimedLogger:
    """
    Context manager for logging with elapsed time tracking.

    Usage:
        with TimedLogger("Building Demo") as logger:
            # Do compilation
            logger.detail("3 sources")
        # Automatically logs completion time
    """

    def __init__(self, operation: str):
        """
        Initialize timed logger.

        Args:
            operation: Description of the operation
        """
        self.operation = operation
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        log(f"{self.operation}...")
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)")
        return None

    def detail(self, message: str) -> None:
        """Log a detail message within this operation."""
        log_detail(message)
