"""Pytest configuration and fixtures for roost tests.

The toolchain is never invoked: builds run against a RecordingRunner that
records every command and creates the files a real tool would write (the
paths after `-o` and `-emit-module-path`), so incremental behaviour can be
observed through ordinary file timestamps.
"""

import os
import time
from pathlib import Path
from typing import Callable, Optional

import pytest

from roost.build.build_context import BuildSettings, ToolchainContext
from roost.build.platforms import get_platform

_OUTPUT_FLAGS = ("-o", "-emit-module-path")


class RecordingRunner:
    """Stand-in for ProcessRunner.

    Attributes:
        calls: (announcement, arguments, finished, cwd) per command
        fail_when: Optional predicate; commands it matches return status 1
            and write nothing
    """

    def __init__(self, fail_when: Optional[Callable[[list[str]], bool]] = None):
        self.calls: list[tuple[str, list[str], str, Optional[str]]] = []
        self.fail_when = fail_when

    def run(self, announcement, arguments, finished, cwd=None) -> int:
        arguments = list(arguments)
        self.calls.append((announcement, arguments, finished, str(cwd) if cwd is not None else None))

        if self.fail_when is not None and self.fail_when(arguments):
            return 1

        for flag in _OUTPUT_FLAGS:
            if flag in arguments:
                output = Path(arguments[arguments.index(flag) + 1])
                output.parent.mkdir(parents=True, exist_ok=True)
                output.write_bytes(b"output")
        return 0

    @property
    def commands(self) -> list[list[str]]:
        return [arguments for _, arguments, _, _ in self.calls]

    def commands_for(self, tool: str) -> list[list[str]]:
        return [arguments for arguments in self.commands if arguments[0] == tool]

    @property
    def frontend_calls(self) -> list[list[str]]:
        return [arguments for arguments in self.commands if arguments[:2] == ["swift", "-frontend"]]

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture
def toolchain() -> ToolchainContext:
    """A fixed toolchain context; nothing is looked up with xcrun."""
    return ToolchainContext(
        sdk_path="/sdk/MacOSX.sdk",
        sdk_platform_path="/sdk/MacOSX.platform",
        toolchain_lib_path="/toolchain/usr/lib/swift/macosx",
        platform=get_platform(),
    )


@pytest.fixture
def settings() -> BuildSettings:
    return BuildSettings()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


def write_file(path: Path, content: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def set_mtime(path, seconds_from_now: float) -> None:
    """Move a file's modification time relative to now."""
    timestamp = int((time.time() + seconds_from_now) * 1_000_000_000)
    os.utime(path, ns=(timestamp, timestamp))


@pytest.fixture
def make_project(tmp_path):
    """Factory creating a package directory with a manifest and sources.

    Usage:
        root = make_project("Demo", manifest_text, {"main.swift": "print(1)"})
    """

    def _make(name: str, manifest: str, files: dict[str, str], parent: Optional[Path] = None) -> Path:
        root = (parent if parent is not None else tmp_path) / name
        root.mkdir(parents=True, exist_ok=True)
        write_file(root / "Roostfile.yaml", manifest)
        for relative, content in files.items():
            write_file(root / relative, content)
        return root

    return _make
