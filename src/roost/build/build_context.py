"""Build Context - settings and toolchain information shared by a build.

This module defines:
- BuildSettings: the flags chosen on the command line (force rebuild, verbose)
- ToolchainContext: SDK paths and platform, looked up once at startup

Design:
    Both are frozen and created exactly once per process by the CLI, then
    passed explicitly into every Builder and ProcessRunner. Dependency builds
    receive the same instances as the root build.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..errors import ConfigurationError
from .platforms import Platform, get_platform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildSettings:
    """Flags selected for one roost invocation.

    Attributes:
        must_recompile: Treat every output as stale (`roost build -B`)
        verbose: Print full command lines and diagnostic logging
    """

    must_recompile: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class ToolchainContext:
    """Resolved locations of the Swift toolchain and SDK.

    Attributes:
        sdk_path: Path printed by `xcrun --show-sdk-path`
        sdk_platform_path: Path printed by `xcrun --show-sdk-platform-path`
        toolchain_lib_path: Directory holding the Swift runtime libraries
        platform: Deployment platform (target triple, minimum OS, arch)
    """

    sdk_path: str
    sdk_platform_path: str
    toolchain_lib_path: str
    platform: Platform = field(default_factory=get_platform)

    @property
    def sdk_platform_frameworks_path(self) -> str:
        """Framework directory inside the SDK platform (XCTest lives here)."""
        return f"{self.sdk_platform_path}/Developer/Library/Frameworks"

    @classmethod
    def detect(cls, platform: Optional[Platform] = None) -> "ToolchainContext":
        """Query xcrun for the SDK and toolchain locations.

        Args:
            platform: Deployment platform (defaults to the default platform)

        Returns:
            ToolchainContext with trimmed paths

        Raises:
            ConfigurationError: If xcrun is unavailable or fails
        """
        sdk_path = _xcrun("--show-sdk-path")
        sdk_platform_path = _xcrun("--show-sdk-platform-path")
        swift_path = Path(_xcrun("--find", "swift"))

        # <toolchain>/usr/bin/swift -> <toolchain>/usr/lib/swift/macosx
        toolchain_lib_path = swift_path.parent.parent / "lib" / "swift" / "macosx"

        context = cls(
            sdk_path=sdk_path,
            sdk_platform_path=sdk_platform_path,
            toolchain_lib_path=str(toolchain_lib_path),
            platform=platform if platform is not None else get_platform(),
        )
        logger.debug(f"Detected toolchain: {context}")
        return context


def _xcrun(*arguments: str) -> str:
    """Run xcrun and return its trimmed output."""
    from ..process import run_captured

    command = ["xcrun", *arguments]
    try:
        result = run_captured(command)
    except FileNotFoundError as e:
        raise ConfigurationError("xcrun not found; the Xcode command line tools are required") from e

    if result.returncode != 0:
        raise ConfigurationError(f"{' '.join(command)} failed: {result.stdout.strip()}")
    return result.stdout.strip()
