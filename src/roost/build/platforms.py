"""Deployment platforms.

A platform fixes the target triple passed to the Swift frontend and the
architecture / minimum OS version passed to the linker.
"""

from dataclasses import dataclass
from enum import Enum


class PlatformName(Enum):
    """Supported deployment targets."""

    MACOSX_10_10 = "macosx10.10"
    MACOSX_10_11 = "macosx10.11"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Platform:
    """Target description for the frontend and the linker.

    Attributes:
        target_name: LLVM target triple for `swift -frontend -target`
        version_min: Value for `ld -macosx_version_min`
        arch: Value for `ld -arch`
    """

    target_name: str
    version_min: str
    arch: str = "x86_64"


PLATFORMS: dict[PlatformName, Platform] = {
    PlatformName.MACOSX_10_10: Platform(
        target_name="x86_64-apple-darwin14.4.0",
        version_min="10.10.0",
    ),
    PlatformName.MACOSX_10_11: Platform(
        target_name="x86_64-apple-darwin15.0.0",
        version_min="10.11.0",
    ),
}

DEFAULT_PLATFORM = PlatformName.MACOSX_10_11


def get_platform(name: PlatformName = DEFAULT_PLATFORM) -> Platform:
    """Look up a platform by name."""
    return PLATFORMS[name]
