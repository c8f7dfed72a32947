"""Packages and modules: the resolved, buildable view of a manifest.

A Package owns the concrete source file list of its manifest and the newest
modification time across those sources. It is created once per build and not
changed afterwards.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .build.sources import resolve_sources
from .clock import latest_source_time
from .errors import ConfigurationError
from .manifest import Dependency, Manifest, ManifestModule, TargetType

logger = logging.getLogger(__name__)

ENTRY_POINT_FILENAME = "main.swift"


@dataclass
class Module:
    """A sub-module compiled into lib{name}.a and {name}.swiftmodule.

    Attributes:
        name: Module name
        source_files: Resolved source paths
        last_modification: Newest source modification time (ns)
    """

    name: str
    source_files: list[str]
    last_modification: int

    @classmethod
    def from_manifest(cls, module: ManifestModule, root: Path) -> "Module":
        sources = resolve_sources(root, module.sources)
        if not sources:
            raise ConfigurationError(f"Module {module.name} has no source files")
        return cls(
            name=module.name,
            source_files=sources,
            last_modification=latest_source_time(sources),
        )


@dataclass
class Package:
    """One buildable unit.

    Attributes:
        manifest: The manifest this package was created from
        source_files: Resolved source paths, directory expansions first
        last_modification: Newest source modification time (ns)
        modules: Sub-modules in declaration order
        compiler_options: Raw compiler option string (may contain `{root}`)
        linker_options: Raw linker option string (may contain `{root}`)
        bin_file_name: Executable name inside bin/
        is_test: True for the test build created by `roost test`
        include_sdk_platform_in_rpath: Add the SDK platform frameworks as rpath
        include_sdk_platform_in_framework_path: Add the SDK platform frameworks as -F
    """

    manifest: Manifest
    source_files: list[str]
    last_modification: int
    modules: list[Module] = field(default_factory=list)
    compiler_options: str = ""
    linker_options: str = ""
    bin_file_name: Optional[str] = None
    is_test: bool = False
    include_sdk_platform_in_rpath: bool = False
    include_sdk_platform_in_framework_path: bool = False

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def target_type(self) -> TargetType:
        return self.manifest.target_type

    @property
    def directory(self) -> Path:
        return self.manifest.directory

    @property
    def build_directory(self) -> Path:
        return self.manifest.build_directory

    @property
    def vendor_directory(self) -> Path:
        return self.manifest.vendor_directory

    @property
    def bin_directory(self) -> Path:
        return self.manifest.bin_directory

    @property
    def dependencies(self) -> list[Dependency]:
        """Dependencies needed for this build.

        Test-only dependencies are included only when building the test target.
        """
        return [dep for dep in self.manifest.dependencies if self.is_test or not dep.test]

    @classmethod
    def from_manifest(cls, manifest: Manifest) -> "Package":
        """
        Create the package for a regular build.

        Raises:
            SourceParseError: If a source entry is malformed
            EnumerationError: If a source directory cannot be listed
            ConfigurationError: If the package has no sources
        """
        sources = resolve_sources(manifest.directory, manifest.sources)
        if not sources:
            raise ConfigurationError(f"Package {manifest.name} has no source files")

        modules = [Module.from_manifest(module, manifest.directory) for module in manifest.modules]

        bin_file_name = None
        if manifest.target_type == TargetType.EXECUTABLE:
            bin_file_name = manifest.name.lower()

        return cls(
            manifest=manifest,
            source_files=sources,
            last_modification=latest_source_time(sources),
            modules=modules,
            compiler_options=manifest.compiler_options,
            linker_options=manifest.linker_options,
            bin_file_name=bin_file_name,
        )

    @classmethod
    def for_test(cls, manifest: Manifest) -> "Package":
        """
        Create the package for `roost test`.

        The package's own entry point is dropped and the test sources (which
        bring their own main.swift) are appended. The result links against
        the SDK platform frameworks so XCTest-style frameworks resolve.

        Raises:
            ConfigurationError: If the manifest has no test_target
        """
        test_target = manifest.test_target
        if test_target is None:
            raise ConfigurationError("Missing test target")

        primary = [
            path
            for path in resolve_sources(manifest.directory, manifest.sources)
            if os.path.basename(path) != ENTRY_POINT_FILENAME
        ]
        tests = resolve_sources(manifest.directory, test_target.sources)
        sources = primary + tests
        if not sources:
            raise ConfigurationError(f"Test target for {manifest.name} has no source files")

        modules = [Module.from_manifest(module, manifest.directory) for module in manifest.modules]

        return cls(
            manifest=manifest,
            source_files=sources,
            last_modification=latest_source_time(sources),
            modules=modules,
            compiler_options=_join_options(manifest.compiler_options, test_target.compiler_options),
            linker_options=_join_options(manifest.linker_options, test_target.linker_options),
            bin_file_name=f"test-{manifest.name.lower()}",
            is_test=True,
            include_sdk_platform_in_rpath=True,
            include_sdk_platform_in_framework_path=True,
        )

    def entry_points(self) -> list[str]:
        """Source files named main.swift."""
        return [path for path in self.source_files if os.path.basename(path) == ENTRY_POINT_FILENAME]


def _join_options(*options: str) -> str:
    return " ".join(option.strip() for option in options if option.strip())
