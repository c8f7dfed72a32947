"""Compiler and linker option accumulation.

CompileOptions collects everything the Builder learns about a package
(include paths, frameworks, libraries, raw user flags) and turns it into
argument lists for the Swift frontend, swiftc and ld. Argument order is
fixed: later flags override earlier ones in the frontend, and library order
matters to the linker.

Each source maps to an object file named after the source and a short hash
of its contents:

    build/Parser.swift-3fa9c1.o

The hash keeps same-named files from different directories apart and gives a
new object path whenever the content changes, even if the mtime does not.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from ..errors import ConfigurationError
from .build_context import ToolchainContext

logger = logging.getLogger(__name__)

ROOT_PLACEHOLDER = "{root}"

# Hex characters of the content hash kept in object file names
OBJECT_HASH_LENGTH = 6


def split_options(options: str, root: Union[str, Path]) -> list[str]:
    """
    Tokenize a free-form option string from a manifest.

    `{root}` is replaced by the owning package's absolute root directory,
    then the string is trimmed and split on whitespace.

    Example:
        >>> split_options(" -I {root}/include  -D FAST ", "/pkg")
        ['-I', '/pkg/include', '-D', 'FAST']
    """
    return options.replace(ROOT_PLACEHOLDER, str(root)).strip().split()


def content_hash(path: Union[str, Path]) -> str:
    """
    MD5 of a file's contents as hex.

    Raises:
        ConfigurationError: If the source file cannot be read
    """
    md5 = hashlib.md5()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                md5.update(chunk)
    except OSError as e:
        raise ConfigurationError(f"Failed to read source file {path}: {e}") from e
    return md5.hexdigest()


class CompileOptions:
    """Flags for one package build, plus the source-to-object mapping."""

    def __init__(self, build_directory: Union[str, Path], module_name: str, toolchain: ToolchainContext):
        self.build_directory = Path(build_directory)
        self.module_name = module_name
        self.toolchain = toolchain

        # Compiler options
        self.includes: list[str] = []
        self.framework_search_paths: list[str] = []
        self.custom_compiler_options: list[str] = []

        # Linker options
        self.rpaths: list[str] = []
        self.linker_search_directories: list[str] = []
        self.link_libraries: list[str] = []
        self.custom_linker_options: list[str] = []

        self._sources: list[str] = []
        self._source_to_object: dict[str, str] = {}

    @property
    def sources(self) -> list[str]:
        return list(self._sources)

    def set_sources(self, sources: Iterable[str]) -> None:
        """Replace the source list and recompute every object path."""
        self._sources = list(sources)
        self._source_to_object = {source: self._object_path(source) for source in self._sources}

    def _object_path(self, source: str) -> str:
        digest = content_hash(source)[:OBJECT_HASH_LENGTH]
        return str(self.build_directory / f"{os.path.basename(source)}-{digest}.o")

    def object_file_for(self, source: str) -> str:
        """
        Object path registered for a source.

        Raises:
            ConfigurationError: If the source was never passed to set_sources
        """
        try:
            return self._source_to_object[source]
        except KeyError:
            raise ConfigurationError(f"Object file not found for source file: {source}") from None

    @property
    def object_files(self) -> list[str]:
        """Object files for the current sources, in source order."""
        return [self._source_to_object[source] for source in self._sources]

    def add_custom_compiler_options(self, options: str, root: Union[str, Path]) -> None:
        self.custom_compiler_options.extend(split_options(options, root))

    def add_custom_linker_options(self, options: str, root: Union[str, Path]) -> None:
        self.custom_linker_options.extend(split_options(options, root))

    def frontend_arguments(self, extra_arguments: Optional[Sequence[str]] = None) -> list[str]:
        """
        Arguments for one `swift -frontend -c` invocation.

        Args:
            extra_arguments: Inserted right after `-c` (the sibling sources
                and `-primary-file <source>`)
        """
        arguments = ["swift", "-frontend", "-c"]
        if extra_arguments:
            arguments.extend(extra_arguments)

        arguments.extend(["-target", self.toolchain.platform.target_name, "-enable-objc-interop"])
        arguments.extend(["-sdk", self.toolchain.sdk_path])
        arguments.extend(["-F", self.toolchain.sdk_platform_frameworks_path])

        for include in self.includes:
            arguments.extend(["-I", include])
        for framework_path in self.framework_search_paths:
            arguments.extend(["-F", framework_path])

        arguments.extend(self.custom_compiler_options)

        arguments.extend(["-color-diagnostics", "-module-name", self.module_name])
        return arguments

    def linker_arguments(self, output_path: Union[str, Path]) -> list[str]:
        """Arguments for linking every tracked object file into an executable."""
        arguments = ["ld"]
        arguments.extend(self.object_files)

        for rpath in self.rpaths:
            arguments.extend(["-rpath", rpath])
        for framework_path in self.framework_search_paths:
            arguments.extend(["-F", framework_path])
        for directory in self.linker_search_directories:
            arguments.extend(["-L", directory])
        for library in self.link_libraries:
            arguments.append(f"-l{library}")

        arguments.extend(self.custom_linker_options)

        platform = self.toolchain.platform
        arguments.extend(["-arch", platform.arch])
        arguments.extend(["-macosx_version_min", platform.version_min])
        arguments.extend(["-syslibroot", self.toolchain.sdk_path])
        arguments.extend(["-L", self.toolchain.toolchain_lib_path])
        arguments.extend(["-rpath", self.toolchain.toolchain_lib_path])
        arguments.extend(["-lSystem", "-o", str(output_path)])
        return arguments

    def module_arguments(self, module_path: Union[str, Path]) -> list[str]:
        """
        Arguments for emitting a .swiftmodule from every source at once.

        Search paths and libraries are included so the module records the
        dependencies it was built against.
        """
        arguments = ["swiftc", "-sdk", self.toolchain.sdk_path, "-target", self.toolchain.platform.target_name]
        arguments.extend(self._sources)

        for include in self.includes:
            arguments.extend(["-I", include])
        for framework_path in self.framework_search_paths:
            arguments.extend(["-F", framework_path])
        for directory in self.linker_search_directories:
            arguments.extend(["-L", directory])
        for library in self.link_libraries:
            arguments.append(f"-l{library}")

        arguments.extend(self.custom_compiler_options)

        arguments.extend(["-parse-as-library", "-emit-module", "-module-name", self.module_name])
        arguments.extend(["-emit-module-path", str(module_path)])
        return arguments
