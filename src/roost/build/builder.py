"""
Package build orchestration.

A Builder takes one Package through these stages, strictly in order:

    NOT_STARTED -> RESOLVING_DEPENDENCIES -> PRECOMPILING -> COMPILING_MODULES
        -> COMPILING_SOURCES -> LINKING | ARCHIVING -> DONE

Dependencies are built depth-first by nested Builders before anything of the
dependent package is compiled. A failure at any stage ends the build with
CompilationStatus.FAILED; the caller of a failed dependency stops as well.

Every decision to skip work compares modification times:

- sub-module: skip when lib{module}.a and {module}.swiftmodule exist and no
  module source is newer
- executable: per source, skip when the binary is not older than the source
  and the source's object file exists
- module: skip when {name}.swiftmodule and lib{name}.a are not older than
  the newest source

A recompiled sub-module or dependency always forces the final link or
archive step. BuildSettings.must_recompile overrides every skip.

Output layout under the package root:

    build/{source}-{hash6}.o     objects of the package's own sources
    build/lib{module}.a          sub-modules and module targets
    build/{module}.swiftmodule
    bin/{name}                   executables
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..clock import is_newer_than, is_stale, modification_time, source_modification_time
from ..errors import FilesystemError, MissingDependencyError, UnknownTargetTypeError
from ..manifest import Dependency, Manifest, TargetType, load_manifest
from ..output import log, log_detail, log_error
from ..package import Module, Package
from ..process import ProcessRunner
from .build_context import BuildSettings, ToolchainContext
from .compilation_unit import CompilationUnit
from .compile_options import CompileOptions

logger = logging.getLogger(__name__)


class CompilationStatus(Enum):
    """Outcome of building a unit."""

    SKIPPED = "Skipped"
    COMPILED = "Compiled"
    FAILED = "Failed"

    def __str__(self) -> str:
        return self.value


class BuildState(Enum):
    """Stage a Builder is in."""

    NOT_STARTED = "not started"
    RESOLVING_DEPENDENCIES = "resolving dependencies"
    PRECOMPILING = "precompiling"
    COMPILING_MODULES = "compiling modules"
    COMPILING_SOURCES = "compiling sources"
    LINKING = "linking"
    ARCHIVING = "archiving"
    DONE = "done"


@dataclass(frozen=True)
class CompilationResult:
    """A finished package build, with what its dependents need to link to it.

    Attributes:
        status: Build outcome
        manifest: The built package's manifest (name, directory, options)
        package: The built package
    """

    status: CompilationStatus
    manifest: Manifest
    package: Package


class Builder:
    """Builds one package, recursing into its dependencies first."""

    def __init__(
        self,
        package: Package,
        settings: BuildSettings,
        toolchain: ToolchainContext,
        runner: Optional[ProcessRunner] = None,
    ):
        """
        Args:
            package: Package to build
            settings: Force-rebuild and verbosity flags
            toolchain: SDK and platform information
            runner: Process runner (defaults to a ProcessRunner for settings)
        """
        self.package = package
        self.settings = settings
        self.toolchain = toolchain
        self.runner = runner if runner is not None else ProcessRunner(settings)
        self.state = BuildState.NOT_STARTED
        self.status: Optional[CompilationStatus] = None

    @property
    def manifest(self) -> Manifest:
        return self.package.manifest

    @property
    def build_directory(self) -> Path:
        return self.package.build_directory

    @property
    def bin_directory(self) -> Path:
        return self.package.bin_directory

    @property
    def must_recompile(self) -> bool:
        return self.settings.must_recompile

    def binary_path(self) -> Path:
        """Executable output path (bin/{name} lowercased, or bin/test-{name})."""
        name = self.package.bin_file_name or self.package.name.lower()
        return self.bin_directory / name

    def library_path(self, name: str) -> Path:
        return self.build_directory / f"lib{name}.a"

    def swift_module_path(self, name: str) -> Path:
        return self.build_directory / f"{name}.swiftmodule"

    # ------------------------------------------------------------------
    # Top-level build
    # ------------------------------------------------------------------

    def build(self) -> CompilationStatus:
        """
        Build the package.

        Returns:
            SKIPPED if every output was current, COMPILED if work was done,
            FAILED if an external tool failed

        Raises:
            UnknownTargetTypeError: If the target type cannot be built
            MissingDependencyError: If a dependency is not in the vendor directory
            FilesystemError: If build/ or vendor/ cannot be created
            ConfigurationError: For invalid dependency manifests or sources
        """
        self._check_preconditions()

        self._ensure_directory_exists(self.build_directory)
        self._ensure_directory_exists(self.package.vendor_directory)

        self._enter(BuildState.RESOLVING_DEPENDENCIES)
        dependency_results = []
        for dependency in self.package.dependencies:
            result = self.build_dependency(dependency)
            if result.status == CompilationStatus.FAILED:
                log_error(f"Dependency {result.manifest.name} failed to build; stopping {self.package.name}")
                return self._finish(CompilationStatus.FAILED)
            dependency_results.append(result)
        dependencies_compiled = any(r.status == CompilationStatus.COMPILED for r in dependency_results)

        self._enter(BuildState.PRECOMPILING)
        if not self.run_precompile_commands():
            return self._finish(CompilationStatus.FAILED)

        self._enter(BuildState.COMPILING_MODULES)
        modules_compiled = False
        for module in self.package.modules:
            status = self.compile_module(module)
            if status == CompilationStatus.FAILED:
                return self._finish(CompilationStatus.FAILED)
            modules_compiled = modules_compiled or status == CompilationStatus.COMPILED

        options = self.compile_options(dependency_results)

        # Rebuilt libraries invalidate the final link even if our own sources did not change
        relink = modules_compiled or dependencies_compiled

        self._enter(BuildState.COMPILING_SOURCES)
        if self.package.target_type == TargetType.EXECUTABLE:
            status = self._build_executable(options, relink)
        else:
            status = self._build_module(options, relink)
        return self._finish(status)

    def _check_preconditions(self) -> None:
        target_type = self.package.target_type
        if target_type not in (TargetType.EXECUTABLE, TargetType.MODULE):
            raise UnknownTargetTypeError(
                f"Can't compile package {self.package.name} with target type '{target_type}'"
            )

    def _enter(self, state: BuildState) -> None:
        logger.debug(f"{self.package.name}: {self.state.value} -> {state.value}")
        self.state = state

    def _finish(self, status: CompilationStatus) -> CompilationStatus:
        self._enter(BuildState.DONE)
        self.status = status
        logger.debug(f"{self.package.name}: {status}")
        return status

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def build_dependency(self, dependency: Dependency) -> CompilationResult:
        """
        Build one dependency from the vendor directory.

        Fetching is done by `roost update`; a dependency that is not on disk
        fails the build immediately.

        Raises:
            MissingDependencyError: If the dependency directory does not exist
        """
        directory = dependency.local_directory(self.package.vendor_directory)
        if not directory.is_dir():
            raise MissingDependencyError(dependency.short_name, str(directory))

        manifest = load_manifest(directory)
        package = Package.from_manifest(manifest)

        log(f"Building dependency {manifest.name}...")
        builder = Builder(package, self.settings, self.toolchain, self.runner)
        status = builder.build()
        log_detail(f"{manifest.name}: {status}")

        return CompilationResult(status=status, manifest=manifest, package=package)

    # ------------------------------------------------------------------
    # Precompile commands
    # ------------------------------------------------------------------

    def run_precompile_commands(self) -> bool:
        """
        Run the manifest's precompile commands in the package root.

        Returns:
            False as soon as a command exits non-zero
        """
        for command in self.manifest.precompile_commands:
            status = self.runner.run(
                f"Running {command}... ",
                ["sh", "-c", command],
                f"Ran {command}",
                cwd=self.package.directory,
            )
            if status != 0:
                log_error(f"Precompile command failed with status {status}: {command}")
                return False
        return True

    # ------------------------------------------------------------------
    # Sub-modules
    # ------------------------------------------------------------------

    def compile_module(self, module: Module) -> CompilationStatus:
        """
        Compile a sub-module into lib{name}.a and {name}.swiftmodule.

        Skipped when the library and the module file both exist and no
        module source is newer than either.
        """
        library_path = self.library_path(module.name)
        module_path = self.swift_module_path(module.name)
        if not is_stale(library_path, module.last_modification, self.must_recompile) and not is_stale(
            module_path, module.last_modification, self.must_recompile
        ):
            log_detail(f"Module {module.name} is up to date")
            return CompilationStatus.SKIPPED

        base_arguments = ["swiftc", "-sdk", self.toolchain.sdk_path, "-target", self.toolchain.platform.target_name]
        base_arguments.extend(module.source_files)

        if self._compile_module_interface(base_arguments, module) != 0:
            return CompilationStatus.FAILED
        if self._compile_module_library(base_arguments, module) != 0:
            return CompilationStatus.FAILED
        return CompilationStatus.COMPILED

    def _compile_module_interface(self, base_arguments: list[str], module: Module) -> int:
        path = self.swift_module_path(module.name)
        arguments = base_arguments + [
            "-parse-as-library",
            "-emit-module",
            "-emit-module-path",
            str(path),
            "-module-name",
            module.name,
        ]
        status = self.runner.run(
            f"Compiling {path}... ",
            arguments,
            f"Compiled Swift for module {module.name} to {path}",
        )
        if status != 0:
            log_error(f"Failed to compile module interface for {module.name}")
        return status

    def _compile_module_library(self, base_arguments: list[str], module: Module) -> int:
        temporary_object = self.build_directory / f"tmp-{module.name}.o"
        library_path = self.library_path(module.name)

        arguments = base_arguments + [
            "-parse-as-library",
            "-emit-object",
            "-whole-module-optimization",
            "-module-name",
            module.name,
            "-o",
            str(temporary_object),
        ]
        try:
            status = self.runner.run(
                f"Compiling {temporary_object}... ",
                arguments,
                f"Compiled object for module {module.name} to {temporary_object}",
            )
            if status != 0:
                log_error(f"Failed to compile module {module.name}")
                return status

            status = self.runner.run(
                f"Archiving {library_path}... ",
                ["libtool", "-static", "-o", str(library_path), str(temporary_object)],
                f"Archived library for module {module.name} to {library_path}",
            )
            if status != 0:
                log_error(f"Failed to archive module {module.name}")
            return status
        finally:
            temporary_object.unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Root target
    # ------------------------------------------------------------------

    def compile_options(self, dependency_results: list[CompilationResult]) -> CompileOptions:
        """
        Assemble compiler and linker options for the package's own sources.

        Order: framework paths, SDK platform paths (test builds), sub-modules,
        dependencies in declaration order, then the package's own raw options.
        """
        options = CompileOptions(self.build_directory, self.package.name, self.toolchain)
        options.set_sources(self.package.source_files)

        for path in self.manifest.framework_search_paths:
            options.framework_search_paths.append(str(self.package.directory / path))
            options.rpaths.append(f"@executable_path/../{path}")

        if self.package.include_sdk_platform_in_framework_path:
            options.framework_search_paths.append(self.toolchain.sdk_platform_frameworks_path)
        if self.package.include_sdk_platform_in_rpath:
            options.rpaths.append(self.toolchain.sdk_platform_frameworks_path)

        if self.package.modules:
            build_directory = str(self.build_directory)
            options.includes.append(build_directory)
            options.linker_search_directories.append(build_directory)
            for module in self.package.modules:
                options.link_libraries.append(module.name)

        for result in dependency_results:
            dependency = result.manifest
            dependency_build = str(dependency.build_directory)
            options.includes.append(dependency_build)
            options.linker_search_directories.append(dependency_build)
            options.link_libraries.append(dependency.name)
            options.add_custom_compiler_options(dependency.compiler_options, dependency.directory)
            options.add_custom_linker_options(dependency.linker_options, dependency.directory)

        options.add_custom_compiler_options(self.package.compiler_options, self.package.directory)
        options.add_custom_linker_options(self.package.linker_options, self.package.directory)
        return options

    def _compile_sources(self, options: CompileOptions, target: Path) -> tuple[bool, int]:
        """
        Compile every source whose object is stale relative to target.

        A source is stale when force rebuild is set, the target does not
        exist, the source is newer than the target, or its object is missing.

        Returns:
            (succeeded, number of sources compiled)
        """
        target_time = modification_time(target)
        sources = options.sources
        compiled = 0

        for index, source in enumerate(sources):
            object_file = options.object_file_for(source)

            stale = (
                self.must_recompile
                or target_time is None
                or is_newer_than(source_modification_time(source), target_time)
                or modification_time(object_file) is None
            )
            if not stale:
                logger.debug(f"Up to date: {source}")
                continue

            unit = CompilationUnit(
                compile_options=options,
                primary_source_file=source,
                other_source_files=sources[:index] + sources[index + 1 :],
                target_object_file=object_file,
            )
            if unit.compile(self.runner) != 0:
                return False, compiled
            compiled += 1

        return True, compiled

    def _build_executable(self, options: CompileOptions, relink: bool) -> CompilationStatus:
        self._ensure_directory_exists(self.bin_directory)
        binary = self.binary_path()

        succeeded, compiled = self._compile_sources(options, binary)
        if not succeeded:
            return CompilationStatus.FAILED

        if compiled == 0 and not relink:
            log_detail(f"{self.package.name} is up to date")
            return CompilationStatus.SKIPPED

        self._enter(BuildState.LINKING)
        status = self.runner.run(
            f"Linking {binary}... ",
            options.linker_arguments(binary),
            f"Linked {self.package.name} to {binary}",
        )
        if status != 0:
            log_error(f"Failed to link {binary}")
            return CompilationStatus.FAILED
        return CompilationStatus.COMPILED

    def _build_module(self, options: CompileOptions, relink: bool) -> CompilationStatus:
        name = self.package.name
        module_path = self.swift_module_path(name)
        library_path = self.library_path(name)

        last_modification = self.package.last_modification
        if (
            not relink
            and not is_stale(module_path, last_modification, self.must_recompile)
            and not is_stale(library_path, last_modification, self.must_recompile)
        ):
            log_detail(f"{name} is up to date")
            return CompilationStatus.SKIPPED

        succeeded, _ = self._compile_sources(options, module_path)
        if not succeeded:
            return CompilationStatus.FAILED

        self._enter(BuildState.ARCHIVING)
        status = self.runner.run(
            f"Archiving {library_path}... ",
            ["libtool", "-static", "-o", str(library_path), *options.object_files],
            f"Created {name} archive at {library_path}",
        )
        if status != 0:
            log_error(f"Failed to archive {library_path}")
            return CompilationStatus.FAILED

        status = self.runner.run(
            f"Compiling {module_path}... ",
            options.module_arguments(module_path),
            f"Created {name} module at {module_path}",
        )
        if status != 0:
            log_error(f"Failed to emit module {module_path}")
            return CompilationStatus.FAILED
        return CompilationStatus.COMPILED

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def remove_entry_point_objects(self) -> None:
        """Delete the object files of main.swift so the entry point is always rebuilt."""
        options = CompileOptions(self.build_directory, self.package.name, self.toolchain)
        options.set_sources(self.package.entry_points())
        for object_file in options.object_files:
            try:
                Path(object_file).unlink(missing_ok=True)
            except OSError as e:
                raise FilesystemError(f"Unable to remove entry point object file {object_file}: {e}") from e

    @staticmethod
    def _ensure_directory_exists(path: Path) -> None:
        if path.exists():
            if not path.is_dir():
                raise FilesystemError(f"Must be a directory: {path}")
            return
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to create directory {path}: {e}") from e
