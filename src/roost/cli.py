"""
Command-line interface for roost.

This module provides the `roost` CLI tool:

    roost build [-B] [-v]    Build the package in the current directory
    roost test [-v]          Build and run the test target
    roost inspect            Show package details
    roost list               Read the local package index
    roost update [-v]        Clone or pull dependencies into vendor/
    roost clean              Remove intermediate object files
"""

import argparse
import dataclasses
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, NoReturn, Optional

from rich.console import Console

from roost import __version__
from roost.build.build_context import BuildSettings, ToolchainContext
from roost.build.builder import Builder, CompilationStatus
from roost.commands import clean_build_directory, update_dependencies
from roost.errors import ConfigurationError, RoostError
from roost.index import find_index_file, read_index
from roost.manifest import TargetType, load_manifest
from roost.output import TimedLogger, log, log_build_complete, log_header
from roost.package import Package
from roost.process import ProcessRunner, run_streaming

logger = logging.getLogger(__name__)

USAGE = """Usage: roost [command] [options]

Available commands:

  build    Build project
  test     Build and run the test target
  inspect  Show project details
  list     List all packages in the index
  update   Update (or fetch if not present) project dependencies
  clean    Remove intermediate build files
"""

COMMANDS = ("build", "test", "inspect", "list", "update", "clean")


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    rebuild: bool = False
    verbose: bool = False


@dataclass
class TestArgs:
    """Arguments for the test command."""

    __test__ = False  # not a pytest test class

    project_dir: Path
    verbose: bool = False


@dataclass
class ProjectArgs:
    """Arguments for commands that only need the project directory."""

    project_dir: Path
    verbose: bool = False


def _exit_with_error(title: str, message: str) -> NoReturn:
    console = Console(stderr=True)
    console.print(f"[bold red]✗ {title}[/bold red]")
    console.print(message, markup=False, highlight=False)
    sys.exit(1)


def _run_command(command: Callable[[], int], verbose: bool) -> NoReturn:
    """Run a command body and turn its result or error into an exit status."""
    try:
        status = command()
    except ConfigurationError as e:
        _exit_with_error("Configuration error", str(e))
    except RoostError as e:
        _exit_with_error("Error", str(e))
    except KeyboardInterrupt:
        Console(stderr=True).print("[bold yellow]✗ Interrupted[/bold yellow]")
        sys.exit(130)
    except Exception as e:
        if verbose:
            import traceback

            Console(stderr=True).print(traceback.format_exc(), markup=False, highlight=False)
        _exit_with_error("Unexpected error", f"{type(e).__name__}: {e}")
    sys.exit(status)


def _report_status(status: CompilationStatus) -> int:
    console = Console()
    if status == CompilationStatus.FAILED:
        console.print("[bold red]✗ Build failed[/bold red]")
        return 1
    console.print(f"[bold green]✓ {status}[/bold green]")
    return 0


def build_command(args: BuildArgs) -> NoReturn:
    """Build the package in project_dir.

    Examples:
        roost build          # Incremental build
        roost build -B       # Rebuild everything
        roost build -v       # Show every command line
    """

    def _build() -> int:
        settings = BuildSettings(must_recompile=args.rebuild, verbose=args.verbose)
        manifest = load_manifest(args.project_dir)
        package = Package.from_manifest(manifest)
        toolchain = ToolchainContext.detect()

        start_time = time.time()
        with TimedLogger(f"Building {manifest.name}"):
            status = Builder(package, settings, toolchain).build()
        log_build_complete(str(status), time.time() - start_time)
        return _report_status(status)

    log_header("Roost", __version__)
    _run_command(_build, args.verbose)


def run_test_command(args: TestArgs) -> NoReturn:
    """Build the test target as an executable and run it."""

    def _test() -> int:
        settings = BuildSettings(verbose=args.verbose)
        manifest = load_manifest(args.project_dir)
        if manifest.test_target is None:
            raise ConfigurationError("Missing test target")

        # The test target is always an executable
        manifest = dataclasses.replace(manifest, target_type=TargetType.EXECUTABLE)
        package = Package.for_test(manifest)

        if len(package.entry_points()) != 1:
            raise ConfigurationError("Missing entrance 'main.swift' in test sources")

        toolchain = ToolchainContext.detect()
        builder = Builder(package, settings, toolchain)
        builder.remove_entry_point_objects()

        with TimedLogger(f"Building tests for {manifest.name}"):
            status = builder.build()
        if _report_status(status) != 0:
            return 1

        binary = builder.binary_path()
        log(f"Running {binary}...")
        return run_streaming([str(binary)], cwd=manifest.directory)

    log_header("Roost", __version__)
    _run_command(_test, args.verbose)


def inspect_command(args: ProjectArgs) -> NoReturn:
    """Print the manifest's name, target type, sources, modules and dependencies."""

    def _inspect() -> int:
        manifest = load_manifest(args.project_dir)
        for line in manifest.inspect():
            print(line)
        return 0

    _run_command(_inspect, args.verbose)


def list_command(args: ProjectArgs) -> NoReturn:
    """Read the local package index."""

    def _list() -> int:
        index = read_index(find_index_file())
        log(f"Loading Index version {index.version}... ")
        return 0

    _run_command(_list, args.verbose)


def update_command(args: ProjectArgs) -> NoReturn:
    """Clone or pull every dependency into vendor/."""

    def _update() -> int:
        manifest = load_manifest(args.project_dir)
        runner = ProcessRunner(BuildSettings(verbose=args.verbose))
        return 0 if update_dependencies(manifest, runner) else 1

    _run_command(_update, args.verbose)


def clean_command(args: ProjectArgs) -> NoReturn:
    """Remove intermediate object files from build/."""

    def _clean() -> int:
        manifest = load_manifest(args.project_dir)
        clean_build_directory(manifest.build_directory)
        return 0

    _run_command(_clean, args.verbose)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="roost",
        description="Roost - build manager for Swift packages",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"roost {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Build command
    build_parser = subparsers.add_parser("build", help="Build project")
    build_parser.add_argument(
        "-B",
        "--rebuild",
        action="store_true",
        help="Rebuild package",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose logging",
    )

    # Test command
    test_parser = subparsers.add_parser("test", help="Build and run the test target")
    test_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose logging",
    )

    # Update command
    update_parser = subparsers.add_parser("update", help="Update (or fetch if not present) project dependencies")
    update_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose logging",
    )

    subparsers.add_parser("inspect", help="Show project details")
    subparsers.add_parser("list", help="List all packages in the index")
    subparsers.add_parser("clean", help="Remove intermediate build files")

    return parser


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Entry point for the `roost` command."""
    arguments = sys.argv[1:] if argv is None else argv
    if not arguments:
        print(USAGE)
        sys.exit(1)

    if not arguments[0].startswith("-") and arguments[0] not in COMMANDS:
        print(f"Invalid command: '{arguments[0]}'")
        print(USAGE)
        sys.exit(1)

    parser = create_parser()
    parsed_args = parser.parse_args(arguments)

    verbose = getattr(parsed_args, "verbose", False)
    _configure_logging(verbose)

    project_dir = Path.cwd()

    # Execute command
    if parsed_args.command == "build":
        build_command(BuildArgs(project_dir=project_dir, rebuild=parsed_args.rebuild, verbose=verbose))
    elif parsed_args.command == "test":
        run_test_command(TestArgs(project_dir=project_dir, verbose=verbose))
    elif parsed_args.command == "inspect":
        inspect_command(ProjectArgs(project_dir=project_dir))
    elif parsed_args.command == "list":
        list_command(ProjectArgs(project_dir=project_dir))
    elif parsed_args.command == "update":
        update_command(ProjectArgs(project_dir=project_dir, verbose=verbose))
    elif parsed_args.command == "clean":
        clean_command(ProjectArgs(project_dir=project_dir))

    print(USAGE)
    sys.exit(1)


if __name__ == "__main__":
    main()
