"""
Roostfile.yaml manifest loading.

The manifest is plain YAML decoded into frozen dataclasses. Unknown keys are
rejected so typos surface immediately instead of silently dropping settings.

Example:
    name: Demo
    version: 0.1.0
    target_type: executable
    sources:
      - Sources/
      - main.swift
    modules:
      Core:
        sources:
          - Core/
    dependencies:
      - github: example/Json
      - github: example/Spec
        test: true
    framework_search_paths:
      - Frameworks
    compiler_options: -D DEBUG
    linker_options: -framework Foundation
    precompile_commands:
      - ./scripts/generate.sh
    test_target:
      sources:
        - Tests/
      compiler_options: -I {root}/Tests
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .errors import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "Roostfile.yaml"

_TOP_LEVEL_KEYS = (
    "name",
    "version",
    "target_type",
    "sources",
    "modules",
    "dependencies",
    "framework_search_paths",
    "compiler_options",
    "linker_options",
    "precompile_commands",
    "test_target",
)
_MODULE_KEYS = ("sources",)
_DEPENDENCY_KEYS = ("github", "test")
_TEST_TARGET_KEYS = ("sources", "compiler_options", "linker_options")


class TargetType(Enum):
    """What a package produces."""

    UNKNOWN = "unknown"
    EXECUTABLE = "executable"
    FRAMEWORK = "framework"
    MODULE = "module"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ManifestModule:
    """A named sub-module declared under `modules:`."""

    name: str
    sources: tuple[str, ...]


@dataclass(frozen=True)
class Dependency:
    """A dependency declared under `dependencies:`.

    Attributes:
        github: GitHub identifier in `owner/repo` form
        test: Only needed when building the test target
    """

    github: str
    test: bool = False

    @property
    def short_name(self) -> str:
        """Repository name, used as the vendor directory name."""
        return self.github.rstrip("/").split("/")[-1]

    @property
    def source_url(self) -> str:
        return f"https://github.com/{self.github}.git"

    def local_directory(self, vendor_directory: Union[str, Path]) -> Path:
        """Where this dependency is expected inside the vendor directory."""
        return Path(vendor_directory) / self.short_name


@dataclass(frozen=True)
class TestTarget:
    """The `test_target:` block."""

    __test__ = False  # not a pytest test class

    sources: tuple[str, ...]
    compiler_options: str = ""
    linker_options: str = ""


@dataclass(frozen=True)
class Manifest:
    """Decoded Roostfile.yaml.

    Attributes:
        name: Package name; also the module name and library name
        directory: Absolute package root (the directory holding the manifest)
        target_type: What the package produces
        sources: Source entries (files ending in .swift or directories ending in /)
        version: Free-form version string
        modules: Sub-modules, in declaration order
        dependencies: Dependencies, in declaration order
        framework_search_paths: Paths passed as -F and added as rpaths
        compiler_options: Extra compiler flags, may contain `{root}`
        linker_options: Extra linker flags, may contain `{root}`
        precompile_commands: Shell commands run before compiling
        test_target: Optional test target block
    """

    name: str
    directory: Path
    target_type: TargetType
    sources: tuple[str, ...]
    version: str = ""
    modules: tuple[ManifestModule, ...] = ()
    dependencies: tuple[Dependency, ...] = ()
    framework_search_paths: tuple[str, ...] = ()
    compiler_options: str = ""
    linker_options: str = ""
    precompile_commands: tuple[str, ...] = ()
    test_target: Optional[TestTarget] = None

    @property
    def build_directory(self) -> Path:
        return self.directory / "build"

    @property
    def vendor_directory(self) -> Path:
        return self.directory / "vendor"

    @property
    def bin_directory(self) -> Path:
        return self.directory / "bin"

    def inspect(self) -> list[str]:
        """Human-readable summary lines (used by `roost inspect`)."""
        lines = [
            f"name {self.name}",
            f"target_type {self.target_type}",
            f"sources {list(self.sources)}",
        ]
        for module in self.modules:
            lines.append(f"module {module.name}")
            lines.append(f"  sources {list(module.sources)}")
        for dependency in self.dependencies:
            suffix = " (test)" if dependency.test else ""
            lines.append(f"dependency {dependency.github}{suffix}")
        return lines


def load_manifest(directory: Union[str, Path]) -> Manifest:
    """
    Load Roostfile.yaml from a package directory.

    Args:
        directory: Package root

    Returns:
        Decoded manifest with an absolute directory

    Raises:
        ManifestError: If the file is missing or invalid
    """
    root = Path(directory).resolve()
    path = root / MANIFEST_FILENAME
    if not path.is_file():
        raise ManifestError(f"Missing Roostfile in '{root}'")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Failed to read {path}: {e}") from e

    return parse_manifest(text, root)


def parse_manifest(text: str, directory: Union[str, Path]) -> Manifest:
    """
    Decode manifest text.

    Args:
        text: YAML document
        directory: Package root the manifest belongs to

    Raises:
        ManifestError: On YAML errors, unknown keys, or missing/invalid fields
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in Roostfile: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ManifestError("Roostfile must be a mapping of keys to values")

    _reject_unknown_keys(data, _TOP_LEVEL_KEYS, "Roostfile")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError("Missing name in Roostfile")

    try:
        target_type = TargetType(str(data.get("target_type", "unknown")).lower())
    except ValueError:
        raise ManifestError(f"Unknown target_type '{data.get('target_type')}'") from None

    sources = _string_list(data, "sources", "Roostfile")
    if not sources:
        raise ManifestError("Must have at least one source in sources")

    manifest = Manifest(
        name=name.strip(),
        directory=Path(directory),
        target_type=target_type,
        sources=sources,
        version=str(data.get("version") or ""),
        modules=_parse_modules(data.get("modules")),
        dependencies=_parse_dependencies(data.get("dependencies")),
        framework_search_paths=_string_list(data, "framework_search_paths", "Roostfile"),
        compiler_options=_option_string(data, "compiler_options", "Roostfile"),
        linker_options=_option_string(data, "linker_options", "Roostfile"),
        precompile_commands=_string_list(data, "precompile_commands", "Roostfile"),
        test_target=_parse_test_target(data.get("test_target")),
    )
    logger.debug(f"Parsed manifest for {manifest.name} in {manifest.directory}")
    return manifest


def _reject_unknown_keys(data: dict, allowed: tuple[str, ...], where: str) -> None:
    unknown = [str(key) for key in data if key not in allowed]
    if unknown:
        raise ManifestError(f"Unrecognized key(s) in {where}: {', '.join(unknown)}")


def _string_list(data: dict, key: str, where: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ManifestError(f"'{key}' in {where} must be a list of strings")
    return tuple(value)


def _option_string(data: dict, key: str, where: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, list):
        value = " ".join(str(item) for item in value)
    if not isinstance(value, str):
        raise ManifestError(f"'{key}' in {where} must be a string")
    return value


def _parse_modules(value: Any) -> tuple[ManifestModule, ...]:
    if value is None:
        return ()
    if not isinstance(value, dict):
        raise ManifestError("'modules' must map module names to their definitions")

    modules = []
    for name, definition in value.items():
        where = f"module '{name}'"
        if not isinstance(definition, dict):
            raise ManifestError(f"{where} must be a mapping with 'sources'")
        _reject_unknown_keys(definition, _MODULE_KEYS, where)
        sources = _string_list(definition, "sources", where)
        if not sources:
            raise ManifestError(f"{where} must have at least one source")
        modules.append(ManifestModule(name=str(name), sources=sources))
    return tuple(modules)


def _parse_dependencies(value: Any) -> tuple[Dependency, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ManifestError("'dependencies' must be a list")

    dependencies = []
    for index, definition in enumerate(value):
        where = f"dependency #{index + 1}"
        if not isinstance(definition, dict):
            raise ManifestError(f"{where} must be a mapping with 'github'")
        _reject_unknown_keys(definition, _DEPENDENCY_KEYS, where)
        github = definition.get("github")
        if not isinstance(github, str) or not github.strip("/ "):
            raise ManifestError(f"{where} is missing 'github'")
        dependencies.append(Dependency(github=github.strip(), test=bool(definition.get("test", False))))
    return tuple(dependencies)


def _parse_test_target(value: Any) -> Optional[TestTarget]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ManifestError("'test_target' must be a mapping")
    _reject_unknown_keys(value, _TEST_TARGET_KEYS, "test_target")
    sources = _string_list(value, "sources", "test_target")
    if not sources:
        raise ManifestError("test_target must have at least one source")
    return TestTarget(
        sources=sources,
        compiler_options=_option_string(value, "compiler_options", "test_target"),
        linker_options=_option_string(value, "linker_options", "test_target"),
    )
