"""Tests for package build orchestration.

Builds run against RecordingRunner, which writes the output files a real
toolchain would, so incremental decisions are driven by real timestamps.
Sources are backdated before the first build so outputs are always newer.
"""

import os

import pytest

from conftest import RecordingRunner, set_mtime
from roost.build.build_context import BuildSettings
from roost.build.builder import Builder, BuildState, CompilationStatus
from roost.errors import MissingDependencyError, UnknownTargetTypeError
from roost.manifest import load_manifest
from roost.package import Package

EXECUTABLE = """
name: Demo
target_type: executable
sources:
  - main.swift
"""

WITH_MODULE = """
name: App
target_type: executable
sources:
  - Sources/
  - main.swift
modules:
  Core:
    sources:
      - Core/
"""

MODULE = """
name: Json
target_type: module
sources:
  - Sources/
"""

WITH_DEPENDENCY = """
name: App
target_type: executable
sources:
  - main.swift
dependencies:
  - github: example/Json
  - github: example/Spec
    test: true
"""


def _backdate(root):
    for current, _dirs, files in os.walk(root):
        for filename in files:
            if filename.endswith(".swift"):
                set_mtime(os.path.join(current, filename), -100)


def _builder(root, toolchain, runner, settings=None, for_test=False):
    manifest = load_manifest(root)
    package = Package.for_test(manifest) if for_test else Package.from_manifest(manifest)
    return Builder(package, settings or BuildSettings(), toolchain, runner)


def _build(root, toolchain, runner, settings=None):
    return _builder(root, toolchain, runner, settings).build()


@pytest.fixture
def demo(make_project):
    root = make_project("Demo", EXECUTABLE, {"main.swift": 'print("hi")'})
    _backdate(root)
    return root


@pytest.fixture
def app(make_project):
    root = make_project(
        "App",
        WITH_MODULE,
        {
            "main.swift": "print(Core().value)",
            "Sources/Helper.swift": "func helper() {}",
            "Core/Core.swift": "public struct Core { public let value = 1 }",
        },
    )
    _backdate(root)
    return root


@pytest.fixture
def app_with_dependency(make_project):
    root = make_project("App", WITH_DEPENDENCY, {"main.swift": "import Json"})
    make_project("Json", MODULE, {"Sources/Json.swift": "public struct Json {}"}, parent=root / "vendor")
    _backdate(root)
    return root


class TestExecutable:
    """Test building an executable target."""

    def test_fresh_build(self, demo, toolchain, runner):
        builder = _builder(demo, toolchain, runner)
        status = builder.build()

        assert status == CompilationStatus.COMPILED
        assert builder.state == BuildState.DONE
        assert builder.status == CompilationStatus.COMPILED
        assert len(runner.frontend_calls) == 1
        assert len(runner.commands_for("ld")) == 1
        assert (demo / "bin" / "demo").is_file()
        assert (demo / "build").is_dir()
        assert (demo / "vendor").is_dir()

    def test_second_build_is_skipped(self, demo, toolchain, runner):
        _build(demo, toolchain, runner)
        runner.reset()

        assert _build(demo, toolchain, runner) == CompilationStatus.SKIPPED
        assert runner.calls == []

    def test_touched_source_recompiles(self, app, toolchain, runner):
        _build(app, toolchain, runner)
        runner.reset()
        set_mtime(app / "Sources" / "Helper.swift", 10)

        assert _build(app, toolchain, runner) == CompilationStatus.COMPILED
        primaries = [args[args.index("-primary-file") + 1] for args in runner.frontend_calls]
        assert [os.path.basename(path) for path in primaries] == ["Helper.swift"]
        assert len(runner.commands_for("ld")) == 1
        # The sub-module did not change
        assert runner.commands_for("swiftc") == []

    def test_force_rebuild(self, demo, toolchain, runner):
        _build(demo, toolchain, runner)
        runner.reset()

        status = _build(demo, toolchain, runner, BuildSettings(must_recompile=True))
        assert status == CompilationStatus.COMPILED
        assert len(runner.frontend_calls) == 1
        assert len(runner.commands_for("ld")) == 1

    def test_missing_object_recompiles(self, demo, toolchain, runner):
        _build(demo, toolchain, runner)
        runner.reset()
        for object_file in (demo / "build").glob("*.o"):
            object_file.unlink()

        assert _build(demo, toolchain, runner) == CompilationStatus.COMPILED
        assert len(runner.frontend_calls) == 1

    def test_compile_failure_skips_link(self, demo, toolchain):
        runner = RecordingRunner(fail_when=lambda arguments: arguments[0] == "swift")

        assert _build(demo, toolchain, runner) == CompilationStatus.FAILED
        assert runner.commands_for("ld") == []
        assert not (demo / "bin" / "demo").exists()

    def test_link_failure(self, demo, toolchain):
        runner = RecordingRunner(fail_when=lambda arguments: arguments[0] == "ld")
        assert _build(demo, toolchain, runner) == CompilationStatus.FAILED

    def test_each_source_sees_its_siblings(self, app, toolchain, runner):
        _build(app, toolchain, runner)

        for arguments in runner.frontend_calls:
            sources = [arg for arg in arguments if arg.endswith(".swift")]
            assert sorted(os.path.basename(path) for path in sources) == ["Helper.swift", "main.swift"]


class TestSubModules:
    """Test sub-modules compiled into static libraries."""

    def test_module_built_before_sources(self, app, toolchain, runner):
        assert _build(app, toolchain, runner) == CompilationStatus.COMPILED

        tools = [arguments[0] for arguments in runner.commands]
        assert tools[:3] == ["swiftc", "swiftc", "libtool"]
        assert (app / "build" / "libCore.a").is_file()
        assert (app / "build" / "Core.swiftmodule").is_file()
        assert not (app / "build" / "tmp-Core.o").exists()

        link = runner.commands_for("ld")[0]
        assert "-lCore" in link
        assert str(app.resolve() / "build") in link

    def test_unchanged_module_is_skipped(self, app, toolchain, runner):
        _build(app, toolchain, runner)
        runner.reset()
        set_mtime(app / "main.swift", 10)

        _build(app, toolchain, runner)
        assert runner.commands_for("swiftc") == []
        assert runner.commands_for("libtool") == []

    def test_changed_module_forces_relink(self, app, toolchain, runner):
        _build(app, toolchain, runner)
        runner.reset()
        set_mtime(app / "Core" / "Core.swift", 10)

        assert _build(app, toolchain, runner) == CompilationStatus.COMPILED
        assert len(runner.commands_for("swiftc")) == 2
        assert runner.frontend_calls == []
        assert len(runner.commands_for("ld")) == 1

    def test_missing_module_file_rebuilds(self, app, toolchain, runner):
        _build(app, toolchain, runner)
        runner.reset()
        (app / "build" / "Core.swiftmodule").unlink()

        assert _build(app, toolchain, runner) == CompilationStatus.COMPILED
        assert len(runner.commands_for("swiftc")) == 2
        assert (app / "build" / "Core.swiftmodule").is_file()
        assert len(runner.commands_for("ld")) == 1

    def test_module_failure_stops_build(self, app, toolchain):
        runner = RecordingRunner(fail_when=lambda arguments: arguments[0] == "swiftc")

        assert _build(app, toolchain, runner) == CompilationStatus.FAILED
        assert runner.frontend_calls == []


class TestModuleTarget:
    """Test building a module target."""

    def test_archive_and_emit_module(self, make_project, toolchain, runner):
        root = make_project("Json", MODULE, {"Sources/Json.swift": "", "Sources/Parse.swift": ""})
        _backdate(root)

        assert _build(root, toolchain, runner) == CompilationStatus.COMPILED
        assert len(runner.frontend_calls) == 2

        archive = runner.commands_for("libtool")[0]
        assert archive[:4] == ["libtool", "-static", "-o", str(root.resolve() / "build" / "libJson.a")]
        assert len(archive) == 6

        emit = runner.commands_for("swiftc")[0]
        assert emit[-2:] == ["-emit-module-path", str(root.resolve() / "build" / "Json.swiftmodule")]
        assert runner.commands_for("ld") == []

    def test_up_to_date_module_is_skipped(self, make_project, toolchain, runner):
        root = make_project("Json", MODULE, {"Sources/Json.swift": ""})
        _backdate(root)
        _build(root, toolchain, runner)
        runner.reset()

        assert _build(root, toolchain, runner) == CompilationStatus.SKIPPED
        assert runner.calls == []

    def test_missing_library_rebuilds(self, make_project, toolchain, runner):
        root = make_project("Json", MODULE, {"Sources/Json.swift": ""})
        _backdate(root)
        _build(root, toolchain, runner)
        runner.reset()
        (root / "build" / "libJson.a").unlink()

        assert _build(root, toolchain, runner) == CompilationStatus.COMPILED
        assert len(runner.commands_for("libtool")) == 1


class TestDependencies:
    """Test building dependencies from the vendor directory."""

    def test_dependency_built_first_and_linked(self, app_with_dependency, toolchain, runner):
        assert _build(app_with_dependency, toolchain, runner) == CompilationStatus.COMPILED

        dependency_build = str(app_with_dependency.resolve() / "vendor" / "Json" / "build")
        tools = [arguments[0] for arguments in runner.commands]
        assert tools.index("libtool") < len(tools) - 2
        assert tools[-1] == "ld"

        app_compile = runner.frontend_calls[-1]
        assert ["-I", dependency_build] == app_compile[app_compile.index("-I") : app_compile.index("-I") + 2]

        link = runner.commands_for("ld")[0]
        assert "-lJson" in link
        assert dependency_build in link

    def test_dependencies_built_and_linked_in_declaration_order(self, make_project, toolchain, runner):
        manifest = EXECUTABLE + "dependencies:\n  - github: example/Zeta\n  - github: example/Alpha\n"
        root = make_project("Demo", manifest, {"main.swift": ""})
        for name in ("Zeta", "Alpha"):
            make_project(
                name,
                MODULE.replace("name: Json", f"name: {name}"),
                {f"Sources/{name}.swift": ""},
                parent=root / "vendor",
            )
        _backdate(root)

        assert _build(root, toolchain, runner) == CompilationStatus.COMPILED

        archives = [os.path.basename(arguments[3]) for arguments in runner.commands_for("libtool")]
        assert archives == ["libZeta.a", "libAlpha.a"]

        link = runner.commands_for("ld")[0]
        libraries = [arg for arg in link if arg.startswith("-l")]
        assert libraries == ["-lZeta", "-lAlpha", "-lSystem"]

        runner.reset()
        assert _build(root, toolchain, runner) == CompilationStatus.SKIPPED
        assert runner.calls == []

    def test_test_only_dependency_not_built(self, app_with_dependency, toolchain, runner):
        # example/Spec is not in vendor/; a regular build must not need it
        assert _build(app_with_dependency, toolchain, runner) == CompilationStatus.COMPILED

    def test_missing_dependency(self, make_project, toolchain, runner):
        root = make_project("App", WITH_DEPENDENCY, {"main.swift": ""})

        with pytest.raises(MissingDependencyError, match="Json"):
            _build(root, toolchain, runner)
        assert runner.calls == []

    def test_rebuilt_dependency_forces_relink(self, app_with_dependency, toolchain, runner):
        _build(app_with_dependency, toolchain, runner)
        runner.reset()
        set_mtime(app_with_dependency / "vendor" / "Json" / "Sources" / "Json.swift", 10)

        assert _build(app_with_dependency, toolchain, runner) == CompilationStatus.COMPILED
        assert len(runner.commands_for("ld")) == 1
        # Only the dependency's source was recompiled
        assert len(runner.frontend_calls) == 1

    def test_failed_dependency_stops_build(self, app_with_dependency, toolchain):
        runner = RecordingRunner(fail_when=lambda arguments: any(arg.endswith("Json.swift") for arg in arguments))

        assert _build(app_with_dependency, toolchain, runner) == CompilationStatus.FAILED
        assert runner.commands_for("ld") == []
        assert all("main.swift" not in " ".join(arguments) for arguments in runner.commands)

    def test_dependency_options_use_dependency_root(self, make_project, toolchain, runner):
        root = make_project("App", WITH_DEPENDENCY, {"main.swift": ""})
        make_project(
            "Json",
            MODULE + "compiler_options: -I {root}/include\n",
            {"Sources/Json.swift": ""},
            parent=root / "vendor",
        )
        _backdate(root)

        _build(root, toolchain, runner)
        app_compile = runner.frontend_calls[-1]
        assert str(root.resolve() / "vendor" / "Json" / "include") in app_compile


class TestPrecompileCommands:
    """Test commands run before compiling."""

    def test_runs_in_package_root(self, make_project, toolchain, runner):
        root = make_project("Demo", EXECUTABLE + "precompile_commands:\n  - ./generate.sh\n", {"main.swift": ""})

        _build(root, toolchain, runner)
        _, arguments, _, cwd = runner.calls[0]
        assert arguments == ["sh", "-c", "./generate.sh"]
        assert cwd == str(root.resolve())

    def test_failure_fails_build(self, make_project, toolchain):
        root = make_project("Demo", EXECUTABLE + "precompile_commands:\n  - exit 3\n", {"main.swift": ""})
        runner = RecordingRunner(fail_when=lambda arguments: arguments[0] == "sh")

        assert _build(root, toolchain, runner) == CompilationStatus.FAILED
        assert runner.frontend_calls == []


class TestTargetTypes:
    """Test target types that cannot be built."""

    @pytest.mark.parametrize("target_type", ["unknown", "framework"])
    def test_unbuildable_target_type(self, make_project, toolchain, runner, target_type):
        manifest = f"name: Demo\ntarget_type: {target_type}\nsources: [main.swift]\n"
        root = make_project("Demo", manifest, {"main.swift": ""})

        with pytest.raises(UnknownTargetTypeError, match=target_type):
            _build(root, toolchain, runner)
        assert runner.calls == []
        assert not (root / "build").exists()


class TestTestBuild:
    """Test the executable built for `roost test`."""

    @pytest.fixture
    def project(self, make_project):
        manifest = EXECUTABLE.replace("- main.swift", "- main.swift\n  - App.swift") + (
            "test_target:\n  sources:\n    - Tests/\n"
        )
        root = make_project(
            "Demo",
            manifest,
            {"main.swift": "", "App.swift": "", "Tests/main.swift": "", "Tests/AppTests.swift": ""},
        )
        _backdate(root)
        return root

    def test_binary_and_sdk_frameworks(self, project, toolchain, runner):
        builder = _builder(project, toolchain, runner, for_test=True)

        assert builder.build() == CompilationStatus.COMPILED
        assert (project / "bin" / "test-demo").is_file()

        link = runner.commands_for("ld")[0]
        assert ["-rpath", toolchain.sdk_platform_frameworks_path] == link[
            link.index(toolchain.sdk_platform_frameworks_path) - 1 : link.index(toolchain.sdk_platform_frameworks_path) + 1
        ]
        sources = [arg for arg in runner.frontend_calls[0] if arg.endswith(".swift")]
        assert str(project.resolve() / "main.swift") not in sources

    def test_remove_entry_point_objects(self, project, toolchain, runner):
        builder = _builder(project, toolchain, runner, for_test=True)
        builder.build()
        objects = sorted(path.name for path in (project / "build").glob("*.o"))
        assert len(objects) == 3

        builder.remove_entry_point_objects()
        remaining = sorted(path.name for path in (project / "build").glob("*.o"))
        assert len(remaining) == 2
        assert not any(name.startswith("main.swift-") for name in remaining)
