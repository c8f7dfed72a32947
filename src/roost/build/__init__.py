"""
Build system components for roost.

- build_context: BuildSettings and the detected ToolchainContext
- platforms: deployment targets (triple, minimum OS version, architecture)
- sources: source entry resolution (files and directories)
- compile_options: compiler/linker flag accumulation and object naming
- compilation_unit: one primary-file frontend invocation
- builder: per-package build orchestration
"""
