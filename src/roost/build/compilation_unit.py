"""Single primary-file compilation.

The Swift frontend needs every file of a module to resolve cross-file
references, even when it only emits the object for one of them. A
CompilationUnit therefore passes all sibling sources and marks one as
`-primary-file`:

    swift -frontend -c Other.swift Util.swift -primary-file main.swift ... -o build/main.swift-1a2b3c.o
"""

import logging
import os
from dataclasses import dataclass
from typing import Sequence

from ..output import log_error
from ..process import ProcessRunner
from .compile_options import CompileOptions

logger = logging.getLogger(__name__)


@dataclass
class CompilationUnit:
    """One source file compiled into one object file.

    Attributes:
        compile_options: Shared options of the package being built
        primary_source_file: The source this unit emits an object for
        other_source_files: Every other source of the package, in order
        target_object_file: Output object path
    """

    compile_options: CompileOptions
    primary_source_file: str
    other_source_files: Sequence[str]
    target_object_file: str

    @property
    def filename(self) -> str:
        return os.path.basename(self.primary_source_file)

    def arguments(self) -> list[str]:
        """Full frontend command line for this unit."""
        sources = list(self.other_source_files)
        sources.extend(["-primary-file", self.primary_source_file])

        arguments = self.compile_options.frontend_arguments(sources)
        arguments.extend(["-o", self.target_object_file])
        return arguments

    def compile(self, runner: ProcessRunner) -> int:
        """
        Run the frontend.

        Returns:
            The frontend's exit status (0 on success)
        """
        status = runner.run(
            f"Compiling {self.filename}... ",
            self.arguments(),
            f"Compiled {self.filename}",
        )
        if status != 0:
            log_error(f"Failed to compile {self.filename} (exit status {status})")
        return status
