"""Exception hierarchy for roost.

Every fatal condition raised by the library derives from RoostError. The
CLI is the only place that turns these into a diagnostic and a non-zero
exit status; failed tool invocations are reported as
CompilationStatus.FAILED instead of being raised.
"""


class RoostError(Exception):
    """Base class for all roost errors."""

    pass


class ConfigurationError(RoostError):
    """Raised when a manifest or package is not buildable as declared."""

    pass


class ManifestError(ConfigurationError):
    """Raised when Roostfile.yaml is missing, malformed or has unknown keys."""

    pass


class SourceParseError(ConfigurationError):
    """Raised when source entries are neither a source file nor a directory.

    Attributes:
        entries: Every offending entry, in declaration order
    """

    def __init__(self, entries: list[str]):
        self.entries = list(entries)
        super().__init__(f"Failed to parse as file or directory: {', '.join(self.entries)}")


class UnknownTargetTypeError(ConfigurationError):
    """Raised when a package's target type cannot be built."""

    pass


class MissingDependencyError(RoostError):
    """Raised when a declared dependency is absent from the vendor directory."""

    def __init__(self, name: str, directory: str):
        self.name = name
        self.directory = directory
        super().__init__(f"Missing dependency {name} (expected at {directory})")


class FilesystemError(RoostError):
    """Raised when a required directory cannot be created or read."""

    pass


class EnumerationError(FilesystemError):
    """Raised when a source directory does not exist or cannot be listed."""

    pass


class IndexFileError(RoostError):
    """Raised when the package index is missing or unreadable."""

    pass
