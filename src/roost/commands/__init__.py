"""Command implementations that operate on a package directory."""

from .clean import clean_build_directory
from .update import update_dependencies

__all__ = ["clean_build_directory", "update_dependencies"]
