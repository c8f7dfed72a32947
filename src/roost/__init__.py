"""Roost - incremental build manager for Swift packages.

Reads a Roostfile.yaml manifest, builds the declared dependencies from the
vendor directory, and drives the Swift frontend, libtool and ld to produce
objects, static libraries, module files and executables.
"""

__version__ = "0.3.0"
