"""movefuzz — build options for fuzzing Move packages.

Holds the configuration that controls how a fuzz target is compiled and the
mapping between that configuration and the command-line flags used to
re-invoke the build, such that parsing serialized options gives back the
same options.
"""

from movefuzz.cli import parse_build_options, parse_fuzz_dir
from movefuzz.errors import ConflictError, MalformedValueError, OptionsError, UnrecognizedFlagError
from movefuzz.options import (
    BuildMode,
    BuildOptions,
    CargoBuildOptions,
    FuzzDirWrapper,
    MoveBuildOptions,
    Sanitizer,
)

__version__ = "0.1.0"

__all__ = [
    "BuildMode",
    "BuildOptions",
    "CargoBuildOptions",
    "ConflictError",
    "FuzzDirWrapper",
    "MalformedValueError",
    "MoveBuildOptions",
    "OptionsError",
    "Sanitizer",
    "UnrecognizedFlagError",
    "parse_build_options",
    "parse_fuzz_dir",
]
