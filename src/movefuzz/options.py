"""Build option value objects and their flag serialization.

Every record here is an immutable value built once per command, either by
:func:`movefuzz.cli.parse_build_options` or programmatically (for example the
coverage command derives its options with :meth:`BuildOptions.for_coverage`).

Each record can write itself back out as command-line flags so the tool can
re-invoke itself or a build subprocess with an equivalent configuration.
Only fields that differ from their defaults are written, which keeps the
output parseable back into an identical value::

    opts = parse_build_options("-O --sanitizer=none -Zbuild-std")
    assert parse_build_options(opts.serialize()) == opts

Serialization
~~~~~~~~~~~~~
``to_args()`` returns the flag tokens; ``serialize()`` (and ``str()``) joins
them with spaces, shell-quoting any token that needs it.  The all-defaults
:class:`BuildOptions` serializes to the empty string.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Sequence

from movefuzz.config import default_target
from movefuzz.errors import ConflictError, MalformedValueError

U32_MAX = 2**32 - 1


class Sanitizer(str, Enum):
    """Sanitizer instrumentation selected with ``--sanitizer``.

    The enum value is the token accepted on the command line.  ``ADDRESS``
    is the default and is never written out; ``NONE`` is an explicit choice
    and is always written as ``--sanitizer=none``.
    """

    ADDRESS = "address"
    LEAK = "leak"
    MEMORY = "memory"
    THREAD = "thread"
    NONE = "none"

    def display(self) -> str:
        """Canonical display name; empty for ``NONE``."""
        if self is Sanitizer.NONE:
            return ""
        return self.value

    def __str__(self) -> str:
        return self.display()


class BuildMode(str, Enum):
    """Cargo subcommand used to produce the fuzz target."""

    BUILD = "build"
    CHECK = "check"


class _FlagWriter:
    """Collects flag tokens for fields that differ from their defaults."""

    def __init__(self) -> None:
        self.args: list[str] = []

    def switch(self, flag: str, enabled: bool) -> None:
        if enabled:
            self.args.append(flag)

    def value(self, flag: str, value: object) -> None:
        if value is not None:
            self.args.append(f"{flag}={value}")


def _join(args: Sequence[str]) -> str:
    return shlex.join(args)


# ---------------------------------------------------------------------------
# Move compiler options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MoveBuildOptions:
    """Options for the Move compiler front end."""

    # Bytecode version to compile Move code to
    bytecode_version: int | None = None
    # Only fetch dependency repos to MOVE_HOME
    fetch_deps_only: bool = False
    # Force recompilation of all packages
    force: bool = False
    skip_fetch_latest_git_deps: bool = False

    def __post_init__(self) -> None:
        version = self.bytecode_version
        if version is not None and (
            isinstance(version, bool) or not isinstance(version, int) or not 0 <= version <= U32_MAX
        ):
            raise MalformedValueError(
                f"invalid value {version!r} for '--bytecode-version': "
                f"expected an integer in 0..={U32_MAX}"
            )

    def to_args(self) -> list[str]:
        w = _FlagWriter()
        w.value("--bytecode-version", self.bytecode_version)
        w.switch("--fetch-deps-only", self.fetch_deps_only)
        w.switch("--force", self.force)
        w.switch("--skip-fetch-latest-git-deps", self.skip_fetch_latest_git_deps)
        return w.args

    def serialize(self) -> str:
        return _join(self.to_args())

    __str__ = serialize


# ---------------------------------------------------------------------------
# Cargo options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CargoBuildOptions:
    """Options for the cargo build of the fuzz target.

    ``all_features`` excludes both ``no_default_features`` and
    ``features``; constructing such a combination raises
    :class:`~movefuzz.errors.ConflictError`.

    ``coverage`` has no user-facing flag.  The coverage command sets it
    programmatically, and it still round-trips through the hidden
    ``--coverage`` flag when the tool re-invokes itself.
    """

    release: bool = False
    debug_assertions: bool = False
    no_default_features: bool = False
    all_features: bool = False
    features: str | None = None
    sanitizer: Sanitizer = Sanitizer.ADDRESS
    build_std: bool = False
    careful_mode: bool = False
    triple: str = field(default_factory=default_target)
    unstable_flags: tuple[str, ...] = ()
    coverage: bool = False
    strip_dead_code: bool = False
    no_cfg_fuzzing: bool = False
    no_trace_compares: bool = False

    def __post_init__(self) -> None:
        try:
            sanitizer = Sanitizer(self.sanitizer)
        except ValueError as exc:
            choices = ", ".join(s.value for s in Sanitizer)
            raise MalformedValueError(
                f"invalid value {self.sanitizer!r} for '--sanitizer': expected one of {choices}"
            ) from exc
        object.__setattr__(self, "sanitizer", sanitizer)
        object.__setattr__(self, "unstable_flags", tuple(self.unstable_flags))
        # A bare -Z would take the next token as its value
        if any(not flag for flag in self.unstable_flags):
            raise MalformedValueError("empty value for '-Z': unstable flags must be non-empty")
        if self.all_features and self.no_default_features:
            raise ConflictError("--all-features", "--no-default-features")
        if self.all_features and self.features is not None:
            raise ConflictError("--all-features", "--features")

    def to_args(self) -> list[str]:
        w = _FlagWriter()
        w.switch("-O", self.release)
        w.switch("--no-default-features", self.no_default_features)
        w.switch("--all-features", self.all_features)
        w.value("--features", self.features)

        if self.sanitizer is Sanitizer.NONE:
            w.args.append("--sanitizer=none")
        elif self.sanitizer is not Sanitizer.ADDRESS:
            w.args.append(f"--sanitizer={self.sanitizer!s}")

        w.switch("--build-std", self.build_std)
        w.switch("--careful", self.careful_mode)
        w.switch("--coverage", self.coverage)
        w.switch("--debug-assertions", self.debug_assertions)
        w.switch("--strip-dead-code", self.strip_dead_code)
        w.switch("--no-cfg-fuzzing", self.no_cfg_fuzzing)
        w.switch("--no-trace-compares", self.no_trace_compares)

        if self.triple != default_target():
            w.args.append(f"--target={self.triple}")

        w.args.extend(f"-Z{flag}" for flag in self.unstable_flags)
        return w.args

    def serialize(self) -> str:
        return _join(self.to_args())

    __str__ = serialize


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BuildOptions:
    """All options controlling how a fuzz target is built."""

    # Build artifacts in development mode, without optimizations
    dev: bool = False
    verbose: bool = False
    target_dir: str | None = None
    move_options: MoveBuildOptions = field(default_factory=MoveBuildOptions)
    cargo_options: CargoBuildOptions = field(default_factory=CargoBuildOptions)

    def __post_init__(self) -> None:
        if self.dev and self.cargo_options.release:
            raise ConflictError("--dev", "--release")

    def to_args(self) -> list[str]:
        w = _FlagWriter()
        w.args.extend(self.move_options.to_args())
        w.args.extend(self.cargo_options.to_args())
        w.switch("-D", self.dev)
        w.switch("-v", self.verbose)
        w.value("--target-dir", self.target_dir)
        return w.args

    def serialize(self) -> str:
        return _join(self.to_args())

    __str__ = serialize

    def for_coverage(self) -> BuildOptions:
        """Return a copy set up for a coverage build.

        Coverage instrumentation does not work together with
        ``-Zbuild-std``, so that is switched off as well.
        """
        cargo = replace(self.cargo_options, coverage=True, build_std=False)
        return replace(self, cargo_options=cargo)

    def command_line(
        self,
        mode: BuildMode,
        fuzz_dir: FuzzDirWrapper | None = None,
        *extra: str,
    ) -> list[str]:
        """Arguments for re-invoking the tool with these options.

        Returns ``[mode, *fuzz-dir flags, *build flags, *extra]``, e.g.
        ``["build", "--fuzz-dir=fuzz", "-O", "my_target"]``.
        """
        args = [mode.value]
        if fuzz_dir is not None:
            args.extend(fuzz_dir.to_args())
        args.extend(self.to_args())
        args.extend(extra)
        return args


# ---------------------------------------------------------------------------
# Fuzz directory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FuzzDirWrapper:
    """Optional location of the fuzz project directory."""

    fuzz_dir: Path | None = None

    def __post_init__(self) -> None:
        if self.fuzz_dir is not None:
            object.__setattr__(self, "fuzz_dir", Path(self.fuzz_dir))

    def to_args(self) -> list[str]:
        w = _FlagWriter()
        w.value("--fuzz-dir", self.fuzz_dir)
        return w.args

    def serialize(self) -> str:
        return _join(self.to_args())

    __str__ = serialize
