"""Host and project configuration for movefuzz.

Two pieces of environment feed into the build options:

* the host-native target triple, which is the default ``--target`` and is
  therefore never written out when a build uses it;
* the fuzz project directory, located either by an explicit
  ``--fuzz-dir`` or by walking up from the current directory to the Move
  package root (the directory holding ``Move.toml``) and using its
  ``fuzz/`` subdirectory.

Usage::

    from movefuzz.config import default_target, load_fuzz_project
    from movefuzz.options import FuzzDirWrapper

    triple = default_target()              # "x86_64-unknown-linux-gnu"
    project = load_fuzz_project(FuzzDirWrapper())
    project.manifest_path                  # <root>/fuzz/Cargo.toml
"""

from __future__ import annotations

import functools
import platform
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

if TYPE_CHECKING:
    from movefuzz.options import FuzzDirWrapper

PACKAGE_MANIFEST = "Move.toml"
FUZZ_MANIFEST = "Cargo.toml"
DEFAULT_FUZZ_DIR = "fuzz"

# ---------------------------------------------------------------------------
# Host target triple
# ---------------------------------------------------------------------------

_MACHINE_ALIASES: dict[str, str] = {
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "x64": "x86_64",
    "i386": "i686",
    "i686": "i686",
    "x86": "i686",
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "armv7l": "armv7",
    "ppc64le": "powerpc64le",
    "riscv64": "riscv64gc",
    "s390x": "s390x",
}


def _target_os() -> str:
    """Return the vendor-os-env suffix of the host triple."""
    if sys.platform.startswith("linux"):
        libc, _ = platform.libc_ver()
        return "unknown-linux-gnu" if libc in ("glibc", "") else "unknown-linux-musl"
    if sys.platform == "darwin":
        return "apple-darwin"
    if sys.platform in ("win32", "cygwin"):
        return "pc-windows-msvc"
    if sys.platform.startswith("freebsd"):
        return "unknown-freebsd"
    return f"unknown-{sys.platform}"


@functools.lru_cache(maxsize=None)
def default_target() -> str:
    """Return the host-native target triple, e.g. ``x86_64-unknown-linux-gnu``."""
    machine = platform.machine().lower()
    arch = _MACHINE_ALIASES.get(machine, machine or "unknown")
    return f"{arch}-{_target_os()}"


# ---------------------------------------------------------------------------
# Fuzz project
# ---------------------------------------------------------------------------


@dataclass
class FuzzProjectConfig:
    """Resolved fuzz project locations."""

    # Move package root, or the fuzz dir's parent when given explicitly
    root: Path
    fuzz_dir: Path
    manifest_path: Path
    package_name: str = ""


def _find_root(start: Path | None = None) -> Path:
    """Walk up from *start* (or cwd) to the directory holding ``Move.toml``."""
    candidate = (start or Path.cwd()).resolve()
    while True:
        if (candidate / PACKAGE_MANIFEST).exists():
            return candidate
        if candidate == candidate.parent:
            break
        candidate = candidate.parent
    raise FileNotFoundError(
        f"Could not find {PACKAGE_MANIFEST} in any parent of {start or Path.cwd()}. "
        "Run from within a Move package or pass --fuzz-dir."
    )


def resolve_fuzz_dir(wrapper: FuzzDirWrapper, start: Path | None = None) -> Path:
    """Return the fuzz project directory selected by *wrapper*.

    An explicit ``--fuzz-dir`` wins; relative paths are taken from *start*
    (or cwd).  Otherwise the ``fuzz/`` directory of the enclosing Move
    package is used.
    """
    base = start or Path.cwd()
    if wrapper.fuzz_dir is not None:
        fuzz_dir = wrapper.fuzz_dir
        if not fuzz_dir.is_absolute():
            fuzz_dir = base / fuzz_dir
        return fuzz_dir.resolve()
    return _find_root(base) / DEFAULT_FUZZ_DIR


def load_fuzz_project(
    wrapper: FuzzDirWrapper,
    start: Path | None = None,
) -> FuzzProjectConfig:
    """Locate the fuzz project and read its manifest.

    Raises:
        FileNotFoundError: no Move package root, or no ``Cargo.toml`` in the
            fuzz directory.
        KeyError: the manifest has no ``[package]`` table.
    """
    fuzz_dir = resolve_fuzz_dir(wrapper, start)
    manifest_path = fuzz_dir / FUZZ_MANIFEST
    if not manifest_path.exists():
        raise FileNotFoundError(f"Fuzz manifest not found: {manifest_path}")

    with open(manifest_path, "rb") as f:
        raw = tomllib.load(f)

    if "package" not in raw:
        raise KeyError(f"{manifest_path} has no [package] section")
    package = raw["package"]

    metadata = package.get("metadata", {})
    if metadata.get("cargo-fuzz") is not True:
        warnings.warn(
            f"{manifest_path} is missing `[package.metadata] cargo-fuzz = true`; "
            "it may not be a fuzz project.",
            stacklevel=2,
        )

    return FuzzProjectConfig(
        root=fuzz_dir.parent,
        fuzz_dir=fuzz_dir,
        manifest_path=manifest_path,
        package_name=package.get("name", ""),
    )
