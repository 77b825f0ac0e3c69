"""Command-line flag schema and parsers for movefuzz build options.

The flags are declared once as reusable Typer options, so any command that
builds a fuzz target takes the same ``--release``, ``--sanitizer``, ``-Z``
etc.  The same declarations back :func:`parse_build_options` and
:func:`parse_fuzz_dir`, which turn a flag string (typically produced by
:meth:`BuildOptions.serialize`) back into a value object::

    from movefuzz.cli import parse_build_options

    opts = parse_build_options(["-O", "--features=foo", "-Zunstable1"])
    opts.cargo_options.release          # True
    opts.cargo_options.unstable_flags   # ("unstable1",)

Parse failures raise the :mod:`movefuzz.errors` classes.  The
``movefuzz-options`` console script prints the canonical form of a set of
flags and is handy for checking what a re-invocation will pass down.
"""

from __future__ import annotations

import json
import shlex
from dataclasses import asdict
from pathlib import Path
from typing import Any, NoReturn, Sequence

import typer
from rich.console import Console
from rich.markup import escape

from movefuzz.config import default_target
from movefuzz.errors import (
    MalformedValueError,
    OptionsError,
    UnrecognizedFlagError,
    click_exceptions,
    click_types,
)
from movefuzz.options import (
    U32_MAX,
    BuildOptions,
    CargoBuildOptions,
    FuzzDirWrapper,
    MoveBuildOptions,
    Sanitizer,
)

# ---------------------------------------------------------------------------
# Re-usable Typer options
# ---------------------------------------------------------------------------

DevOption: bool = typer.Option(
    False, "--dev", "-D", help="Build artifacts in development mode, without optimizations."
)
VerboseOption: bool = typer.Option(
    False, "--verbose", "-v", help="Build target with verbose output from `cargo build`."
)
TargetDirOption: str | None = typer.Option(
    None, "--target-dir", help="Target dir option to pass to cargo build."
)

# Move
BytecodeVersionOption: int | None = typer.Option(
    None,
    "--bytecode-version",
    min=0,
    max=U32_MAX,
    help="Bytecode version to compile move code.",
)
FetchDepsOnlyOption: bool = typer.Option(
    False, "--fetch-deps-only", help="Only fetch dependency repos to MOVE_HOME."
)
ForceOption: bool = typer.Option(False, "--force", help="Force recompilation of all packages.")
SkipFetchGitDepsOption: bool = typer.Option(
    False, "--skip-fetch-latest-git-deps", help="Skip fetching latest git dependencies."
)

# Cargo
ReleaseOption: bool = typer.Option(
    False, "--release", "-O", help="Build artifacts in release mode, with optimizations."
)
DebugAssertionsOption: bool = typer.Option(
    False,
    "--debug-assertions",
    "-a",
    help="Build artifacts with debug assertions and overflow checks enabled (default if not -O).",
)
NoDefaultFeaturesOption: bool = typer.Option(
    False, "--no-default-features", help="Build artifacts with default Cargo features disabled."
)
AllFeaturesOption: bool = typer.Option(
    False, "--all-features", help="Build artifacts with all Cargo features enabled."
)
FeaturesOption: str | None = typer.Option(
    None, "--features", help="Build artifacts with given Cargo feature enabled."
)
SanitizerOption: str = typer.Option(
    Sanitizer.ADDRESS.value,
    "--sanitizer",
    "-s",
    click_type=click_types.Choice([s.value for s in Sanitizer]),
    help="Use a specific sanitizer.",
)
BuildStdOption: bool = typer.Option(
    False,
    "--build-std",
    help=(
        "Pass -Zbuild-std to Cargo, building the standard library with the same "
        "settings as the fuzz target, including debug assertions and a sanitizer."
    ),
)
CarefulOption: bool = typer.Option(
    False,
    "--careful",
    "-c",
    help=(
        "Enable careful mode: build the standard library along with the harness "
        "(implies --build-std) with debug assertions and extra const UB and init checks."
    ),
)
TripleOption: str | None = typer.Option(
    None, "--target", show_default="host triple", help="Target triple of the fuzz target."
)
UnstableFlagsOption: list[str] | None = typer.Option(
    None, "-Z", metavar="FLAG", help="Unstable (nightly-only) flags to Cargo."
)
# Set by the coverage command; kept off the help screen.
CoverageOption: bool = typer.Option(False, "--coverage", hidden=True)
StripDeadCodeOption: bool = typer.Option(
    False, "--strip-dead-code", help="Opt out of linking dead code into the fuzz target."
)
NoCfgFuzzingOption: bool = typer.Option(
    False, "--no-cfg-fuzzing", help="Do not set the 'cfg(fuzzing)' compilation configuration."
)
NoTraceComparesOption: bool = typer.Option(
    False,
    "--no-trace-compares",
    help=(
        "Don't build with the `sanitizer-coverage-trace-compares` LLVM argument. "
        "May improve fuzzer throughput at the cost of worse coverage accuracy."
    ),
)

FuzzDirOption: Path | None = typer.Option(
    None, "--fuzz-dir", help="The path to the fuzz project directory."
)

# ---------------------------------------------------------------------------
# Flag schemas
# ---------------------------------------------------------------------------

# No --help: every token must be a build flag.
_SCHEMA_SETTINGS: dict[str, Any] = {"help_option_names": []}

_build_schema = typer.Typer(add_completion=False)
_fuzz_dir_schema = typer.Typer(add_completion=False)


@_build_schema.command(context_settings=_SCHEMA_SETTINGS)
def _build_options_from_flags(
    dev: bool = DevOption,
    verbose: bool = VerboseOption,
    target_dir: str | None = TargetDirOption,
    bytecode_version: int | None = BytecodeVersionOption,
    fetch_deps_only: bool = FetchDepsOnlyOption,
    force: bool = ForceOption,
    skip_fetch_latest_git_deps: bool = SkipFetchGitDepsOption,
    release: bool = ReleaseOption,
    debug_assertions: bool = DebugAssertionsOption,
    no_default_features: bool = NoDefaultFeaturesOption,
    all_features: bool = AllFeaturesOption,
    features: str | None = FeaturesOption,
    sanitizer: str = SanitizerOption,
    build_std: bool = BuildStdOption,
    careful_mode: bool = CarefulOption,
    triple: str | None = TripleOption,
    unstable_flags: list[str] | None = UnstableFlagsOption,
    coverage: bool = CoverageOption,
    strip_dead_code: bool = StripDeadCodeOption,
    no_cfg_fuzzing: bool = NoCfgFuzzingOption,
    no_trace_compares: bool = NoTraceComparesOption,
) -> BuildOptions:
    move_options = MoveBuildOptions(
        bytecode_version=bytecode_version,
        fetch_deps_only=fetch_deps_only,
        force=force,
        skip_fetch_latest_git_deps=skip_fetch_latest_git_deps,
    )
    cargo_options = CargoBuildOptions(
        release=release,
        debug_assertions=debug_assertions,
        no_default_features=no_default_features,
        all_features=all_features,
        features=features,
        sanitizer=Sanitizer(sanitizer),
        build_std=build_std,
        careful_mode=careful_mode,
        triple=triple if triple is not None else default_target(),
        unstable_flags=tuple(unstable_flags or ()),
        coverage=coverage,
        strip_dead_code=strip_dead_code,
        no_cfg_fuzzing=no_cfg_fuzzing,
        no_trace_compares=no_trace_compares,
    )
    return BuildOptions(
        dev=dev,
        verbose=verbose,
        target_dir=target_dir,
        move_options=move_options,
        cargo_options=cargo_options,
    )


@_fuzz_dir_schema.command(context_settings=_SCHEMA_SETTINGS)
def _fuzz_dir_from_flags(fuzz_dir: Path | None = FuzzDirOption) -> FuzzDirWrapper:
    return FuzzDirWrapper(fuzz_dir=fuzz_dir)


def _tokenize(args: str | Sequence[str]) -> list[str]:
    """Split a flag string, or drop empty tokens from a sequence."""
    if isinstance(args, str):
        return shlex.split(args)
    return [tok for tok in args if tok]


def _parse_with(schema: typer.Typer, prog: str, args: str | Sequence[str]) -> Any:
    """Run *schema*'s command over *args* and return what it builds.

    Click's parse errors are re-raised as :mod:`movefuzz.errors` classes.
    """
    command = typer.main.get_command(schema)
    try:
        with command.make_context(prog, _tokenize(args)) as ctx:
            return command.invoke(ctx)
    except OptionsError:
        raise
    except click_exceptions.NoSuchOption as exc:
        raise UnrecognizedFlagError(exc.format_message()) from exc
    except (click_exceptions.BadParameter, click_exceptions.BadOptionUsage) as exc:
        raise MalformedValueError(exc.format_message()) from exc
    except click_exceptions.UsageError as exc:
        # Stray positional tokens
        raise UnrecognizedFlagError(exc.format_message()) from exc


def parse_build_options(args: str | Sequence[str]) -> BuildOptions:
    """Parse build flags into a :class:`BuildOptions`.

    Args:
        args: A flag string (split with shell rules) or a token sequence.

    Raises:
        ConflictError: mutually exclusive flags were both given.
        MalformedValueError: a flag value is missing or invalid.
        UnrecognizedFlagError: a token is not a known build flag.
    """
    return _parse_with(_build_schema, "build", args)


def parse_fuzz_dir(args: str | Sequence[str]) -> FuzzDirWrapper:
    """Parse ``--fuzz-dir`` into a :class:`FuzzDirWrapper`."""
    return _parse_with(_fuzz_dir_schema, "fuzz-dir", args)


# ---------------------------------------------------------------------------
# Standardised output helpers
# ---------------------------------------------------------------------------

_err_console = Console(stderr=True)


def error_exit(msg: str, *, json_mode: bool = False, code: int = 1) -> NoReturn:
    """Print *msg* as an error and ``raise typer.Exit(code)``."""
    if json_mode:
        print(json.dumps({"error": msg}, indent=2))
    else:
        _err_console.print(f"[red bold]error:[/red bold] {escape(msg)}", highlight=False)
    raise typer.Exit(code=code)


def json_print(data: dict[str, Any] | list[Any]) -> None:
    """Print *data* as pretty-printed JSON to stdout."""
    print(json.dumps(data, indent=2))


def options_to_dict(opts: BuildOptions, wrapper: FuzzDirWrapper | None = None) -> dict[str, Any]:
    """JSON-ready view of parsed options."""
    data = asdict(opts)
    data["cargo_options"]["sanitizer"] = opts.cargo_options.sanitizer.value
    data["cargo_options"]["unstable_flags"] = list(opts.cargo_options.unstable_flags)
    if wrapper is not None:
        data["fuzz_dir"] = str(wrapper.fuzz_dir) if wrapper.fuzz_dir is not None else None
    return data


# ---------------------------------------------------------------------------
# movefuzz-options
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="Print the canonical form of a set of fuzz build flags.",
    rich_markup_mode="rich",
    add_completion=False,
    epilog="""\
[bold]Examples:[/bold]

movefuzz-options -- -O --sanitizer=none -Zbuild-std

movefuzz-options --json --fuzz-dir fuzz -- --release -D

[dim]Default-valued flags are dropped; the output parses back to the same options.
Exit status 2 on conflicting, malformed or unknown flags.[/dim]""",
)


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def main(
    ctx: typer.Context,
    fuzz_dir: Path | None = FuzzDirOption,
    json_output: bool = typer.Option(False, "--json", help="Output parsed options as JSON."),
) -> None:
    """Parse build flags and print them back in canonical form."""
    wrapper = FuzzDirWrapper(fuzz_dir=fuzz_dir)
    try:
        opts = parse_build_options(ctx.args)
    except OptionsError as exc:
        error_exit(exc.format_message(), json_mode=json_output, code=2)

    if json_output:
        data = options_to_dict(opts, wrapper)
        data["args"] = wrapper.to_args() + opts.to_args()
        json_print(data)
    else:
        typer.echo(shlex.join(wrapper.to_args() + opts.to_args()))


def main_entry() -> None:
    app()
