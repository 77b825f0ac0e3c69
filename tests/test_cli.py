"""Tests for flag parsing and the shared CLI helpers in movefuzz.cli."""

import json
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from movefuzz.cli import (
    app,
    error_exit,
    json_print,
    options_to_dict,
    parse_build_options,
    parse_fuzz_dir,
)
from movefuzz.config import default_target
from movefuzz.errors import (
    ConflictError,
    MalformedValueError,
    OptionsError,
    UnrecognizedFlagError,
    click_exceptions,
)
from movefuzz.options import (
    BuildOptions,
    CargoBuildOptions,
    FuzzDirWrapper,
    MoveBuildOptions,
    Sanitizer,
)

runner = CliRunner()

# ---------------------------------------------------------------------------
# parse_build_options()
# ---------------------------------------------------------------------------


class TestParseFlags:
    def test_empty(self) -> None:
        assert parse_build_options([]) == BuildOptions()
        assert parse_build_options("") == BuildOptions()

    def test_end_to_end_example(self) -> None:
        flags = "-O --features=foo --sanitizer=none -Zunstable1 -Zunstable2"
        opts = parse_build_options(flags)
        assert opts.cargo_options == CargoBuildOptions(
            release=True,
            features="foo",
            sanitizer=Sanitizer.NONE,
            unstable_flags=("unstable1", "unstable2"),
        )
        assert opts.serialize().split() == flags.split()
        assert parse_build_options(opts.serialize()) == opts

    @pytest.mark.parametrize(
        "flag, field",
        [
            ("-D", "dev"),
            ("--dev", "dev"),
            ("-v", "verbose"),
            ("--verbose", "verbose"),
        ],
    )
    def test_top_level_switches(self, flag: str, field: str) -> None:
        assert getattr(parse_build_options([flag]), field) is True

    @pytest.mark.parametrize(
        "flag, field",
        [
            ("-O", "release"),
            ("--release", "release"),
            ("-a", "debug_assertions"),
            ("--debug-assertions", "debug_assertions"),
            ("--no-default-features", "no_default_features"),
            ("--all-features", "all_features"),
            ("--build-std", "build_std"),
            ("-c", "careful_mode"),
            ("--careful", "careful_mode"),
            ("--coverage", "coverage"),
            ("--strip-dead-code", "strip_dead_code"),
            ("--no-cfg-fuzzing", "no_cfg_fuzzing"),
            ("--no-trace-compares", "no_trace_compares"),
        ],
    )
    def test_cargo_switches(self, flag: str, field: str) -> None:
        assert getattr(parse_build_options([flag]).cargo_options, field) is True

    @pytest.mark.parametrize(
        "flag, field",
        [
            ("--fetch-deps-only", "fetch_deps_only"),
            ("--force", "force"),
            ("--skip-fetch-latest-git-deps", "skip_fetch_latest_git_deps"),
        ],
    )
    def test_move_switches(self, flag: str, field: str) -> None:
        assert getattr(parse_build_options([flag]).move_options, field) is True

    def test_separate_values(self) -> None:
        opts = parse_build_options(
            ["--target-dir", "out", "--features", "f", "-s", "leak", "--target", "t", "-Z", "x"]
        )
        assert opts.target_dir == "out"
        assert opts.cargo_options.features == "f"
        assert opts.cargo_options.sanitizer is Sanitizer.LEAK
        assert opts.cargo_options.triple == "t"
        assert opts.cargo_options.unstable_flags == ("x",)

    def test_short_cluster(self) -> None:
        opts = parse_build_options(["-Ovc"])
        assert opts.verbose
        assert opts.cargo_options.release
        assert opts.cargo_options.careful_mode

    def test_bytecode_version(self) -> None:
        opts = parse_build_options("--bytecode-version=6")
        assert opts.move_options == MoveBuildOptions(bytecode_version=6)

    def test_default_triple_when_absent(self) -> None:
        assert parse_build_options([]).cargo_options.triple == default_target()

    def test_explicit_default_triple_equals_absent(self) -> None:
        assert parse_build_options([f"--target={default_target()}"]) == BuildOptions()

    def test_explicit_address_equals_absent(self) -> None:
        assert parse_build_options(["--sanitizer=address"]) == BuildOptions()

    def test_repeated_unstable_flags_order(self) -> None:
        opts = parse_build_options(["-Zb", "-Za", "-Zb"])
        assert opts.cargo_options.unstable_flags == ("b", "a", "b")


# ---------------------------------------------------------------------------
# Parse errors
# ---------------------------------------------------------------------------


class TestParseErrors:
    @pytest.mark.parametrize(
        "flags",
        [
            "--dev --release",
            "-D -O",
            "--all-features --no-default-features",
            "--all-features --features=x",
            "--features=x --all-features",
        ],
    )
    def test_conflicts(self, flags: str) -> None:
        with pytest.raises(ConflictError):
            parse_build_options(flags)

    def test_conflict_message_names_flags(self) -> None:
        with pytest.raises(ConflictError) as exc_info:
            parse_build_options("-D -O")
        assert "--dev" in exc_info.value.format_message()
        assert "--release" in exc_info.value.format_message()

    @pytest.mark.parametrize(
        "flags",
        [
            "--bytecode-version=abc",
            "--bytecode-version=-1",
            "--bytecode-version=4294967296",
            "--bytecode-version",
            "--sanitizer=bogus",
            "--sanitizer=Address",
            "--features",
            "--target-dir",
            "-Z",
            "--dev=true",
        ],
    )
    def test_malformed(self, flags: str) -> None:
        with pytest.raises(MalformedValueError):
            parse_build_options(flags)

    @pytest.mark.parametrize(
        "flags",
        ["--unknown", "-X", "--help", "stray", "--fuzz-dir=fuzz"],
    )
    def test_unrecognized(self, flags: str) -> None:
        with pytest.raises(UnrecognizedFlagError):
            parse_build_options(flags)

    def test_errors_are_usage_errors(self) -> None:
        with pytest.raises(click_exceptions.UsageError):
            parse_build_options("--unknown")

    def test_cause_is_chained(self) -> None:
        with pytest.raises(MalformedValueError) as exc_info:
            parse_build_options("--bytecode-version=abc")
        assert isinstance(exc_info.value.__cause__, click_exceptions.BadParameter)

    @pytest.mark.parametrize(
        "flags, expected",
        [
            ("--unknown", UnrecognizedFlagError),
            ("stray", UnrecognizedFlagError),
            ("--bytecode-version=abc", MalformedValueError),
            ("--sanitizer=bogus", MalformedValueError),
            ("-Z", MalformedValueError),
            ("--dev=true", MalformedValueError),
        ],
    )
    def test_only_options_errors_escape(self, flags: str, expected: type) -> None:
        with pytest.raises(Exception) as exc_info:
            parse_build_options(flags)
        assert type(exc_info.value) is expected

    def test_empty_unstable_flag_value(self) -> None:
        with pytest.raises(MalformedValueError, match="-Z"):
            parse_build_options("-Z ''")

    def test_base_is_typers_usage_error(self) -> None:
        command = typer.main.get_command(app)
        package = click_exceptions.__name__.rpartition(".")[0]
        assert any(cls.__module__ == f"{package}.core" for cls in type(command).__mro__)
        assert issubclass(OptionsError, click_exceptions.UsageError)


# ---------------------------------------------------------------------------
# parse_fuzz_dir()
# ---------------------------------------------------------------------------


class TestParseFuzzDir:
    def test_absent(self) -> None:
        assert parse_fuzz_dir([]) == FuzzDirWrapper()

    def test_present(self) -> None:
        assert parse_fuzz_dir("--fuzz-dir=fuzz").fuzz_dir == Path("fuzz")

    def test_build_flag_rejected(self) -> None:
        with pytest.raises(UnrecognizedFlagError):
            parse_fuzz_dir("-O")


# ---------------------------------------------------------------------------
# error_exit() / json_print()
# ---------------------------------------------------------------------------


class TestErrorExit:
    def test_plain_stderr_and_exit(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(typer.Exit) as exc_info:
            error_exit("something broke")
        assert exc_info.value.exit_code == 1
        captured = capsys.readouterr()
        assert "something broke" in captured.err
        assert captured.out == ""

    def test_json_mode_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(typer.Exit) as exc_info:
            error_exit("bad input", json_mode=True, code=2)
        assert exc_info.value.exit_code == 2
        captured = capsys.readouterr()
        assert json.loads(captured.out) == {"error": "bad input"}
        assert captured.err == ""


class TestJsonPrint:
    def test_dict_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        json_print({"args": ["-O"]})
        captured = capsys.readouterr()
        assert json.loads(captured.out) == {"args": ["-O"]}
        assert "\n" in captured.out


class TestOptionsToDict:
    def test_sanitizer_and_flags_plain(self) -> None:
        opts = parse_build_options("--sanitizer=none -Za")
        data = options_to_dict(opts, FuzzDirWrapper(fuzz_dir=Path("fuzz")))
        assert data["cargo_options"]["sanitizer"] == "none"
        assert data["cargo_options"]["unstable_flags"] == ["a"]
        assert data["fuzz_dir"] == "fuzz"
        json.dumps(data)

    def test_without_wrapper(self) -> None:
        data = options_to_dict(BuildOptions())
        assert "fuzz_dir" not in data
        assert data["move_options"]["bytecode_version"] is None


# ---------------------------------------------------------------------------
# movefuzz-options (end-to-end via CliRunner)
# ---------------------------------------------------------------------------


class TestCLINormalize:
    def test_canonical_output(self) -> None:
        result = runner.invoke(app, ["--", "--sanitizer=none", "-Zb", "--release", "-Za"])
        assert result.exit_code == 0
        assert result.output.strip() == "-O --sanitizer=none -Zb -Za"

    def test_defaults_dropped(self) -> None:
        result = runner.invoke(app, ["--", "--sanitizer=address", f"--target={default_target()}"])
        assert result.exit_code == 0
        assert result.output.strip() == ""

    def test_fuzz_dir_first(self) -> None:
        result = runner.invoke(app, ["--fuzz-dir", "fuzz", "--", "-v"])
        assert result.exit_code == 0
        assert result.output.strip() == "--fuzz-dir=fuzz -v"

    def test_json(self) -> None:
        result = runner.invoke(app, ["--json", "--", "-O", "--features=foo"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["args"] == ["-O", "--features=foo"]
        assert data["cargo_options"]["release"] is True
        assert data["cargo_options"]["features"] == "foo"
        assert data["fuzz_dir"] is None

    def test_conflict_exit_code(self) -> None:
        result = runner.invoke(app, ["--", "--dev", "--release"])
        assert result.exit_code == 2
        assert "cannot be used with" in result.output

    def test_conflict_json(self) -> None:
        result = runner.invoke(app, ["--json", "--", "--all-features", "--features=x"])
        assert result.exit_code == 2
        data = json.loads(result.stdout)
        assert "--all-features" in data["error"]

    def test_unknown_flag(self) -> None:
        result = runner.invoke(app, ["--", "--nope"])
        assert result.exit_code == 2
        assert "--nope" in result.output


def test_options_error_hierarchy() -> None:
    for cls in (ConflictError, MalformedValueError, UnrecognizedFlagError):
        assert issubclass(cls, OptionsError)
