"""Errors raised while parsing build option flags.

All of them derive from the ``UsageError`` of the click package Typer's
commands are built on (``click`` itself, or the copy newer Typer releases
bundle), so a Typer command that lets one escape reports it as a usage
error (exit status 2) without any extra handling.  Library callers catch
the specific subclasses.
"""

import importlib
from types import ModuleType

import typer.core


def _typer_click_module(name: str) -> ModuleType:
    """Return submodule *name* of the click package under ``typer.core``."""
    for cls in typer.core.TyperCommand.__mro__:
        if cls.__name__ == "Command" and cls.__module__ != typer.core.__name__:
            package = cls.__module__.rpartition(".")[0]
            return importlib.import_module(f"{package}.{name}")
    raise ImportError("cannot locate the click package typer is built on")


click_exceptions = _typer_click_module("exceptions")
click_types = _typer_click_module("types")


class OptionsError(click_exceptions.UsageError):
    """Base class for invalid build option flags."""


class ConflictError(OptionsError):
    """Two mutually exclusive flags were both given."""

    def __init__(self, flag: str, other: str) -> None:
        super().__init__(f"the argument '{flag}' cannot be used with '{other}'")
        self.flag = flag
        self.other = other


class MalformedValueError(OptionsError):
    """A value-bearing flag has a missing or invalid value."""


class UnrecognizedFlagError(OptionsError):
    """A token does not name any known flag."""
