"""Variable and function expansion for configuration-language source text."""

from __future__ import annotations

import enum
import os
import re
import subprocess
import sys
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TextIO

FUNCTION_MAX_ARGS = 16
_MAX_EXPANSION_DEPTH = 1000
_SHELL_BUF = 256
_ARG_INDEX = re.compile(r"[ \t\n\v\f\r]*\+?[0-9]+")


class VariableFlavor(enum.IntEnum):
    """How a variable's value is stored and expanded."""

    SIMPLE = 0
    RECURSIVE = 1
    APPEND = 2


class PreprocessError(Exception):
    """Raised for an expansion error, with the file and line it occurred at."""


@dataclass
class _Variable:
    value: str
    flavor: VariableFlavor
    exp_count: int = 0


@dataclass(frozen=True)
class _Function:
    min_args: int
    max_args: int
    func: Callable[["Preprocessor", list[str]], str]


def _is_end_of_str(text: str, pos: int) -> bool:
    return pos >= len(text)


def _is_end_of_token(text: str, pos: int) -> bool:
    if pos >= len(text):
        return True
    c = text[pos]
    return not ((c.isascii() and c.isalnum()) or c in "_-")


class Preprocessor:
    """Expands ``$(...)`` references to variables, built-in functions and the environment."""

    def __init__(self, filename: str = "", environ: Optional[Mapping[str, str]] = None) -> None:
        self.filename = filename
        self.lineno = 1
        self._environ = os.environ if environ is None else environ
        self._variables: dict[str, _Variable] = {}
        self._env_refs: dict[str, str] = {}

    # ----- errors -----

    def _error(self, message: str) -> PreprocessError:
        return PreprocessError(f"{self.filename}:{self.lineno}: {message}")

    # ----- environment -----

    def _env_expand(self, name: str) -> Optional[str]:
        if not name:
            return None
        if name in self._env_refs:
            return self._env_refs[name]
        value = self._environ.get(name)
        if value is None:
            return None
        # remember every referenced environment variable for the dependency file
        self._env_refs[name] = value
        return value

    def env_write_dep(self, out: TextIO, autoconfig_name: str) -> None:
        """Write make rules that force a rebuild if a referenced variable changes."""
        for name, value in self._env_refs.items():
            out.write(f'ifneq "$({name})" "{value}"\n')
            out.write(f"{autoconfig_name}: FORCE\n")
            out.write("endif\n")
        self._env_refs.clear()

    # ----- built-in functions -----

    def _do_error_if(self, args: list[str]) -> str:
        if args[0] == "y":
            raise self._error(args[1])
        return ""

    def _do_filename(self, args: list[str]) -> str:
        return self.filename

    def _do_info(self, args: list[str]) -> str:
        print(args[0])
        return ""

    def _do_lineno(self, args: list[str]) -> str:
        return str(self.lineno)

    def _do_shell(self, args: list[str]) -> str:
        cmd = args[0]
        try:
            result = subprocess.run(cmd, shell=True, stdout=subprocess.PIPE, check=False)
        except OSError as exc:
            raise self._error(f"{cmd}: {exc}") from exc
        data = result.stdout[:_SHELL_BUF]
        if len(data) == _SHELL_BUF:
            data = data[:-1]
        data = data.rstrip(b"\n").replace(b"\n", b" ")
        return data.decode("utf-8", errors="replace")

    def _do_warning_if(self, args: list[str]) -> str:
        if args[0] == "y":
            print(f"{self.filename}:{self.lineno}: {args[1]}", file=sys.stderr)
        return ""

    _FUNCTIONS = {
        "error-if": _Function(2, 2, _do_error_if),
        "filename": _Function(0, 0, _do_filename),
        "info": _Function(1, 1, _do_info),
        "lineno": _Function(0, 0, _do_lineno),
        "shell": _Function(1, 1, _do_shell),
        "warning-if": _Function(2, 2, _do_warning_if),
    }

    def _function_expand(self, name: str, args: list[str]) -> Optional[str]:
        function = self._FUNCTIONS.get(name)
        if function is None:
            return None
        if len(args) < function.min_args:
            raise self._error(f"too few function arguments passed to '{name}'")
        if len(args) > function.max_args:
            raise self._error(f"too many function arguments passed to '{name}'")
        return function.func(self, args)

    # ----- variables -----

    def _variable_expand(self, name: str, args: list[str]) -> Optional[str]:
        variable = self._variables.get(name)
        if variable is None:
            return None
        if not args and variable.exp_count:
            raise self._error(
                f"Recursive variable '{name}' references itself (eventually)"
            )
        if variable.exp_count > _MAX_EXPANSION_DEPTH:
            raise self._error("Too deep recursive expansion")
        variable.exp_count += 1
        try:
            if variable.flavor is VariableFlavor.RECURSIVE:
                return self._expand_with_args(variable.value, args)
            return variable.value
        finally:
            variable.exp_count -= 1

    def variable_add(self, name: str, value: str,
                     flavor: VariableFlavor = VariableFlavor.RECURSIVE) -> None:
        """Define or extend a variable with ``=``, ``:=`` or ``+=`` semantics."""
        flavor = VariableFlavor(flavor)
        variable = self._variables.get(name)
        append = False
        if variable is not None:
            # for defined variables, += inherits the existing flavor
            if flavor is VariableFlavor.APPEND:
                flavor = variable.flavor
                append = True
        elif flavor is VariableFlavor.APPEND:
            # for undefined variables, += assumes the recursive flavor
            flavor = VariableFlavor.RECURSIVE

        if flavor is VariableFlavor.SIMPLE:
            new_value = self.expand_string(value)
        else:
            new_value = value

        if variable is None:
            self._variables[name] = _Variable(new_value, flavor)
        else:
            variable.flavor = flavor
            variable.value = f"{variable.value} {new_value}" if append else new_value

    def variable_all_del(self) -> None:
        """Forget every variable."""
        self._variables.clear()

    # ----- expansion -----

    def _split_args(self, text: str) -> list[str]:
        parts = []
        nest = 0
        start = 0
        for pos, c in enumerate(text):
            if nest == 0 and c == ",":
                if len(parts) >= FUNCTION_MAX_ARGS:
                    raise self._error("too many function arguments")
                parts.append(text[start:pos])
                start = pos + 1
            elif c == "(":
                nest += 1
            elif c == ")":
                nest -= 1
        parts.append(text[start:])
        if len(parts) > FUNCTION_MAX_ARGS:
            raise self._error("too many function arguments")
        return parts

    def _eval_clause(self, text: str, args: list[str]) -> str:
        # '1', '2', ... refer to arguments of the enclosing user-function call
        if _ARG_INDEX.fullmatch(text):
            n = int(text)
            if 0 < n <= len(args):
                return args[n - 1]

        parts = self._split_args(text)
        name = self._expand_with_args(parts[0], args)
        new_args = [self._expand_with_args(part, args) for part in parts[1:]]

        result = self._variable_expand(name, new_args)
        if result is not None:
            return result
        result = self._function_expand(name, new_args)
        if result is not None:
            return result
        if not new_args:
            result = self._env_expand(name)
            if result is not None:
                return result
        return ""

    def _expand_dollar_at(self, text: str, pos: int, args: list[str]) -> tuple[str, int]:
        # only "$(" starts a reference; a lone '$' keeps its literal meaning
        if pos >= len(text) or text[pos] != "(":
            return "$", pos
        start = pos + 1
        nest = 0
        q = start
        while q < len(text):
            c = text[q]
            if c == "(":
                nest += 1
            elif c == ")":
                if nest == 0:
                    break
                nest -= 1
            q += 1
        else:
            raise self._error(f"unterminated reference to '{text[start:]}': missing ')'")
        return self._eval_clause(text[start:q], args), q + 1

    def _expand(self, text: str, is_end, args: list[str]) -> tuple[str, int]:
        out = []
        pos = start = 0
        while True:
            if pos < len(text) and text[pos] == "$":
                out.append(text[start:pos])
                expansion, pos = self._expand_dollar_at(text, pos + 1, args)
                out.append(expansion)
                start = pos
                continue
            if is_end(text, pos):
                break
            pos += 1
        out.append(text[start:pos])
        return "".join(out), pos

    def _expand_with_args(self, text: str, args: list[str]) -> str:
        return self._expand(text, _is_end_of_str, args)[0]

    def _guarded(self, func, *args):
        try:
            return func(*args)
        except RecursionError:
            raise self._error("Too deep recursive expansion") from None

    def expand_string(self, text: str) -> str:
        """Expand every reference in ``text``; undefined names expand to nothing."""
        return self._guarded(self._expand_with_args, text, [])

    def expand_dollar(self, text: str) -> tuple[str, str]:
        """Expand the reference that follows a '$'; return the expansion and the rest."""
        expansion, pos = self._guarded(self._expand_dollar_at, text, 0, [])
        return expansion, text[pos:]

    def expand_one_token(self, text: str) -> tuple[str, str]:
        """Expand a token up to the first separator; return the expansion and the rest."""
        expansion, pos = self._guarded(self._expand, text, _is_end_of_token, [])
        return expansion, text[pos:]