"""
stack_commands.py - Shell command backends for cdd

cdd cannot change the calling shell's directory itself. Instead it prints commands on stdout
that the shell function wrapping cdd evaluates, e.g. for bash::

    cdd() { eval "$(command cdd "$@" < <(dirs -l -p))"; }

Two backends exist:

- ``bash``: ``dirs -c`` then ``\\cd``/``pushd`` with single-quoted paths
- ``cmd``:  a ``for /l ... do popd`` loop then ``chdir/d``/``pushd`` (cmd.exe batch syntax)

The output is parsed by shell glue, so the exact text is stable. When stdout is a terminal
nothing is going to eval it, so it is shown syntax-highlighted instead.
"""

from __future__ import annotations

import os
import sys
from abc import ABC, abstractmethod
from typing import Iterable, TextIO

from rich.console import Console
from rich.syntax import Syntax

from dirhistory import windowize_path
from shell_lexer import StackCommandLexer, StackCommandTheme


class CommandRenderer(ABC):
    """Turns a directory list into commands that rebuild the shell's directory stack."""

    name: str = ""

    def __init__(self, separator: str = os.sep):
        self.separator = separator

    @abstractmethod
    def change_dir(self, path: str) -> list[str]:
        """→ Commands that push `path` onto the stack"""
        raise NotImplementedError

    @abstractmethod
    def rebuild(
        self, dirs: Iterable[str], pushd_count: int, current_path: str = "", delete: str | None = None
    ) -> list[str]:
        """→ Commands that clear the stack and push `dirs` in order, skipping `delete`"""
        raise NotImplementedError


def quote_single(path: str) -> str:
    return "'" + path.replace("'", "'\\''") + "'"


class BashRenderer(CommandRenderer):
    name = "bash"

    def change_dir(self, path: str) -> list[str]:
        return [f"pushd {quote_single(path)}"]

    def rebuild(self, dirs, pushd_count, current_path="", delete=None):
        lines = ["dirs -c"]
        count = 0
        for d in dirs:
            if d == delete:
                continue
            # The first directory replaces the (now empty) stack's top; `\cd` skips aliases
            command = "pushd" if count else "\\cd"
            lines.append(f"{command} {quote_single(d)}")
            count += 1
        return lines


class CmdRenderer(CommandRenderer):
    name = "cmd"

    def change_dir(self, path: str) -> list[str]:
        return [f"pushd {path}"]

    def rebuild(self, dirs, pushd_count, current_path="", delete=None):
        lines = [f"for /l %%i in (1,1,{pushd_count}) do popd"]
        count = 0
        for d in dirs:
            if d == delete:
                continue
            lines.append(f"{'pushd' if count else 'chdir/d'} {d} 2>nul")
            count += 1
        if current_path:
            lines.append(f"{'pushd' if count else 'chdir/d'} {windowize_path(current_path, self.separator)}")
        return lines


RENDERERS: dict[str, type[CommandRenderer]] = {
    BashRenderer.name: BashRenderer,
    CmdRenderer.name: CmdRenderer,
}


def default_shell() -> str:
    return CmdRenderer.name if os.name == "nt" else BashRenderer.name


def get_renderer(shell: str | None, separator: str = os.sep) -> CommandRenderer:
    return RENDERERS[shell or default_shell()](separator)


def emit_commands(lines: list[str], out: TextIO | None = None) -> None:
    """Write `lines` to stdout, or show them highlighted when stdout is a terminal."""
    out = out if out is not None else sys.stdout
    if not lines:
        return
    isatty = getattr(out, "isatty", None)
    if isatty is not None and isatty():
        console = Console(file=out)
        console.print(Syntax("\n".join(lines), StackCommandLexer(), theme=StackCommandTheme()))
        return
    try:
        for line in lines:
            out.write(line + "\n")
        out.flush()
    except BrokenPipeError:
        # Downstream consumer closed early (e.g., piped to `head`).
        pass
