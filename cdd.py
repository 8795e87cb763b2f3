#!/usr/bin/env python3
"""
cdd.py - cd Deluxe: navigate the shell's directory history

cdd reads the shell's directory stack (one directory per line, most recent first, as printed
by ``dirs -l -p``) on stdin, works out where the user wants to go, and prints shell commands on
stdout for the calling shell function to eval. Everything meant for the human (history
listings, alternate matches, errors) goes to stderr so ``$(cdd ...)`` only captures commands.

Usage
-----
    cdd                 show history (backwards by default)
    cdd ?  /  cdd ??    show history first-to-last / most visited
    cdd -? 20           show the last 20 directories
    cdd -2  /  cdd --   go back two directories
    cdd +0  /  cdd +    go to the oldest directory in the stack
    cdd ,0  /  cdd ,    go to the most visited directory
    cdd src             go to the most recent directory matching /src/i
    cdd + src           same, searching oldest first
    cdd --del -3        remove a directory from the stack
    cdd --gc            rewrite the stack with duplicates removed

Options
-------
Named options may also be given in the ``CDD_OPTIONS`` environment variable (only
``--action --direction --limit-* --path-separator --all --shell``); the command line wins.

Exit status
-----------
0 on success, 1 when the requested action failed, 2 for option errors.
"""

from __future__ import annotations

import argparse
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Iterable, TextIO

from rich.console import Console
from rich.theme import Theme

from dirhistory import (
    HistoryModel,
    PathNormalizer,
    default_identity,
    read_stack_lines,
)
from path_resolver import (
    BACKWARDS,
    FORWARDS,
    COMMON,
    CddError,
    Direction,
    NotFoundForDelete,
    PathSpecResolver,
    SpecOptions,
    history_lines,
    is_trailing_path_spec,
)
from stack_commands import RENDERERS, CommandRenderer, emit_commands, get_renderer

__version__ = "1.0.0"

# ============================================================================
# CONFIGURATION & CONSTANTS
# ============================================================================

ENV_OPTIONS_NAME = "CDD_OPTIONS"

CUSTOM_THEME = Theme({
    "info": "#61AFEF",
    "success": "#98C379",
    "warning": "#E5C07B",
    "error": "#E06C75",
    "context": "#5C6370",
})

console = Console(stderr=True, theme=CUSTOM_THEME, highlight=False, emoji=False)

# Named options that consume the following argument when not written as --opt=value
VALUE_OPTIONS = {
    "--action",
    "--direction",
    "--limit-backwards",
    "--limit-forwards",
    "--limit-common",
    "--path-separator",
    "--shell",
    "--path",
    "--debug-input",
}

HELP_TEXT = """\
Usage:

  cdd [NAMED_OPTIONS] [FREEFORM_OPTIONS]

NAMED_OPTIONS consist of:

  --history               Show directory history depending on the direction
  --path=PATH_SPEC        Change to path specification (number or regular expression pattern)
  --direction={-|+|,}     Specify direction (backwards, forwards, most common) for history or PATH_SPEC
  --limit-backwards=n     Show at most n directories for last to first history
  --limit-forwards=n      Show at most n directories for first to last history
  --limit-common=n        Show at most n directories for most to least visited directories
  --path-separator=c      Force path separator to be a specific character
  --all                   Show all directories (overriding any 'limit' options)
  --action                Default freeform option to use when nothing else specified
  --shell={bash|cmd}      Shell syntax for the emitted commands
  --gc                    Do garbage collection by minimizing directory stack
  --del PATH_SPEC         Remove from history the directory matching PATH_SPEC
  --reset                 Reset the directory stack which clears all history
  --debug-input=FILE      Read the directory stack from FILE instead of stdin
  --help                  Show help (this information)
  --version               Show version number

FREEFORM_OPTIONS:

  {-|+|,|?}?              Show directory history (backwards '-', forwards '+' or most common ',' or '?')
  {-|+|,|?}? n            Show history limited by n amount (n == 0 means show all history)
  PATH_SPEC               Change to PATH_SPEC using the default direction
  {-|+|,} PATH_SPEC       Change to PATH_SPEC using the specified direction

PATH_SPEC can be a number, a repeated direction, or a direction and a pattern.
"""


class OptionsError(Exception):
    """Bad command line or CDD_OPTIONS. `show_tip` adds the --help hint."""

    def __init__(self, message: str, show_tip: bool = True):
        super().__init__(message)
        self.message = message
        self.show_tip = show_tip


class _ArgumentParser(argparse.ArgumentParser):
    """argparse that raises instead of exiting, so errors share cdd's formatting."""

    def error(self, message):
        raise argparse.ArgumentError(None, message)


@dataclass
class RunOptions:
    spec_options: SpecOptions = field(default_factory=lambda: SpecOptions(separator=os.sep))
    path: str = ""
    history: bool = False
    gc: bool = False
    delete: bool = False
    reset: bool = False
    help: bool = False
    version: bool = False
    shell: str | None = None
    debug_input: str | None = None

    @property
    def direction(self) -> Direction:
        return self.spec_options.direction


def _shared_options() -> argparse.ArgumentParser:
    """→ The options allowed both on the command line and in CDD_OPTIONS"""
    parser = _ArgumentParser(add_help=False)
    parser.add_argument("--action", default=None)
    parser.add_argument("--direction", default=None)
    parser.add_argument("--limit-backwards", type=int, default=None)
    parser.add_argument("--limit-forwards", type=int, default=None)
    parser.add_argument("--limit-common", type=int, default=None)
    parser.add_argument("--path-separator", default=None)
    parser.add_argument("--all", action="store_true", default=None)
    parser.add_argument("--shell", choices=sorted(RENDERERS), default=None)
    return parser


def build_env_parser() -> argparse.ArgumentParser:
    return _ArgumentParser(prog="cdd", add_help=False, parents=[_shared_options()])


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="cdd", add_help=False, parents=[_shared_options()])
    parser.add_argument("--help", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("--path", default=None)
    parser.add_argument("--history", action="store_true")
    parser.add_argument("--gc", action="store_true")
    parser.add_argument("--del", "--delete", dest="delete", action="store_true")
    parser.add_argument("--reset", action="store_true")
    parser.add_argument("--debug-input", default=None)
    return parser


# ============================================================================
# OPTION PARSING
# ============================================================================


def split_freeform(argv: Iterable[str]) -> tuple[list[str], list[str]]:
    """→ (named option args, freeform words)

    Freeform words like ``-``, ``-?`` or ``-3`` look like options to argparse, so anything that
    isn't a ``--name`` option (or its value) is kept away from argparse entirely.
    """
    named: list[str] = []
    freeform: list[str] = []
    args = iter(argv)
    for arg in args:
        if arg.startswith("--") and not re.fullmatch(r"-+", arg):
            named.append(arg)
            if "=" not in arg and arg in VALUE_OPTIONS:
                value = next(args, None)
                if value is not None:
                    named.append(value)
        else:
            freeform.append(arg)
    return named, freeform


def _pick(name: str, cmd: argparse.Namespace, env: argparse.Namespace):
    """→ Command-line value if given, else the CDD_OPTIONS value, else None"""
    value = getattr(cmd, name, None)
    if value is not None:
        return value
    return getattr(env, name, None)


def set_path(run: RunOptions, spec: str) -> None:
    """Record the path spec. A number typed without a direction picks one from its sign."""
    run.path = spec
    if run.direction.is_assigned():
        return
    m = re.match(r"\s*([+-]?\d+)", spec)
    if m is None:
        return
    run.direction.assign(FORWARDS if int(m.group(1)) >= 0 else BACKWARDS)


def set_history_direction(run: RunOptions, word: str) -> bool:
    """→ True if `word` is a history request: ``?``, ``??``, ``-?``, ``+?`` or ``,?``"""
    if word == "?":
        if not run.direction.is_assigned():
            run.direction.assign(FORWARDS)
        return True
    if word == "??":
        run.direction.assign(COMMON)
        return True
    if len(word) == 2 and Direction.is_valid(word[0]) and word[1] == "?":
        run.direction.assign(word[0])
        return True
    return False


def parse_options(argv: list[str], env_options: str = "") -> RunOptions:
    """→ RunOptions from the command line merged with CDD_OPTIONS; raises OptionsError"""
    run = RunOptions()
    argv = list(argv)
    if argv and is_trailing_path_spec(argv[-1]):
        run.path = argv.pop()

    named, freeform = split_freeform(argv)
    try:
        env = build_env_parser().parse_args(env_options.split())
    except argparse.ArgumentError as e:
        raise OptionsError(f"** Options error in environment variable: {e}") from e
    try:
        cmd = build_parser().parse_args(named)
    except argparse.ArgumentError as e:
        raise OptionsError(f"** Options error on command line: {e}") from e

    if cmd.help:
        run.help = True
        return run
    if cmd.version:
        run.version = True
        return run

    run.debug_input = cmd.debug_input
    run.history = cmd.history
    run.gc = cmd.gc
    run.delete = cmd.delete
    run.reset = cmd.reset
    run.shell = _pick("shell", cmd, env)

    options = run.spec_options
    for name in ("limit_backwards", "limit_forwards", "limit_common"):
        value = _pick(name, cmd, env)
        if value is not None:
            setattr(options, name, value)
    separator = _pick("path_separator", cmd, env)
    if separator is not None:
        if len(separator) != 1:
            raise OptionsError(f"** Options error: path separator must be one character: '{separator}'")
        options.separator = separator

    direction = _pick("direction", cmd, env)
    if direction:
        try:
            run.direction.assign(direction)
        except CddError as e:
            raise OptionsError(f"** Options error: {e.message}") from e

    options.show_all = bool(_pick("all", cmd, env))

    if cmd.path is not None:
        set_path(run, cmd.path)

    if run.delete and not run.path and not freeform:
        raise OptionsError("** No path indicated for delete", show_tip=False)

    if not freeform:
        if run.history or run.path or run.gc or run.delete or run.reset:
            return run
        action = _pick("action", cmd, env)
        if action:
            freeform = action.split()

    if not freeform:
        run.history = True
        return run

    if len(freeform) == 1:
        if set_history_direction(run, freeform[0]):
            run.history = True
        else:
            set_path(run, freeform[0])
        return run

    if len(freeform) == 2:
        first, second = freeform
        if Direction.is_valid(first):
            run.direction.assign(first)
            set_path(run, second)
            return run
        if set_history_direction(run, first):
            run.history = True
            try:
                amount = int(second)
            except ValueError as e:
                raise OptionsError(
                    f"** Options error: expecting number for second option: {first} {second}"
                ) from e
            options.set_limit_for(run.direction.value, amount)
            # A number given here overrides --all
            options.show_all = False
            return run
        raise OptionsError("** Options error: unable to interpret options")

    raise OptionsError("** Options error: too many options specified")


# ============================================================================
# OUTPUT
# ============================================================================


def _console_print(string="", *args, **kwargs) -> None:
    """→ Safe console printing with fallback"""
    try:
        console.print(string, *args, **kwargs)
    except Exception:
        kwargs_clean = {k: v for k, v in kwargs.items() if k in ["sep", "end"]}
        print(string, *args, file=sys.stderr, **kwargs_clean)


def _emit_line(line: str, style: str | None = None) -> None:
    """Protocol line on stderr: printed verbatim, never wrapped or marked up."""
    _console_print(line, style=style, markup=False, soft_wrap=True)


def _emit_error(message: str) -> None:
    for line in message.splitlines():
        _emit_line(line, style="error")


def help_tip() -> None:
    _emit_line("Use --help to see possible options", style="context")


def show_help() -> None:
    _console_print(HELP_TEXT, markup=False, soft_wrap=True, end="")


def show_version() -> None:
    _emit_line(f"cdd {__version__}")


# ============================================================================
# ACTIONS
# ============================================================================


def change_to_path_spec(run: RunOptions, model: HistoryModel, renderer: CommandRenderer, out=None) -> bool:
    """Resolve the path spec, emit the pushd, and report the match and its alternates."""
    resolution = PathSpecResolver(model, run.spec_options).resolve(run.path)
    if not resolution.success:
        _emit_error(resolution.error_message or f"Cannot resolve: {run.path}")
        return False

    emit_commands(renderer.change_dir(resolution.target_path), out)
    if resolution.target_path != run.path or resolution.alternate_lines:
        _emit_line(f"cdd: {resolution.target_path}", style="success")
    for line in resolution.alternate_lines:
        _emit_line(line)
    return True


def show_history(run: RunOptions, model: HistoryModel) -> bool:
    for line in history_lines(model, run.spec_options):
        _emit_line(line)
    return True


def garbage_collect(run: RunOptions, model: HistoryModel, renderer: CommandRenderer, out=None) -> bool:
    dirs = [entry.display_path for entry in model.forwards]
    emit_commands(renderer.rebuild(dirs, len(model.raw_stack), model.current_path), out)
    _emit_line("cdd gc", style="info")
    return True


def delete_from_history(run: RunOptions, model: HistoryModel, renderer: CommandRenderer, out=None) -> bool:
    resolution = PathSpecResolver(model, run.spec_options).resolve(run.path)
    if not resolution.success:
        _emit_error(resolution.error_message or f"** Could not resolve for delete: {run.path}")
        return False

    target = resolution.target_path
    if not model.contains_raw(target):
        _emit_error(NotFoundForDelete(target).message)
        return False

    dirs = list(reversed(model.raw_stack))
    emit_commands(renderer.rebuild(dirs, len(model.raw_stack), model.current_path, delete=target), out)
    _emit_line(f"cdd del: {target}", style="info")
    return True


def reset_history(run: RunOptions, model: HistoryModel, renderer: CommandRenderer, out=None) -> bool:
    emit_commands(renderer.rebuild([], len(model.raw_stack), model.current_path), out)
    _emit_line("cdd reset", style="info")
    return True


def process(run: RunOptions, model: HistoryModel, out: TextIO | None = None) -> bool:
    """→ Dispatch to the single action `run` asks for; True on success"""
    renderer = get_renderer(run.shell, run.spec_options.separator)
    if run.gc:
        return garbage_collect(run, model, renderer, out)
    if run.delete:
        return delete_from_history(run, model, renderer, out)
    if run.reset:
        return reset_history(run, model, renderer, out)
    if run.path:
        return change_to_path_spec(run, model, renderer, out)
    if run.history:
        return show_history(run, model)
    show_help()
    return True


# ============================================================================
# INPUT
# ============================================================================


def get_working_path() -> str:
    try:
        return os.getcwd()
    except OSError:
        # The current directory was removed underneath us
        return ""


def load_stack(run: RunOptions, stdin: TextIO | None = None) -> list[str]:
    """→ The raw directory stack, from --debug-input or stdin (empty if stdin is a terminal)"""
    if run.debug_input:
        _emit_line(f'Using file instead of stdin: "{run.debug_input}"', style="context")
        with open(run.debug_input, "r", encoding="utf-8", errors="replace") as f:
            return read_stack_lines(f)
    stdin = stdin if stdin is not None else sys.stdin
    if stdin is None or stdin.isatty():
        return []
    return read_stack_lines(stdin)


def build_model(run: RunOptions, stack: list[str], current_path: str) -> HistoryModel:
    normalizer = PathNormalizer(separator=run.spec_options.separator)
    return HistoryModel.build(stack, current_path, normalizer, default_identity())


# ============================================================================
# MAIN
# ============================================================================


def main(argv: list[str], env: dict[str, str] | None = None, stdin: TextIO | None = None) -> int:
    """→ Main: parse options, load the stack, run the action, return the exit status"""
    env = os.environ if env is None else env
    try:
        run = parse_options(argv, env.get(ENV_OPTIONS_NAME, ""))
    except OptionsError as e:
        _emit_error(e.message)
        if e.show_tip:
            help_tip()
        return 2

    if run.help:
        show_help()
        return 0
    if run.version:
        show_version()
        return 0

    # Numbers and patterns need a view; without a typed direction, look backwards
    run.direction.default_to(BACKWARDS)

    try:
        stack = load_stack(run, stdin)
    except OSError as e:
        _emit_error(f"** Cannot read directory stack: {e}")
        return 1

    model = build_model(run, stack, get_working_path())
    return 0 if process(run, model) else 1


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
