"""
path_resolver.py - Path specification resolution for cdd

A path specification is whatever the user typed after `cdd`. It is interpreted in this order,
first match wins:

1.  an existing directory: go there
2.  an existing file: go to the directory containing it
3.  `12`: offset in the current direction (backwards is 1-based, forwards/common are 0-based)
4.  `-3` / `---`: backwards offset (the dash count is the offset)
5.  `+3` / `+++`: forwards offset (`+` is offset 0)
6.  `,3` / `,,,`: most-common offset (`,` is offset 0)
7.  anything else: case-insensitive regular expression searched in the current direction's view

The classification step (`classify`) returns one variant of `PathToken`; `PathSpecResolver`
dispatches on it. Every failure is a `CddError`, and `PathSpecResolver.resolve()` turns those
into a failed `Resolution` so callers never see an exception.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Union

from dirhistory import (
    CommonEntry,
    HistoryModel,
    expand_ellipsis,
    is_directory,
    is_regular_file,
    parent_path,
    windowize_path,
)

# ============================================================================
# ERRORS
# ============================================================================


class CddError(Exception):
    """Base class for every recoverable cdd failure. `message` is user-facing."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoHistory(CddError):
    def __init__(self):
        super().__init__("No history of directories")


class NoDirectoryAtOffset(CddError):
    def __init__(self, sign: str, offset: int):
        super().__init__(f"No directory at {sign}{offset}")
        self.sign = sign
        self.offset = offset


class NoPatternMatch(CddError):
    def __init__(self, pattern: str):
        super().__init__(f"Cannot match pattern: '{pattern}'")
        self.pattern = pattern


class InvalidPattern(CddError):
    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Cannot process pattern: '{pattern}'\n{reason}")
        self.pattern = pattern


class InvalidDirection(CddError):
    def __init__(self, token: str):
        super().__init__(f"Invalid direction: '{token}' (expecting one of - + ,)")
        self.token = token


class DirectionNotSet(CddError):
    def __init__(self, spec: str):
        super().__init__(f"No direction given for path specification: '{spec}'")


class NotFoundForDelete(CddError):
    def __init__(self, path: str):
        super().__init__(f"** Could not delete from history: {path}")
        self.path = path


# ============================================================================
# DIRECTION
# ============================================================================

BACKWARDS = "-"
FORWARDS = "+"
COMMON = ","
DIRECTIONS = (BACKWARDS, FORWARDS, COMMON)


class Direction:
    """Which view drives numbers, patterns and history listings.

    `assign()` marks the direction as explicitly chosen; `default_to()` fills in a value
    without doing so, which is how an absent direction is told apart from a typed one.
    """

    def __init__(self, token: str | None = None):
        self.value: str | None = None
        self.assigned = False
        if token:
            self.assign(token)

    def __repr__(self):
        return f"Direction({self.value!r}, assigned={self.assigned})"

    @staticmethod
    def is_valid(token: str) -> bool:
        return token in DIRECTIONS

    def assign(self, token: str) -> None:
        if not self.is_valid(token):
            raise InvalidDirection(token)
        self.value = token
        self.assigned = True

    def default_to(self, token: str) -> None:
        if not self.is_valid(token):
            raise InvalidDirection(token)
        if self.value is None:
            self.value = token

    def is_assigned(self) -> bool:
        return self.assigned

    def is_set(self) -> bool:
        return self.value is not None

    def is_backwards(self) -> bool:
        return self.value == BACKWARDS

    def is_forwards(self) -> bool:
        return self.value == FORWARDS

    def is_common(self) -> bool:
        return self.value == COMMON


@dataclass
class SpecOptions:
    direction: Direction = field(default_factory=Direction)
    limit_backwards: int = 10
    limit_forwards: int = 10
    limit_common: int = 10
    show_all: bool = False
    separator: str = "/"

    def limit_for(self, direction: str) -> int:
        return {
            BACKWARDS: self.limit_backwards,
            FORWARDS: self.limit_forwards,
            COMMON: self.limit_common,
        }[direction]

    def set_limit_for(self, direction: str, amount: int) -> None:
        if direction == BACKWARDS:
            self.limit_backwards = amount
        elif direction == FORWARDS:
            self.limit_forwards = amount
        elif direction == COMMON:
            self.limit_common = amount

    def is_limited(self, direction: str) -> bool:
        return not self.show_all and self.limit_for(direction) > 0


# ============================================================================
# TOKEN CLASSIFICATION
# ============================================================================


@dataclass(frozen=True)
class DirectDir:
    path: str


@dataclass(frozen=True)
class DirectFile:
    path: str


@dataclass(frozen=True)
class NumericAmbiguous:
    amount: int


@dataclass(frozen=True)
class BackwardsOffset:
    amount: int


@dataclass(frozen=True)
class ForwardsOffset:
    amount: int


@dataclass(frozen=True)
class CommonOffset:
    amount: int


@dataclass(frozen=True)
class Pattern:
    pattern: str


PathToken = Union[
    DirectDir, DirectFile, NumericAmbiguous, BackwardsOffset, ForwardsOffset, CommonOffset, Pattern
]

NUM_RE = re.compile(r"\d+")
DASH_NUM_RE = re.compile(r"-(\d+)")
DASHES_RE = re.compile(r"-+")
PLUS_NUM_RE = re.compile(r"\+(\d+)")
PLUSES_RE = re.compile(r"\++")
COMMA_NUM_RE = re.compile(r",(\d+)")
COMMAS_RE = re.compile(r",+")

# Symbolic tokens after the filesystem checks: (regex, variant, uses digits, offset shift)
SYMBOLIC_TOKENS: list[tuple[re.Pattern, type, bool, int]] = [
    (DASH_NUM_RE, BackwardsOffset, True, 0),
    (DASHES_RE, BackwardsOffset, False, 0),
    (PLUS_NUM_RE, ForwardsOffset, True, 0),
    (PLUSES_RE, ForwardsOffset, False, -1),
    (COMMA_NUM_RE, CommonOffset, True, 0),
    (COMMAS_RE, CommonOffset, False, -1),
]


def classify(
    spec: str,
    is_dir: Callable[[str], bool] = is_directory,
    is_file: Callable[[str], bool] = is_regular_file,
) -> PathToken:
    """→ The grammar variant for `spec`. Filesystem checks take precedence over everything."""
    if is_dir(spec):
        return DirectDir(spec)
    if is_file(spec):
        return DirectFile(spec)
    if NUM_RE.fullmatch(spec):
        return NumericAmbiguous(int(spec))
    for regex, variant, uses_digits, shift in SYMBOLIC_TOKENS:
        m = regex.fullmatch(spec)
        if m is None:
            continue
        amount = int(m.group(1)) if uses_digits else len(m.group(0)) + shift
        return variant(amount)
    return Pattern(spec)


def is_trailing_path_spec(arg: str) -> bool:
    """Arguments argparse would mistake for options: ``--``, ``---``, ``-3``."""
    return bool(re.fullmatch(r"--+", arg) or DASH_NUM_RE.fullmatch(arg))


# ============================================================================
# LINE FORMATTING
# ============================================================================


def format_entry_line(index: int, path: str) -> str:
    return f"{index:>3}: {path}"


def format_common_line(index: int, entry: CommonEntry) -> str:
    pad = " " if index < 10 else ""
    return f"{pad},{index}: ({entry.count:>2}) {entry.display_path}"


SUMMARY_WORD = {BACKWARDS: "last", FORWARDS: "first", COMMON: "top"}


# ============================================================================
# RESOLUTION
# ============================================================================


@dataclass
class Resolution:
    success: bool
    target_path: str | None = None
    alternate_lines: list[str] = field(default_factory=list)
    error_message: str | None = None
    spec: str = ""

    @classmethod
    def failed(cls, error: CddError, spec: str = "") -> Resolution:
        return cls(success=False, error_message=error.message, spec=spec)


class PathSpecResolver:
    """Resolves path specifications against one HistoryModel."""

    def __init__(
        self,
        model: HistoryModel,
        options: SpecOptions,
        is_dir: Callable[[str], bool] = is_directory,
        is_file: Callable[[str], bool] = is_regular_file,
    ):
        self.model = model
        self.options = options
        self.is_dir = is_dir
        self.is_file = is_file

    @property
    def direction(self) -> Direction:
        return self.options.direction

    def prepare(self, spec: str) -> str:
        """Expand ``...`` and, on backslash platforms, accept forward slashes."""
        spec = expand_ellipsis(spec, self.options.separator)
        if self.options.separator == "\\":
            spec = windowize_path(spec, self.options.separator)
        return spec

    def resolve(self, spec: str) -> Resolution:
        prepared = self.prepare(spec)
        try:
            target, alternates = self._dispatch(prepared)
        except CddError as e:
            return Resolution.failed(e, spec=prepared)
        return Resolution(success=True, target_path=target, alternate_lines=alternates, spec=prepared)

    def _dispatch(self, spec: str) -> tuple[str, list[str]]:
        token = classify(spec, self.is_dir, self.is_file)
        if isinstance(token, DirectDir):
            return token.path, []
        if isinstance(token, DirectFile):
            return parent_path(token.path), []
        if self.model.is_empty:
            raise NoHistory()
        if isinstance(token, NumericAmbiguous):
            if self.direction.is_backwards():
                return self.go_backwards(token.amount), []
            if self.direction.is_forwards():
                return self.go_forwards(token.amount), []
            if self.direction.is_common():
                return self.go_common(token.amount), []
            raise DirectionNotSet(spec)
        if isinstance(token, BackwardsOffset):
            return self.go_backwards(token.amount), []
        if isinstance(token, ForwardsOffset):
            return self.go_forwards(token.amount), []
        if isinstance(token, CommonOffset):
            return self.go_common(token.amount), []
        return self.search(token.pattern)

    # -- offsets ------------------------------------------------------------

    def go_backwards(self, amount: int) -> str:
        view = self.model.backwards
        if amount < 1 or amount > len(view):
            raise NoDirectoryAtOffset(BACKWARDS, amount)
        return view[amount - 1].display_path

    def go_forwards(self, amount: int) -> str:
        view = self.model.forwards
        if amount < 0 or amount >= len(view):
            raise NoDirectoryAtOffset(FORWARDS, amount)
        return view[amount].display_path

    def go_common(self, amount: int) -> str:
        view = self.model.common
        if amount < 0 or amount >= len(view):
            raise NoDirectoryAtOffset(COMMON, amount)
        return view[amount].display_path

    # -- pattern search -----------------------------------------------------

    def compile_pattern(self, pattern: str) -> re.Pattern:
        try:
            return re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise InvalidPattern(pattern, str(e)) from e

    def search(self, pattern: str) -> tuple[str, list[str]]:
        """→ (first match, alternate lines) from the current direction's view"""
        regex = self.compile_pattern(pattern)
        if not self.direction.is_set():
            raise DirectionNotSet(pattern)
        direction = self.direction.value

        found: str | None = None
        alternates: list[str] = []
        total = 0
        for path, line in self._indexed_lines(direction):
            if not regex.search(path):
                continue
            total += 1
            if found is None:
                found = path
            else:
                alternates.append(line)

        if found is None:
            raise NoPatternMatch(pattern)

        limit = self.options.limit_for(direction)
        if self.options.is_limited(direction) and len(alternates) > limit:
            alternates = alternates[:limit]
            alternates.append(f" ... showing {SUMMARY_WORD[direction]} {limit} matching of {total}")
        return found, alternates

    def _indexed_lines(self, direction: str):
        """Yield (path, formatted line) over the view for `direction`, in view order."""
        if direction == BACKWARDS:
            for i, entry in enumerate(self.model.backwards):
                yield entry.display_path, format_entry_line(-(i + 1), entry.display_path)
        elif direction == FORWARDS:
            for i, entry in enumerate(self.model.forwards):
                yield entry.display_path, format_entry_line(i, entry.display_path)
        else:
            for i, entry in enumerate(self.model.common):
                yield entry.display_path, format_common_line(i, entry)


# ============================================================================
# HISTORY LISTING
# ============================================================================


def history_lines(model: HistoryModel, options: SpecOptions) -> list[str]:
    """→ The history listing for the active direction, including a truncation summary."""
    direction = options.direction
    if direction.is_backwards():
        if not model.backwards:
            return ["No history of other directories"]
        lines = [format_entry_line(-(i + 1), e.display_path) for i, e in enumerate(model.backwards)]
        key = BACKWARDS
    elif direction.is_forwards():
        lines = [format_entry_line(i, e.display_path) for i, e in enumerate(model.forwards)]
        key = FORWARDS
    elif direction.is_common():
        lines = [format_common_line(i, e) for i, e in enumerate(model.common)]
        key = COMMON
    else:
        return []

    total = len(lines)
    limit = options.limit_for(key)
    if options.is_limited(key) and total > limit:
        lines = lines[:limit]
        lines.append(f" ... showing {SUMMARY_WORD[key]} {limit} of {total}")
    return lines
