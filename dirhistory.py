"""
dirhistory.py - Directory stack model for cdd

Turns the raw pushd/popd stack printed by the shell into three de-duplicated views:

- **backwards**: most recently visited first, without the current directory.
- **forwards**: oldest first, one entry per directory.
- **common**: most visited first, ties kept in first-seen order.

Two stack entries are the same directory when their normalized keys match. When an entry is
compared against the current directory, filesystem identity (device + inode) is consulted as
well, so a symlinked path to the current directory is recognized. Identity is optional: pass
``identity=None`` and everything degrades to string comparison.
"""

from __future__ import annotations

import os
import re
from collections.abc import Hashable
from dataclasses import dataclass, field
from typing import Callable, Iterable

# ============================================================================
# FILESYSTEM IDENTITY
# ============================================================================

IdentityLookup = Callable[[str], "Hashable | None"]


def stat_identity(path: str) -> tuple[int, int] | None:
    """→ (st_dev, st_ino) of `path`, or None when it can't be determined"""
    if not path:
        return None
    try:
        st = os.stat(path)
    except (OSError, ValueError):
        return None
    # Some platforms (and some network filesystems) report 0 for every inode
    if st.st_ino == 0:
        return None
    return (st.st_dev, st.st_ino)


def default_identity() -> IdentityLookup | None:
    return None if os.name == "nt" else stat_identity


def is_directory(path: str) -> bool:
    return bool(path) and os.path.isdir(path)


def is_regular_file(path: str) -> bool:
    # Anything that exists and is not a directory counts, like `stat` + S_IFDIR
    return bool(path) and os.path.exists(path) and not os.path.isdir(path)


# ============================================================================
# PATH NORMALIZATION
# ============================================================================

ELLIPSIS_RE = re.compile(r"(?:^|[\\/])(\.{3,})(?:[\\/]|$)")


class PathNormalizer:
    """Canonicalizes paths into de-duplication keys. Never used for display."""

    def __init__(self, separator: str = os.sep, fold_case: bool | None = None):
        self.separator = separator
        self.fold_case = (os.name == "nt") if fold_case is None else fold_case

    def __repr__(self):
        return f"PathNormalizer(separator={self.separator!r}, fold_case={self.fold_case})"

    def normalize(self, path: str) -> str:
        key = path.replace(self.separator, "/").replace("\\", "/")
        if self.fold_case:
            key = key.lower()
        if len(key) > 1 and key.endswith("/"):
            key = key[:-1]
        return key

    def paths_equal(
        self,
        key_a: str,
        identity_a: Hashable | None,
        key_b: str,
        identity: IdentityLookup | None,
    ) -> bool:
        """Same directory by identity when both sides have one, else by normalized key."""
        identity_b = identity(key_b) if identity is not None and identity_a is not None else None
        if identity_a is not None and identity_b is not None:
            return identity_a == identity_b
        return key_a == key_b


def expand_ellipsis(path: str, separator: str = "/") -> str:
    """Rewrite runs of three or more dots as parent steps: ``...`` → ``../..``.

    A run of N dots becomes N-1 ``..`` components. Only runs that form a whole path component
    are expanded; ``a...b`` is left alone.
    """
    parts: list[str] = []
    remainder = path
    # Each match consumes at least three characters, so this terminates well before the bound
    for _ in range(len(path) + 1):
        m = ELLIPSIS_RE.search(remainder)
        if m is None:
            break
        dots = m.group(1)
        parts.append(remainder[: m.start(1)])
        parts.append(separator.join([".."] * (len(dots) - 1)))
        # The trailing separator (if any) stays in the remainder so the next run can use it
        remainder = remainder[m.end(1) :]
    parts.append(remainder)
    return "".join(parts)


def parent_path(path: str) -> str:
    """Directory containing `path`, by string inspection only."""
    found = max(path.rfind("/"), path.rfind("\\"))
    if found == 0:
        return path[:1]
    if found > 0:
        return path[:found]
    if len(path) >= 2 and path[1] == ":":
        return path[:2]
    return path


def windowize_path(path: str, separator: str) -> str:
    return path.replace("/", separator)


# ============================================================================
# HISTORY MODEL
# ============================================================================


@dataclass(frozen=True)
class HistoryEntry:
    display_path: str
    key: str


@dataclass(frozen=True)
class CommonEntry:
    display_path: str
    key: str
    count: int
    first_seen: int

    @property
    def sort_key(self) -> tuple[int, int]:
        return (-self.count, self.first_seen)


@dataclass(frozen=True)
class HistoryModel:
    """Immutable snapshot of the directory stack and its three views."""

    raw_stack: tuple[str, ...]
    current_path: str
    backwards: tuple[HistoryEntry, ...] = field(default=())
    forwards: tuple[HistoryEntry, ...] = field(default=())
    common: tuple[CommonEntry, ...] = field(default=())

    @classmethod
    def build(
        cls,
        raw_stack: Iterable[str],
        current_path: str = "",
        normalizer: PathNormalizer | None = None,
        identity: IdentityLookup | None = None,
    ) -> HistoryModel:
        normalizer = normalizer or PathNormalizer()
        stack = tuple(raw_stack)
        current_key = normalizer.normalize(current_path)
        current_identity = identity(current_key) if identity is not None and current_path else None

        backwards: list[HistoryEntry] = []
        seen: set[str] = set()
        for path in stack:
            key = normalizer.normalize(path)
            if key in seen:
                continue
            # The identity lookup is a stat call, so only pay for it on unseen keys
            if current_path and normalizer.paths_equal(current_key, current_identity, key, identity):
                continue
            backwards.append(HistoryEntry(path, key))
            seen.add(key)

        forwards: list[HistoryEntry] = []
        seen = set()
        for path in reversed(stack):
            key = normalizer.normalize(path)
            if key in seen:
                continue
            forwards.append(HistoryEntry(path, key))
            seen.add(key)

        counts: dict[str, list] = {}
        for path in stack:
            key = normalizer.normalize(path)
            if key in counts:
                counts[key][1] += 1
            else:
                counts[key] = [path, 1, len(counts)]
        common = sorted(
            (CommonEntry(path, key, count, order) for key, (path, count, order) in counts.items()),
            key=lambda e: e.sort_key,
        )

        model = cls(
            raw_stack=stack,
            current_path=current_path,
            backwards=tuple(backwards),
            forwards=tuple(forwards),
            common=tuple(common),
        )
        assert len({e.key for e in model.forwards}) == len(model.forwards)
        return model

    @property
    def is_empty(self) -> bool:
        return not self.raw_stack

    def contains_raw(self, path: str) -> bool:
        """→ True if `path` appears verbatim in the raw stack"""
        return path in self.raw_stack


def read_stack_lines(lines: Iterable[str]) -> list[str]:
    """Strip line endings; blank lines are not directories."""
    stack = []
    for line in lines:
        line = line.rstrip("\r\n")
        if line:
            stack.append(line)
    return stack
