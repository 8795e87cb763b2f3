# ============================================================================
# STACK COMMAND LEXER
# ============================================================================

from __future__ import annotations

import re

from pygments.lexer import RegexLexer
from pygments.token import (
    Comment,
    Error,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
    Token,
)
from rich.style import Style
from rich.syntax import SyntaxTheme

# Custom token types so Rich and Pygments agree on them
Name.Directory = Token.Name.Directory
Keyword.Stack = Token.Keyword.Stack


class StackCommandLexer(RegexLexer):
    """
    Lexer for the directory-stack scripts cdd writes to stdout, in both the bash
    flavour (``dirs -c`` / ``\\cd 'dir'`` / ``pushd 'dir'``) and the cmd.exe flavour
    (``for /l %%i in (...) do popd`` / ``chdir/d dir 2>nul``).
    Use like so:
    ```python
    console = Console()
    console.print(Syntax(script, StackCommandLexer(), theme=StackCommandTheme()))
    ```
    """

    name = "cdd stack commands"
    aliases = ["cdd"]
    filenames = []

    flags = re.MULTILINE

    tokens = {
        "root": [
            (r"\n", Text),
            (r"[ \t]+", Text),
            (r"\b(for|in|do)\b", Keyword.Reserved),
            (r"\\?\b(pushd|popd|dirs|cd)\b", Keyword.Stack, "args"),
            (r"\b(chdir)(/d)?", Keyword.Stack, "args"),
            (r"/l\b", Name.Attribute),
            (r"%%\w", Name.Variable),
            (r"[(),]", Punctuation),
            (r"\b[0-9]+\b", Number.Integer),
            (r"[^\s(),]+", Text),
        ],
        "args": [
            (r"\n", Text, "#pop"),
            (r"[ \t]+", Text),
            (r"-[a-zA-Z]+\b", Name.Attribute),
            (r"[0-9]*>&?[0-9]*\S*", Operator),
            (r"'(?:[^']|'\\'')*'", String.Single),
            (r"[^\s>]+", Name.Directory),
        ],
    }


class StackCommandTheme(SyntaxTheme):
    """Rich theme for stack commands, Monokai Pro colours."""

    _BLACK = "#2d2a2e"
    _RED = "#ff6188"
    _GREEN = "#a9dc76"
    _YELLOW = "#ffd866"
    _ORANGE = "#fc9867"
    _PURPLE = "#ab9df2"
    _CYAN = "#78dce8"
    _WHITE = "#fcfcfa"
    _COMMENT_GRAY = "#727072"

    background_color = _BLACK
    default_style = Style(color=_WHITE)

    styles = {
        Keyword.Stack: Style(color=_GREEN, bold=True),  # pushd, dirs
        Name.Directory: Style(color=_YELLOW),  # unquoted cmd.exe paths
        Name.Attribute: Style(color=_ORANGE),  # -c, /l
        Name.Variable: Style(color=_PURPLE),  # %%i
        Number: Style(color=_CYAN),
        Text: Style(color=_WHITE),
        Comment: Style(color=_COMMENT_GRAY, italic=True),
        Keyword: Style(color=_RED, bold=True),
        Operator: Style(color=_COMMENT_GRAY),  # 2>nul
        Punctuation: Style(color=_WHITE),
        String: Style(color=_YELLOW),
        Error: Style(color=_RED, bold=True),
    }

    @classmethod
    def get_style_for_token(cls, t):
        return cls.styles.get(t, cls.default_style)

    @classmethod
    def get_background_style(cls):
        return Style(bgcolor=cls._BLACK)
