"""Token types shared by the template lexer and the expression lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    """Kinds of tokens.

    The first three are produced by the template lexer; the rest by the
    expression lexer that runs over the inside of output and tag tokens.
    """

    # Template level
    TEXT = "text"
    OUTPUT = "output"
    TAG = "tag"

    # Expression level
    NAME = "name"
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    OPERATOR = "operator"
    DOT = "dot"
    DOTDOT = "dotdot"
    LBRACKET = "lbracket"
    RBRACKET = "rbracket"
    LPAREN = "lparen"
    RPAREN = "rparen"
    PIPE = "pipe"
    COLON = "colon"
    COMMA = "comma"
    EOF = "eof"


@dataclass(frozen=True, slots=True)
class Token:
    """A lexed token with its source position.

    Attributes:
        type: Token kind
        value: Content of the token. For output and tag tokens this is the
            text between the delimiters with whitespace-control dashes and
            surrounding whitespace removed.
        lineno: 1-based line of the first character
        col_offset: 0-based column of the first character
        raw: Exact source span (template-level tokens only)
        trim_left: ``{{-`` / ``{%-`` was used
        trim_right: ``-}}`` / ``-%}`` was used
    """

    type: TokenType
    value: str
    lineno: int
    col_offset: int
    raw: str = ""
    trim_left: bool = False
    trim_right: bool = False

    @property
    def name(self) -> str:
        """Tag name (first word of a tag token)."""
        return self.value.split(None, 1)[0] if self.value else ""

    @property
    def args(self) -> str:
        """Everything after the tag name, stripped."""
        parts = self.value.split(None, 1)
        return parts[1].strip() if len(parts) > 1 else ""

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.lineno}:{self.col_offset})"
