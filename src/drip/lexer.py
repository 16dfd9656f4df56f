"""Template lexer.

Splits template source into TEXT, OUTPUT (``{{ ... }}``) and TAG
(``{% ... %}``) tokens.

Guarantees:
- Lossless: ``"".join(t.raw for t in tokenize(s)) == s`` for every source
  that tokenizes without error.
- Lazy and restartable: ``tokenize()`` returns a ``TokenStream`` whose every
  iteration rescans the source from the start; nothing is scanned until the
  stream is iterated.
- Quote aware: a close delimiter inside a single- or double-quoted string
  does not end the token, so ``{{ "}}" | size }}`` is one token. There is no
  nesting awareness beyond that.
- Verbatim bodies: the text between ``{% raw %}`` (or ``{% comment %}``) and
  its end tag is one TEXT token and is not scanned for delimiters, so it may
  hold unbalanced quotes.

Whitespace control markers (``{{-``, ``-}}``, ``{%-``, ``-%}``) are recorded
on the token as ``trim_left``/``trim_right``; the parser strips the adjacent
text. The token's ``raw`` keeps the dashes.
"""

from __future__ import annotations

import re
from collections.abc import Iterator

from drip._types import Token, TokenType
from drip.environment.exceptions import ErrorCode, TokenizationError

_OPEN_RE = re.compile(r"\{\{|\{%")

# Lazily consume quoted strings or any non-quote character until the first
# close delimiter outside quotes. An unterminated quote makes the match fail.
_OUTPUT_END_RE = re.compile(r"""(?:'[^']*'|"[^"]*"|[^'"])*?\}\}""", re.S)
_TAG_END_RE = re.compile(r"""(?:'[^']*'|"[^"]*"|[^'"])*?%\}""", re.S)

# Bodies of these tags are plain text up to their end tag, quotes included.
_VERBATIM_END_RE = {
    name: re.compile(r"\{%-?\s*end" + name + r"\s*-?%\}")
    for name in ("raw", "comment")
}


def _advance(text: str, lineno: int, col: int) -> tuple[int, int]:
    """Return the position just after ``text`` when it starts at (lineno, col)."""
    newlines = text.count("\n")
    if newlines:
        return lineno + newlines, len(text) - text.rfind("\n") - 1
    return lineno, col + len(text)


class TokenStream:
    """Finite, restartable lazy token sequence over one template source.

    Example:
        >>> stream = tokenize("Hi {{ name }}!")
        >>> [t.type.name for t in stream]
        ['TEXT', 'OUTPUT', 'TEXT']
        >>> [t.raw for t in stream]   # iterating again rescans
        ['Hi ', '{{ name }}', '!']
    """

    __slots__ = ("_name", "_source")

    def __init__(self, source: str, name: str | None = None):
        self._source = source
        self._name = name

    @property
    def source(self) -> str:
        return self._source

    @property
    def name(self) -> str | None:
        return self._name

    def __iter__(self) -> Iterator[Token]:
        return self._scan()

    def _scan(self) -> Iterator[Token]:
        source = self._source
        length = len(source)
        pos = 0
        lineno, col = 1, 0

        while pos < length:
            match = _OPEN_RE.search(source, pos)
            if match is None:
                text = source[pos:]
                yield Token(TokenType.TEXT, text, lineno, col, raw=text)
                return

            start = match.start()
            if start > pos:
                text = source[pos:start]
                yield Token(TokenType.TEXT, text, lineno, col, raw=text)
                lineno, col = _advance(text, lineno, col)

            is_output = match.group() == "{{"
            end_re = _OUTPUT_END_RE if is_output else _TAG_END_RE
            end_match = end_re.match(source, start + 2)
            if end_match is None:
                opener, closer = ("{{", "}}") if is_output else ("{%", "%}")
                raise TokenizationError(
                    f"'{opener}' is not closed by '{closer}'",
                    lineno,
                    col,
                    name=self._name,
                    source=source,
                    suggestion=f"Add the missing '{closer}', or check for an unbalanced quote",
                    code=ErrorCode.UNCLOSED_OUTPUT if is_output else ErrorCode.UNCLOSED_TAG,
                )

            end = end_match.end()
            raw = source[start:end]
            inner = raw[2:-2]
            trim_left = inner.startswith("-")
            trim_right = len(inner) > 1 and inner.endswith("-")
            value = inner[1 if trim_left else 0 : len(inner) - 1 if trim_right else len(inner)]

            yield Token(
                TokenType.OUTPUT if is_output else TokenType.TAG,
                value.strip(),
                lineno,
                col,
                raw=raw,
                trim_left=trim_left,
                trim_right=trim_right,
            )
            lineno, col = _advance(raw, lineno, col)
            pos = end

            words = value.split(None, 1)
            verbatim_end = _VERBATIM_END_RE.get(words[0]) if words and not is_output else None
            if verbatim_end is not None:
                close = verbatim_end.search(source, pos)
                if close is not None and close.start() > pos:
                    text = source[pos : close.start()]
                    yield Token(TokenType.TEXT, text, lineno, col, raw=text)
                    lineno, col = _advance(text, lineno, col)
                    pos = close.start()

    def __repr__(self) -> str:
        return f"<TokenStream {self._name or '(inline)'} ({len(self._source)} chars)>"


def tokenize(source: str, name: str | None = None) -> TokenStream:
    """Tokenize template source.

    Raises:
        TokenizationError: While iterating, at the first unterminated
            ``{{`` or ``{%``.
    """
    return TokenStream(source, name)
