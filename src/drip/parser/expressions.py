"""Expression lexer and recursive-descent parser.

Grammar (lowest to highest precedence):

    pipeline   := or ( '|' NAME [ ':' arg ( ',' arg )* ] )*
    arg        := NAME ':' or | or
    or         := and ( 'or' and )*
    and        := not ( 'and' not )*
    not        := 'not' not | comparison
    comparison := primary [ ( '==' | '!=' | '<>' | '<' | '>' | '<=' | '>=' | 'contains' ) primary ]
    primary    := STRING | INTEGER | FLOAT
                | 'true' | 'false' | 'nil' | 'null' | 'empty' | 'blank'
                | '(' or '..' or ')' | '(' or ')'
                | path
    path       := ( NAME | '[' or ']' ) ( '.' NAME | '.' INTEGER | '[' or ']' )*

Tag handlers use ``ExpressionParser`` as a cursor to parse their own
argument grammars (``item in items limit: 3 reversed``) from the same
tokens.
"""

from __future__ import annotations

import re
from collections.abc import Container, Iterator

from drip._types import Token, TokenType
from drip.environment.exceptions import ErrorCode
from drip.nodes import BinOp, Const, Expr, FilterCall, Not, Path, Pipeline, Range
from drip.parser.errors import ParseError
from drip.syntax import BLANK, EMPTY

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>'[^']*'|"[^"]*")
  | (?P<float>-?\d+\.\d+)
  | (?P<integer>-?\d+)
  | (?P<dotdot>\.\.)
  | (?P<operator>==|!=|<>|<=|>=|<|>)
  | (?P<name>[A-Za-z_][\w-]*\??)
  | (?P<punct>[.\[\]()|:,])
    """,
    re.X,
)

_PUNCT = {
    ".": TokenType.DOT,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "|": TokenType.PIPE,
    ":": TokenType.COLON,
    ",": TokenType.COMMA,
}

_GROUP_TYPES = {
    "string": TokenType.STRING,
    "float": TokenType.FLOAT,
    "integer": TokenType.INTEGER,
    "dotdot": TokenType.DOTDOT,
    "operator": TokenType.OPERATOR,
    "name": TokenType.NAME,
}

_LITERALS = {
    "true": True,
    "false": False,
    "nil": None,
    "null": None,
    "empty": EMPTY,
    "blank": BLANK,
}

_CMP_OPERATORS = frozenset({"==", "!=", "<>", "<", ">", "<=", ">="})


def lex_expression(text: str, anchor: Token | None = None) -> Iterator[Token]:
    """Lex expression text. Token ``col_offset`` is the offset within ``text``.

    Raises:
        ParseError: On a character that starts no token (e.g. an unclosed quote).
    """
    pos = 0
    length = len(text)
    lineno = anchor.lineno if anchor else 1
    while pos < length:
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ParseError(
                f"Unexpected character {text[pos]!r} in expression '{text}'",
                anchor,
                code=ErrorCode.INVALID_EXPRESSION,
            )
        kind = match.lastgroup
        value = match.group()
        if kind == "punct":
            yield Token(_PUNCT[value], value, lineno, pos)
        elif kind != "ws":
            yield Token(_GROUP_TYPES[kind], value, lineno, pos)
        pos = match.end()
    yield Token(TokenType.EOF, "", lineno, length)


class ExpressionParser:
    """Cursor over the tokens of one expression string.

    Args:
        text: Expression source
        anchor: Template token the text came from; positions every node and
            error it produces.
        known_filters: When given, filter names outside it are rejected at
            parse time (``strict_filters``).

    Example:
        >>> p = ExpressionParser("item in items limit: 2")
        >>> p.expect_name().value, p.expect_name("in").value
        ('item', 'in')
        >>> p.parse_primary()
        Path(lineno=1, col_offset=0, segments=('items',), source='items')
    """

    __slots__ = ("_anchor", "_known_filters", "_pos", "_text", "_tokens")

    def __init__(
        self,
        text: str,
        anchor: Token | None = None,
        known_filters: Container[str] | None = None,
    ):
        self._text = text
        self._anchor = anchor
        self._known_filters = known_filters
        self._tokens = list(lex_expression(text, anchor))
        self._pos = 0

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return self._text

    @property
    def current(self) -> Token:
        return self._tokens[self._pos]

    def peek(self, offset: int = 1) -> Token:
        index = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def at_end(self) -> bool:
        return self.current.type is TokenType.EOF

    def advance(self) -> Token:
        token = self.current
        if token.type is not TokenType.EOF:
            self._pos += 1
        return token

    def match(self, type_: TokenType, value: str | None = None) -> Token | None:
        """Consume and return the current token if it matches, else None."""
        token = self.current
        if token.type is type_ and (value is None or token.value == value):
            return self.advance()
        return None

    def match_name(self, value: str) -> Token | None:
        return self.match(TokenType.NAME, value)

    def expect(self, type_: TokenType, value: str | None = None) -> Token:
        token = self.match(type_, value)
        if token is None:
            wanted = repr(value) if value else type_.value
            raise self.error(f"Expected {wanted}, got {self._describe(self.current)}")
        return token

    def expect_name(self, value: str | None = None) -> Token:
        return self.expect(TokenType.NAME, value)

    def expect_end(self) -> None:
        if not self.at_end():
            raise self.error(f"Unexpected {self._describe(self.current)}")

    def rest(self) -> str:
        """Unconsumed source text."""
        return self._text[self.current.col_offset :].strip()

    def error(self, message: str) -> ParseError:
        return ParseError(
            f"{message} in expression '{self._text}'",
            self._anchor,
            code=ErrorCode.INVALID_EXPRESSION,
        )

    @staticmethod
    def _describe(token: Token) -> str:
        if token.type is TokenType.EOF:
            return "end of expression"
        return repr(token.value)

    def _position(self) -> tuple[int, int]:
        if self._anchor is None:
            return 1, 0
        return self._anchor.lineno, self._anchor.col_offset

    def _source_since(self, start: Token) -> str:
        end = self._tokens[self._pos - 1]
        return self._text[start.col_offset : end.col_offset + len(end.value)]

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def parse(self) -> Expr:
        """Parse the whole text as a pipeline."""
        expr = self.parse_pipeline()
        self.expect_end()
        return expr

    def parse_pipeline(self) -> Expr:
        return self._parse_filters(self.parse_expression())

    def _parse_filters(self, value: Expr) -> Expr:
        filters: list[FilterCall] = []
        while self.match(TokenType.PIPE):
            filters.append(self._parse_filter())
        if not filters:
            return value
        lineno, col = self._position()
        return Pipeline(lineno, col, value=value, filters=tuple(filters))

    def _parse_filter(self) -> FilterCall:
        name = self.expect_name().value
        if self._known_filters is not None and name not in self._known_filters:
            raise ParseError(
                f"Unknown filter '{name}'",
                self._anchor,
                code=ErrorCode.UNKNOWN_FILTER_STRICT,
            )
        args: list[Expr] = []
        kwargs: list[tuple[str, Expr]] = []
        if self.match(TokenType.COLON):
            while True:
                if self.current.type is TokenType.NAME and self.peek().type is TokenType.COLON:
                    key = self.advance().value
                    self.advance()
                    kwargs.append((key, self.parse_expression()))
                else:
                    if kwargs:
                        raise self.error("Positional filter argument after keyword argument")
                    args.append(self.parse_expression())
                if not self.match(TokenType.COMMA):
                    break
        lineno, col = self._position()
        return FilterCall(lineno, col, name=name, args=tuple(args), kwargs=tuple(kwargs))

    def parse_expression(self) -> Expr:
        """Parse a boolean/comparison expression (no filters)."""
        return self._parse_or()

    def _parse_or(self) -> Expr:
        left = self._parse_and()
        while self.match_name("or"):
            lineno, col = self._position()
            left = BinOp(lineno, col, op="or", left=left, right=self._parse_and())
        return left

    def _parse_and(self) -> Expr:
        left = self._parse_not()
        while self.match_name("and"):
            lineno, col = self._position()
            left = BinOp(lineno, col, op="and", left=left, right=self._parse_not())
        return left

    def _parse_not(self) -> Expr:
        if self.current.type is TokenType.NAME and self.current.value == "not":
            self.advance()
            lineno, col = self._position()
            return Not(lineno, col, operand=self._parse_not())
        return self._parse_comparison()

    def _parse_comparison(self) -> Expr:
        left = self.parse_primary()
        token = self.current
        if token.type is TokenType.OPERATOR and token.value in _CMP_OPERATORS:
            op = self.advance().value
        elif token.type is TokenType.NAME and token.value == "contains":
            op = self.advance().value
        else:
            return left
        lineno, col = self._position()
        return BinOp(lineno, col, op=op, left=left, right=self.parse_primary())

    def parse_primary(self) -> Expr:
        """Parse a literal, range, parenthesized expression or variable path."""
        token = self.current
        lineno, col = self._position()

        if token.type is TokenType.STRING:
            self.advance()
            return Const(lineno, col, value=token.value[1:-1])
        if token.type is TokenType.INTEGER:
            self.advance()
            return Const(lineno, col, value=int(token.value))
        if token.type is TokenType.FLOAT:
            self.advance()
            return Const(lineno, col, value=float(token.value))
        if token.type is TokenType.LPAREN:
            self.advance()
            start = self.parse_expression()
            if self.match(TokenType.DOTDOT):
                stop = self.parse_expression()
                self.expect(TokenType.RPAREN)
                return Range(lineno, col, start=start, stop=stop)
            expr = self._parse_filters(start)
            self.expect(TokenType.RPAREN)
            return expr
        if token.type is TokenType.NAME and token.value in _LITERALS:
            if self.peek().type not in (TokenType.DOT, TokenType.LBRACKET):
                self.advance()
                return Const(lineno, col, value=_LITERALS[token.value])
        if token.type in (TokenType.NAME, TokenType.LBRACKET):
            return self._parse_path()

        raise self.error(f"Expected a value, got {self._describe(token)}")

    def _parse_path(self) -> Path:
        start = self.current
        lineno, col = self._position()
        segments: list[str | int | Expr] = []

        if self.current.type is TokenType.NAME:
            segments.append(self.advance().value)
        else:
            segments.append(self._parse_bracket())

        while True:
            if self.match(TokenType.DOT):
                token = self.current
                if token.type is TokenType.INTEGER:
                    segments.append(int(self.advance().value))
                else:
                    segments.append(self.expect_name().value)
            elif self.current.type is TokenType.LBRACKET:
                segments.append(self._parse_bracket())
            else:
                break

        return Path(lineno, col, segments=tuple(segments), source=self._source_since(start))

    def _parse_bracket(self) -> str | int | Expr:
        self.expect(TokenType.LBRACKET)
        key = self.parse_pipeline()
        self.expect(TokenType.RBRACKET)
        # Literal keys are resolved now; everything else is evaluated per render.
        if isinstance(key, Const) and isinstance(key.value, (str, int)):
            return key.value
        return key


def parse_expression(
    text: str,
    anchor: Token | None = None,
    known_filters: Container[str] | None = None,
) -> Expr:
    """Parse a complete expression, filters included.

    Raises:
        ParseError: On malformed input or trailing tokens.
    """
    parser = ExpressionParser(text.strip(), anchor, known_filters)
    if parser.at_end():
        raise parser.error("Empty expression")
    return parser.parse()
