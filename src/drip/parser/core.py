"""Template parser: token stream → AST.

Single forward pass over the lexer's tokens:

1. TEXT and OUTPUT tokens become ``Text`` and ``Output`` leaves.
2. TAG tokens are looked up in the Tag Registry. A block tag's children are
   parsed recursively until its terminator; each registered marker
   (``elsif``, ``else``, ``when``) closes the current run of children and
   opens a new ``Branch``.
3. Verbatim tags (``raw``, ``comment``) keep everything up to their
   terminator as one ``Text`` child, unparsed.
4. Greedy tags (``layout``) take every following sibling as their body.

Each tag parses its own arguments through ``Tag.parse``/``Tag.parse_marker``
with access to the expression parser; any ``ValueError`` or ``ParseError``
they raise is reported as a ``ParseError`` positioned on the tag.

Whitespace control (``{%-``, ``-%}``, ``{{-``, ``-}}``) strips the adjacent
text here; the lexer's tokens are left untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from difflib import get_close_matches
from typing import TYPE_CHECKING, Any

from drip._types import Token, TokenType
from drip.environment.exceptions import ErrorCode, TemplateSyntaxError
from drip.lexer import TokenStream, tokenize
from drip.nodes import Branch, Expr, Node, Output, TagNode, TemplateNode, Text
from drip.parser.errors import ParseError
from drip.parser.expressions import ExpressionParser, parse_expression

if TYPE_CHECKING:
    from drip.environment.registry import FilterRegistry, TagRegistry


@dataclass
class _Block:
    """The block tag whose children are being parsed."""

    token: Token
    end: str
    stop: frozenset[str]


class _State:
    """Mutable state of one ``parse()`` call (the parser itself is shared)."""

    __slots__ = ("tokens", "trim_next")

    def __init__(self, tokens: Iterable[Token]):
        self.tokens: Iterator[Token] = iter(tokens)
        self.trim_next = False


class Parser:
    """Builds ``TemplateNode`` trees using a Tag Registry.

    One Parser belongs to one Environment. It keeps no per-parse state, so
    concurrent ``parse()`` calls are safe.

    Example:
        >>> parser = Parser(env.tags, env.filters)
        >>> ast = parser.parse(tokenize("{% if user %}Hi {{ user.name }}{% endif %}"))
        >>> [type(n).__name__ for n in ast.body]
        ['TagNode']
    """

    __slots__ = ("_filters", "_tags", "strict_filters")

    def __init__(
        self,
        tags: TagRegistry,
        filters: FilterRegistry,
        *,
        strict_filters: bool = False,
    ):
        self._tags = tags
        self._filters = filters
        self.strict_filters = strict_filters

    # ------------------------------------------------------------------
    # Expression access for tag handlers
    # ------------------------------------------------------------------

    def expression(self, text: str, token: Token | None = None) -> ExpressionParser:
        """Cursor over ``text`` for tag-specific argument grammars."""
        return ExpressionParser(text, token, self._known_filters())

    def parse_expression(self, text: str, token: Token | None = None) -> Expr:
        """Parse a complete expression (filters allowed)."""
        return parse_expression(text, token, self._known_filters())

    def _known_filters(self) -> FilterRegistry | None:
        return self._filters if self.strict_filters else None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def parse(
        self,
        tokens: Iterable[Token] | str,
        name: str | None = None,
        source: str | None = None,
    ) -> TemplateNode:
        """Parse tokens (or source text) into a template AST.

        Raises:
            TokenizationError: Unterminated delimiter (raised while the lazy
                token stream is consumed).
            ParseError: Unknown tag, unmatched block or bad tag arguments.
        """
        if isinstance(tokens, str):
            source = tokens
            tokens = tokenize(tokens, name)
        elif isinstance(tokens, TokenStream):
            source = source if source is not None else tokens.source
            name = name if name is not None else tokens.name

        state = _State(tokens)
        try:
            body, _ = self._parse_body(state, None)
        except TemplateSyntaxError as e:
            e.locate(name=name, source=source)
            raise
        return TemplateNode(1, 0, body=tuple(body), name=name, source=source)

    # ------------------------------------------------------------------
    # Bodies
    # ------------------------------------------------------------------

    def _parse_body(self, state: _State, block: _Block | None) -> tuple[list[Node], Token | None]:
        """Parse nodes until a stop tag of ``block`` (returned) or end of input."""
        nodes: list[Node] = []

        for token in state.tokens:
            if token.type is TokenType.TEXT:
                text = token.value
                if state.trim_next:
                    text = text.lstrip()
                    state.trim_next = False
                if text:
                    nodes.append(Text(token.lineno, token.col_offset, value=text))
                continue

            if token.trim_left:
                _rstrip_last(nodes)
            state.trim_next = token.trim_right

            if token.type is TokenType.OUTPUT:
                if token.value:
                    nodes.append(self._parse_output(token))
                continue

            name = token.name
            if block is not None and name in block.stop:
                return nodes, token

            handler = self._tags.get(name)
            if handler is None:
                raise self._unknown_tag(token, block)

            node, stop = self._parse_tag(state, token, handler, block)
            nodes.append(node)
            if stop is not None:
                return nodes, stop

        if block is not None:
            raise self._unclosed(block)
        return nodes, None

    def _parse_output(self, token: Token) -> Output:
        try:
            expr = self.parse_expression(token.value, token)
        except ParseError as e:
            raise e.at(token)
        return Output(token.lineno, token.col_offset, expr=expr, source=token.value)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def _parse_tag(
        self,
        state: _State,
        token: Token,
        handler: Any,
        parent: _Block | None,
    ) -> tuple[TagNode, Token | None]:
        """Parse one tag and, for block tags, its children and branches.

        Returns the node and, for greedy tags only, the stop token of the
        enclosing block that ended the greedy body.
        """
        name = token.name
        parse = getattr(handler, "parse", None)
        args = self._call(parse, token, name, token.args, self, token) if parse else token.args

        if getattr(handler, "verbatim", False):
            end = handler.end
            text = self._read_verbatim(state, _Block(token, end, frozenset({end})))
            body: tuple[Node, ...] = (Text(token.lineno, token.col_offset, value=text),) if text else ()
            return TagNode(token.lineno, token.col_offset, name, token.args, args, body, (), handler), None

        if getattr(handler, "block", False):
            end = handler.end
            block = _Block(token, end, frozenset({end, *getattr(handler, "markers", ())}))
            children, stop = self._parse_body(state, block)
            branches: list[Branch] = []
            while stop is not None and stop.name != end:
                marker = stop
                parse_marker = getattr(handler, "parse_marker", None)
                marker_args = (
                    self._call(parse_marker, marker, name, marker.name, marker.args, self, marker)
                    if parse_marker
                    else None
                )
                branch_body, stop = self._parse_body(state, block)
                branches.append(
                    Branch(
                        marker.lineno,
                        marker.col_offset,
                        name=marker.name,
                        args_raw=marker.args,
                        args=marker_args,
                        body=tuple(branch_body),
                    )
                )
            node = TagNode(
                token.lineno,
                token.col_offset,
                name,
                token.args,
                args,
                tuple(children),
                tuple(branches),
                handler,
            )
            return node, None

        if getattr(handler, "greedy", False):
            children, stop = self._parse_body(state, parent)
            node = TagNode(token.lineno, token.col_offset, name, token.args, args, tuple(children), (), handler)
            return node, stop

        return TagNode(token.lineno, token.col_offset, name, token.args, args, (), (), handler), None

    def _read_verbatim(self, state: _State, block: _Block) -> str:
        parts: list[str] = []
        for token in state.tokens:
            if token.type is TokenType.TAG and token.name == block.end:
                text = "".join(parts)
                if block.token.trim_right:
                    text = text.lstrip()
                if token.trim_left:
                    text = text.rstrip()
                state.trim_next = token.trim_right
                return text
            parts.append(token.raw)
        raise self._unclosed(block)

    @staticmethod
    def _call(func: Callable[..., Any], token: Token, tag: str, *args: Any) -> Any:
        """Run a tag's argument parser, converting failures to ParseError."""
        try:
            return func(*args)
        except ParseError as e:
            raise e.at(token, tag=tag)
        except ValueError as e:
            raise ParseError(
                f"Invalid arguments for tag '{tag}': {e}",
                token,
                tag=tag,
                code=ErrorCode.INVALID_ARGUMENTS,
            ) from e

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _unclosed(self, block: _Block) -> ParseError:
        name = block.token.name
        return ParseError(
            f"Tag '{name}' opened at line {block.token.lineno} was never closed "
            f"(expected '{{% {block.end} %}}')",
            block.token,
            tag=name,
            code=ErrorCode.UNCLOSED_BLOCK,
        )

    def _unknown_tag(self, token: Token, block: _Block | None) -> ParseError:
        name = token.name
        if not name:
            return ParseError("Empty tag", token, code=ErrorCode.UNKNOWN_TAG)

        closers = {getattr(h, "end", None) for h in self._tags.values() if getattr(h, "block", False)}
        markers = {m for h in self._tags.values() for m in getattr(h, "markers", ())}
        if name in closers or name in markers:
            if block is not None:
                message = (
                    f"Unexpected '{name}' inside '{block.token.name}' "
                    f"opened at line {block.token.lineno}"
                )
                suggestion = f"Close '{block.token.name}' with '{{% {block.end} %}}' first"
            else:
                message = f"Unexpected '{name}' with no open block"
                suggestion = "Remove it, or add the opening tag"
            return ParseError(message, token, tag=name, suggestion=suggestion, code=ErrorCode.UNKNOWN_TAG)

        suggestion = None
        matches = get_close_matches(name, sorted(self._tags), n=1, cutoff=0.6)
        if matches:
            suggestion = f"Did you mean '{matches[0]}'?"
        return ParseError(
            f"Unknown tag '{name}'",
            token,
            tag=name,
            suggestion=suggestion,
            code=ErrorCode.UNKNOWN_TAG,
        )


def _rstrip_last(nodes: list[Node]) -> None:
    """Strip trailing whitespace from a preceding Text node (``{%-``)."""
    if nodes and isinstance(nodes[-1], Text):
        text = nodes[-1].value.rstrip()
        if text:
            nodes[-1] = Text(nodes[-1].lineno, nodes[-1].col_offset, value=text)
        else:
            nodes.pop()
