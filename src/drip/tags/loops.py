"""Iteration tags: for, tablerow, cycle, break, continue.

``break`` and ``continue`` return a ``RenderBreak`` with the matching
reason. Every enclosing node sequence stops at once and hands the partial
output upward until a loop consumes it; outside a loop the render simply
ends there.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from drip._types import TokenType
from drip.environment.exceptions import RenderError
from drip.nodes import Expr
from drip.renderer import BREAK, CONTINUE, Flow, RenderBreak
from drip.syntax import Undefined, stringify
from drip.tags.base import Tag
from drip.template.loop_context import ForLoop, TableRowLoop

if TYPE_CHECKING:
    from drip._types import Token
    from drip.nodes import TagNode
    from drip.parser import Parser
    from drip.renderer import Renderer
    from drip.scope import Scope


@dataclass(frozen=True, slots=True)
class Iteration:
    """Parsed ``item in collection [option: value ...] [reversed]``."""

    variable: str
    collection: Expr
    name: str
    options: tuple[tuple[str, Expr], ...] = ()
    reversed: bool = False


def parse_iteration(
    args: str,
    parser: Parser,
    token: Token,
    options: frozenset[str],
    allow_reversed: bool = True,
) -> Iteration:
    p = parser.expression(args, token)
    variable = p.expect_name().value
    p.expect_name("in")
    start = p.current.col_offset
    collection = p.parse_primary()
    source = p.text[start : p.current.col_offset].strip()

    parsed: dict[str, Expr] = {}
    is_reversed = False
    while not p.at_end():
        if allow_reversed and p.match_name("reversed"):
            is_reversed = True
            continue
        key = p.expect_name().value
        if key not in options:
            raise p.error(f"Unknown option '{key}' (expected one of {', '.join(sorted(options))})")
        p.expect(TokenType.COLON)
        parsed[key] = p.parse_primary()
        p.match(TokenType.COMMA)

    return Iteration(
        variable=variable,
        collection=collection,
        name=f"{variable}-{source}",
        options=tuple(parsed.items()),
        reversed=is_reversed,
    )


def to_list(value: Any) -> list[Any]:
    """Items a loop iterates over.

    Mappings yield ``[key, value]`` pairs; strings and scalars are not
    iterated (nil and scalars give nothing, a string gives itself).
    """
    if value is None or isinstance(value, Undefined):
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, Mapping):
        return [[k, v] for k, v in value.items()]
    if isinstance(value, Iterable):
        return list(value)
    return []


async def _option(renderer: Renderer, scope: Scope, iteration: Iteration, key: str) -> int | None:
    for name, expr in iteration.options:
        if name == key:
            value = await renderer.evaluate(expr, scope)
            if value is None or isinstance(value, Undefined):
                return None
            try:
                return int(value)
            except (TypeError, ValueError):
                raise RenderError(f"'{key}' must be an integer, got {value!r}") from None
    return None


async def _slice(renderer: Renderer, scope: Scope, iteration: Iteration) -> list[Any]:
    items = to_list(await renderer.evaluate(iteration.collection, scope))
    offset = await _option(renderer, scope, iteration, "offset")
    limit = await _option(renderer, scope, iteration, "limit")
    if offset:
        items = items[offset:]
    if limit is not None:
        items = items[: max(limit, 0)]
    if iteration.reversed:
        items.reverse()
    return items


class ForTag(Tag):
    """``{% for item in items limit: 2 offset: 1 reversed %}...{% else %}...{% endfor %}``

    Each iteration runs in its own frame holding the loop variable and
    ``forloop``; the ``else`` branch renders when there is nothing to iterate.
    """

    block = True
    end = "endfor"
    markers = ("else",)

    def parse(self, args: str, parser: Parser, token: Token) -> Iteration:
        return parse_iteration(args, parser, token, frozenset({"limit", "offset"}))

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str | Flow:
        iteration: Iteration = node.args
        items = await _slice(renderer, scope, iteration)
        if not items:
            otherwise = node.branch("else")
            return await renderer.render_nodes(otherwise.body, scope) if otherwise else ""

        parent = scope.lookup("forloop")
        loop = ForLoop(items, iteration.name, parent if isinstance(parent, ForLoop) else None)
        buf: list[str] = []
        for item in loop:
            with scope.frame({iteration.variable: item, "forloop": loop}):
                flow = await renderer.render_nodes(node.body, scope)
            buf.append(flow.output)
            if isinstance(flow, RenderBreak):
                if flow.reason == BREAK:
                    break
                if flow.reason != CONTINUE:
                    return RenderBreak("".join(buf), flow.reason)
        return "".join(buf)


class TableRowTag(Tag):
    """``{% tablerow item in items cols: 3 %}...{% endtablerow %}``

    Renders ``<tr class="rowN">`` rows of ``<td class="colN">`` cells, with
    ``tablerowloop`` bound inside each cell.
    """

    block = True
    end = "endtablerow"

    def parse(self, args: str, parser: Parser, token: Token) -> Iteration:
        return parse_iteration(
            args, parser, token, frozenset({"cols", "limit", "offset"}), allow_reversed=False
        )

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str | Flow:
        iteration: Iteration = node.args
        items = await _slice(renderer, scope, iteration)
        cols = await _option(renderer, scope, iteration, "cols") or len(items) or 1
        loop = TableRowLoop(items, cols, iteration.name)

        buf: list[str] = ['<tr class="row1">']
        for item in loop:
            if loop.col_first and not loop.first:
                buf.append(f'</tr><tr class="row{loop.row}">')
            with scope.frame({iteration.variable: item, "tablerowloop": loop}):
                flow = await renderer.render_nodes(node.body, scope)
            buf.append(f'<td class="col{loop.col}">{flow.output}</td>')
            if isinstance(flow, RenderBreak):
                if flow.reason == BREAK:
                    break
                if flow.reason != CONTINUE:
                    buf.append("</tr>")
                    return RenderBreak("".join(buf), flow.reason)
        buf.append("</tr>")
        return "".join(buf)


@dataclass(frozen=True, slots=True)
class Cycle:
    group: Expr | None
    values: tuple[Expr, ...]
    key: str


class CycleTag(Tag):
    """``{% cycle 'odd', 'even' %}`` or ``{% cycle 'group': 'a', 'b' %}``

    Each call outputs the next value. Position is kept per group (or per
    value list when no group is named) for the rest of the render.
    """

    def parse(self, args: str, parser: Parser, token: Token) -> Cycle:
        p = parser.expression(args, token)
        first = p.parse_primary()
        group = None
        values = [first]
        if p.match(TokenType.COLON):
            group = first
            values = [p.parse_primary()]
        while p.match(TokenType.COMMA):
            values.append(p.parse_primary())
        p.expect_end()
        return Cycle(group, tuple(values), args.strip())

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str:
        cycle: Cycle = node.args
        key = cycle.key
        if cycle.group is not None:
            key = "group:" + stringify(await renderer.evaluate(cycle.group, scope))
        positions = scope.registers.setdefault("cycle", {})
        position = positions.get(key, 0)
        positions[key] = (position + 1) % len(cycle.values)
        return stringify(await renderer.evaluate(cycle.values[position], scope))


class BreakTag(Tag):
    """``{% break %}`` stops the innermost loop."""

    reason = BREAK

    def parse(self, args: str, parser: Parser, token: Token) -> None:
        if args:
            raise ValueError("takes no arguments")

    def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> Flow:
        return RenderBreak("", self.reason)


class ContinueTag(BreakTag):
    """``{% continue %}`` skips to the next iteration of the innermost loop."""

    reason = CONTINUE
