"""Variable tags: assign, capture, increment, decrement."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from drip.nodes import Expr
from drip.renderer import Flow, RenderBreak
from drip.tags.base import Tag

if TYPE_CHECKING:
    from drip._types import Token
    from drip.nodes import TagNode
    from drip.parser import Parser
    from drip.renderer import Renderer
    from drip.scope import Scope

_ASSIGN_RE = re.compile(r"^([A-Za-z_][\w-]*)\s*=\s*(.+)$", re.S)
_IDENT_RE = re.compile(r"^[A-Za-z_][\w-]*$")


@dataclass(frozen=True, slots=True)
class Assignment:
    name: str
    value: Expr


def _identifier(args: str, tag: str) -> str:
    name = args.strip()
    if not _IDENT_RE.match(name):
        raise ValueError(f"expected a variable name, e.g. {{% {tag} title %}}")
    return name


class AssignTag(Tag):
    """``{% assign name = expression | filter %}``"""

    def parse(self, args: str, parser: Parser, token: Token) -> Assignment:
        match = _ASSIGN_RE.match(args)
        if match is None:
            raise ValueError("expected 'name = expression'")
        return Assignment(match.group(1), parser.parse_expression(match.group(2), token))

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str:
        scope.assign(node.args.name, await renderer.evaluate(node.args.value, scope))
        return ""


class CaptureTag(Tag):
    """``{% capture name %}...{% endcapture %}`` binds the rendered body."""

    block = True
    end = "endcapture"

    def parse(self, args: str, parser: Parser, token: Token) -> str:
        return _identifier(args, "capture")

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str | Flow:
        flow = await renderer.render_nodes(node.body, scope)
        scope.assign(node.args, flow.output)
        if isinstance(flow, RenderBreak):
            return RenderBreak("", flow.reason)
        return ""


class IncrementTag(Tag):
    """``{% increment counter %}`` outputs the counter, then adds one.

    Counters start at 0 and live apart from assigned variables.
    """

    def parse(self, args: str, parser: Parser, token: Token) -> str:
        return _identifier(args, type(self).__name__.removesuffix("Tag").lower())

    def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str:
        counters = scope.registers.setdefault("counters", {})
        value = counters.get(node.args, 0)
        counters[node.args] = value + 1
        return str(value)


class DecrementTag(IncrementTag):
    """``{% decrement counter %}`` subtracts one, then outputs the counter (-1 first)."""

    def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str:
        counters = scope.registers.setdefault("counters", {})
        value = counters.get(node.args, 0) - 1
        counters[node.args] = value
        return str(value)
