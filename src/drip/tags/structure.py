"""Structural tags: comment, raw, include, layout, block.

``include`` and ``layout`` load other templates through the renderer's
template-loading capability, so they only work in an Environment that has
a root directory or loader.

Layouts:
    A template starting with ``{% layout 'base' %}`` renders its remaining
    content in *store* mode: each ``{% block name %}`` records its output
    instead of emitting it, and leftover text becomes the anonymous block.
    The layout is then rendered and its ``{% block %}`` tags emit the stored
    content, or their own default body. Layouts nest; the innermost child
    wins for any block it defines.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from drip._types import TokenType
from drip.nodes import Expr
from drip.renderer import Flow, RenderBreak
from drip.syntax import stringify
from drip.tags.base import Tag

if TYPE_CHECKING:
    from drip._types import Token
    from drip.nodes import TagNode
    from drip.parser import Parser
    from drip.renderer import Renderer
    from drip.scope import Scope

_BLOCK_NAME_RE = re.compile(r"""^(?:'([^']*)'|"([^"]*)"|([\w-]*))$""")

_STORE = "store"


class CommentTag(Tag):
    """``{% comment %}...{% endcomment %}`` renders nothing; the body is not parsed."""

    verbatim = True
    end = "endcomment"

    def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str:
        return ""


class RawTag(Tag):
    """``{% raw %}{{ not evaluated }}{% endraw %}``"""

    verbatim = True
    end = "endraw"

    def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str:
        return node.body[0].value if node.body else ""


@dataclass(frozen=True, slots=True)
class Include:
    template: Expr
    value: Expr | None = None
    bindings: tuple[tuple[str, Expr], ...] = ()


class IncludeTag(Tag):
    """Render another template inline with the current scope.

    ``{% include 'product' %}``
    ``{% include 'product' with featured %}`` binds ``product = featured``
    ``{% include 'card', title: 'Hi', size: 2 %}`` binds each key

    Bindings live in a frame that is popped after the include; assignments
    made inside the included template do not leak out.
    """

    def parse(self, args: str, parser: Parser, token: Token) -> Include:
        p = parser.expression(args, token)
        template = p.parse_primary()
        value = None
        if p.match_name("with"):
            value = p.parse_primary()
        bindings: list[tuple[str, Expr]] = []
        while not p.at_end():
            p.match(TokenType.COMMA)
            key = p.expect_name().value
            p.expect(TokenType.COLON)
            bindings.append((key, p.parse_expression()))
        return Include(template, value, tuple(bindings))

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> Flow:
        include: Include = node.args
        name = stringify(await renderer.evaluate(include.template, scope))
        bindings = {key: await renderer.evaluate(expr, scope) for key, expr in include.bindings}
        if include.value is not None:
            stem = posixpath.splitext(posixpath.basename(name))[0]
            bindings[stem] = await renderer.evaluate(include.value, scope)

        template = await renderer.load_template(name, scope)
        with scope.frame(bindings):
            return await renderer.render_partial(template, scope, node)


class LayoutTag(Tag):
    """``{% layout 'base' %}``: the rest of the template fills the layout's blocks."""

    greedy = True

    def parse(self, args: str, parser: Parser, token: Token) -> Expr:
        p = parser.expression(args, token)
        template = p.parse_primary()
        p.expect_end()
        return template

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> Flow:
        name = stringify(await renderer.evaluate(node.args, scope))
        registers = scope.registers
        blocks = registers.setdefault("blocks", {})

        previous = registers.get("block_mode")
        registers["block_mode"] = _STORE
        try:
            flow = await renderer.render_nodes(node.body, scope)
        finally:
            registers["block_mode"] = previous
        blocks.setdefault("", flow.output)
        if isinstance(flow, RenderBreak):
            return RenderBreak("", flow.reason)

        template = await renderer.load_template(name, scope)
        return await renderer.render_partial(template, scope, node)


class BlockTag(Tag):
    """``{% block name %}default{% endblock %}``; ``{% block %}`` is the anonymous block."""

    block = True
    end = "endblock"

    def parse(self, args: str, parser: Parser, token: Token) -> str:
        match = _BLOCK_NAME_RE.match(args)
        if match is None:
            raise ValueError("expected a block name, e.g. {% block content %}")
        return next((g for g in match.groups() if g is not None), "")

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str | Flow:
        registers = scope.registers
        blocks = registers.setdefault("blocks", {})
        if registers.get("block_mode") == _STORE:
            flow = await renderer.render_nodes(node.body, scope)
            blocks.setdefault(node.args, flow.output)
            if isinstance(flow, RenderBreak):
                return RenderBreak("", flow.reason)
            return ""
        if node.args in blocks:
            return blocks[node.args]
        return await renderer.render_nodes(node.body, scope)
