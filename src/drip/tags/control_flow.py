"""Conditional tags: if, unless, case."""

from __future__ import annotations

from typing import TYPE_CHECKING

from drip._types import TokenType
from drip.nodes import Expr
from drip.renderer import Flow
from drip.syntax import equals, is_truthy
from drip.tags.base import Tag

if TYPE_CHECKING:
    from collections.abc import Sequence

    from drip._types import Token
    from drip.nodes import TagNode
    from drip.parser import Parser
    from drip.renderer import Renderer
    from drip.scope import Scope


class IfTag(Tag):
    """``{% if cond %}...{% elsif cond %}...{% else %}...{% endif %}``

    Branches are tested in order; the first truthy one renders. Branches
    after an ``else`` are unreachable.
    """

    block = True
    end = "endif"
    markers = ("elsif", "else")
    negate = False

    def parse(self, args: str, parser: Parser, token: Token) -> Expr:
        return parser.parse_expression(args, token)

    def parse_marker(self, marker: str, args: str, parser: Parser, token: Token) -> Expr | None:
        if marker == "elsif":
            return parser.parse_expression(args, token)
        return None

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str | Flow:
        if is_truthy(await renderer.evaluate(node.args, scope)) != self.negate:
            return await renderer.render_nodes(node.body, scope)
        for branch in node.branches:
            if branch.name == "else" or is_truthy(await renderer.evaluate(branch.args, scope)):
                return await renderer.render_nodes(branch.body, scope)
        return ""


class UnlessTag(IfTag):
    """``{% unless cond %}`` renders its body when ``cond`` is falsy."""

    end = "endunless"
    negate = True


class CaseTag(Tag):
    """``{% case x %}{% when 1, 2 %}...{% when 3 or 4 %}...{% else %}...{% endcase %}``

    The first ``when`` with a value equal to ``x`` renders; ``else`` renders
    when no earlier ``when`` matched. Content before the first ``when`` is
    ignored.
    """

    block = True
    end = "endcase"
    markers = ("when", "else")

    def parse(self, args: str, parser: Parser, token: Token) -> Expr:
        return parser.parse_expression(args, token)

    def parse_marker(self, marker: str, args: str, parser: Parser, token: Token) -> Sequence[Expr] | None:
        if marker != "when":
            return None
        p = parser.expression(args, token)
        values = [p.parse_primary()]
        while p.match(TokenType.COMMA) or p.match_name("or"):
            values.append(p.parse_primary())
        p.expect_end()
        return tuple(values)

    async def render(self, node: TagNode, scope: Scope, renderer: Renderer) -> str | Flow:
        subject = await renderer.evaluate(node.args, scope)
        for branch in node.branches:
            if branch.name == "else":
                return await renderer.render_nodes(branch.body, scope)
            for value in branch.args:
                if equals(subject, await renderer.evaluate(value, scope)):
                    return await renderer.render_nodes(branch.body, scope)
        return ""

