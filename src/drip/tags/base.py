"""Base class for tag handlers.

A tag handler is any object with a ``render(node, scope, renderer)``
method registered in a ``TagRegistry``. Subclassing ``Tag`` provides the
parse contract defaults:

    class Shout(Tag):
        block = True
        end = "endshout"

        async def render(self, node, scope, renderer):
            flow = await renderer.render_nodes(node.body, scope)
            return flow.output.upper()

    env.register_tag("shout", Shout())

Class attributes declare how the parser treats the tag:

    block     children are parsed up to ``end``
    markers   tag names that split a block into branches (``else``)
    verbatim  body is kept as unparsed text up to ``end``
    greedy    every following sibling becomes the body
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from drip._types import Token
    from drip.nodes import TagNode
    from drip.parser import Parser
    from drip.renderer import Flow, Renderer
    from drip.scope import Scope


class Tag:
    block: bool = False
    end: str | None = None
    markers: tuple[str, ...] = ()
    verbatim: bool = False
    greedy: bool = False

    def parse(self, args: str, parser: Parser, token: Token) -> Any:
        """Parse the tag's argument text into ``TagNode.args``.

        Raise ``ValueError`` (or let a ``ParseError`` through) for bad input;
        the parser reports it against this tag.
        """
        return args

    def parse_marker(self, marker: str, args: str, parser: Parser, token: Token) -> Any:
        """Parse the arguments of a marker tag into ``Branch.args``."""
        return None

    def render(
        self, node: TagNode, scope: Scope, renderer: Renderer
    ) -> str | Flow | None | Awaitable[str | Flow | None]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"
