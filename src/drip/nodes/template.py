"""Template-level nodes: text, output, tags and the root."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from drip.nodes.base import Node
from drip.nodes.expressions import Expr


@dataclass(frozen=True, slots=True)
class Text(Node):
    """Literal text, emitted verbatim."""

    value: str


@dataclass(frozen=True, slots=True)
class Output(Node):
    """Output statement: {{ expr }}"""

    expr: Expr
    source: str = ""


@dataclass(frozen=True, slots=True)
class Branch(Node):
    """Named sub-block of a block tag, opened by a marker: {% elsif x %}, {% else %}"""

    name: str
    args_raw: str
    args: Any
    body: Sequence[Node] = ()


@dataclass(frozen=True, slots=True)
class TagNode(Node):
    """Tag statement: {% name args %} with optional body and branches.

    Attributes:
        name: Tag name as written
        args_raw: Argument text after the name
        args: Structure returned by the handler's ``parse``
        body: Children up to the first marker or the terminator
        branches: Marker-opened sub-blocks, in source order
        handler: The registered tag handler that parsed this node
    """

    name: str
    args_raw: str
    args: Any = None
    body: Sequence[Node] = ()
    branches: Sequence[Branch] = ()
    handler: Any = field(default=None, compare=False, repr=False)

    def branch(self, name: str) -> Branch | None:
        """First branch with the given marker name."""
        for branch in self.branches:
            if branch.name == name:
                return branch
        return None


@dataclass(frozen=True, slots=True)
class TemplateNode(Node):
    """Root of a parsed template."""

    body: Sequence[Node]
    name: str | None = None
    source: str | None = None
    filename: str | None = None
