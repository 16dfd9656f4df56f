"""drip AST node definitions.

Nodes are frozen dataclasses; a parsed template is never mutated by
rendering and can be shared by concurrent render calls.
"""

from drip.nodes.base import Node
from drip.nodes.expressions import BinOp, Const, Expr, FilterCall, Not, Path, Pipeline, Range
from drip.nodes.template import Branch, Output, TagNode, TemplateNode, Text

__all__ = [
    "BinOp",
    "Branch",
    "Const",
    "Expr",
    "FilterCall",
    "Node",
    "Not",
    "Output",
    "Path",
    "Pipeline",
    "Range",
    "TagNode",
    "TemplateNode",
    "Text",
]
