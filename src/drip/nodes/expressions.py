"""Expression nodes for the drip AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from drip.nodes.base import Node


@dataclass(frozen=True, slots=True)
class Expr(Node):
    """Base class for expressions."""


@dataclass(frozen=True, slots=True)
class Const(Expr):
    """Literal: string, number, boolean, nil, or the ``empty``/``blank`` markers."""

    value: Any


@dataclass(frozen=True, slots=True)
class Range(Expr):
    """Inclusive integer range: (1..5)"""

    start: Expr
    stop: Expr


@dataclass(frozen=True, slots=True)
class Path(Expr):
    """Variable path: user.name, items[0], page["title"], a[b.c]

    Each segment is an attribute name, an integer index, or a nested expression
    evaluated to obtain the key (bracket indexing).
    """

    segments: Sequence[str | int | Expr]
    source: str = ""


@dataclass(frozen=True, slots=True)
class Not(Expr):
    """Negation: not user.admin"""

    operand: Expr


@dataclass(frozen=True, slots=True)
class BinOp(Expr):
    """Binary operator: a == b, a contains b, a and b"""

    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True, slots=True)
class FilterCall(Node):
    """One pipe stage: | name: arg1, arg2, key: value"""

    name: str
    args: Sequence[Expr] = ()
    kwargs: Sequence[tuple[str, Expr]] = ()


@dataclass(frozen=True, slots=True)
class Pipeline(Expr):
    """Filtered value: value | f1 | f2: x"""

    value: Expr
    filters: Sequence[FilterCall]
