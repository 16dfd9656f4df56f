"""Tree-walking renderer and expression evaluator.

Rendering is a coroutine. Suspension points are exactly the boundaries
where user code runs: tag ``render`` methods, filter calls and Lazy value
resolution. Sibling nodes are always rendered in document order.

Early exit:
    Node sequences render to a ``Flow``: either ``Proceed(output)`` or
    ``RenderBreak(output, reason)``. A RenderBreak stops the sequence at
    once; each enclosing sequence prefixes what it had rendered so far and
    passes the break upward without rendering further siblings. Loop tags
    consume the ``break``/``continue`` reasons. ``render_template`` is the
    top-level entry point and turns any RenderBreak into a normal result,
    so a break is never seen by callers as an error.

Errors:
    Any failure while rendering a node becomes a ``RenderError`` positioned
    on the innermost failing node, with the template name and a source
    snippet. There is no partial output on failure.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from difflib import get_close_matches
from typing import TYPE_CHECKING, Any

from drip.environment.exceptions import ErrorCode, RenderError, TemplateError
from drip.nodes import (
    BinOp,
    Const,
    Expr,
    FilterCall,
    Node,
    Not,
    Output,
    Path,
    Pipeline,
    Range,
    TagNode,
    TemplateNode,
    Text,
)
from drip.render_context import RenderContext, get_render_context, render_context
from drip.scope import Scope
from drip.syntax import UNDEFINED, Undefined, compare, is_truthy, stringify

if TYPE_CHECKING:
    from drip.environment.registry import FilterRegistry

BREAK = "break"
CONTINUE = "continue"


@dataclass(frozen=True, slots=True)
class Flow:
    """Result of rendering a node sequence."""

    output: str


@dataclass(frozen=True, slots=True)
class Proceed(Flow):
    """Normal completion; rendering continues with the next sibling."""


@dataclass(frozen=True, slots=True)
class RenderBreak(Flow):
    """Stop rendering now; ``output`` is everything rendered so far at this level.

    Attributes:
        reason: ``"break"`` or ``"continue"`` for loop control; tags may use
            their own reasons to stop the whole render.
    """

    reason: str = BREAK


LoadTemplate = Callable[[str, Any], Awaitable[TemplateNode]]


class Renderer:
    """Renders ASTs against Scopes.

    Holds only read-only references (the Filter Registry and the template
    loading capability), so one Renderer serves any number of concurrent
    render calls.

    Tag handlers receive the Renderer and use it to render their children
    (``render_nodes``), evaluate expressions (``evaluate``), and load and
    render related templates (``load_template``, ``render_partial``).
    """

    __slots__ = ("_filters", "_load_template", "max_include_depth")

    def __init__(
        self,
        filters: FilterRegistry,
        *,
        load_template: LoadTemplate | None = None,
        max_include_depth: int = 50,
    ):
        self._filters = filters
        self._load_template = load_template
        self.max_include_depth = max_include_depth

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def render_template(self, template: TemplateNode, scope: Scope) -> str:
        """Render a whole template; a RenderBreak completes successfully."""
        parent = get_render_context()
        if parent is not None:
            ctx = parent.child_context(template.name, template.source, 0, template.filename)
            ctx.include_depth = parent.include_depth
        else:
            ctx = RenderContext(
                template_name=template.name,
                source=template.source,
                filename=template.filename,
                max_include_depth=self.max_include_depth,
            )

        depth = scope.depth
        try:
            with render_context(ctx):
                flow = await self.render_nodes(template.body, scope)
        finally:
            scope.restore(depth)
        return flow.output

    async def render_partial(self, template: TemplateNode, scope: Scope, site: Node) -> Flow:
        """Render another template inside the current one (include, layout).

        A RenderBreak inside the partial is returned, not absorbed.

        Raises:
            RenderError: The include depth limit is exceeded.
        """
        parent = get_render_context() or RenderContext(max_include_depth=self.max_include_depth)
        parent.check_include_depth(template.name)
        ctx = parent.child_context(template.name, template.source, site.lineno, template.filename)
        with render_context(ctx):
            return await self.render_nodes(template.body, scope)

    async def load_template(self, name: str, scope: Scope) -> TemplateNode:
        """Load and parse a related template through the host's loader.

        Raises:
            RenderError: No loader is configured.
            TemplateNotFoundError: The loader cannot find ``name``.
        """
        if self._load_template is None:
            raise RenderError(
                f"Cannot load '{name}': no template loader is configured",
                suggestion="Create the Environment with a root directory or a loader",
            )
        return await self._load_template(name, scope.options.get("root"))

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def render_nodes(self, nodes: Sequence[Node], scope: Scope) -> Flow:
        """Render a node sequence in order, stopping at the first RenderBreak."""
        buf: list[str] = []
        for node in nodes:
            result = await self.render_node(node, scope)
            if isinstance(result, RenderBreak):
                buf.append(result.output)
                return RenderBreak("".join(buf), result.reason)
            buf.append(result.output if isinstance(result, Flow) else result)
        return Proceed("".join(buf))

    async def render_node(self, node: Node, scope: Scope) -> str | Flow:
        try:
            if isinstance(node, Text):
                return node.value
            if isinstance(node, Output):
                return stringify(await self.evaluate(node.expr, scope))
            if isinstance(node, TagNode):
                return await self._render_tag(node, scope)
            raise TypeError(f"Cannot render node type {type(node).__name__}")
        except RenderError as e:
            raise self._locate(e, node)
        except TemplateError:
            raise
        except Exception as e:
            raise self._locate(self._wrap(e), node) from e

    async def _render_tag(self, node: TagNode, scope: Scope) -> str | Flow:
        result = node.handler.render(node, scope, self)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return ""
        if isinstance(result, Flow):
            return result
        return stringify(result)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    async def evaluate(self, expr: Expr, scope: Scope) -> Any:
        """Evaluate an expression against a scope."""
        if isinstance(expr, Const):
            return expr.value

        if isinstance(expr, Path):
            return await self._resolve_path(expr, scope)

        if isinstance(expr, Pipeline):
            # `default` handles undefined values itself, even in strict mode.
            if isinstance(expr.value, Path) and expr.filters[0].name == "default":
                value = await self._resolve_path(expr.value, scope, strict=False)
            else:
                value = await self.evaluate(expr.value, scope)
            for call in expr.filters:
                value = await self.apply_filter(call, value, scope)
            return value

        if isinstance(expr, BinOp):
            return await self._binop(expr, scope)

        if isinstance(expr, Not):
            return not is_truthy(await self.evaluate(expr.operand, scope))

        if isinstance(expr, Range):
            start = _to_int(await self.evaluate(expr.start, scope), "range start")
            stop = _to_int(await self.evaluate(expr.stop, scope), "range end")
            return range(start, stop + 1)

        raise TypeError(f"Cannot evaluate node type {type(expr).__name__}")

    async def evaluate_standalone(self, expr: Expr, scope: Scope) -> Any:
        """Evaluate outside any template, failing the way ``{{ }}`` does.

        Raises:
            RenderError: Any failure during evaluation.
        """
        try:
            return await self.evaluate(expr, scope)
        except TemplateError:
            raise
        except Exception as e:
            raise self._wrap(e) from e

    async def _resolve_path(self, expr: Path, scope: Scope, *, strict: bool = True) -> Any:
        keys = [
            await self.evaluate(seg, scope) if isinstance(seg, Expr) else seg
            for seg in expr.segments
        ]
        return await scope.resolve(keys, expr.source, strict=strict)

    async def _binop(self, expr: BinOp, scope: Scope) -> Any:
        if expr.op == "and":
            if not is_truthy(await self.evaluate(expr.left, scope)):
                return False
            return is_truthy(await self.evaluate(expr.right, scope))
        if expr.op == "or":
            if is_truthy(await self.evaluate(expr.left, scope)):
                return True
            return is_truthy(await self.evaluate(expr.right, scope))

        left = await self.evaluate(expr.left, scope)
        right = await self.evaluate(expr.right, scope)
        try:
            return compare(expr.op, left, right)
        except TypeError as e:
            raise RenderError(
                f"Cannot compare {type(left).__name__} with {type(right).__name__} using '{expr.op}'",
                values={"left": left, "right": right},
                code=ErrorCode.OPERATOR_ERROR,
            ) from e

    async def apply_filter(self, call: FilterCall, value: Any, scope: Scope) -> Any:
        """Apply one pipe stage; awaits the filter if it returns an awaitable.

        Raises:
            RenderError: Unknown filter name, or the filter raised.
        """
        handler = self._filters.get(call.name)
        if handler is None:
            matches = get_close_matches(call.name, sorted(self._filters), n=1, cutoff=0.6)
            raise RenderError(
                f"Unknown filter '{call.name}'",
                suggestion=f"Did you mean '{matches[0]}'?" if matches else None,
                code=ErrorCode.UNKNOWN_FILTER,
            )

        args = [await self.evaluate(arg, scope) for arg in call.args]
        kwargs = {key: await self.evaluate(arg, scope) for key, arg in call.kwargs}
        try:
            result = handler(value, *args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except TemplateError:
            raise
        except Exception as e:
            raise RenderError(
                f"Filter '{call.name}' failed: {type(e).__name__}: {e}",
                values={"value": value},
                code=ErrorCode.FILTER_ERROR,
            ) from e
        return result

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    @staticmethod
    def _wrap(error: Exception) -> RenderError:
        message = str(error).strip() or "no details available"
        return RenderError(f"{type(error).__name__}: {message}")

    @staticmethod
    def _locate(error: RenderError, node: Node) -> RenderError:
        ctx = get_render_context()
        expression = None
        if isinstance(node, Output):
            expression = node.source
        elif isinstance(node, TagNode):
            expression = f"{{% {node.name} {node.args_raw} %}}".replace("  ", " ")
        return error.locate(
            node.lineno,
            node.col_offset,
            template_name=ctx.template_name if ctx else None,
            filename=ctx.filename if ctx else None,
            source=ctx.source if ctx else None,
            expression=expression,
            template_stack=ctx.template_stack if ctx else None,
        )


def _to_int(value: Any, what: str) -> int:
    if isinstance(value, Undefined) or value is None:
        raise RenderError(f"The {what} is undefined")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RenderError(f"The {what} must be an integer, got {value!r}") from None


__all__ = [
    "BREAK",
    "CONTINUE",
    "UNDEFINED",
    "Flow",
    "Proceed",
    "RenderBreak",
    "Renderer",
]
