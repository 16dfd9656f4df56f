"""RenderContext: per-render bookkeeping kept out of the template Scope.

Holds what the renderer needs to report errors and guard includes (the
template being rendered, its source, the include chain) without placing
internal names in the user-visible Scope.

Async Safety:
    State lives in a ContextVar. Every asyncio task runs in a copy of the
    context it was created from, so concurrent render calls on the same
    Environment never observe each other's RenderContext.

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field


@dataclass
class RenderContext:
    """Per-render state isolated from the Scope.

    Attributes:
        template_name: Current template name for error messages
        filename: Path of the current template file, when loaded from disk
        source: Current template source for error snippets
        include_depth: Current include/layout depth
        max_include_depth: Maximum allowed include depth
        template_stack: (template_name, line) of every include site, outermost first
    """

    template_name: str | None = None
    source: str | None = None
    filename: str | None = None

    # 50 is deeper than any real partial hierarchy while still catching
    # self-including templates early.
    include_depth: int = 0
    max_include_depth: int = 50

    template_stack: list[tuple[str, int]] = field(default_factory=list)

    def check_include_depth(self, template_name: str | None) -> None:
        """Raise if including another template would exceed the depth limit.

        Raises:
            RenderError: If depth >= max_include_depth
        """
        if self.include_depth >= self.max_include_depth:
            from drip.environment.exceptions import ErrorCode, RenderError

            raise RenderError(
                f"Maximum include depth exceeded ({self.max_include_depth}) "
                f"when including '{template_name or '(inline)'}'",
                template_name=self.template_name,
                suggestion="Check for circular includes: A → B → A",
                code=ErrorCode.INCLUDE_DEPTH,
            )

    def child_context(
        self,
        template_name: str | None,
        source: str | None,
        lineno: int,
        filename: str | None = None,
    ) -> RenderContext:
        """Context for an included template, one level deeper.

        Args:
            template_name: Name of the included template
            source: Its source, for error snippets
            lineno: Line of the include site in the current template
            filename: Path of the included template file, if any
        """
        stack = self.template_stack.copy()
        stack.append((self.template_name or "<template>", lineno))
        return RenderContext(
            template_name=template_name,
            source=source,
            filename=filename,
            include_depth=self.include_depth + 1,
            max_include_depth=self.max_include_depth,
            template_stack=stack,
        )


_render_context: ContextVar[RenderContext | None] = ContextVar(
    "drip_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Current render context, or None outside a render."""
    return _render_context.get()


@contextmanager
def render_context(ctx: RenderContext) -> Iterator[RenderContext]:
    """Make ``ctx`` current for the ``with`` block, restoring the previous one after.

    Example:
        with render_context(RenderContext(template_name="page.liquid")) as ctx:
            flow = await renderer.render_nodes(ast.body, scope)
    """
    token: Token[RenderContext | None] = _render_context.set(ctx)
    try:
        yield ctx
    finally:
        _render_context.reset(token)
