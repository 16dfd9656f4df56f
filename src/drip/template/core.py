"""drip Template: a parsed AST bound to its Environment.

Architecture:
    ```
    Template
    ├── _env_ref: WeakRef[Environment]  # Prevents circular refs
    ├── _ast: TemplateNode              # Immutable, shared by every render
    └── _name, _filename                # For error messages
    ```

Memory Safety:
Uses ``weakref.ref(env)`` to break potential cycles:
``Template → (weak) → Environment → cache → Template``

"""

from __future__ import annotations

import weakref
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from drip.environment.exceptions import TemplateError

if TYPE_CHECKING:
    from drip.environment import Environment
    from drip.nodes import TemplateNode


class Template:
    """Parsed template ready for rendering.

    Rendering never mutates the AST, so one Template serves any number of
    concurrent ``render_async()`` calls.

    Example:
            >>> t = env.from_string("Hello, {{ name | upcase }}!")
            >>> t.render(name="World")
            'Hello, WORLD!'
            >>> t.render({"name": "World"})
            'Hello, WORLD!'

    """

    __slots__ = ("_ast", "_env_ref", "_filename")

    def __init__(self, env: Environment, ast: TemplateNode, filename: str | None = None):
        self._env_ref: weakref.ref[Environment] = weakref.ref(env)
        self._ast = ast
        self._filename = filename

    @property
    def _env(self) -> Environment:
        env = self._env_ref()
        if env is None:
            raise RuntimeError(
                f"Environment has been garbage collected (template: {self.name or 'unknown'})"
            )
        return env

    @property
    def ast(self) -> TemplateNode:
        return self._ast

    @property
    def name(self) -> str | None:
        return self._ast.name

    @property
    def filename(self) -> str | None:
        return self._filename

    @staticmethod
    def _context(args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        ctx: dict[str, Any] = {}
        if args:
            if len(args) == 1 and isinstance(args[0], Mapping):
                ctx.update(args[0])
            else:
                raise TypeError(
                    f"render() takes at most 1 positional argument (a mapping), got {len(args)}"
                )
        ctx.update(kwargs)
        return ctx

    async def render_async(self, *args: Any, **kwargs: Any) -> str:
        """Render with a mapping and/or keyword context."""
        ctx = self._context(args, kwargs)
        try:
            return await self._env.render_async(self._ast, ctx)
        except TemplateError as e:
            if self._filename:
                raise e.with_file(self._filename)
            raise

    def render(self, *args: Any, **kwargs: Any) -> str:
        from drip.utils.sync import run_sync

        return run_sync(self.render_async(*args, **kwargs))

    def __repr__(self) -> str:
        return f"<Template {self.name or '(inline)'}>"
