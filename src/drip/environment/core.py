"""drip Environment: the engine instance.

An Environment owns one Tag Registry, one Filter Registry, one Parser and
one Renderer. Every render call gets a fresh Scope, so many renders can run
concurrently against the same Environment and the same parsed templates.

Example:
    >>> from drip import Environment
    >>> env = Environment(root=["views"])
    >>> env.parse_and_render("Hello {{ name | capitalize }}!", {"name": "ann"})
    'Hello Ann!'
    >>> env.render_file("index", {"user": user})   # views/index.liquid

Async:
    The core is a coroutine. Each ``*_async`` method has a synchronous twin
    that runs it on a private event loop; the twins refuse to run inside an
    already running loop.

"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

from drip.environment.exceptions import TemplateError
from drip.environment.filters import DEFAULT_FILTERS
from drip.environment.loaders import FileSystemLoader, Loader
from drip.environment.registry import FilterRegistry, TagRegistry
from drip.lexer import tokenize
from drip.nodes import TemplateNode
from drip.parser import Parser
from drip.renderer import Renderer
from drip.scope import Scope
from drip.tags import register_builtin_tags
from drip.template import Template
from drip.utils.sync import run_sync

logger = logging.getLogger(__name__)


def _as_roots(root: str | Path | Iterable[str | Path] | None) -> list[str | Path]:
    if root is None:
        return []
    if isinstance(root, (str, Path)):
        return [root]
    return list(root)


class Environment:
    """Engine instance: configuration, registries and template loading.

    Args:
        root: Directory or directories searched for template files.
            Defaults to the current directory.
        loader: Custom loader; replaces the filesystem loader built from
            ``root``.
        extname: Extension appended to template names that have none.
        cache: Keep parsed templates, keyed by resolved file path.
        strict_filters: Reject unknown filters at parse time.
        strict_variables: Raise ``UndefinedError`` for unresolved variables.
        globals: Variables visible to every template, below the render
            context.
        max_include_depth: Nesting limit for include/layout.

    Attributes:
        tags: This environment's TagRegistry, with the built-in tags.
        filters: This environment's FilterRegistry, with the built-in filters.
    """

    def __init__(
        self,
        *,
        root: str | Path | Iterable[str | Path] | None = None,
        loader: Loader | None = None,
        extname: str = ".liquid",
        cache: bool = False,
        strict_filters: bool = False,
        strict_variables: bool = False,
        globals: Mapping[str, Any] | None = None,
        max_include_depth: int = 50,
    ):
        self.roots: list[str | Path] = _as_roots(root) or ["."]
        self.extname = extname
        self.loader: Loader = loader if loader is not None else FileSystemLoader(self.roots, extname)
        self.cache = cache
        self.strict_filters = strict_filters
        self.strict_variables = strict_variables
        self.globals: dict[str, Any] = dict(globals or {})
        self.max_include_depth = max_include_depth

        self.tags = TagRegistry()
        self.filters = FilterRegistry()
        register_builtin_tags(self.tags)
        self.filters.update(DEFAULT_FILTERS)

        self.parser = Parser(self.tags, self.filters, strict_filters=strict_filters)
        self.renderer = Renderer(
            self.filters,
            load_template=self._load_ast,
            max_include_depth=max_include_depth,
        )
        self._cache: dict[str, Template] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_tag(self, name: str, handler: Any) -> Any:
        """Add a custom tag to this environment.

        Raises:
            ValidationError: ``name`` is taken by another handler, or the
                handler lacks a ``render`` method or block terminator.
        """
        return self.tags.register(name, handler)

    def register_filter(self, name: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        """Add a custom filter (sync or async callable) to this environment.

        Raises:
            ValidationError: ``name`` is taken by another filter, or the
                handler is not callable.
        """
        return self.filters.register(name, handler)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, source: str, name: str | None = None) -> TemplateNode:
        """Parse template text into a reusable AST.

        Raises:
            TokenizationError: Unterminated ``{{`` or ``{%``.
            ParseError: Unknown tag, unclosed block or bad tag arguments.
        """
        return self.parser.parse(tokenize(source, name), name, source)

    def from_string(self, source: str, name: str | None = None) -> Template:
        return Template(self, self.parse(source, name))

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def new_scope(
        self,
        context: Mapping[str, Any] | None = None,
        *,
        strict_variables: bool | None = None,
        root: str | Path | Iterable[str | Path] | None = None,
    ) -> Scope:
        """Fresh Scope for one render call, seeded with ``globals`` and ``context``."""
        return Scope(
            context,
            globals=self.globals,
            strict_variables=self.strict_variables if strict_variables is None else strict_variables,
            options={"root": _as_roots(root)},
        )

    def _scope(self, context: Mapping[str, Any] | Scope | None, options: dict[str, Any]) -> Scope:
        if isinstance(context, Scope):
            return context
        return self.new_scope(context, **options)

    async def render_async(
        self,
        template: TemplateNode | Template,
        context: Mapping[str, Any] | Scope | None = None,
        **options: Any,
    ) -> str:
        """Render a parsed template.

        ``context`` is a mapping (a fresh Scope is built from it) or a Scope
        the caller prepared. ``options`` are ``new_scope`` keywords.

        Raises:
            RenderError: Evaluation failed; no partial output is returned.
        """
        ast = template.ast if isinstance(template, Template) else template
        return await self.renderer.render_template(ast, self._scope(context, options))

    def render(
        self,
        template: TemplateNode | Template,
        context: Mapping[str, Any] | Scope | None = None,
        **options: Any,
    ) -> str:
        return run_sync(self.render_async(template, context, **options))

    async def parse_and_render_async(
        self,
        source: str,
        context: Mapping[str, Any] | Scope | None = None,
        **options: Any,
    ) -> str:
        return await self.render_async(self.parse(source), context, **options)

    def parse_and_render(
        self,
        source: str,
        context: Mapping[str, Any] | Scope | None = None,
        **options: Any,
    ) -> str:
        return run_sync(self.parse_and_render_async(source, context, **options))

    async def render_file_async(
        self,
        name: str,
        context: Mapping[str, Any] | Scope | None = None,
        *,
        root: str | Path | Iterable[str | Path] | None = None,
        **options: Any,
    ) -> str:
        """Load, parse and render a template file.

        ``root`` directories are searched after the environment's own, both
        for ``name`` and for anything it includes. Errors from the render
        carry the file path (``error.filename``).
        """
        template = await self.get_template_async(name, root)
        options.setdefault("root", root)
        try:
            return await self.render_async(template, context, **options)
        except TemplateError as e:
            if template.filename:
                raise e.with_file(template.filename)
            raise

    def render_file(
        self,
        name: str,
        context: Mapping[str, Any] | Scope | None = None,
        *,
        root: str | Path | Iterable[str | Path] | None = None,
        **options: Any,
    ) -> str:
        return run_sync(self.render_file_async(name, context, root=root, **options))

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    async def evaluate_async(
        self,
        expression: str,
        context: Mapping[str, Any] | Scope | None = None,
        **options: Any,
    ) -> Any:
        """Evaluate one expression (filters included) the way ``{{ }}`` does.

        Example:
            >>> await env.evaluate_async("user.name | upcase", {"user": {"name": "ann"}})
            'ANN'
        """
        expr = self.parser.parse_expression(expression)
        return await self.renderer.evaluate_standalone(expr, self._scope(context, options))

    def evaluate(
        self,
        expression: str,
        context: Mapping[str, Any] | Scope | None = None,
        **options: Any,
    ) -> Any:
        return run_sync(self.evaluate_async(expression, context, **options))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def get_template_async(
        self,
        name: str,
        root: str | Path | Iterable[str | Path] | None = None,
    ) -> Template:
        """Load and parse a template by name.

        Filesystem probing and reads run in a worker thread. With ``cache``
        on, templates are reused by resolved path.

        Raises:
            TemplateNotFoundError: No root (or loader) has the template.
            TemplateSyntaxError: The file does not parse; carries its path.
        """
        roots = _as_roots(root)
        key = await asyncio.to_thread(self.loader.resolve, name, roots)
        if self.cache:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Template cache hit: %s", key)
                return cached
            logger.debug("Template cache miss: %s", key)

        source, filename = await asyncio.to_thread(self.loader.get_source, name, roots)
        logger.debug("Loaded template %r from %s", name, filename or "<memory>")
        try:
            ast = self.parse(source, name)
            if filename:
                ast = replace(ast, filename=filename)
            template = Template(self, ast, filename)
        except TemplateError as e:
            if filename:
                raise e.with_file(filename)
            raise

        if self.cache:
            self._cache = {**self._cache, key: template}
        return template

    def get_template(
        self,
        name: str,
        root: str | Path | Iterable[str | Path] | None = None,
    ) -> Template:
        return run_sync(self.get_template_async(name, root))

    async def _load_ast(self, name: str, root: Iterable[str | Path] | None) -> TemplateNode:
        return (await self.get_template_async(name, root)).ast

    def clear_cache(self) -> None:
        """Drop every cached template."""
        self._cache = {}

    def __repr__(self) -> str:
        return (
            f"<Environment loader={self.loader!r} tags={len(self.tags)} "
            f"filters={len(self.filters)} cache={self.cache}>"
        )
