"""drip: an async Liquid-style template engine for Python.

Quickstart:
    >>> from drip import Environment
    >>> env = Environment()
    >>> env.parse_and_render("Hello, {{ name | capitalize }}!", {"name": "world"})
    'Hello, World!'

File-based templates:
    >>> env = Environment(root=["views"], cache=True)
    >>> env.render_file("index", {"posts": posts})   # views/index.liquid

Async hosts:
    >>> html = await env.render_file_async("index", {"posts": posts})

Architecture:
Template Source → Lexer → Parser → AST → Renderer → str

Pipeline stages:
1. **Lexer**: Splits source into TEXT, OUTPUT (``{{ }}``) and TAG (``{% %}``) tokens
2. **Parser**: Builds an immutable AST, delegating tag arguments to tag handlers
3. **Renderer**: Walks the AST against a Scope; tags, filters and Lazy values
   may be coroutines

Truthiness:
Only ``nil`` (None), undefined and ``false`` are falsy. ``0``, ``""``,
``[]`` and ``{}`` are truthy:

    >>> from drip import is_truthy
    >>> [is_truthy(v) for v in (None, False, 0, "", [])]
    [False, False, True, True, True]

Extending:
    >>> env.register_filter("shout", lambda s: str(s).upper() + "!")
    >>> env.register_tag("shout", ShoutTag())

Registrations belong to one Environment; two environments never share them.

"""

from __future__ import annotations

from typing import Any

from drip._types import Token, TokenType
from drip.environment import (
    ChoiceLoader,
    DictLoader,
    Environment,
    ErrorCode,
    FileSystemLoader,
    RenderError,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateSyntaxError,
    TokenizationError,
    UndefinedError,
    ValidationError,
)
from drip.lexer import tokenize
from drip.nodes import TemplateNode
from drip.parser import ParseError
from drip.render_context import RenderContext, get_render_context
from drip.renderer import Flow, Proceed, RenderBreak, Renderer
from drip.scope import Lazy, Scope
from drip.syntax import UNDEFINED, is_falsy, is_truthy
from drip.tags import Tag
from drip.template import ForLoop, TableRowLoop, Template

__version__ = "0.1.0"

_default_env: Environment | None = None


def _env() -> Environment:
    global _default_env
    if _default_env is None:
        _default_env = Environment()
    return _default_env


def parse(source: str, name: str | None = None) -> TemplateNode:
    """Parse with a default Environment (built-in tags and filters only)."""
    return _env().parse(source, name)


def render(template: TemplateNode, context: Any = None, **options: Any) -> str:
    return _env().render(template, context, **options)


def parse_and_render(source: str, context: Any = None, **options: Any) -> str:
    return _env().parse_and_render(source, context, **options)


def evaluate(expression: str, context: Any = None, **options: Any) -> Any:
    return _env().evaluate(expression, context, **options)


__all__ = [
    "UNDEFINED",
    "ChoiceLoader",
    "DictLoader",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "Flow",
    "ForLoop",
    "Lazy",
    "ParseError",
    "Proceed",
    "RenderBreak",
    "RenderContext",
    "RenderError",
    "Renderer",
    "Scope",
    "SourceSnippet",
    "TableRowLoop",
    "Tag",
    "Template",
    "TemplateError",
    "TemplateNode",
    "TemplateNotFoundError",
    "TemplateSyntaxError",
    "Token",
    "TokenType",
    "TokenizationError",
    "UndefinedError",
    "ValidationError",
    "__version__",
    "evaluate",
    "get_render_context",
    "is_falsy",
    "is_truthy",
    "parse",
    "parse_and_render",
    "render",
    "tokenize",
]
