"""drip environment: engine configuration, registries, loaders and errors."""

from drip.environment.core import Environment
from drip.environment.exceptions import (
    ErrorCode,
    RenderError,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateSyntaxError,
    TokenizationError,
    UndefinedError,
    ValidationError,
    build_source_snippet,
)
from drip.environment.loaders import ChoiceLoader, DictLoader, FileSystemLoader, Loader
from drip.environment.registry import FilterRegistry, TagRegistry

__all__ = [
    "ChoiceLoader",
    "DictLoader",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "FilterRegistry",
    "Loader",
    "RenderError",
    "SourceSnippet",
    "TagRegistry",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateSyntaxError",
    "TokenizationError",
    "UndefinedError",
    "ValidationError",
    "build_source_snippet",
]
