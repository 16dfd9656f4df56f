"""Tag and filter registries for a drip Environment.

Dict-like, name-keyed handler sets owned by one Environment:

    env.filters["shout"] = lambda s: str(s).upper() + "!"
    env.filters.update({"add": add, "multiply": multiply})
    "shout" in env.filters

Registration is validated: re-registering a name with the *same* handler
object is a no-op, a *different* handler raises ``ValidationError``.

All mutations use copy-on-write, so a render in progress always reads a
consistent snapshot.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from drip.environment.exceptions import ErrorCode, ValidationError

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z_][\w-]*$")


class _HandlerRegistry(Mapping[str, Any]):
    kind = "handler"

    __slots__ = ("_handlers",)

    def __init__(self, handlers: Mapping[str, Any] | None = None):
        self._handlers: dict[str, Any] = {}
        if handlers:
            self.update(handlers)

    def register(self, name: str, handler: Any) -> Any:
        """Install ``handler`` under ``name`` and return it.

        Raises:
            ValidationError: Invalid name, malformed handler, or ``name``
                already bound to a different handler.
        """
        if not isinstance(name, str) or not _NAME_RE.match(name):
            raise ValidationError(
                f"Invalid {self.kind} name {name!r}",
                str(name),
                code=ErrorCode.MALFORMED_HANDLER,
            )
        existing = self._handlers.get(name)
        if existing is handler:
            return handler
        if existing is not None:
            raise ValidationError(
                f"{self.kind.capitalize()} '{name}' is already registered "
                f"to {_describe(existing)}",
                name,
            )
        self._validate(name, handler)

        new = self._handlers.copy()
        new[name] = handler
        self._handlers = new
        logger.debug("Registered %s %r: %s", self.kind, name, _describe(handler))
        return handler

    def _validate(self, name: str, handler: Any) -> None:
        raise NotImplementedError

    def update(self, mapping: Mapping[str, Any]) -> None:
        """Batch registration; stops at the first rejected handler."""
        for name, handler in mapping.items():
            self.register(name, handler)

    def __setitem__(self, name: str, handler: Any) -> None:
        self.register(name, handler)

    def __getitem__(self, name: str) -> Any:
        return self._handlers[name]

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def copy(self) -> dict[str, Any]:
        return self._handlers.copy()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {sorted(self._handlers)}>"


class TagRegistry(_HandlerRegistry):
    """Registered tag handlers.

    A tag handler needs a callable ``render(node, scope, renderer)``. Block
    tags (``block = True``) must also name their terminator in ``end``.
    """

    kind = "tag"

    __slots__ = ()

    def _validate(self, name: str, handler: Any) -> None:
        from drip.tags.base import Tag

        render = getattr(handler, "render", None)
        if not callable(render) or getattr(type(handler), "render", None) is Tag.render:
            raise ValidationError(
                f"Tag '{name}' must define a render(node, scope, renderer) method",
                name,
                code=ErrorCode.MALFORMED_HANDLER,
            )
        needs_end = getattr(handler, "block", False) or getattr(handler, "verbatim", False)
        if needs_end:
            end = getattr(handler, "end", None)
            if not isinstance(end, str) or not end:
                raise ValidationError(
                    f"Block tag '{name}' must declare its terminator (e.g. end = 'end{name}')",
                    name,
                    code=ErrorCode.MALFORMED_HANDLER,
                )
        markers = getattr(handler, "markers", ())
        if isinstance(markers, str) or not all(isinstance(m, str) for m in markers):
            raise ValidationError(
                f"Tag '{name}' markers must be a collection of tag names",
                name,
                code=ErrorCode.MALFORMED_HANDLER,
            )


class FilterRegistry(_HandlerRegistry):
    """Registered filters: callables ``(value, *args, **kwargs) -> value``.

    A filter may be a coroutine function; the renderer awaits its result.
    """

    kind = "filter"

    __slots__ = ()

    def _validate(self, name: str, handler: Callable[..., Any]) -> None:
        if not callable(handler):
            raise ValidationError(
                f"Filter '{name}' must be callable, got {type(handler).__name__}",
                name,
                code=ErrorCode.MALFORMED_HANDLER,
            )


def _describe(handler: Any) -> str:
    name = getattr(handler, "__qualname__", None) or type(handler).__qualname__
    module = getattr(handler, "__module__", None) or type(handler).__module__
    return f"{module}.{name}"
