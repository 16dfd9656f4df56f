"""Variable scope for one render call.

A Scope is a stack of frames (dicts) over the host-supplied root context.
Lookups walk the frames innermost first and fall back to the root context,
then to environment globals. Writes (``assign``) go to the innermost frame;
the host context is never mutated.

Frames:
    Every ``push_frame`` must be matched by exactly one ``pop_frame``. Tag
    handlers use the ``frame()`` context manager so the pop happens on every
    exit path, including early exits and errors:

        with scope.frame({"item": item, "forloop": loop}):
            flow = await renderer.render_nodes(node.body, scope)

Lazy values:
    A ``Lazy`` binding wraps a zero-argument callable (sync or async). It is
    called the first time it is read and the result is memoized for the
    lifetime of the Scope, keyed by the identity of the ``Lazy`` object
    rather than by name, since one name can be shadowed across frames.

Thread-Safety:
    A Scope belongs to exactly one render call and is never shared.

"""

from __future__ import annotations

import inspect
import logging
import re
from collections import ChainMap
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from drip.syntax import UNDEFINED, Undefined, read_property

logger = logging.getLogger(__name__)

_PATH_SEGMENT_RE = re.compile(
    r"""\[\s*(?:'(?P<single>[^']*)'|"(?P<double>[^"]*)"|(?P<index>-?\d+))\s*\]|(?P<name>[^.\[\]]+)"""
)


class Lazy:
    """Deferred value, computed on first read and memoized per Scope.

    Example:
        >>> ctx = {"report": Lazy(build_expensive_report)}
        >>> env.parse_and_render("{{ report.total }} / {{ report.count }}", ctx)
        # build_expensive_report() runs once for this render

    The callable may return an awaitable; it is awaited on first read.
    """

    __slots__ = ("_func",)

    def __init__(self, func: Callable[[], Any]):
        if not callable(func):
            raise TypeError(f"Lazy() expects a callable, got {type(func).__name__}")
        self._func = func

    @property
    def func(self) -> Callable[[], Any]:
        return self._func

    def __repr__(self) -> str:
        name = getattr(self._func, "__qualname__", type(self._func).__name__)
        return f"<Lazy {name}>"


def split_path(path: str) -> list[Any]:
    """Split ``"a.b[0]['c d']"`` into ``["a", "b", 0, "c d"]``.

    Only literal segments are supported; dynamic indexes need an expression.
    """
    segments: list[Any] = []
    for match in _PATH_SEGMENT_RE.finditer(path):
        if match.group("index") is not None:
            segments.append(int(match.group("index")))
        elif match.group("single") is not None:
            segments.append(match.group("single"))
        elif match.group("double") is not None:
            segments.append(match.group("double"))
        else:
            segments.append(match.group("name").strip())
    return segments


class Scope:
    """Chained variable-resolution context for one render call.

    Attributes:
        strict_variables: Raise ``UndefinedError`` instead of yielding
            ``UNDEFINED`` for unresolved paths.
        options: Per-render options (e.g. ``root`` directories for includes).
        registers: Per-render tag state (cycle positions, counters, layout
            blocks). Not visible to templates.
    """

    __slots__ = ("_frames", "_memo", "_root", "options", "registers", "strict_variables")

    def __init__(
        self,
        context: Mapping[str, Any] | None = None,
        *,
        globals: Mapping[str, Any] | None = None,
        strict_variables: bool = False,
        options: Mapping[str, Any] | None = None,
    ):
        if context is not None and not isinstance(context, Mapping):
            raise TypeError(f"Render context must be a mapping, got {type(context).__name__}")
        self._root: ChainMap[str, Any] = ChainMap(dict(context or {}), dict(globals or {}))
        self._frames: list[dict[str, Any]] = [{}]
        self._memo: dict[int, tuple[Lazy, Any]] = {}
        self.strict_variables = strict_variables
        self.options: dict[str, Any] = dict(options or {})
        self.registers: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    @property
    def depth(self) -> int:
        """Number of frames, including the template-level frame."""
        return len(self._frames)

    def push_frame(self, bindings: Mapping[str, Any] | None = None) -> dict[str, Any]:
        frame = dict(bindings or {})
        self._frames.append(frame)
        return frame

    def pop_frame(self) -> dict[str, Any]:
        if len(self._frames) <= 1:
            raise RuntimeError("Cannot pop the template-level frame")
        return self._frames.pop()

    @contextmanager
    def frame(self, bindings: Mapping[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        """Push a frame for the duration of the ``with`` block."""
        frame = self.push_frame(bindings)
        try:
            yield frame
        finally:
            self.pop_frame()

    def restore(self, depth: int) -> None:
        """Drop frames above ``depth`` left behind by an unbalanced handler."""
        if len(self._frames) > depth:
            logger.warning("Discarding %d unbalanced scope frame(s)", len(self._frames) - depth)
            del self._frames[depth:]

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def assign(self, name: str, value: Any) -> None:
        """Bind ``name`` in the innermost frame."""
        self._frames[-1][name] = value

    def lookup(self, name: Any) -> Any:
        """Raw binding for a top-level name (Lazy values are not resolved)."""
        for frame in reversed(self._frames):
            if name in frame:
                return frame[name]
        try:
            return self._root[name]
        except (KeyError, TypeError):
            return UNDEFINED

    def names(self) -> frozenset[str]:
        """Every visible top-level name."""
        names: set[str] = set(self._root)
        for frame in self._frames:
            names.update(frame)
        return frozenset(n for n in names if isinstance(n, str))

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def unwrap(self, value: Any) -> Any:
        """Resolve a Lazy value (memoized); other values pass through."""
        while isinstance(value, Lazy):
            cached = self._memo.get(id(value))
            if cached is not None and cached[0] is value:
                value = cached[1]
                continue
            result = value.func()
            if inspect.isawaitable(result):
                result = await result
            self._memo[id(value)] = (value, result)
            value = result
        return value

    async def resolve(self, segments: Sequence[Any], source: str = "", *, strict: bool = True) -> Any:
        """Resolve a path whose segments are already evaluated keys.

        With ``strict=False`` an undefined path resolves to ``UNDEFINED`` even
        when the scope has ``strict_variables`` on.

        Raises:
            UndefinedError: The path does not resolve and the scope is strict.
        """
        if not segments:
            return UNDEFINED
        value = await self.unwrap(self.lookup(segments[0]))
        for key in segments[1:]:
            if isinstance(value, Undefined):
                break
            value = await self.unwrap(read_property(value, key))
        if strict and self.strict_variables and isinstance(value, Undefined):
            from drip.environment.exceptions import UndefinedError

            raise UndefinedError(
                source or ".".join(str(s) for s in segments),
                available_names=self.names(),
            )
        return value

    async def get(self, path: str) -> Any:
        """Resolve a dotted/bracketed path string such as ``"user.tags[0]"``."""
        return await self.resolve(split_path(path), path)

    def __repr__(self) -> str:
        return f"<Scope depth={self.depth} names={len(self.names())}>"
