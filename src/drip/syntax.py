"""Value semantics shared by the evaluator, tags and filters.

Truthiness:
    Falsy values are exactly ``None``, ``UNDEFINED`` and ``False``. Every
    other value is truthy, including ``0``, ``0.0``, ``""``, ``[]`` and
    ``{}``. This matches Liquid and differs from Python's ``bool()``.

    >>> is_truthy(0), is_truthy(""), is_truthy([])
    (True, True, True)
    >>> is_truthy(None), is_truthy(UNDEFINED), is_truthy(False)
    (False, False, False)

Stringification (``{{ value }}``):
    ``None``/``UNDEFINED`` → ``""``; ``True``/``False`` → ``"true"``/``"false"``;
    lists and tuples → their items stringified and concatenated;
    ranges → ``"start..stop"``; anything else → ``str(value)``.

Property access:
    Mappings are subscripted; sequences and strings accept integer indexes
    plus ``size``, ``first`` and ``last``; other objects expose public
    attributes (names starting with ``_`` are never read). Misses yield
    ``UNDEFINED`` rather than raising.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class Undefined:
    """Value of a variable path that does not resolve.

    Falsy, stringifies to ``""``, iterates as empty, and compares equal to
    ``None`` and to itself. There is a single instance, ``UNDEFINED``.
    """

    __slots__ = ()
    _instance: Undefined | None = None

    def __new__(cls) -> Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return ""

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __eq__(self, other: object) -> bool:
        return other is None or isinstance(other, Undefined)

    def __hash__(self) -> int:
        return hash(None)

    def __iter__(self):
        return iter(())

    def __len__(self) -> int:
        return 0


UNDEFINED = Undefined()


class _EmptyMarker:
    """The ``empty`` literal: equal to empty strings and empty containers."""

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _EmptyMarker):
            return True
        if isinstance(other, (str, list, tuple, dict, set, frozenset, Mapping)):
            return len(other) == 0
        return False

    def __hash__(self) -> int:
        return hash("empty")

    def __str__(self) -> str:
        return ""

    def __repr__(self) -> str:
        return "EMPTY"


class _BlankMarker(_EmptyMarker):
    """The ``blank`` literal: ``empty`` plus nil, false and whitespace-only strings."""

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        if other is None or other is False or isinstance(other, (Undefined, _EmptyMarker)):
            return True
        if isinstance(other, str):
            return not other.strip()
        return super(_BlankMarker, self).__eq__(other)

    def __hash__(self) -> int:
        return hash("blank")

    def __repr__(self) -> str:
        return "BLANK"


EMPTY = _EmptyMarker()
BLANK = _BlankMarker()


def is_falsy(value: Any) -> bool:
    """True only for ``None``, ``UNDEFINED`` and ``False``."""
    return value is None or value is False or isinstance(value, Undefined)


def is_truthy(value: Any) -> bool:
    """Negation of :func:`is_falsy`; ``0``, ``""`` and empty containers are truthy."""
    return not is_falsy(value)


def stringify(value: Any) -> str:
    """Coerce a value to output text (see module docstring)."""
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, Undefined):
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, (list, tuple)):
        return "".join(stringify(item) for item in value)
    if isinstance(value, range):
        return f"{value.start}..{value.stop - 1}" if value.step == 1 else str(list(value))
    return str(value)


def read_property(obj: Any, key: Any) -> Any:
    """Read one path segment from ``obj``; misses return ``UNDEFINED``."""
    if obj is None or isinstance(obj, Undefined):
        return UNDEFINED

    if isinstance(obj, Mapping):
        try:
            if key in obj:
                return obj[key]
        except TypeError:
            return UNDEFINED
        if key == "size":
            return len(obj)
        return UNDEFINED

    if isinstance(obj, (list, tuple, str, range)):
        if isinstance(key, int) and not isinstance(key, bool):
            try:
                return obj[key]
            except IndexError:
                return UNDEFINED
        if key == "size":
            return len(obj)
        if key == "first":
            return obj[0] if len(obj) else UNDEFINED
        if key == "last":
            return obj[-1] if len(obj) else UNDEFINED
        return UNDEFINED

    if isinstance(key, str):
        if key.startswith("_"):
            return UNDEFINED
        try:
            return getattr(obj, key)
        except AttributeError:
            pass
        missing = getattr(obj, "liquid_method_missing", None)
        if callable(missing):
            return missing(key)

    try:
        return obj[key]
    except (KeyError, IndexError, TypeError):
        return UNDEFINED


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

COMPARISON_OPERATORS = frozenset({"==", "!=", "<>", "<", ">", "<=", ">=", "contains"})


def _is_nil(value: Any) -> bool:
    return value is None or isinstance(value, Undefined)


def equals(left: Any, right: Any) -> bool:
    """Liquid equality: booleans never equal numbers."""
    if isinstance(left, bool) != isinstance(right, bool) and not (
        isinstance(left, (Undefined, _EmptyMarker)) or isinstance(right, (Undefined, _EmptyMarker))
    ):
        return False
    return bool(left == right)


def contains(left: Any, right: Any) -> bool:
    """``left contains right``: substring, member or key test; False otherwise."""
    if isinstance(left, str):
        return stringify(right) in left
    if isinstance(left, (list, tuple, set, frozenset, Mapping)):
        try:
            return right in left
        except TypeError:
            return False
    return False


def compare(op: str, left: Any, right: Any) -> bool:
    """Apply a comparison operator.

    Ordering comparisons involving nil or undefined are false.

    Raises:
        TypeError: Ordering comparison between incomparable operands.
    """
    if op == "==":
        return equals(left, right)
    if op in ("!=", "<>"):
        return not equals(left, right)
    if op == "contains":
        return contains(left, right)
    if _is_nil(left) or _is_nil(right):
        return False
    if op == "<":
        return left < right
    if op == ">":
        return left > right
    if op == "<=":
        return left <= right
    if op == ">=":
        return left >= right
    raise ValueError(f"Unknown operator '{op}'")
