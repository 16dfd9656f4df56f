"""Built-in filters for drip templates.

Filters are pipe stages: ``{{ value | name: arg1, arg2 }}`` calls
``name(value, arg1, arg2)``. Every filter accepts nil/undefined input and
treats it as the empty value of the type it works on.

Categories:
**Strings**:
    append, prepend, capitalize, downcase, upcase, lstrip, rstrip, strip,
    strip_html, strip_newlines, newline_to_br, remove, remove_first,
    replace, replace_first, split, truncate, truncatewords, escape,
    escape_once, url_encode, url_decode

**Numbers**:
    abs, ceil, floor, round, plus, minus, times, divided_by, modulo

**Sequences**:
    compact, concat, first, last, join, map, reverse, size, slice, sort,
    sort_natural, uniq, where

**Other**:
    date, default

Custom Filters:
    >>> env.register_filter("shout", lambda s: str(s).upper() + "!")
    >>> env.parse_and_render("{{ 'hi' | shout }}")
    'HI!'

"""

from __future__ import annotations

import html
import math
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import quote_plus, unquote_plus

from drip.syntax import EMPTY, Undefined, is_falsy, read_property, stringify

_HTML_TAG_RE = re.compile(r"<script.*?</script>|<style.*?</style>|<!--.*?-->|<.*?>", re.S | re.I)
_ESCAPE_ONCE_RE = re.compile(r"&(?!(?:[a-zA-Z]+|#\d+|#x[0-9a-fA-F]+);)")


def _str(value: Any) -> str:
    return stringify(value)


def _seq(value: Any) -> list[Any]:
    if value is None or isinstance(value, Undefined):
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Mapping):
        return [value]
    if isinstance(value, Iterable):
        return list(value)
    return [value]


def _num(value: Any) -> int | float:
    """Coerce to a number; strings parse, nil and junk become 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    text = _str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return 0


def _int(value: Any) -> int:
    return int(_num(value))


def _tidy(value: float) -> int | float:
    """``3.0`` → ``3`` for results of integer-only operations."""
    return int(value) if isinstance(value, float) and value.is_integer() else value


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------


def _filter_append(value: Any, suffix: Any) -> str:
    return _str(value) + _str(suffix)


def _filter_prepend(value: Any, prefix: Any) -> str:
    return _str(prefix) + _str(value)


def _filter_capitalize(value: Any) -> str:
    text = _str(value)
    return text[:1].upper() + text[1:]


def _filter_downcase(value: Any) -> str:
    return _str(value).lower()


def _filter_upcase(value: Any) -> str:
    return _str(value).upper()


def _filter_lstrip(value: Any) -> str:
    return _str(value).lstrip()


def _filter_rstrip(value: Any) -> str:
    return _str(value).rstrip()


def _filter_strip(value: Any) -> str:
    return _str(value).strip()


def _filter_strip_html(value: Any) -> str:
    return _HTML_TAG_RE.sub("", _str(value))


def _filter_strip_newlines(value: Any) -> str:
    return re.sub(r"\r?\n", "", _str(value))


def _filter_newline_to_br(value: Any) -> str:
    return re.sub(r"\r?\n", "<br />\n", _str(value))


def _filter_remove(value: Any, target: Any) -> str:
    return _str(value).replace(_str(target), "")


def _filter_remove_first(value: Any, target: Any) -> str:
    return _str(value).replace(_str(target), "", 1)


def _filter_replace(value: Any, target: Any, replacement: Any = "") -> str:
    return _str(value).replace(_str(target), _str(replacement))


def _filter_replace_first(value: Any, target: Any, replacement: Any = "") -> str:
    return _str(value).replace(_str(target), _str(replacement), 1)


def _filter_split(value: Any, separator: Any = " ") -> list[str]:
    text = _str(value)
    sep = _str(separator)
    if not text:
        return []
    if sep == " ":
        return text.split()
    if not sep:
        return list(text)
    return text.split(sep)


def _filter_truncate(value: Any, length: Any = 50, ellipsis: Any = "...") -> str:
    text = _str(value)
    size = _int(length)
    tail = _str(ellipsis)
    if len(text) <= size:
        return text
    return text[: max(size - len(tail), 0)] + tail


def _filter_truncatewords(value: Any, words: Any = 15, ellipsis: Any = "...") -> str:
    parts = _str(value).split()
    count = max(_int(words), 1)
    if len(parts) <= count:
        return " ".join(parts)
    return " ".join(parts[:count]) + _str(ellipsis)


def _filter_escape(value: Any) -> str:
    return html.escape(_str(value))


def _filter_escape_once(value: Any) -> str:
    text = _ESCAPE_ONCE_RE.sub("&amp;", _str(value))
    return text.replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;").replace("'", "&#x27;")


def _filter_url_encode(value: Any) -> str:
    return quote_plus(_str(value))


def _filter_url_decode(value: Any) -> str:
    return unquote_plus(_str(value))


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def _filter_abs(value: Any) -> int | float:
    return abs(_num(value))


def _filter_ceil(value: Any) -> int:
    return math.ceil(_num(value))


def _filter_floor(value: Any) -> int:
    return math.floor(_num(value))


def _filter_round(value: Any, digits: Any = 0) -> int | float:
    places = _int(digits)
    try:
        rounded = Decimal(str(_num(value))).quantize(Decimal(1).scaleb(-places), rounding="ROUND_HALF_UP")
    except InvalidOperation:
        return _num(value)
    return int(rounded) if places <= 0 else float(rounded)


def _filter_plus(value: Any, operand: Any) -> int | float:
    return _num(value) + _num(operand)


def _filter_minus(value: Any, operand: Any) -> int | float:
    return _num(value) - _num(operand)


def _filter_times(value: Any, operand: Any) -> int | float:
    return _num(value) * _num(operand)


def _filter_divided_by(value: Any, divisor: Any) -> int | float:
    """Integer division when the divisor is an integer, as in ``10 | divided_by: 3`` → 3."""
    left, right = _num(value), _num(divisor)
    if right == 0:
        raise ZeroDivisionError("divided by 0")
    if isinstance(right, int):
        return math.floor(left / right) if isinstance(left, float) else left // right
    return left / right


def _filter_modulo(value: Any, divisor: Any) -> int | float:
    right = _num(divisor)
    if right == 0:
        raise ZeroDivisionError("divided by 0")
    return _tidy(_num(value) % right)


# ---------------------------------------------------------------------------
# Sequences
# ---------------------------------------------------------------------------


def _filter_compact(value: Any, key: Any = None) -> list[Any]:
    """Drop nil items (or items whose ``key`` is nil)."""

    def keep(item: Any) -> bool:
        probe = read_property(item, key) if key is not None else item
        return probe is not None and not isinstance(probe, Undefined)

    return [item for item in _seq(value) if keep(item)]


def _filter_concat(value: Any, other: Any) -> list[Any]:
    return _seq(value) + _seq(other)


def _filter_first(value: Any) -> Any:
    if isinstance(value, str):
        return value[:1]
    items = _seq(value)
    return items[0] if items else None


def _filter_last(value: Any) -> Any:
    if isinstance(value, str):
        return value[-1:]
    items = _seq(value)
    return items[-1] if items else None


def _filter_join(value: Any, separator: Any = " ") -> str:
    return _str(separator).join(_str(item) for item in _seq(value))


def _filter_map(value: Any, key: Any) -> list[Any]:
    return [read_property(item, _str(key)) for item in _seq(value)]


def _filter_reverse(value: Any) -> list[Any]:
    return _seq(value)[::-1]


def _filter_size(value: Any) -> int:
    if value is None or isinstance(value, Undefined):
        return 0
    size = read_property(value, "size")
    if isinstance(size, int):
        return size
    try:
        return len(value)
    except TypeError:
        return 0


def _filter_slice(value: Any, start: Any, length: Any = 1) -> Any:
    offset = _int(start)
    count = max(_int(length), 0)
    items = value if isinstance(value, str) else _seq(value)
    if offset < 0:
        offset = max(len(items) + offset, 0)
    return items[offset : offset + count]


def _sort_key(key: Any, fold: bool) -> Callable[[Any], Any]:
    def extract(item: Any) -> tuple[int, Any]:
        value = read_property(item, key) if key is not None else item
        if value is None or isinstance(value, Undefined):
            return (1, "")
        if fold and isinstance(value, str):
            return (0, value.casefold())
        return (0, value)

    return extract


def _filter_sort(value: Any, key: Any = None) -> list[Any]:
    """Sort; items without the key go last."""
    return sorted(_seq(value), key=_sort_key(key, fold=False))


def _filter_sort_natural(value: Any, key: Any = None) -> list[Any]:
    """Case-insensitive sort."""
    return sorted(_seq(value), key=_sort_key(key, fold=True))


def _filter_uniq(value: Any, key: Any = None) -> list[Any]:
    seen: list[Any] = []
    result: list[Any] = []
    for item in _seq(value):
        marker = read_property(item, key) if key is not None else item
        if marker not in seen:
            seen.append(marker)
            result.append(item)
    return result


def _filter_where(value: Any, key: Any, target: Any = None) -> list[Any]:
    """Items whose ``key`` equals ``target``, or is truthy when no target is given."""
    items = _seq(value)
    if target is None:
        return [item for item in items if not is_falsy(read_property(item, _str(key)))]
    return [item for item in items if read_property(item, _str(key)) == target]


# ---------------------------------------------------------------------------
# Other
# ---------------------------------------------------------------------------


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = _str(value).strip()
    if text in ("now", "today"):
        return datetime.now()
    if text.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(text), tz=timezone.utc)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _filter_date(value: Any, fmt: Any = None) -> Any:
    """Format with ``strftime`` codes; unparseable input passes through."""
    moment = _to_datetime(value)
    if moment is None:
        return value
    if fmt is None or is_falsy(fmt) or not _str(fmt):
        return moment.isoformat()
    return moment.strftime(_str(fmt))


def _filter_default(value: Any, fallback: Any = "", allow_false: Any = False) -> Any:
    """``fallback`` when the value is nil, undefined, false or empty.

    ``allow_false: true`` keeps a literal ``false``.
    """
    if value is False and allow_false is True:
        return value
    if is_falsy(value) or value == EMPTY:
        return fallback
    return value


DEFAULT_FILTERS: dict[str, Callable[..., Any]] = {
    "abs": _filter_abs,
    "append": _filter_append,
    "capitalize": _filter_capitalize,
    "ceil": _filter_ceil,
    "compact": _filter_compact,
    "concat": _filter_concat,
    "date": _filter_date,
    "default": _filter_default,
    "divided_by": _filter_divided_by,
    "downcase": _filter_downcase,
    "escape": _filter_escape,
    "escape_once": _filter_escape_once,
    "first": _filter_first,
    "floor": _filter_floor,
    "join": _filter_join,
    "last": _filter_last,
    "lstrip": _filter_lstrip,
    "map": _filter_map,
    "minus": _filter_minus,
    "modulo": _filter_modulo,
    "newline_to_br": _filter_newline_to_br,
    "plus": _filter_plus,
    "prepend": _filter_prepend,
    "remove": _filter_remove,
    "remove_first": _filter_remove_first,
    "replace": _filter_replace,
    "replace_first": _filter_replace_first,
    "reverse": _filter_reverse,
    "round": _filter_round,
    "rstrip": _filter_rstrip,
    "size": _filter_size,
    "slice": _filter_slice,
    "sort": _filter_sort,
    "sort_natural": _filter_sort_natural,
    "split": _filter_split,
    "strip": _filter_strip,
    "strip_html": _filter_strip_html,
    "strip_newlines": _filter_strip_newlines,
    "times": _filter_times,
    "truncate": _filter_truncate,
    "truncatewords": _filter_truncatewords,
    "uniq": _filter_uniq,
    "upcase": _filter_upcase,
    "url_decode": _filter_url_decode,
    "url_encode": _filter_url_encode,
    "where": _filter_where,
}
