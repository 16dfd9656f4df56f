"""Loop iteration metadata for ``{% for %}`` and ``{% tablerow %}`` blocks."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any


class ForLoop:
    """Loop iteration metadata accessible as ``forloop`` inside ``{% for %}`` blocks.

    Properties:
        index: 1-based iteration count (1, 2, 3, ...)
        index0: 0-based iteration count (0, 1, 2, ...)
        first: True on the first iteration
        last: True on the final iteration
        length: Total number of items in the sequence
        rindex: Reverse 1-based index (counts down to 1)
        rindex0: Reverse 0-based index (counts down to 0)
        name: ``"<variable>-<collection>"``, e.g. ``"item-items"``
        parentloop: The enclosing ``forloop``, or nil at the outermost loop

    Example:
            ```liquid
            {% for item in items %}
                {{ forloop.index }}/{{ forloop.length }}: {{ item }}
                {% if forloop.last %}(last){% endif %}
            {% endfor %}
            ```
    """

    __slots__ = ("_index", "_items", "_length", "name", "parentloop")

    def __init__(self, items: list[Any], name: str = "", parentloop: ForLoop | None = None) -> None:
        self._items = items
        self._length = len(items)
        self._index = 0
        self.name = name
        self.parentloop = parentloop

    def __iter__(self) -> Iterator[Any]:
        """Iterate through items, updating index for each."""
        for i, item in enumerate(self._items):
            self._index = i
            yield item

    @property
    def index(self) -> int:
        return self._index + 1

    @property
    def index0(self) -> int:
        return self._index

    @property
    def first(self) -> bool:
        return self._index == 0

    @property
    def last(self) -> bool:
        return self._index == self._length - 1

    @property
    def length(self) -> int:
        return self._length

    @property
    def rindex(self) -> int:
        return self._length - self._index

    @property
    def rindex0(self) -> int:
        return self._length - self._index - 1

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.index}/{self.length}>"


class TableRowLoop(ForLoop):
    """``tablerowloop``: ``forloop`` plus row/column position.

    ``col`` and ``row`` are 1-based; ``col_first``/``col_last`` mark the
    cell at either edge of the current row.
    """

    __slots__ = ("cols",)

    def __init__(self, items: list[Any], cols: int, name: str = "") -> None:
        super().__init__(items, name)
        self.cols = max(cols, 1)

    @property
    def col0(self) -> int:
        return self._index % self.cols

    @property
    def col(self) -> int:
        return self.col0 + 1

    @property
    def row(self) -> int:
        return self._index // self.cols + 1

    @property
    def col_first(self) -> bool:
        return self.col0 == 0

    @property
    def col_last(self) -> bool:
        return self.col == self.cols or self.last
