"""Tag handlers.

Built-in tags are installed into every Environment by
``register_builtin_tags``. Custom tags subclass ``Tag`` (or provide an
equivalent ``render`` method) and are added with ``env.register_tag``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from drip.tags.assign import AssignTag, CaptureTag, DecrementTag, IncrementTag
from drip.tags.base import Tag
from drip.tags.control_flow import CaseTag, IfTag, UnlessTag
from drip.tags.loops import BreakTag, ContinueTag, CycleTag, ForTag, TableRowTag
from drip.tags.structure import BlockTag, CommentTag, IncludeTag, LayoutTag, RawTag

if TYPE_CHECKING:
    from drip.environment.registry import TagRegistry

BUILTIN_TAGS: dict[str, type[Tag]] = {
    "assign": AssignTag,
    "capture": CaptureTag,
    "increment": IncrementTag,
    "decrement": DecrementTag,
    "if": IfTag,
    "unless": UnlessTag,
    "case": CaseTag,
    "for": ForTag,
    "tablerow": TableRowTag,
    "cycle": CycleTag,
    "break": BreakTag,
    "continue": ContinueTag,
    "comment": CommentTag,
    "raw": RawTag,
    "include": IncludeTag,
    "layout": LayoutTag,
    "block": BlockTag,
}


def register_builtin_tags(registry: TagRegistry) -> None:
    """Install a fresh instance of every built-in tag."""
    registry.update({name: cls() for name, cls in BUILTIN_TAGS.items()})


__all__ = [
    "BUILTIN_TAGS",
    "Tag",
    "register_builtin_tags",
]
