"""Template objects and loop metadata."""

from drip.template.core import Template
from drip.template.loop_context import ForLoop, TableRowLoop

__all__ = [
    "ForLoop",
    "TableRowLoop",
    "Template",
]
