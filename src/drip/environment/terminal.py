"""ANSI coloring for error diagnostics.

Colors are on only when stdout is a TTY, unless overridden:
- ``NO_COLOR`` (https://no-color.org/) disables them
- ``FORCE_COLOR`` enables them and wins over ``NO_COLOR``
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
}

ColorName = Literal["reset", "bold", "dim", "yellow", "cyan", "green", "bright_red", "bright_green"]

_ANSI_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _should_use_colors() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _should_use_colors()


def supports_color() -> bool:
    """True if diagnostics are colorized in this process."""
    return _USE_COLORS


def colorize(text: str, *colors: ColorName) -> str:
    """Wrap ``text`` in the given ANSI codes when colors are enabled."""
    if not _USE_COLORS or not colors:
        return text
    prefix = "".join(_COLORS[color] for color in colors)
    return f"{prefix}{text}{_COLORS['reset']}"


def strip_colors(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)


def error_code(text: str) -> str:
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    return colorize(text, "cyan")


def error_line(text: str) -> str:
    return colorize(text, "bright_red")


def hint(text: str) -> str:
    return colorize(text, "green")


def suggestion(text: str) -> str:
    return colorize(text, "bright_green", "bold")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    """Prefix ``message`` with a colored error code, if any."""
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """Format one snippet line; the error line gets a ``>`` marker.

    Example:
        >>> format_source_line(42, "{{ user }}", is_error=True)
        '> 42 | {{ user }}'   # plus colors when enabled
    """
    marker = ">" if is_error else " "
    num = colorize(f"{marker}{lineno:>3}", "yellow")
    body = error_line(content) if is_error else dim_text(content)
    return f"{num} | {body}"
