"""Exceptions for the drip template system.

Exception Hierarchy:
TemplateError (base)
├── TemplateNotFoundError     # Template not found by loader
├── ValidationError           # Bad tag/filter registration
├── TemplateSyntaxError       # Compile-time error
│   ├── TokenizationError     # Unterminated {{ / {% delimiter
│   └── ParseError            # Unknown tag, unmatched block, bad arguments
└── RenderError               # Render-time failure with node position
    └── UndefinedError        # Undefined variable (strict_variables only)

``RenderBreak`` is deliberately absent: an early exit is a successful render
result (see ``drip.renderer``), never an exception.

Error Messages:
All exceptions carry:
- Source location (template name or file, line and column)
- The construct at fault (tag or filter name) where there is one
- A source snippet when the template source is known
- A searchable ``ErrorCode``

Example:
    ```
    Render Error: Unknown filter 'no_such_filter'
      Location: page.liquid:3:2
       |
     3 | {{ x | no_such_filter }}
       |
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from drip.environment import terminal

# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------


class ErrorCode(Enum):
    """Searchable error codes.

    Format: D-{CATEGORY}-{NUMBER}
    Categories: LEX (tokenizer), PAR (parser), RUN (renderer),
    TPL (template loading), REG (registration)
    """

    # Tokenizer errors (D-LEX-xxx)
    UNCLOSED_TAG = "D-LEX-001"
    UNCLOSED_OUTPUT = "D-LEX-002"

    # Parser errors (D-PAR-xxx)
    UNKNOWN_TAG = "D-PAR-001"
    UNCLOSED_BLOCK = "D-PAR-002"
    INVALID_EXPRESSION = "D-PAR-003"
    INVALID_ARGUMENTS = "D-PAR-004"
    UNKNOWN_FILTER_STRICT = "D-PAR-005"

    # Runtime errors (D-RUN-xxx)
    UNDEFINED_VARIABLE = "D-RUN-001"
    UNKNOWN_FILTER = "D-RUN-002"
    FILTER_ERROR = "D-RUN-003"
    OPERATOR_ERROR = "D-RUN-004"
    INCLUDE_DEPTH = "D-RUN-005"
    RUNTIME_ERROR = "D-RUN-006"

    # Template loading errors (D-TPL-xxx)
    TEMPLATE_NOT_FOUND = "D-TPL-001"
    SYNTAX_ERROR = "D-TPL-002"

    # Registration errors (D-REG-xxx)
    CONFLICT = "D-REG-001"
    MALFORMED_HANDLER = "D-REG-002"

    @property
    def category(self) -> str:
        """Error category (e.g., 'runtime', 'lexer', 'parser', 'template')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "lexer",
            "PAR": "parser",
            "RUN": "runtime",
            "TPL": "template",
            "REG": "registry",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


def format_template_stack(stack: list[tuple[str, int]] | None) -> str:
    """Format the include chain for error messages.

    Args:
        stack: List of (template_name, line_number) tuples, outermost first

    Example:
        >>> print(format_template_stack([("page.liquid", 4), ("nav.liquid", 2)]))
        Template stack:
          • page.liquid:4
          • nav.liquid:2
    """
    if not stack:
        return ""

    lines = [terminal.dim_text("Template stack:")]
    for template_name, line_num in stack:
        lines.append(f"  • {terminal.location(f'{template_name}:{line_num}')}")
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines around an error.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional 0-based column for the caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
        if self.column is not None:
            caret = " " * self.column + "^"
            parts.append(f"{terminal.dim_text('   |')} {terminal.error_line(caret)}")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet:
    """Build a SourceSnippet from template source.

    Args:
        source: Full template source text.
        error_line: 1-based line number of the error.
        context_lines: Number of lines to show before/after the error line.
        column: Optional column offset for caret pointer.
    """
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TemplateError(Exception):
    """Base exception for all drip template errors.

        >>> try:
        ...     env.parse_and_render(source, context)
        ... except TemplateError as e:
        ...     log.error(e.format_compact())

    Attributes:
        code: Optional ErrorCode for searchable error identification.
        filename: File the failing template was loaded from, if any.
    """

    code: ErrorCode | None = None
    filename: str | None = None

    def _format_message(self) -> str:
        return str(self.args[0]) if self.args else ""

    def _refresh(self) -> None:
        self.args = (self._format_message(),)

    def with_file(self, filename: str) -> TemplateError:
        """Attach the template file path, keeping the error's type.

        Used by loaders and ``Environment.render_file`` so that errors raised
        deep in the core name the file they came from. An already attached
        path (from a nested include) wins.

        Returns:
            The same exception, for ``raise err.with_file(path)``.
        """
        if self.filename is None:
            self.filename = filename
            self._refresh()
        return self

    def format_compact(self) -> str:
        """Format the error as a short terminal diagnostic with its code."""
        header = str(self)
        if self.code and self.code.value not in header:
            header = f"{self.code.value}: {header}"
        return header


class TemplateNotFoundError(TemplateError):
    """No loader could find the requested template.

    Example:
        >>> env.get_template("missing")
        TemplateNotFoundError: Failed to lookup missing.liquid in: views, .
    """

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND


class ValidationError(TemplateError):
    """A tag or filter registration was rejected.

    Raised by ``TagRegistry.register`` and ``FilterRegistry.register`` when
    the name is already bound to a different handler, or when the handler
    does not satisfy the minimal shape contract.

    Attributes:
        name: The name being registered.
    """

    code: ErrorCode | None = ErrorCode.CONFLICT

    def __init__(self, message: str, name: str, *, code: ErrorCode | None = None):
        self.name = name
        if code is not None:
            self.code = code
        super().__init__(message)


class TemplateSyntaxError(TemplateError):
    """Compile-time error in template source.

    When ``source`` and ``lineno`` are provided, the message includes the
    offending line; with ``col_offset`` a caret points at the column.

    Attributes:
        message: Error description
        lineno: 1-based line
        col_offset: 0-based column
        name: Template name
        tag: Name of the tag being parsed, if any
        suggestion: Optional fix hint
    """

    code: ErrorCode | None = ErrorCode.SYNTAX_ERROR
    label = "Syntax Error"

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        col_offset: int | None = None,
        *,
        name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
        tag: str | None = None,
        suggestion: str | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.col_offset = col_offset
        self.name = name
        self.filename = filename
        self.source = source
        self.tag = tag
        self.suggestion = suggestion
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    def locate(self, *, name: str | None = None, source: str | None = None) -> None:
        """Fill in template name and source after the fact."""
        if self.name is None and name is not None:
            self.name = name
        if self.source is None and source is not None:
            self.source = source
        self._refresh()

    def _location(self) -> str:
        location = self.filename or self.name or "<template>"
        if self.lineno:
            location += f":{self.lineno}"
            if self.col_offset is not None:
                location += f":{self.col_offset}"
        return location

    def _format_message(self) -> str:
        msg = f"{self.label}: {self.message}\n  --> {self._location()}"

        if self.source and self.lineno:
            lines = self.source.splitlines()
            if 0 < self.lineno <= len(lines):
                msg += f"\n   |\n{self.lineno:>3} | {lines[self.lineno - 1]}"
                if self.col_offset is not None:
                    msg += f"\n   | {' ' * self.col_offset}^"

        if self.suggestion:
            msg += f"\n\n  {terminal.hint('Suggestion:')} {self.suggestion}"
        return msg


class TokenizationError(TemplateSyntaxError):
    """Unterminated ``{{`` or ``{%`` delimiter.

    The position is that of the opening delimiter.
    """

    code: ErrorCode | None = ErrorCode.UNCLOSED_TAG
    label = "Tokenization Error"


class RenderError(TemplateError):
    """Render-time error with node position and template context.

    Output Format:
            ```
            Render Error: Unknown filter 'shout'
              Location: page.liquid:3:2
               |
            >3 | {{ title | shout }}
               |
              Expression: title | shout
            ```

    Attributes:
        message: Error description
        expression: Template construct that failed
        values: Dict of names → values for context
        template_name: Name of the template
        lineno: Line number in template source
        col_offset: Column of the failing node
        suggestion: Actionable fix suggestion
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        values: dict[str, Any] | None = None,
        template_name: str | None = None,
        lineno: int | None = None,
        col_offset: int | None = None,
        suggestion: str | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: list[tuple[str, int]] | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.expression = expression
        self.values = values or {}
        self.template_name = template_name
        self.lineno = lineno
        self.col_offset = col_offset
        self.suggestion = suggestion
        self.source_snippet = source_snippet
        self.template_stack = template_stack or []
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    @property
    def located(self) -> bool:
        return self.lineno is not None

    def locate(
        self,
        lineno: int,
        col_offset: int,
        *,
        template_name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
        expression: str | None = None,
        template_stack: list[tuple[str, int]] | None = None,
    ) -> RenderError:
        """Record the position of the innermost failing node.

        Only the first call has an effect, so the innermost node wins as the
        error propagates outwards through enclosing block tags.
        """
        if self.located:
            return self
        self.lineno = lineno
        self.col_offset = col_offset
        self.template_name = self.template_name or template_name
        self.filename = self.filename or filename
        self.expression = self.expression or expression
        if template_stack and not self.template_stack:
            self.template_stack = list(template_stack)
        if source and self.source_snippet is None:
            self.source_snippet = build_source_snippet(source, lineno, column=col_offset)
        self._refresh()
        return self

    def _location(self) -> str:
        loc = self.filename or self.template_name or "<template>"
        if self.lineno:
            loc += f":{self.lineno}"
            if self.col_offset is not None:
                loc += f":{self.col_offset}"
        return loc

    def _format_message(self) -> str:
        parts = [f"Render Error: {self.message}"]

        if self.filename or self.template_name or self.lineno:
            parts.append(f"  Location: {terminal.location(self._location())}")

        if self.source_snippet:
            parts.append(self.source_snippet.format())

        if self.template_stack:
            parts.append("")
            parts.append(format_template_stack(self.template_stack))

        if self.expression:
            parts.append(f"  Expression: {self.expression}")

        if self.values:
            parts.append("  Values:")
            for name, value in self.values.items():
                value_repr = repr(value)
                if len(value_repr) > 80:
                    value_repr = value_repr[:77] + "..."
                parts.append(f"    {name} = {value_repr} ({type(value).__name__})")

        if self.suggestion:
            parts.append(f"\n  {terminal.hint('Suggestion:')} {self.suggestion}")

        return "\n".join(parts)

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  Location: {terminal.location(self._location())}",
        ]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.expression:
            parts.append(f"  Expression: {self.expression}")
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class UndefinedError(RenderError):
    """An undefined variable was read while ``strict_variables`` is on.

    If ``available_names`` is provided, a "Did you mean?" suggestion is
    included when a close match is found.

    Example:
            >>> env = Environment(strict_variables=True)
            >>> env.parse_and_render("{{ usr.name }}", {"user": {...}})
        UndefinedError: Undefined variable 'usr.name'. Did you mean 'user'?
    """

    code: ErrorCode | None = ErrorCode.UNDEFINED_VARIABLE

    def __init__(
        self,
        name: str,
        available_names: frozenset[str] | None = None,
        **kwargs: Any,
    ):
        self.name = name
        msg = f"Undefined variable '{name}'"
        if available_names:
            from difflib import get_close_matches

            head = name.split(".", 1)[0].split("[", 1)[0]
            matches = get_close_matches(head, sorted(available_names), n=1, cutoff=0.6)
            if matches and matches[0] != head:
                msg += f". Did you mean '{terminal.suggestion(matches[0])}'?"
        kwargs.setdefault(
            "suggestion", f"Use {{{{ {name} | default: '' }}}} for optional variables"
        )
        super().__init__(msg, **kwargs)
