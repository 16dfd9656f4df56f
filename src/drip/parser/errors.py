"""Parser error handling.

Provides ParseError, positioned on the token at fault.
"""

from __future__ import annotations

from drip._types import Token
from drip.environment.exceptions import ErrorCode, TemplateSyntaxError


class ParseError(TemplateSyntaxError):
    """Unknown tag, unmatched block, or malformed tag arguments.

    Displays the offending source line with a pointer at the token, and
    names the tag being parsed when there is one:

        Parse Error: Tag 'if' opened at line 1 was never closed (expected 'endif')
          --> page.liquid:1:0
           |
          1 | {% if true %} no endif
           | ^
    """

    code: ErrorCode | None = ErrorCode.INVALID_ARGUMENTS
    label = "Parse Error"

    def __init__(
        self,
        message: str,
        token: Token | None = None,
        *,
        tag: str | None = None,
        source: str | None = None,
        name: str | None = None,
        filename: str | None = None,
        suggestion: str | None = None,
        code: ErrorCode | None = None,
    ):
        self.token = token
        super().__init__(
            message,
            token.lineno if token else None,
            token.col_offset if token else None,
            name=name,
            filename=filename,
            source=source,
            tag=tag,
            suggestion=suggestion,
            code=code,
        )

    def at(self, token: Token, tag: str | None = None) -> ParseError:
        """Anchor an unpositioned error (e.g. from the expression parser)."""
        if self.token is None:
            self.token = token
            self.lineno = token.lineno
            self.col_offset = token.col_offset
        if self.tag is None and tag is not None:
            self.tag = tag
            self.message = f"{self.message} (in tag '{tag}')"
        self._refresh()
        return self
