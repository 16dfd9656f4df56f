"""Template and expression parsing."""

from drip.parser.core import Parser
from drip.parser.errors import ParseError
from drip.parser.expressions import ExpressionParser, lex_expression, parse_expression

__all__ = [
    "ExpressionParser",
    "ParseError",
    "Parser",
    "lex_expression",
    "parse_expression",
]
