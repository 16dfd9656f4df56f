"""Tests for expression parsing and evaluation."""

from __future__ import annotations

import pytest

from drip import UNDEFINED, Environment, Lazy, ParseError, RenderError
from drip.environment.exceptions import ErrorCode
from drip.nodes import BinOp, Const, FilterCall, Not, Path, Pipeline, Range
from drip.parser import ExpressionParser, parse_expression
from drip.syntax import EMPTY


class TestParsing:
    def test_literals(self) -> None:
        assert parse_expression("'hi'") == Const(1, 0, value="hi")
        assert parse_expression("42").value == 42
        assert parse_expression("-1.5").value == -1.5
        assert parse_expression("true").value is True
        assert parse_expression("nil").value is None
        assert parse_expression("empty").value is EMPTY

    def test_path_segments(self) -> None:
        expr = parse_expression("user.tags[0]['first name'].size")
        assert isinstance(expr, Path)
        assert expr.segments == ("user", "tags", 0, "first name", "size")
        assert expr.source == "user.tags[0]['first name'].size"

    def test_dynamic_bracket_segment(self) -> None:
        expr = parse_expression("items[index]")
        assert isinstance(expr.segments[1], Path)

    def test_literal_name_followed_by_dot_is_a_path(self) -> None:
        expr = parse_expression("empty.size")
        assert isinstance(expr, Path)

    def test_range(self) -> None:
        assert isinstance(parse_expression("(1..n)"), Range)

    def test_parenthesized_pipeline(self) -> None:
        expr = parse_expression("(name | size) > 3")
        assert isinstance(expr, BinOp)
        assert isinstance(expr.left, Pipeline)
        assert isinstance(parse_expression("items[key | downcase]").segments[1], Pipeline)

    def test_operator_precedence(self) -> None:
        expr = parse_expression("a or b and not c == 1")
        assert isinstance(expr, BinOp) and expr.op == "or"
        assert isinstance(expr.right, BinOp) and expr.right.op == "and"
        assert isinstance(expr.right.right, Not)
        assert isinstance(expr.right.right.operand, BinOp)

    def test_filter_pipeline(self) -> None:
        expr = parse_expression("title | truncate: 10, '…' | upcase")
        assert isinstance(expr, Pipeline)
        assert [f.name for f in expr.filters] == ["truncate", "upcase"]
        assert len(expr.filters[0].args) == 2

    def test_filter_keyword_arguments(self) -> None:
        expr = parse_expression("x | default: 'a', allow_false: true")
        call: FilterCall = expr.filters[0]
        assert call.kwargs[0][0] == "allow_false"

    @pytest.mark.parametrize(
        "source",
        ["", "a |", "a ==", "(1..2", "a b", "a | f: x: 1, 2", "'open"],
    )
    def test_malformed(self, source: str) -> None:
        with pytest.raises(ParseError):
            parse_expression(source)

    def test_strict_filters_rejects_unknown_filter(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_expression("x | nope", known_filters={"upcase"})
        assert exc_info.value.code is ErrorCode.UNKNOWN_FILTER_STRICT

    def test_cursor_for_tag_grammars(self) -> None:
        p = ExpressionParser("item in items reversed")
        assert p.expect_name().value == "item"
        p.expect_name("in")
        assert isinstance(p.parse_primary(), Path)
        assert p.match_name("reversed") is not None
        assert p.at_end()


class TestEvaluation:
    def test_path_resolution(self, env: Environment) -> None:
        ctx = {"user": {"name": "Ann", "tags": ["a", "b"]}}
        assert env.evaluate("user.name", ctx) == "Ann"
        assert env.evaluate("user.tags[1]", ctx) == "b"
        assert env.evaluate("user.tags.size", ctx) == 2
        assert env.evaluate("user.tags.first", ctx) == "a"
        assert env.evaluate("user.tags.last", ctx) == "b"

    def test_dynamic_index_evaluated_first(self, env: Environment) -> None:
        ctx = {"items": ["x", "y", "z"], "pos": {"i": 2}}
        assert env.evaluate("items[pos.i]", ctx) == "z"

    def test_negative_index(self, env: Environment) -> None:
        assert env.evaluate("items[-1]", {"items": [1, 2, 3]}) == 3

    def test_unknown_path_is_undefined(self, env: Environment) -> None:
        assert env.evaluate("nope.deeper[0]", {}) is UNDEFINED

    def test_object_attributes(self, env: Environment) -> None:
        class User:
            name = "Bo"
            _secret = "hidden"

        assert env.evaluate("user.name", {"user": User()}) == "Bo"
        assert env.evaluate("user._secret", {"user": User()}) is UNDEFINED

    def test_comparisons(self, env: Environment) -> None:
        assert env.evaluate("1 < 2") is True
        assert env.evaluate("'b' >= 'a'") is True
        assert env.evaluate("1 == true") is False
        assert env.evaluate("1 <> 2") is True
        assert env.evaluate("x > 1", {}) is False

    def test_contains(self, env: Environment) -> None:
        assert env.evaluate("'hello' contains 'ell'") is True
        assert env.evaluate("tags contains 'a'", {"tags": ["a"]}) is True
        assert env.evaluate("obj contains 'k'", {"obj": {"k": 1}}) is True
        assert env.evaluate("5 contains 5") is False

    def test_and_or_short_circuit_on_truthiness(self, env: Environment) -> None:
        assert env.evaluate("0 and ''") is True
        assert env.evaluate("nil or false") is False

    def test_empty_comparison(self, env: Environment) -> None:
        assert env.evaluate("items == empty", {"items": []}) is True
        assert env.evaluate("'' == empty") is True
        assert env.evaluate("items == empty", {"items": [1]}) is False

    def test_range_is_inclusive(self, env: Environment) -> None:
        assert list(env.evaluate("(1..n)", {"n": 3})) == [1, 2, 3]

    def test_filters_inside_parentheses_and_brackets(self, env: Environment) -> None:
        assert env.evaluate("(name | size) > 3", {"name": "drip!"}) is True
        assert env.evaluate("m[k | downcase]", {"m": {"a": 1}, "k": "A"}) == 1

    def test_standalone_failures_are_render_errors(self, env: Environment) -> None:
        def boom():
            raise ValueError("db down")

        with pytest.raises(RenderError, match="ValueError: db down") as exc_info:
            env.evaluate("x", {"x": Lazy(boom)})
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_incomparable_types_raise_operator_error(self, env: Environment) -> None:
        with pytest.raises(RenderError) as exc_info:
            env.evaluate("'a' < 1")
        assert exc_info.value.code is ErrorCode.OPERATOR_ERROR

    def test_pipeline_left_to_right(self, env_math: Environment) -> None:
        assert env_math.evaluate("3 | add: 2 | multiply: 10") == 50

    def test_unknown_filter_raises_render_error(self, env: Environment) -> None:
        with pytest.raises(RenderError) as exc_info:
            env.evaluate("x | no_such_filter", {"x": 1})
        assert "no_such_filter" in str(exc_info.value)
        assert exc_info.value.code is ErrorCode.UNKNOWN_FILTER
