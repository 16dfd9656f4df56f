"""Tests for the renderer: output coercion, RenderBreak and error wrapping."""

from __future__ import annotations

import pytest

from drip import Environment, RenderBreak, RenderError, Scope, Tag, UndefinedError
from drip.environment.exceptions import ErrorCode
from drip.renderer import Proceed


class StopTag(Tag):
    """Ends the whole render: ``{% stop %}``."""

    def render(self, node, scope, renderer):
        return RenderBreak("", "stop")


class ExplodeTag(Tag):
    def render(self, node, scope, renderer):
        raise ValueError("kaboom")


class LeakyTag(Tag):
    """Pushes a frame and never pops it."""

    block = True
    end = "endleaky"

    async def render(self, node, scope, renderer):
        scope.push_frame({"leaked": True})
        return await renderer.render_nodes(node.body, scope)


@pytest.fixture
def env() -> Environment:
    env = Environment()
    env.register_tag("stop", StopTag())
    env.register_tag("explode", ExplodeTag())
    env.register_tag("leaky", LeakyTag())
    return env


class TestOutput:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, ""),
            (True, "true"),
            (False, "false"),
            (0, "0"),
            (1.5, "1.5"),
            (["a", 1, None], "a1"),
            ({"k": "v"}, "{'k': 'v'}"),
        ],
    )
    def test_stringification(self, env: Environment, value, expected: str) -> None:
        assert env.parse_and_render("{{ v }}", {"v": value}) == expected

    def test_undefined_renders_empty(self, env: Environment) -> None:
        assert env.parse_and_render("[{{ missing.deep }}]") == "[]"

    def test_range_output(self, env: Environment) -> None:
        assert env.parse_and_render("{{ (1..4) }}") == "1..4"

    def test_literal_text_is_verbatim(self, env: Environment) -> None:
        text = "no tags here: { } % }} %}\n"
        assert env.parse_and_render(text, {"x": 1}) == text


class TestRenderBreak:
    def test_break_outside_loop_ends_render_successfully(self, env: Environment) -> None:
        assert env.parse_and_render("A {% break %} B") == "A "

    def test_custom_break_propagates_through_blocks_and_loops(self, env: Environment) -> None:
        source = "a{% for i in (1..3) %}{{ i }}{% if i == 2 %}{% stop %}{% endif %}x{% endfor %}z"
        assert env.parse_and_render(source) == "a1x2"

    def test_continue_outside_loop_also_ends_render(self, env: Environment) -> None:
        assert env.parse_and_render("a{% continue %}b") == "a"

    def test_break_inside_capture_keeps_partial_capture(self, env: Environment) -> None:
        source = "{% for i in (1..3) %}{% capture c %}{{ i }}{% break %}no{% endcapture %}{% endfor %}[{{ c }}]"
        assert env.parse_and_render(source) == "[]"

    @pytest.mark.asyncio
    async def test_render_nodes_returns_flow(self, env: Environment) -> None:
        ast = env.parse("a{% stop %}b")
        flow = await env.renderer.render_nodes(ast.body, env.new_scope())
        assert flow == RenderBreak("a", "stop")

        flow = await env.renderer.render_nodes(env.parse("ab").body, env.new_scope())
        assert flow == Proceed("ab")


class TestErrors:
    def test_unknown_filter_names_the_filter(self, env: Environment) -> None:
        with pytest.raises(RenderError) as exc_info:
            env.parse_and_render("{{ x | no_such_filter }}", {"x": 1})
        err = exc_info.value
        assert "no_such_filter" in str(err)
        assert (err.lineno, err.col_offset) == (1, 0)
        assert err.code is ErrorCode.UNKNOWN_FILTER

    def test_unknown_filter_suggests_close_match(self, env: Environment) -> None:
        with pytest.raises(RenderError) as exc_info:
            env.parse_and_render("{{ x | upcas }}")
        assert exc_info.value.suggestion == "Did you mean 'upcase'?"

    def test_handler_exception_is_wrapped_at_innermost_node(self, env: Environment) -> None:
        source = "line\n{% if true %}\n  {% explode %}\n{% endif %}"
        with pytest.raises(RenderError) as exc_info:
            env.parse_and_render(source)
        err = exc_info.value
        assert "ValueError: kaboom" in str(err)
        assert (err.lineno, err.col_offset) == (3, 2)
        assert isinstance(err.__cause__, ValueError)

    def test_filter_exception_is_wrapped(self, env: Environment) -> None:
        with pytest.raises(RenderError) as exc_info:
            env.parse_and_render("{{ 1 | divided_by: 0 }}")
        assert exc_info.value.code is ErrorCode.FILTER_ERROR
        assert "divided_by" in str(exc_info.value)

    def test_error_carries_template_name_and_snippet(self, env: Environment) -> None:
        ast = env.parse("ok\n{{ x | nope }}", name="page.liquid")
        with pytest.raises(RenderError) as exc_info:
            env.render(ast)
        err = exc_info.value
        assert err.template_name == "page.liquid"
        assert err.source_snippet is not None
        assert "page.liquid:2:0" in str(err)

    def test_no_partial_output_on_failure(self, env: Environment) -> None:
        with pytest.raises(RenderError):
            env.parse_and_render("lots of output {% explode %}")

    def test_strict_variables(self, env: Environment) -> None:
        with pytest.raises(UndefinedError):
            env.parse_and_render("{{ missing }}", strict_variables=True)


class TestScopeBalance:
    @pytest.mark.parametrize(
        "source",
        [
            "{% for a in (1..2) %}{% for b in (1..2) %}{% if b %}{{ a }}{% endif %}{% endfor %}{% endfor %}",
            "{% for a in (1..3) %}{% if a == 2 %}{% stop %}{% endif %}{% endfor %}",
            "{% for a in (1..3) %}{% explode %}{% endfor %}",
            "{% tablerow a in (1..3) cols: 2 %}{% break %}{% endtablerow %}",
        ],
    )
    def test_depth_unchanged_after_render(self, env: Environment, source: str) -> None:
        scope = env.new_scope()
        before = scope.depth
        try:
            env.render(env.parse(source), scope)
        except RenderError:
            pass
        assert scope.depth == before

    def test_unbalanced_handler_is_repaired(self, env: Environment) -> None:
        scope = env.new_scope()
        env.render(env.parse("{% leaky %}x{% endleaky %}"), scope)
        assert scope.depth == 1

    def test_caller_scope_is_reusable(self, env: Environment) -> None:
        scope = Scope({"n": 2})
        env.render(env.parse("{% assign n = n | plus: 1 %}"), scope)
        assert env.render(env.parse("{{ n }}"), scope) == "3"
