"""Tests for the built-in tags."""

from __future__ import annotations

import pytest

from drip import DictLoader, Environment, ParseError, RenderError, TemplateNotFoundError
from drip.environment.exceptions import ErrorCode


def _loader_env(**templates: str) -> Environment:
    return Environment(loader=DictLoader({f"{name}.liquid": src for name, src in templates.items()}))


# =============================================================================
# Variables
# =============================================================================


class TestAssign:
    def test_assign_with_filters(self, env: Environment) -> None:
        assert env.parse_and_render("{% assign t = name | upcase %}{{ t }}", {"name": "ann"}) == "ANN"

    def test_assign_shadows_context(self, env: Environment) -> None:
        assert env.parse_and_render("{{ x }}{% assign x = 2 %}{{ x }}", {"x": 1}) == "12"

    def test_dashed_names(self, env: Environment) -> None:
        assert env.parse_and_render("{% assign my-var = 'v' %}{{ my-var }}") == "v"


class TestCapture:
    def test_capture_binds_rendered_body(self, env: Environment) -> None:
        source = "{% capture greeting %}Hi {{ name }}{% endcapture %}{{ greeting | upcase }}"
        assert env.parse_and_render(source, {"name": "ann"}) == "HI ANN"

    def test_capture_emits_nothing(self, env: Environment) -> None:
        assert env.parse_and_render("a{% capture x %}body{% endcapture %}b") == "ab"

    def test_capture_requires_name(self, env: Environment) -> None:
        with pytest.raises(ParseError, match="capture"):
            env.parse("{% capture %}x{% endcapture %}")


class TestCounters:
    def test_increment(self, env: Environment) -> None:
        assert env.parse_and_render("{% increment c %}{% increment c %}{% increment c %}") == "012"

    def test_decrement(self, env: Environment) -> None:
        assert env.parse_and_render("{% decrement d %}{% decrement d %}") == "-1-2"

    def test_counters_are_separate_from_variables(self, env: Environment) -> None:
        assert env.parse_and_render("{% assign c = 10 %}{% increment c %}{{ c }}") == "010"

    def test_counters_reset_per_render(self, env: Environment) -> None:
        ast = env.parse("{% increment c %}")
        assert env.render(ast) == env.render(ast) == "0"


# =============================================================================
# Conditionals
# =============================================================================


class TestIf:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0, "yes"), ("", "yes"), ([], "yes"), (None, "no"), (False, "no")],
    )
    def test_truthiness(self, env: Environment, value, expected: str) -> None:
        assert env.parse_and_render("{% if v %}yes{% else %}no{% endif %}", {"v": value}) == expected

    def test_undefined_is_falsy(self, env: Environment) -> None:
        assert env.parse_and_render("{% if missing %}yes{% else %}no{% endif %}") == "no"

    @pytest.mark.parametrize(("n", "expected"), [(1, "one"), (2, "two"), (3, "other")])
    def test_elsif_chain(self, env: Environment, n: int, expected: str) -> None:
        source = "{% if n == 1 %}one{% elsif n == 2 %}two{% else %}other{% endif %}"
        assert env.parse_and_render(source, {"n": n}) == expected

    def test_no_branch_matches(self, env: Environment) -> None:
        assert env.parse_and_render("a{% if false %}b{% elsif nil %}c{% endif %}d") == "ad"

    def test_compound_condition(self, env: Environment) -> None:
        source = "{% if user and user.admin or debug %}ok{% endif %}"
        assert env.parse_and_render(source, {"user": {"admin": True}}) == "ok"
        assert env.parse_and_render(source, {"debug": True}) == "ok"
        assert env.parse_and_render(source, {"user": {}}) == ""


class TestUnless:
    def test_unless(self, env: Environment) -> None:
        assert env.parse_and_render("{% unless x %}no x{% endunless %}") == "no x"
        assert env.parse_and_render("{% unless x %}no x{% endunless %}", {"x": 1}) == ""

    def test_unless_else(self, env: Environment) -> None:
        assert env.parse_and_render("{% unless x %}a{% else %}b{% endunless %}", {"x": True}) == "b"


class TestCase:
    SOURCE = "{% case x %}{% when 1, 2 %}low{% when 3 or 4 %}mid{% else %}high{% endcase %}"

    @pytest.mark.parametrize(("x", "expected"), [(1, "low"), (2, "low"), (4, "mid"), (9, "high")])
    def test_when_values(self, env: Environment, x: int, expected: str) -> None:
        assert env.parse_and_render(self.SOURCE, {"x": x}) == expected

    def test_no_type_coercion(self, env: Environment) -> None:
        assert env.parse_and_render(self.SOURCE, {"x": "1"}) == "high"

    def test_first_matching_when_wins(self, env: Environment) -> None:
        source = "{% case 'a' %}{% when 'a' %}first{% when 'a' %}second{% endcase %}"
        assert env.parse_and_render(source) == "first"

    def test_text_before_first_when_is_ignored(self, env: Environment) -> None:
        assert env.parse_and_render("{% case 1 %}junk{% when 1 %}one{% endcase %}") == "one"

    def test_variable_when_values(self, env: Environment) -> None:
        source = "{% case x %}{% when limit %}hit{% endcase %}"
        assert env.parse_and_render(source, {"x": 5, "limit": 5}) == "hit"


# =============================================================================
# Iteration
# =============================================================================


class TestFor:
    def test_basic_loop(self, env: Environment) -> None:
        source = "{% for x in items %}{{ forloop.index }}:{{ x }}{% unless forloop.last %},{% endunless %}{% endfor %}"
        assert env.parse_and_render(source, {"items": ["a", "b", "c"]}) == "1:a,2:b,3:c"

    @pytest.mark.parametrize(
        ("attr", "expected"),
        [
            ("index", "123"),
            ("index0", "012"),
            ("rindex", "321"),
            ("rindex0", "210"),
            ("first", "truefalsefalse"),
            ("last", "falsefalsetrue"),
            ("length", "333"),
        ],
    )
    def test_forloop_attributes(self, env: Environment, attr: str, expected: str) -> None:
        source = f"{{% for x in (1..3) %}}{{{{ forloop.{attr} }}}}{{% endfor %}}"
        assert env.parse_and_render(source) == expected

    def test_forloop_name(self, env: Environment) -> None:
        assert env.parse_and_render("{% for x in items %}{{ forloop.name }}{% endfor %}", {"items": [1]}) == "x-items"

    def test_parentloop(self, env: Environment) -> None:
        source = (
            "{% for a in (1..2) %}{% for b in (1..2) %}"
            "{{ forloop.parentloop.index }}{{ forloop.index }} "
            "{% endfor %}{% endfor %}"
        )
        assert env.parse_and_render(source) == "11 12 21 22 "

    def test_outermost_parentloop_is_nil(self, env: Environment) -> None:
        assert env.parse_and_render("{% for a in (1..1) %}[{{ forloop.parentloop }}]{% endfor %}") == "[]"

    def test_limit_and_offset(self, env: Environment) -> None:
        assert env.parse_and_render("{% for i in (1..5) limit: 2 offset: 1 %}{{ i }}{% endfor %}") == "23"

    def test_options_accept_variables(self, env: Environment) -> None:
        source = "{% for i in items limit: n %}{{ i }}{% endfor %}"
        assert env.parse_and_render(source, {"items": [1, 2, 3], "n": 2}) == "12"

    def test_reversed(self, env: Environment) -> None:
        assert env.parse_and_render("{% for i in (1..3) reversed %}{{ i }}{% endfor %}") == "321"

    def test_reversed_applies_after_slicing(self, env: Environment) -> None:
        source = "{% for i in (1..5) offset: 1 limit: 2 reversed %}{{ i }}{% endfor %}"
        assert env.parse_and_render(source) == "32"

    def test_invalid_limit(self, env: Environment) -> None:
        with pytest.raises(RenderError, match="limit"):
            env.parse_and_render("{% for i in (1..3) limit: 'lots' %}{{ i }}{% endfor %}")

    def test_unknown_option(self, env: Environment) -> None:
        with pytest.raises(ParseError, match="Unknown option 'step'"):
            env.parse("{% for i in (1..3) step: 2 %}{% endfor %}")

    @pytest.mark.parametrize("items", [[], None, {}])
    def test_else_when_empty(self, env: Environment, items) -> None:
        source = "{% for i in items %}{{ i }}{% else %}nothing{% endfor %}"
        assert env.parse_and_render(source, {"items": items}) == "nothing"

    def test_mapping_yields_pairs(self, env: Environment) -> None:
        source = "{% for pair in obj %}{{ pair[0] }}={{ pair[1] }};{% endfor %}"
        assert env.parse_and_render(source, {"obj": {"a": 1, "b": 2}}) == "a=1;b=2;"

    def test_string_is_a_single_item(self, env: Environment) -> None:
        assert env.parse_and_render("{% for c in s %}[{{ c }}]{% endfor %}", {"s": "abc"}) == "[abc]"

    def test_loop_variable_does_not_leak(self, env: Environment) -> None:
        source = "{% for i in (1..2) %}{% assign last = i %}{% endfor %}[{{ i }}{{ last }}]"
        assert env.parse_and_render(source) == "[]"

    def test_loop_restores_shadowed_variable(self, env: Environment) -> None:
        assert env.parse_and_render("{% for x in (1..2) %}{{ x }}{% endfor %}{{ x }}", {"x": "outer"}) == "12outer"


class TestBreakContinue:
    def test_break(self, env: Environment) -> None:
        source = "{% for i in (1..5) %}{% if i == 3 %}{% break %}{% endif %}{{ i }}{% endfor %}"
        assert env.parse_and_render(source) == "12"

    def test_continue(self, env: Environment) -> None:
        source = "{% for i in (1..5) %}{% if i == 3 %}{% continue %}{% endif %}{{ i }}{% endfor %}"
        assert env.parse_and_render(source) == "1245"

    def test_output_before_break_is_kept(self, env: Environment) -> None:
        source = "{% for i in (1..3) %}<{{ i }}{% if i == 2 %}{% break %}{% endif %}>{% endfor %}"
        assert env.parse_and_render(source) == "<1><2"

    def test_break_only_exits_innermost_loop(self, env: Environment) -> None:
        source = (
            "{% for a in (1..2) %}{% for b in (1..3) %}"
            "{% if b == 2 %}{% break %}{% endif %}{{ a }}{{ b }} "
            "{% endfor %}{% endfor %}"
        )
        assert env.parse_and_render(source) == "11 21 "

    def test_break_rejects_arguments(self, env: Environment) -> None:
        with pytest.raises(ParseError, match="takes no arguments"):
            env.parse("{% for i in (1..2) %}{% break now %}{% endfor %}")


class TestCycle:
    def test_cycle(self, env: Environment) -> None:
        assert env.parse_and_render("{% for i in (1..4) %}{% cycle 'a', 'b', 'c' %}{% endfor %}") == "abca"

    def test_distinct_value_lists_cycle_independently(self, env: Environment) -> None:
        assert env.parse_and_render("{% cycle 'a', 'b' %}{% cycle 'x', 'y' %}{% cycle 'a', 'b' %}") == "axb"

    def test_named_group_shares_position(self, env: Environment) -> None:
        assert env.parse_and_render("{% cycle 'g': 'a', 'b' %}{% cycle 'g': 'x', 'y' %}") == "ay"


class TestTableRow:
    def test_rows_and_columns(self, env: Environment) -> None:
        expected = (
            '<tr class="row1"><td class="col1">1</td><td class="col2">2</td></tr>'
            '<tr class="row2"><td class="col1">3</td></tr>'
        )
        assert env.parse_and_render("{% tablerow i in (1..3) cols: 2 %}{{ i }}{% endtablerow %}") == expected

    def test_single_row_without_cols(self, env: Environment) -> None:
        expected = '<tr class="row1"><td class="col1">a</td><td class="col2">b</td></tr>'
        source = "{% tablerow x in items %}{{ x }}{% endtablerow %}"
        assert env.parse_and_render(source, {"items": ["a", "b"]}) == expected

    def test_tablerowloop(self, env: Environment) -> None:
        source = "{% tablerow i in (1..4) cols: 2 %}{{ tablerowloop.row }}.{{ tablerowloop.col }}{% if tablerowloop.col_last %}!{% endif %}{% endtablerow %}"
        output = env.parse_and_render(source)
        assert ">1.1<" in output
        assert ">1.2!<" in output
        assert ">2.2!<" in output

    def test_limit_and_offset(self, env: Environment) -> None:
        source = "{% tablerow i in (1..5) cols: 5 limit: 2 offset: 2 %}{{ i }}{% endtablerow %}"
        assert env.parse_and_render(source) == '<tr class="row1"><td class="col1">3</td><td class="col2">4</td></tr>'

    @pytest.mark.parametrize("cols", [-1, -2])
    def test_cols_below_one_is_treated_as_one(self, env: Environment, cols: int) -> None:
        source = "{% tablerow i in (1..2) cols: n %}{{ tablerowloop.row }}{% endtablerow %}"
        expected = '<tr class="row1"><td class="col1">1</td></tr><tr class="row2"><td class="col1">2</td></tr>'
        assert env.parse_and_render(source, {"n": cols}) == expected


# =============================================================================
# Structure
# =============================================================================


class TestCommentRaw:
    def test_comment_body_is_never_parsed(self, env: Environment) -> None:
        assert env.parse_and_render("a{% comment %}{{ x }} {% if %}{% endcomment %}b") == "ab"

    def test_raw(self, env: Environment) -> None:
        assert env.parse_and_render("{% raw %}{{ x }}{% endraw %}", {"x": 1}) == "{{ x }}"

    def test_raw_body_may_hold_unbalanced_quotes(self, env: Environment) -> None:
        assert env.parse_and_render("{% raw %}{{ it's }}{% endraw %}") == "{{ it's }}"
        assert env.parse_and_render("a{% comment %}{% don't %}{% endcomment %}b") == "ab"


class TestInclude:
    def test_include(self, env_with_loader: Environment) -> None:
        assert env_with_loader.parse_and_render("{% include 'partial' %}") == "<p>Partial content</p>"

    def test_include_sees_outer_scope(self, env_with_loader: Environment) -> None:
        source = "{% assign greeting = 'there' %}{% include 'greeting' %}"
        assert env_with_loader.parse_and_render(source) == "Hello there!"

    def test_include_with_binds_template_stem(self, env_with_loader: Environment) -> None:
        source = "{% include 'product' with item %}"
        assert env_with_loader.parse_and_render(source, {"item": {"name": "Mug"}}) == "Mug"

    def test_include_keyword_bindings(self, env_with_loader: Environment) -> None:
        assert env_with_loader.parse_and_render("{% include 'card', title: 'Hi', size: 2 %}") == "[Hi:2]"
        assert env_with_loader.parse_and_render("{% include 'card', title: 'Hi' %}") == "[Hi:1]"

    def test_bindings_do_not_leak(self, env_with_loader: Environment) -> None:
        assert env_with_loader.parse_and_render("{% include 'card', title: 'Hi' %}[{{ title }}]") == "[Hi:1][]"

    def test_assignments_inside_include_do_not_leak(self) -> None:
        env = _loader_env(setter="{% assign secret = 1 %}{{ secret }}")
        assert env.parse_and_render("{% include 'setter' %}[{{ secret }}]") == "1[]"

    def test_dynamic_template_name(self, env_with_loader: Environment) -> None:
        assert env_with_loader.parse_and_render("{% include tpl %}", {"tpl": "partial"}) == "<p>Partial content</p>"

    def test_missing_template(self, env_with_loader: Environment) -> None:
        with pytest.raises(TemplateNotFoundError, match="nope.liquid"):
            env_with_loader.parse_and_render("{% include 'nope' %}")

    def test_break_inside_include_reaches_enclosing_loop(self) -> None:
        env = _loader_env(stopper="{{ i }}{% if i == 2 %}{% break %}{% endif %}")
        assert env.parse_and_render("{% for i in (1..5) %}{% include 'stopper' %}{% endfor %}") == "12"

    def test_circular_include_hits_depth_limit(self, env_with_loader: Environment) -> None:
        with pytest.raises(RenderError) as exc_info:
            env_with_loader.render_file("loop")
        assert exc_info.value.code is ErrorCode.INCLUDE_DEPTH

    def test_depth_limit_is_configurable(self) -> None:
        env = Environment(loader=DictLoader({"a.liquid": "a{% include 'b' %}", "b.liquid": "b"}), max_include_depth=1)
        assert env.render_file("a") == "ab"
        env.max_include_depth = 0
        env.renderer.max_include_depth = 0
        with pytest.raises(RenderError):
            env.render_file("a")


class TestLayout:
    def test_layout_fills_blocks(self, env_with_loader: Environment) -> None:
        assert env_with_loader.render_file("child") == "<html><head></head><body>Hello World</body></html>"

    def test_anonymous_block(self) -> None:
        env = _loader_env(main="<main>{% block %}{% endblock %}</main>", page="{% layout 'main' %}Hello {{ name }}")
        assert env.render_file("page", {"name": "Ann"}) == "<main>Hello Ann</main>"

    def test_block_default_body(self) -> None:
        env = _loader_env(main="[{% block side %}default{% endblock %}]", page="{% layout 'main' %}")
        assert env.render_file("page") == "[default]"

    def test_nested_layouts_innermost_wins(self) -> None:
        env = _loader_env(
            a="A[{% block x %}a{% endblock %}|{% block y %}a{% endblock %}]",
            b="{% layout 'a' %}{% block x %}b{% endblock %}{% block y %}b{% endblock %}",
            c="{% layout 'b' %}{% block x %}c{% endblock %}",
        )
        assert env.render_file("c") == "A[c|b]"

    def test_block_without_layout_renders_inline(self, env: Environment) -> None:
        assert env.parse_and_render("<{% block title %}T{% endblock %}>") == "<T>"
