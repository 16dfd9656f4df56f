"""Property-based tests for the lexer, parser and value semantics."""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from drip import UNDEFINED, Environment, TemplateSyntaxError, is_truthy, tokenize

from .strategies import (
    arbitrary_template_source,
    context_values,
    plain_text,
    template_fragment,
    truthy_values,
)

_env = Environment()


@given(source=template_fragment)
@settings(max_examples=200)
def test_lexer_is_lossless(source: str) -> None:
    """Concatenating raw token text reproduces the source exactly."""
    assert "".join(t.raw for t in tokenize(source)) == source


@given(source=arbitrary_template_source)
@settings(max_examples=300)
def test_lexer_never_crashes_unexpectedly(source: str) -> None:
    """Arbitrary input either tokenizes losslessly or raises a syntax error."""
    try:
        tokens = list(tokenize(source))
    except TemplateSyntaxError:
        return
    assert "".join(t.raw for t in tokens) == source


@given(text=plain_text, ctx=context_values)
def test_literal_text_renders_verbatim(text: str, ctx: dict) -> None:
    assert _env.parse_and_render(text, ctx) == text


@given(source=template_fragment, ctx=context_values)
@settings(max_examples=100)
def test_parse_is_deterministic(source: str, ctx: dict) -> None:
    first = _env.render(_env.parse(source), ctx)
    assert _env.render(_env.parse(source), ctx) == first


@given(value=truthy_values)
def test_only_nil_false_and_undefined_are_falsy(value) -> None:
    assert is_truthy(value)
    assert _env.parse_and_render("{% if v %}t{% else %}f{% endif %}", {"v": value}) == "t"


@given(value=st.sampled_from([None, False, UNDEFINED]))
def test_falsy_values(value) -> None:
    assert not is_truthy(value)


@given(n=st.integers(min_value=-50, max_value=50), m=st.integers(min_value=-50, max_value=50))
def test_range_matches_python(n: int, m: int) -> None:
    assert list(_env.evaluate("(n..m)", {"n": n, "m": m})) == list(range(n, m + 1))


@given(items=st.lists(st.integers(), max_size=10), limit=st.integers(min_value=0, max_value=12))
def test_for_limit_matches_slicing(items: list[int], limit: int) -> None:
    out = _env.parse_and_render("{% for i in items limit: n %}{{ i }},{% endfor %}", {"items": items, "n": limit})
    assert out == "".join(f"{i}," for i in items[:limit])
