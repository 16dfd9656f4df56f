"""Pytest configuration and fixtures for drip tests."""

import pytest

from drip import DictLoader, Environment


@pytest.fixture
def env():
    """Create a basic drip Environment."""
    return Environment()


@pytest.fixture
def strict_env():
    """Create an Environment with strict variables and filters."""
    return Environment(strict_variables=True, strict_filters=True)


@pytest.fixture
def env_with_loader():
    """Create a drip Environment with DictLoader and test templates."""
    loader = DictLoader(
        {
            "base.liquid": (
                "<html>"
                "<head>{% block head %}{% endblock %}</head>"
                "<body>{% block body %}default body{% endblock %}</body>"
                "</html>"
            ),
            "child.liquid": "{% layout 'base' %}{% block body %}Hello World{% endblock %}",
            "partial.liquid": "<p>Partial content</p>",
            "greeting.liquid": "Hello {{ greeting }}!",
            "card.liquid": "[{{ title }}:{{ size | default: 1 }}]",
            "product.liquid": "{{ product.name }}",
            "loop.liquid": "{% include 'loop' %}",
        }
    )
    return Environment(loader=loader)


@pytest.fixture
def env_math():
    """Environment with the ``add``/``multiply`` filters used in pipeline tests."""
    env = Environment()
    env.register_filter("add", lambda value, n: value + n)
    env.register_filter("multiply", lambda value, n: value * n)
    return env


def assert_template_equal(template_result: str, expected: str) -> None:
    """Assert template result equals expected, normalizing whitespace.

    Args:
        template_result: The actual template rendering result.
        expected: The expected output.
    """
    actual_normalized = " ".join(template_result.split())
    expected_normalized = " ".join(expected.split())
    assert actual_normalized == expected_normalized, (
        f"Template output mismatch:\n"
        f"  Actual: {actual_normalized!r}\n"
        f"  Expected: {expected_normalized!r}"
    )
