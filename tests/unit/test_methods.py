"""Unit tests for the HTTP method enumeration."""

import pytest

from verbserver.core.handlers import Outcome, RequestHandlers
from verbserver.domain.methods import REGISTERED_METHODS, HttpMethod


def test_registry_has_every_iana_method() -> None:
    """The enumeration covers the 39 registered methods."""
    assert len(REGISTERED_METHODS) == 39
    assert HttpMethod.UNKNOWN not in REGISTERED_METHODS


@pytest.mark.parametrize(
    "token, expected",
    [
        ("GET", HttpMethod.GET),
        ("get", HttpMethod.GET),
        ("Post", HttpMethod.POST),
        ("BASELINE-CONTROL", HttpMethod.BASELINE_CONTROL),
        ("version-control", HttpMethod.VERSION_CONTROL),
        ("FOO", HttpMethod.UNKNOWN),
        ("", HttpMethod.UNKNOWN),
    ],
)
def test_from_token(token: str, expected: HttpMethod) -> None:
    """Tokens map case-insensitively; anything else is UNKNOWN."""
    assert HttpMethod.from_token(token) is expected


def test_handler_names_use_underscores() -> None:
    """Hyphenated methods map to valid Python identifiers."""
    assert HttpMethod.BASELINE_CONTROL.handler_name == "baseline_control"
    assert HttpMethod.VERSION_CONTROL.handler_name == "version_control"
    assert HttpMethod.UNKNOWN.handler_name == "all_methods"


@pytest.mark.parametrize("method", list(HttpMethod))
def test_every_method_has_a_default_handler(method: HttpMethod) -> None:
    """Default handlers exist for each member and decline the request."""
    handler = getattr(RequestHandlers(), method.handler_name)
    assert handler(None, None) is Outcome.NOT_HANDLED
