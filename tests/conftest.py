"""Shared fixtures for placeholder engine tests."""

import os
from types import SimpleNamespace

import pytest


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (real sleeps)"
    )


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("API_BASE_URL", "https://api.test.local")
    monkeypatch.setenv("API_TOKEN", "test-token-123")
    # Engine settings must come from the test itself, not the developer's shell
    for name in list(os.environ):
        if name.startswith("PLACEHOLDER_"):
            monkeypatch.delenv(name, raising=False)
    # Rebuild the default resolver/cache from the patched environment
    from placeholder_engine.templates.engine import reset_defaults
    reset_defaults()
    yield
    reset_defaults()


@pytest.fixture
def resolver(mock_env_vars):
    """Resolver with a small set of variables, responses and headers."""
    from placeholder_engine.templates.resolver import PlaceholderResolver

    resolver = PlaceholderResolver()
    resolver.set_variable("name", "world")
    resolver.set_variable(
        "user",
        {"name": "alice", "profile": {"age": 30, "email": "alice@example.com"}},
    )
    resolver.set_variable(
        "items",
        [
            {"name": "widget", "price": 10, "active": True},
            {"name": "gadget", "price": 25, "active": False},
        ],
    )
    resolver.set_response("login", {"status": 200, "body": {"token": "abc123"}})
    resolver.set_response("profile", SimpleNamespace(status=201, body={"id": 7}))
    resolver.set_cookie("session", "sess-42")
    resolver.set_header("Accept", "application/json")
    resolver.set_metadata("run_id", "run-001")
    return resolver


@pytest.fixture
def cache_dir(tmp_path):
    """Directory for persisted cache entries."""
    return str(tmp_path / "template-cache")
