"""Tests for the placeholder evaluation context."""

import copy

import pytest


class TestUndefined:
    """Tests for the UNDEFINED sentinel."""

    def test_undefined_is_singleton(self):
        """Test UNDEFINED survives copies and re-instantiation."""
        from placeholder_engine.templates.context import UNDEFINED, _Undefined

        assert _Undefined() is UNDEFINED
        assert copy.copy(UNDEFINED) is UNDEFINED
        assert copy.deepcopy({"a": UNDEFINED})["a"] is UNDEFINED

    def test_undefined_is_falsy(self):
        """Test UNDEFINED is falsy and distinct from None."""
        from placeholder_engine.templates.context import UNDEFINED

        assert not UNDEFINED
        assert UNDEFINED is not None
        assert repr(UNDEFINED) == "undefined"

    def test_is_missing(self):
        """Test only None and UNDEFINED count as missing."""
        from placeholder_engine.templates.context import UNDEFINED, is_missing

        assert is_missing(None) is True
        assert is_missing(UNDEFINED) is True
        assert is_missing(0) is False
        assert is_missing("") is False


class TestPlaceholderContext:
    """Tests for PlaceholderContext."""

    def test_default_maps_are_independent(self, mock_env_vars):
        """Test each context gets its own maps."""
        from placeholder_engine.templates.context import PlaceholderContext

        first = PlaceholderContext()
        second = PlaceholderContext()
        first.variables["a"] = 1

        assert second.variables == {}

    def test_env_is_read_only_snapshot(self, monkeypatch, mock_env_vars):
        """Test env is copied at creation and cannot be modified."""
        from placeholder_engine.templates.context import PlaceholderContext

        context = PlaceholderContext()
        monkeypatch.setenv("API_BASE_URL", "https://changed.local")

        assert context.env["API_BASE_URL"] == "https://api.test.local"
        with pytest.raises(TypeError):
            context.env["NEW"] = "x"

    def test_namespace_routing(self, mock_env_vars):
        """Test each prefix maps to its source."""
        from placeholder_engine.templates.context import PlaceholderContext

        context = PlaceholderContext(
            responses={"r": 1},
            cookies={"c": "2"},
            headers={"h": "3"},
            metadata={"m": 4},
        )

        assert context.namespace("env") is context.env
        assert context.namespace("response") is context.responses
        assert context.namespace("responses") is context.responses
        assert context.namespace("cookie") is context.cookies
        assert context.namespace("header") is context.headers
        assert context.namespace("meta") is context.metadata
        assert context.namespace("user") is None

    def test_lookup(self, mock_env_vars):
        """Test prefixed and plain lookups."""
        from placeholder_engine.templates.context import UNDEFINED, PlaceholderContext

        context = PlaceholderContext(variables={"name": "x"}, cookies={"sid": "s-1"})

        assert context.lookup("name") == "x"
        assert context.lookup("cookie.sid") == "s-1"
        assert context.lookup("env.API_TOKEN") == "test-token-123"
        assert context.lookup("cookie.none") is UNDEFINED
        assert context.lookup("missing") is UNDEFINED

    def test_child_scope_shadows_parent(self, mock_env_vars):
        """Test child bindings shadow without touching the parent."""
        from placeholder_engine.templates.context import PlaceholderContext

        parent = PlaceholderContext(variables={"item": "outer", "name": "x"})
        child = parent.child(item="inner", index=0)
        child.variables["extra"] = True

        assert child.lookup("item") == "inner"
        assert child.lookup("name") == "x"
        assert parent.variables == {"item": "outer", "name": "x"}
        assert child.cookies is parent.cookies
