"""Tests for the high-level resolve helpers and default instances."""


class TestDefaults:
    """Tests for the process-wide default resolver and cache."""

    def test_get_resolver_is_reused(self, mock_env_vars):
        """Test the default resolver is created once."""
        from placeholder_engine.templates.engine import get_resolver

        assert get_resolver() is get_resolver()

    def test_get_template_cache_is_reused(self, mock_env_vars):
        """Test the default cache is created once."""
        from placeholder_engine.templates.engine import get_template_cache

        assert get_template_cache() is get_template_cache()

    def test_defaults_follow_settings(self, monkeypatch, mock_env_vars):
        """Test defaults are built from PLACEHOLDER_* settings."""
        from placeholder_engine.templates.engine import (
            get_resolver,
            get_template_cache,
            reset_defaults,
        )

        monkeypatch.setenv("PLACEHOLDER_MAX_DEPTH", "3")
        monkeypatch.setenv("PLACEHOLDER_CACHE_MAX_SIZE", "7")
        reset_defaults()

        assert get_resolver().options.max_depth == 3
        assert get_template_cache().options.max_size == 7

    def test_reset_defaults(self, mock_env_vars):
        """Test reset_defaults forces new instances."""
        from placeholder_engine.templates.engine import get_resolver, reset_defaults

        first = get_resolver()
        reset_defaults()

        assert get_resolver() is not first


class TestResolveTemplate:
    """Tests for resolve_template."""

    def test_normalizes_then_resolves(self, resolver):
        """Test legacy syntax is rewritten before resolution."""
        from placeholder_engine.templates.cache import ResolutionCache
        from placeholder_engine.templates.engine import resolve_template

        cache = ResolutionCache()

        result = resolve_template("Hi ${name} at ${config.API_BASE_URL}", resolver=resolver, cache=cache)

        assert result == "Hi world at https://api.test.local"

    def test_caches_normalized_template(self, resolver):
        """Test the cache stores the normalized template, not the output."""
        from placeholder_engine.templates.cache import ResolutionCache
        from placeholder_engine.templates.engine import NORMALIZED_TAG, resolve_template

        cache = ResolutionCache()

        resolve_template("Hi ${name}", resolver=resolver, cache=cache)
        resolver.set_variable("name", "again")
        second = resolve_template("Hi ${name}", resolver=resolver, cache=cache)

        assert second == "Hi again"
        assert cache.get("Hi ${name}") == "Hi {{name}}"
        assert cache.values_by_tag(NORMALIZED_TAG) == ["Hi {{name}}"]
        assert cache.get_stats()["hits"] >= 1

    def test_normalize_disabled(self, resolver):
        """Test normalize=False leaves legacy syntax alone."""
        from placeholder_engine.templates.engine import resolve_template

        assert resolve_template("${name} {{name}}", resolver=resolver, normalize=False) == (
            "${name} world"
        )

    def test_cache_disabled(self, resolver):
        """Test use_cache=False bypasses the cache."""
        from placeholder_engine.templates.cache import ResolutionCache
        from placeholder_engine.templates.engine import resolve_template

        cache = ResolutionCache()

        assert resolve_template("${name}", resolver=resolver, cache=cache, use_cache=False) == "world"
        assert len(cache) == 0

    def test_uses_default_resolver(self, mock_env_vars):
        """Test the default resolver is used when none is given."""
        from placeholder_engine.templates.engine import get_resolver, resolve_template

        get_resolver().set_variable("team", "qa")

        assert resolve_template("team=${team}") == "team=qa"

    def test_non_string_passthrough(self, resolver):
        """Test empty and non-string templates are returned as is."""
        from placeholder_engine.templates.engine import resolve_template

        assert resolve_template("", resolver=resolver) == ""
        assert resolve_template(None, resolver=resolver) is None


class TestResolvePayload:
    """Tests for resolve_payload."""

    def test_resolves_nested_payload(self, resolver):
        """Test a request body with both dialects."""
        from placeholder_engine.templates.engine import resolve_payload

        payload = {
            "headers": {"Authorization": "Bearer ${config.API_TOKEN}"},
            "body": {"user": "{{user.name}}", "tags": ["${name}", 3]},
        }

        result = resolve_payload(payload, resolver=resolver)

        assert result == {
            "headers": {"Authorization": "Bearer test-token-123"},
            "body": {"user": "alice", "tags": ["world", 3]},
        }

    def test_payload_without_normalization(self, resolver):
        """Test normalize=False keeps legacy placeholders."""
        from placeholder_engine.templates.engine import resolve_payload

        assert resolve_payload(["${name}", "{{name}}"], resolver=resolver, normalize=False) == [
            "${name}",
            "world",
        ]
