"""High-level entry points chaining normalization, caching and resolution.

Callers that hold their own resolver pass it in; everything else falls back
to process-wide defaults built from EngineSettings on first use. Loading those
settings also configures logging from PLACEHOLDER_LOG_LEVEL and
PLACEHOLDER_LOG_JSON.

The resolution cache memoizes the *normalized* template keyed by the raw
string. Resolved output is never cached here since it depends on the
resolver's context and on functions such as ``uuid()``.
"""

from typing import Any, Optional

import structlog

from placeholder_engine.templates.cache import ResolutionCache
from placeholder_engine.templates.resolver import PlaceholderResolver
from placeholder_engine.templates.syntax import normalize_object, normalize_syntax
from placeholder_engine.utils.logging import configure_from_settings

logger = structlog.get_logger()

NORMALIZED_TAG = "normalized"

# Global instances
_settings = None
_resolver: Optional[PlaceholderResolver] = None
_template_cache: Optional[ResolutionCache] = None


def _get_settings():
    global _settings
    if _settings is None:
        from placeholder_engine.config import get_settings

        _settings = get_settings()
        configure_from_settings(_settings)
    return _settings


def get_resolver() -> PlaceholderResolver:
    """Get or create the default resolver."""
    global _resolver
    if _resolver is None:
        _resolver = PlaceholderResolver.from_settings(_get_settings())
    return _resolver


def get_template_cache() -> ResolutionCache:
    """Get or create the default resolution cache."""
    global _template_cache
    if _template_cache is None:
        _template_cache = ResolutionCache.from_settings(_get_settings())
    return _template_cache


def reset_defaults() -> None:
    """Drop the default settings, resolver and cache so they are rebuilt on next use."""
    global _settings, _resolver, _template_cache
    _settings = None
    _resolver = None
    _template_cache = None


def _normalized(
    template: str, cache: Optional[ResolutionCache], use_cache: bool
) -> str:
    if not use_cache:
        return normalize_syntax(template)

    if cache is None:
        cache = get_template_cache()
    normalized = cache.get(template)
    if normalized is None:
        normalized = normalize_syntax(template)
        cache.set(template, normalized, tag=NORMALIZED_TAG)
    return normalized


def resolve_template(
    template: str,
    resolver: Optional[PlaceholderResolver] = None,
    cache: Optional[ResolutionCache] = None,
    normalize: Optional[bool] = None,
    use_cache: Optional[bool] = None,
) -> str:
    """Normalize legacy syntax, then resolve placeholders.

    Args:
        template: Template string
        resolver: Resolver to use (default: get_resolver())
        cache: Cache for normalized templates (default: get_template_cache())
        normalize: Rewrite ``${...}`` first (default: settings)
        use_cache: Memoize normalization (default: settings)

    Returns:
        The resolved string

    Example:
        resolver = PlaceholderResolver()
        resolver.set_variable("user", "alice")
        resolve_template("Hi ${user}", resolver=resolver)  # "Hi alice"
    """
    if not isinstance(template, str) or not template:
        return template

    if resolver is None:
        resolver = get_resolver()

    if normalize is None or use_cache is None:
        settings = _get_settings()
        normalize = settings.normalize_legacy_syntax if normalize is None else normalize
        use_cache = settings.cache_enabled if use_cache is None else use_cache

    source = _normalized(template, cache, use_cache) if normalize else template
    return resolver.resolve(source)


def resolve_payload(
    payload: Any,
    resolver: Optional[PlaceholderResolver] = None,
    normalize: Optional[bool] = None,
) -> Any:
    """Resolve every string inside a nested request payload.

    Lists and dicts are rebuilt (dict keys are resolved too); other leaves are
    returned untouched.
    """
    if resolver is None:
        resolver = get_resolver()

    if normalize is None:
        normalize = _get_settings().normalize_legacy_syntax
    if normalize:
        payload = normalize_object(payload)

    logger.debug("Resolving payload", payload_type=type(payload).__name__)
    return resolver.resolve_value(payload)
