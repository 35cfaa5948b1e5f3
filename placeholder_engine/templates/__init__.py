"""Placeholder templating module for request payloads and test data.

This module provides functionality for:
- Resolving {{expression}} placeholders against layered context data
- Calling built-in, context-registered and transformer functions
- Converting the legacy ${...} placeholder dialect to {{...}}
- Caching templates with LRU/LFU/FIFO/TTL eviction and optional persistence

Example usage:
    from placeholder_engine.templates import PlaceholderResolver, normalize_syntax

    resolver = PlaceholderResolver()
    resolver.set_variable("user", {"name": "alice", "roles": ["admin", "qa"]})
    resolver.set_response("login", {"body": {"token": "abc123"}})

    resolver.resolve("Hello {{user.name | capitalize}}")          # "Hello Alice"
    resolver.resolve("Bearer {{response.login.body.token}}")      # "Bearer abc123"
    resolver.resolve("{{join(user.roles, '+')}}")                 # "admin+qa"
    resolver.resolve(normalize_syntax("${user.roles[0]}"))        # "admin"
"""

from placeholder_engine.templates.cache import ResolutionCache, compute_checksum, sanitize_key
from placeholder_engine.templates.context import UNDEFINED, PlaceholderContext, is_missing
from placeholder_engine.templates.engine import (
    get_resolver,
    get_template_cache,
    reset_defaults,
    resolve_payload,
    resolve_template,
)
from placeholder_engine.templates.errors import (
    CacheCorruptionError,
    DepthExceededError,
    FunctionCallError,
    FunctionNotFoundError,
    InvalidExpressionError,
    MalformedLiteralError,
    PlaceholderError,
)
from placeholder_engine.templates.functions import (
    BUILTIN_FUNCTIONS,
    FunctionRegistry,
    FunctionSpec,
    FunctionTier,
    to_display_string,
)
from placeholder_engine.templates.models import (
    CacheEntry,
    CacheOptions,
    CacheStats,
    Delimiters,
    EvictionPolicy,
    ResolverOptions,
    SyntaxAnalysis,
    SyntaxValidationResult,
)
from placeholder_engine.templates.resolver import PlaceholderResolver
from placeholder_engine.templates.syntax import (
    analyze_syntax,
    convert_to_legacy_syntax,
    extract_variables,
    has_legacy_syntax,
    has_native_syntax,
    log_syntax_analysis,
    normalize_array_indexing,
    normalize_function_calls,
    normalize_object,
    normalize_syntax,
    validate_syntax,
)

__all__ = [
    # Models
    "CacheEntry",
    "CacheOptions",
    "CacheStats",
    "Delimiters",
    "EvictionPolicy",
    "ResolverOptions",
    "SyntaxAnalysis",
    "SyntaxValidationResult",
    # Context
    "PlaceholderContext",
    "UNDEFINED",
    "is_missing",
    # Errors
    "PlaceholderError",
    "FunctionNotFoundError",
    "FunctionCallError",
    "InvalidExpressionError",
    "MalformedLiteralError",
    "DepthExceededError",
    "CacheCorruptionError",
    # Functions
    "BUILTIN_FUNCTIONS",
    "FunctionRegistry",
    "FunctionSpec",
    "FunctionTier",
    "to_display_string",
    # Resolver
    "PlaceholderResolver",
    # Syntax
    "analyze_syntax",
    "convert_to_legacy_syntax",
    "extract_variables",
    "has_legacy_syntax",
    "has_native_syntax",
    "log_syntax_analysis",
    "normalize_array_indexing",
    "normalize_function_calls",
    "normalize_object",
    "normalize_syntax",
    "validate_syntax",
    # Cache
    "ResolutionCache",
    "compute_checksum",
    "sanitize_key",
    # Engine
    "get_resolver",
    "get_template_cache",
    "reset_defaults",
    "resolve_payload",
    "resolve_template",
]
