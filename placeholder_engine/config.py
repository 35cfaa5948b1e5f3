"""Configuration management for the placeholder engine."""

from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from placeholder_engine.templates.models import (
    CacheOptions,
    Delimiters,
    EvictionPolicy,
    ResolverOptions,
)


class EngineSettings(BaseSettings):
    """Engine settings loaded from environment variables.

    Every field can be set as ``PLACEHOLDER_<FIELD>``, e.g.
    ``PLACEHOLDER_MAX_DEPTH=20`` or ``PLACEHOLDER_CACHE_EVICTION_POLICY=lfu``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PLACEHOLDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Emit logs as JSON")

    # Resolver
    max_depth: int = Field(10, ge=0, description="Maximum nested resolution depth")
    throw_on_undefined: bool = Field(False, description="Raise on the first failed expression")
    enable_functions: bool = Field(True, description="Allow function call expressions")
    enable_chaining: bool = Field(True, description="Allow pipeline expressions")
    resolver_cache: bool = Field(True, description="Memoize resolved templates in the resolver")
    delimiter_start: str = Field("{{", min_length=1, description="Opening placeholder delimiter")
    delimiter_end: str = Field("}}", min_length=1, description="Closing placeholder delimiter")
    normalize_legacy_syntax: bool = Field(True, description="Rewrite ${...} before resolving")

    # Resolution cache
    cache_enabled: bool = Field(True, description="Use the resolution cache in resolve_template")
    cache_max_size: int = Field(1000, ge=1, description="Maximum cached templates")
    cache_ttl_seconds: Optional[float] = Field(3600.0, ge=0, description="Entry lifetime (0 disables)")
    cache_eviction_policy: EvictionPolicy = Field(EvictionPolicy.LRU, description="Eviction policy")
    cache_persist: bool = Field(False, description="Persist cache entries to disk")
    cache_dir: str = Field("./.template-cache", description="Directory for persisted entries")
    cache_compression: bool = Field(False, description="gzip+base64 persisted entries")
    cache_check_integrity: bool = Field(True, description="Verify entry checksums")

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: str) -> str:
        return value.upper() if isinstance(value, str) else value

    @field_validator("cache_eviction_policy", mode="before")
    @classmethod
    def lower_eviction_policy(cls, value: str) -> str:
        return value.lower() if isinstance(value, str) else value

    def resolver_options(self) -> ResolverOptions:
        """Options for PlaceholderResolver."""
        return ResolverOptions(
            throw_on_undefined=self.throw_on_undefined,
            enable_functions=self.enable_functions,
            enable_chaining=self.enable_chaining,
            max_depth=self.max_depth,
            cache=self.resolver_cache,
            delimiters=Delimiters(start=self.delimiter_start, end=self.delimiter_end),
        )

    def cache_options(self) -> CacheOptions:
        """Options for ResolutionCache."""
        return CacheOptions(
            max_size=self.cache_max_size,
            ttl=self.cache_ttl_seconds,
            persist=self.cache_persist,
            cache_dir=self.cache_dir,
            eviction_policy=self.cache_eviction_policy,
            check_integrity=self.cache_check_integrity,
            compression=self.cache_compression,
        )


def get_settings() -> EngineSettings:
    """Get engine settings."""
    return EngineSettings()
