"""Option and result models for the placeholder engine.

This module defines:
- ResolverOptions / Delimiters: behaviour switches for PlaceholderResolver
- CacheOptions / EvictionPolicy: sizing and eviction for ResolutionCache
- CacheEntry: a single cached value with its bookkeeping
- SyntaxAnalysis / SyntaxValidationResult: Syntax Normalizer reports
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class Delimiters(BaseModel):
    """Opening and closing markers of a placeholder."""

    start: str = Field("{{", min_length=1, description="Opening delimiter")
    end: str = Field("}}", min_length=1, description="Closing delimiter")

    @model_validator(mode="after")
    def validate_distinct(self) -> "Delimiters":
        """Reject delimiter pairs the scanner cannot tell apart."""
        if self.start == self.end:
            raise ValueError("Start and end delimiters must differ")
        return self


class ResolverOptions(BaseModel):
    """Behaviour switches for PlaceholderResolver.

    Attributes:
        throw_on_undefined: Propagate the first per-expression failure
            instead of leaving the placeholder unresolved
        enable_functions: Dispatch ``name(args)`` expressions to the registry
        enable_chaining: Evaluate ``a | f | g(x)`` pipelines
        max_depth: Recursion limit for nested resolution
        cache: Memoize resolved templates inside the resolver
        delimiters: Placeholder markers
    """

    throw_on_undefined: bool = Field(False, description="Raise on the first failed expression")
    enable_functions: bool = Field(True, description="Allow function call expressions")
    enable_chaining: bool = Field(True, description="Allow pipeline expressions")
    max_depth: int = Field(10, ge=0, description="Maximum nested resolution depth")
    cache: bool = Field(True, description="Memoize resolved templates")
    delimiters: Delimiters = Field(default_factory=Delimiters)


class EvictionPolicy(str, Enum):
    """Which entry to drop when the cache is full."""

    LRU = "lru"  # Least recently accessed
    LFU = "lfu"  # Fewest hits
    FIFO = "fifo"  # Oldest insertion
    TTL = "ttl"  # Oldest last access, closest to going stale


class CacheOptions(BaseModel):
    """Configuration for ResolutionCache.

    Example:
        CacheOptions(max_size=500, ttl=60, eviction_policy="lfu")
    """

    max_size: int = Field(1000, ge=1, description="Maximum number of entries")
    ttl: Optional[float] = Field(
        3600.0, ge=0, description="Entry lifetime in seconds (0 or None disables expiry)"
    )
    persist: bool = Field(False, description="Write entries to cache_dir")
    cache_dir: str = Field("./.template-cache", description="Directory for persisted entries")
    eviction_policy: EvictionPolicy = Field(EvictionPolicy.LRU, description="Eviction policy")
    check_integrity: bool = Field(True, description="Verify checksums on request")
    compression: bool = Field(False, description="gzip+base64 persisted entries")


@dataclass
class CacheEntry:
    """A cached value and its bookkeeping."""

    key: str
    value: Any
    tag: str = "template"
    timestamp: float = 0.0
    last_access: float = 0.0
    hits: int = 0
    checksum: str = ""
    metadata: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "tag": self.tag,
            "timestamp": self.timestamp,
            "last_access": self.last_access,
            "hits": self.hits,
            "checksum": self.checksum,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        return cls(
            key=data["key"],
            value=data.get("value"),
            tag=data.get("tag", "template"),
            timestamp=float(data.get("timestamp", 0.0)),
            last_access=float(data.get("last_access", 0.0)),
            hits=int(data.get("hits", 0)),
            checksum=data.get("checksum", ""),
            metadata=data.get("metadata"),
        )


class SyntaxAnalysis(BaseModel):
    """Placeholders found in a template, grouped by dialect."""

    has_legacy_syntax: bool = False
    has_native_syntax: bool = False
    legacy_variables: list[str] = Field(default_factory=list)
    native_variables: list[str] = Field(default_factory=list)
    all_variables: list[str] = Field(default_factory=list)


class SyntaxValidationResult(BaseModel):
    """Structural problems found in a template."""

    valid: bool = True
    errors: list[str] = Field(default_factory=list)


@dataclass
class CacheStats:
    """Running counters for a ResolutionCache."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    additions: int = 0
    updates: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "additions": self.additions,
            "updates": self.updates,
        }


__all__ = [
    "CacheEntry",
    "CacheOptions",
    "CacheStats",
    "Delimiters",
    "EvictionPolicy",
    "ResolverOptions",
    "SyntaxAnalysis",
    "SyntaxValidationResult",
]
