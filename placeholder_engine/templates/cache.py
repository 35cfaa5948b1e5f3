"""Resolution cache with pluggable eviction and optional persistence.

Entries are keyed by the raw template string (exact match) and carry a
checksum of their value so later mutation can be detected. Two mechanisms
remove entries independently of each other:

- TTL expiry is lazy: an entry older than ``ttl`` seconds is dropped when it
  is next read.
- Capacity eviction is eager: inserting a new key into a full cache first
  drops one entry chosen by the eviction policy.

Persistence writes one ``<sanitized key>.cache`` file per entry. It is
best-effort: I/O failures are logged and never fail the in-memory operation.
"""

import base64
import gzip
import hashlib
import json
import re
import time
import zlib
from collections import OrderedDict
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from placeholder_engine.templates.errors import CacheCorruptionError
from placeholder_engine.templates.models import (
    CacheEntry,
    CacheOptions,
    CacheStats,
    EvictionPolicy,
)
from placeholder_engine.utils.logging import log_operation

logger = structlog.get_logger()

CACHE_FILE_SUFFIX = ".cache"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_LOAD_ERRORS = (OSError, ValueError, KeyError, TypeError, EOFError, zlib.error)


def compute_checksum(value: Any) -> str:
    """MD5 of the value's canonical JSON form."""
    try:
        content = json.dumps(value, sort_keys=True, default=str)
    except TypeError:
        # Mixed-type dict keys cannot be sorted
        content = repr(value)
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def sanitize_key(key: str) -> str:
    """File stem for a key: non-alphanumerics become ``_``, lowercased.

    Distinct keys can collide; the persisted record keeps the exact key.
    """
    return _UNSAFE_FILENAME_CHARS.sub("_", key).lower()


class ResolutionCache:
    """Template to value cache.

    Example:
        cache = ResolutionCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")          # 1, "a" is now most recently used
        cache.set("c", 3)       # evicts "b"
        cache.has("b")          # False
    """

    def __init__(
        self,
        options: Optional[CacheOptions] = None,
        log: Optional[structlog.BoundLogger] = None,
        **overrides: Any,
    ):
        """Initialize the cache.

        Args:
            options: Cache options
            log: Logger for diagnostics; defaults to the module logger
            **overrides: Individual CacheOptions fields, applied on top of
                ``options``

        Persisted entries are loaded immediately when ``persist`` is set.
        """
        if options is None:
            options = CacheOptions(**overrides)
        elif overrides:
            options = CacheOptions(**{**options.model_dump(), **overrides})

        self.options = options
        self.log = log or logger
        self._entries: dict[str, CacheEntry] = {}
        # Least recently used first
        self._access_order: OrderedDict[str, None] = OrderedDict()
        self._stats = CacheStats()

        if options.persist:
            self.load_persisted()

    @classmethod
    def from_settings(cls, settings: Any) -> "ResolutionCache":
        """Build a cache from EngineSettings."""
        return cls(options=settings.cache_options())

    def __len__(self) -> int:
        return len(self._entries)

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def set(
        self,
        key: str,
        value: Any,
        tag: str = "template",
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Insert or replace an entry.

        Replacing an existing key never evicts; a new key entering a full
        cache evicts one entry first.
        """
        existing = key in self._entries
        if not existing and len(self._entries) >= self.options.max_size:
            self._evict()

        now = time.time()
        entry = CacheEntry(
            key=key,
            value=value,
            tag=tag,
            timestamp=now,
            last_access=now,
            checksum=compute_checksum(value),
            metadata=metadata,
        )
        self._entries[key] = entry
        self._touch(key)

        if existing:
            self._stats.updates += 1
        else:
            self._stats.additions += 1

        self.log.debug("Cache entry stored", key=key, tag=tag, updated=existing)

        if self.options.persist:
            self._persist(entry)

    def get(self, key: str) -> Any:
        """Return the cached value, or None on a miss or an expired entry."""
        entry = self._entries.get(key)

        if entry is None:
            self._stats.misses += 1
            return None

        if self._is_expired(entry):
            self._discard(key)
            self._stats.misses += 1
            self.log.debug("Cache entry expired", key=key)
            return None

        entry.hits += 1
        entry.last_access = time.time()
        self._stats.hits += 1
        self._touch(key)
        return entry.value

    def has(self, key: str) -> bool:
        """True if ``key`` is cached and not expired. Does not count as access."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._is_expired(entry):
            self._discard(key)
            return False
        return True

    def delete(self, key: str) -> bool:
        if key not in self._entries:
            return False
        self._discard(key)
        if self.options.persist:
            self._delete_persisted(key)
        return True

    def clear(self) -> None:
        """Remove every entry and reset the counters."""
        self._entries.clear()
        self._access_order.clear()
        self._stats = CacheStats()

        if self.options.persist:
            self._clear_persisted()

        self.log.info("Cache cleared")

    # -------------------------------------------------------------------------
    # Integrity
    # -------------------------------------------------------------------------

    def verify_integrity(self, key: str) -> bool:
        """Compare the entry's stored checksum with its current value.

        Always True when integrity checking is disabled; False for an
        unknown key.
        """
        if not self.options.check_integrity:
            return True

        entry = self._entries.get(key)
        if entry is None:
            return False

        return compute_checksum(entry.value) == entry.checksum

    def ensure_integrity(self, key: str) -> None:
        """Raise CacheCorruptionError if a cached value changed since it was stored.

        Unknown keys pass.
        """
        if key in self._entries and not self.verify_integrity(key):
            self.log.warning("Cache entry failed integrity check", key=key)
            raise CacheCorruptionError(key)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def entries(self) -> dict[str, CacheEntry]:
        """All live entries by key."""
        return {
            key: entry
            for key, entry in self._entries.items()
            if not self._is_expired(entry)
        }

    def values_by_tag(self, tag: str) -> list[Any]:
        return [entry.value for entry in self.entries().values() if entry.tag == tag]

    def find_by_pattern(self, pattern: Union[str, re.Pattern]) -> dict[str, CacheEntry]:
        """Live entries whose key matches ``pattern`` anywhere."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        return {key: entry for key, entry in self.entries().items() if regex.search(key)}

    def find_by_metadata(
        self, predicate: Callable[[dict[str, Any]], bool]
    ) -> dict[str, CacheEntry]:
        """Live entries with metadata for which ``predicate`` holds."""
        return {
            key: entry
            for key, entry in self.entries().items()
            if entry.metadata and predicate(entry.metadata)
        }

    def optimize(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            self.delete(key)

        self.log.info("Cache optimized", removed=len(expired))
        return len(expired)

    def get_stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_size": self.options.max_size,
            **self._stats.to_dict(),
            "hit_rate": self._stats.hit_rate,
            "eviction_policy": self.options.eviction_policy.value,
            "ttl": self.options.ttl,
            "persist": self.options.persist,
        }

    def export_state(self) -> dict[str, Any]:
        """Snapshot entry metadata (not values), counters and options."""
        return {
            "entries": [
                {
                    "key": key,
                    "tag": entry.tag,
                    "timestamp": entry.timestamp,
                    "hits": entry.hits,
                    "metadata": entry.metadata,
                }
                for key, entry in self.entries().items()
            ],
            "stats": self.get_stats(),
            "options": self.options.model_dump(mode="json"),
        }

    def import_state(self, data: Mapping[str, Any]) -> None:
        """Restore counters from an export.

        Exports carry no values, so entries are not recreated; values only
        come back through persistence.
        """
        stats = data.get("stats") or {}
        for name in CacheStats.__dataclass_fields__:
            if name in stats:
                setattr(self._stats, name, int(stats[name]))

        self.log.info(
            "Cache metadata imported",
            skipped_entries=len(data.get("entries") or []),
        )

    # -------------------------------------------------------------------------
    # Eviction
    # -------------------------------------------------------------------------

    def _is_expired(self, entry: CacheEntry) -> bool:
        ttl = self.options.ttl
        if not ttl:
            return False
        return time.time() - entry.timestamp > ttl

    def _touch(self, key: str) -> None:
        self._access_order[key] = None
        self._access_order.move_to_end(key)

    def _discard(self, key: str) -> None:
        self._entries.pop(key, None)
        self._access_order.pop(key, None)

    def _select_victim(self) -> Optional[str]:
        if not self._entries:
            return None

        policy = self.options.eviction_policy
        # min() keeps the first of equal candidates, i.e. insertion order
        if policy == EvictionPolicy.LFU:
            return min(self._entries, key=lambda k: self._entries[k].hits)
        if policy == EvictionPolicy.FIFO:
            return min(self._entries, key=lambda k: self._entries[k].timestamp)
        if policy == EvictionPolicy.TTL:
            return min(self._entries, key=lambda k: self._entries[k].last_access)
        return next(iter(self._access_order), None)

    def _evict(self) -> None:
        key = self._select_victim()
        if key is None:
            return
        self._discard(key)
        self._stats.evictions += 1
        self.log.debug(
            "Cache entry evicted",
            key=key,
            policy=self.options.eviction_policy.value,
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @property
    def cache_dir(self) -> Path:
        return Path(self.options.cache_dir)

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{sanitize_key(key)}{CACHE_FILE_SUFFIX}"

    def _encode(self, entry: CacheEntry) -> str:
        payload = json.dumps(entry.to_dict(), default=str)
        if self.options.compression:
            payload = base64.b64encode(gzip.compress(payload.encode("utf-8"))).decode("ascii")
        return payload

    def _decode(self, payload: str) -> CacheEntry:
        if self.options.compression:
            payload = gzip.decompress(base64.b64decode(payload)).decode("utf-8")
        return CacheEntry.from_dict(json.loads(payload))

    def _persist(self, entry: CacheEntry) -> None:
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self.path_for(entry.key).write_text(self._encode(entry), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            self.log.warning("Failed to persist cache entry", key=entry.key, error=str(e))

    def _delete_persisted(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            self.log.warning("Failed to delete persisted cache entry", key=key, error=str(e))

    def _clear_persisted(self) -> None:
        try:
            for path in self.cache_dir.glob(f"*{CACHE_FILE_SUFFIX}"):
                path.unlink(missing_ok=True)
        except OSError as e:
            self.log.warning("Failed to clear persisted cache", error=str(e))

    def load_persisted(self) -> int:
        """Load entries from ``cache_dir``. Returns the number loaded.

        Expired files are deleted; unreadable files are skipped with a
        warning. A missing directory loads nothing.
        """
        if not self.cache_dir.is_dir():
            return 0

        try:
            files = sorted(self.cache_dir.glob(f"*{CACHE_FILE_SUFFIX}"))
        except OSError as e:
            self.log.warning("Failed to load persisted cache", error=str(e))
            return 0

        loaded = 0
        with log_operation(
            "load_persisted_cache", logger=self.log, cache_dir=str(self.cache_dir)
        ) as op:
            for path in files:
                try:
                    entry = self._decode(path.read_text(encoding="utf-8"))
                except _LOAD_ERRORS as e:
                    self.log.warning("Failed to load cached entry", file=path.name, error=str(e))
                    continue

                if self._is_expired(entry):
                    self._delete_file(path)
                    continue

                if entry.key not in self._entries and len(self._entries) >= self.options.max_size:
                    self._evict()
                self._entries[entry.key] = entry
                self._touch(entry.key)
                loaded += 1

            op["loaded"] = loaded

        return loaded

    def _delete_file(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self.log.warning("Failed to delete expired cache file", file=path.name, error=str(e))
