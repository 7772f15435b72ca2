"""
Result cache for the scoring pipeline.

Ranking reports and single-supplier scores are stored as JSON-ready dumps and
rebuilt into their pydantic models on a hit. Entries live in process memory
unless REDIS_URL points at a reachable server. Staleness within the TTL is
accepted; a miss simply recomputes.
"""
import hashlib
import json
import logging
import time
from typing import Any, Dict, Iterable, Optional, Tuple, Type, TypeVar, Union

import redis
from pydantic import BaseModel

from supplier_scoring.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# Cache key prefixes
class CacheKeys:
    SCORE = "supplier_score"
    RANKINGS = "supplier_rankings"


class SimpleCache:
    """Bounded in-process store with per-entry expiry."""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._make_room()
        self._entries[key] = (time.monotonic() + ttl_seconds, value)

    def _make_room(self) -> None:
        """Drop expired entries, then the ones closest to expiry, until one slot is free."""
        now = time.monotonic()
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[key]
        overflow = len(self._entries) - self.max_entries + 1
        if overflow > 0:
            for key in sorted(self._entries, key=lambda k: self._entries[k][0])[:overflow]:
                del self._entries[key]

    def invalidate(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]


class RedisCache:
    """Redis-backed store that keeps serving from memory while Redis errors."""

    def __init__(self, client: redis.Redis, fallback: SimpleCache):
        self.client = client
        self.fallback = fallback

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis get failed for {key}, reading memory cache: {e}")
            return self.fallback.get(key)
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            self.client.setex(key, ttl_seconds, json.dumps(value))
        except redis.RedisError as e:
            logger.warning(f"Redis set failed for {key}, writing memory cache: {e}")
            self.fallback.set(key, value, ttl_seconds)

    def invalidate(self, prefix: str) -> None:
        self.fallback.invalidate(prefix)
        try:
            keys = list(self.client.scan_iter(match=f"{prefix}*", count=100))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Redis invalidation failed for {prefix}*: {e}")


class ResultCache:
    """Stores pipeline results by key and hands them back as models."""

    def __init__(self, store: Union[SimpleCache, RedisCache], ttl_seconds: int = 300):
        self.store = store
        self.ttl_seconds = ttl_seconds

    def load(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        raw = self.store.get(key)
        if raw is None:
            logger.debug(f"Cache miss for {key}")
            return None
        logger.debug(f"Cache hit for {key}")
        return model.model_validate(raw)

    def save(self, key: str, value: BaseModel) -> None:
        self.store.set(key, value.model_dump(mode="json"), self.ttl_seconds)

    def invalidate(self, *prefixes: str) -> None:
        for prefix in prefixes:
            self.store.invalidate(f"{prefix}:")


def build_cache(config: Optional[Settings] = None) -> Optional[ResultCache]:
    """Result cache described by the settings, or None when caching is off."""
    config = config or default_settings
    if not config.cache_enabled:
        return None

    memory = SimpleCache(max_entries=config.cache_max_entries)
    if not config.redis_url:
        return ResultCache(memory, ttl_seconds=config.cache_ttl_seconds)

    client = redis.Redis.from_url(config.redis_url, socket_connect_timeout=2, decode_responses=True)
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable, caching results in memory: {e}")
        return ResultCache(memory, ttl_seconds=config.cache_ttl_seconds)
    logger.info("Redis result cache connected")
    return ResultCache(RedisCache(client, memory), ttl_seconds=config.cache_ttl_seconds)


def make_cache_key(*args, **kwargs) -> str:
    """md5 of a sorted JSON dump of the arguments."""
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    return hashlib.md5(key_data.encode()).hexdigest()


def supplier_set_fingerprint(supplier_ids: Optional[Iterable[int]]) -> str:
    """Order-independent fingerprint of a supplier id set ("*" means every supplier)."""
    if supplier_ids is None:
        return "*"
    joined = ",".join(str(i) for i in sorted(set(supplier_ids)))
    return hashlib.md5(joined.encode()).hexdigest()[:16]
