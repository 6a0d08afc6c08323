"""Short-lived response cache for read endpoints.

Backed by a ``cachetools.TLRUCache`` so every entry carries its own TTL and
the cache never holds more than ``maxsize`` responses. Expired entries are
dropped on access; ``sweep`` reclaims the rest and runs on a schedule.
Every operation is fail-open: a cache malfunction is logged and reported
as a miss, it never fails the request being served.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from cachetools import TLRUCache

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
DEFAULT_MAXSIZE = 1024


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    ttl: float


def _entry_expiry(key: str, entry: CacheEntry, now: float) -> float:
    return now + entry.ttl


def normalize_params(params: Mapping[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key in sorted(params):
        value = params[key]
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip().lower()
        normalized[key] = value
    return normalized


def make_cache_key(endpoint: str, params: Mapping[str, Any], context: Optional[str] = None) -> str:
    payload = {
        "endpoint": endpoint,
        "params": normalize_params(params),
        "user": context or ANONYMOUS,
    }
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class RequestCache:
    def __init__(
        self,
        ttl_seconds: int = 60,
        maxsize: int = DEFAULT_MAXSIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = ttl_seconds
        self.maxsize = maxsize
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=clock)
        # cachetools caches are not thread-safe
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, endpoint: str, params: Mapping[str, Any], context: Optional[str] = None) -> Any:
        try:
            key = make_cache_key(endpoint, params, context)
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    self.misses += 1
                else:
                    self.hits += 1
            if entry is None:
                logger.debug("cache miss %s %s", endpoint, key[:8])
                return None
            logger.debug("cache hit %s %s", endpoint, key[:8])
            return entry.value
        except Exception:
            logger.exception("request cache read failed for %s", endpoint)
            return None

    def set(
        self,
        endpoint: str,
        params: Mapping[str, Any],
        value: Any,
        ttl: Optional[float] = None,
        context: Optional[str] = None,
    ) -> None:
        if ttl is None:
            ttl = self.default_ttl
        try:
            key = make_cache_key(endpoint, params, context)
            with self._lock:
                if ttl <= 0:
                    # Expires on arrival; drop any older entry instead of storing
                    self._entries.pop(key, None)
                else:
                    self._entries[key] = CacheEntry(value=value, ttl=ttl)
        except Exception:
            logger.exception("request cache write failed for %s", endpoint)

    def has(self, endpoint: str, params: Mapping[str, Any], context: Optional[str] = None) -> bool:
        try:
            key = make_cache_key(endpoint, params, context)
            with self._lock:
                return key in self._entries
        except Exception:
            logger.exception("request cache lookup failed for %s", endpoint)
            return False

    def delete(self, endpoint: str, params: Mapping[str, Any], context: Optional[str] = None) -> bool:
        try:
            key = make_cache_key(endpoint, params, context)
            with self._lock:
                return self._entries.pop(key, None) is not None
        except Exception:
            logger.exception("request cache delete failed for %s", endpoint)
            return False

    def clear(self) -> int:
        try:
            with self._lock:
                cleared = len(self._entries)
                self._entries.clear()
        except Exception:
            logger.exception("request cache clear failed")
            return 0
        logger.info("request cache cleared (%d entries)", cleared)
        return cleared

    def sweep(self) -> int:
        try:
            with self._lock:
                expired = list(self._entries.expire())
        except Exception:
            logger.exception("request cache sweep failed")
            return 0
        if expired:
            logger.debug("swept %d expired cache entries", len(expired))
        return len(expired)

    def keys(self) -> list[str]:
        try:
            with self._lock:
                self._entries.expire()
                return list(self._entries)
        except Exception:
            logger.exception("request cache key listing failed")
            return []

    def stats(self) -> dict[str, Any]:
        try:
            with self._lock:
                self._entries.expire()
                total = self.hits + self.misses
                return {
                    "keys": len(self._entries),
                    "maxsize": self.maxsize,
                    "hits": self.hits,
                    "misses": self.misses,
                    "hit_rate": round(self.hits / total, 3) if total else 0.0,
                    "ttl_seconds": self.default_ttl,
                }
        except Exception:
            logger.exception("request cache stats failed")
            return {"keys": 0, "maxsize": self.maxsize, "hits": self.hits, "misses": self.misses}
