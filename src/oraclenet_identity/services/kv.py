"""Ephemeral key/value state with per-key TTL.

Two backends implement the same small capability set: a process-local
dictionary (the default, and what tests use) and Redis. Values are JSON
documents. Keys are namespaced by prefix; see `oraclenet_identity.services.stores`
for the typed wrappers that own each prefix.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from threading import Lock
from typing import Any, Protocol

import redis

from oraclenet_identity.core.errors import UpstreamError
from oraclenet_identity.core.settings import settings

logger = logging.getLogger(__name__)

JsonDict = dict[str, Any]


class KeyValueStore(Protocol):
    """Capability set shared by all state-store backends."""

    def put(self, key: str, value: JsonDict, ttl: int | None = None) -> None: ...

    def get(self, key: str) -> JsonDict | None: ...

    def delete(self, key: str) -> None: ...

    def compare_and_swap(
        self, key: str, expected: JsonDict, value: JsonDict, ttl: int | None = None
    ) -> bool: ...

    def compare_and_delete(self, key: str, expected: JsonDict) -> bool: ...


def _encode(value: JsonDict) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


class MemoryKeyValueStore:
    """In-process backend; expiry is checked lazily on read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = Lock()

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            self._data.pop(key, None)
            return None
        return raw

    def _expiry(self, ttl: int | None) -> float | None:
        return self._clock() + ttl if ttl is not None else None

    def put(self, key: str, value: JsonDict, ttl: int | None = None) -> None:
        with self._lock:
            self._data[key] = (_encode(value), self._expiry(ttl))

    def get(self, key: str) -> JsonDict | None:
        with self._lock:
            raw = self._live(key)
        return json.loads(raw) if raw is not None else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def compare_and_swap(
        self, key: str, expected: JsonDict, value: JsonDict, ttl: int | None = None
    ) -> bool:
        with self._lock:
            current = self._live(key)
            if current is None or current != _encode(expected):
                return False
            self._data[key] = (_encode(value), self._expiry(ttl))
            return True

    def compare_and_delete(self, key: str, expected: JsonDict) -> bool:
        with self._lock:
            current = self._live(key)
            if current is None or current != _encode(expected):
                return False
            del self._data[key]
            return True

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class RedisKeyValueStore:
    """Redis backend; compare-and-swap uses WATCH/MULTI."""

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisKeyValueStore:
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def put(self, key: str, value: JsonDict, ttl: int | None = None) -> None:
        try:
            self._redis.set(key, _encode(value), ex=ttl)
        except redis.RedisError as err:
            raise UpstreamError(f"State store write failed: {err}") from err

    def get(self, key: str) -> JsonDict | None:
        try:
            raw = self._redis.get(key)
        except redis.RedisError as err:
            raise UpstreamError(f"State store read failed: {err}") from err
        return json.loads(raw) if raw is not None else None

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(key)
        except redis.RedisError as err:
            raise UpstreamError(f"State store delete failed: {err}") from err

    def compare_and_swap(
        self, key: str, expected: JsonDict, value: JsonDict, ttl: int | None = None
    ) -> bool:
        try:
            with self._redis.pipeline() as pipe:
                try:
                    pipe.watch(key)
                    current = pipe.get(key)
                    if current is None or json.loads(current) != expected:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.set(key, _encode(value), ex=ttl)
                    pipe.execute()
                    return True
                except redis.WatchError:
                    logger.info("Concurrent update on %s; compare-and-swap lost", key)
                    return False
        except redis.RedisError as err:
            raise UpstreamError(f"State store write failed: {err}") from err

    def compare_and_delete(self, key: str, expected: JsonDict) -> bool:
        try:
            with self._redis.pipeline() as pipe:
                try:
                    pipe.watch(key)
                    current = pipe.get(key)
                    if current is None or json.loads(current) != expected:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.delete(key)
                    pipe.execute()
                    return True
                except redis.WatchError:
                    logger.info("Concurrent update on %s; compare-and-delete lost", key)
                    return False
        except redis.RedisError as err:
            raise UpstreamError(f"State store delete failed: {err}") from err


_DEFAULT_STORE: KeyValueStore | None = None
_DEFAULT_LOCK = Lock()


def build_store(url: str) -> KeyValueStore:
    """Create a backend for `url` (``memory://`` or a redis URL)."""
    if url.startswith("memory://"):
        return MemoryKeyValueStore()
    if url.startswith(("redis://", "rediss://", "unix://")):
        return RedisKeyValueStore.from_url(url)
    raise ValueError(f"Unsupported STATE_STORE_URL scheme: {url}")


def get_kv_store() -> KeyValueStore:
    """Return the process-wide backend configured by STATE_STORE_URL."""
    global _DEFAULT_STORE
    with _DEFAULT_LOCK:
        if _DEFAULT_STORE is None:
            _DEFAULT_STORE = build_store(settings.state_store_url)
            logger.info("State store backend: %s", type(_DEFAULT_STORE).__name__)
        return _DEFAULT_STORE
