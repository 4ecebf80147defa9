"""A thread-safe string-keyed map split into independently locked shards."""

from __future__ import annotations

import dataclasses
import json
import threading
from typing import Any, Callable, Iterator

SHARD_COUNT = 32

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619
_MASK32 = 0xFFFFFFFF

_MISSING = object()


def fnv32(key: str) -> int:
    """Return the 32-bit FNV-1 hash of the UTF-8 bytes of ``key``."""
    value = _FNV_OFFSET
    for byte in key.encode("utf-8"):
        value = (value * _FNV_PRIME) & _MASK32
        value ^= byte
    return value


def _json_default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, ConcurrentMap):
        return obj.items()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class _Shard:
    __slots__ = ("items", "lock")

    def __init__(self) -> None:
        self.items: dict[str, Any] = {}
        self.lock = threading.Lock()


class ConcurrentMap:
    """Map of strings to arbitrary values, guarded by one lock per shard."""

    def __init__(self, shard_count: int = SHARD_COUNT) -> None:
        if shard_count <= 0:
            raise ValueError("shard_count must be positive")
        self._shards = [_Shard() for _ in range(shard_count)]

    @property
    def shard_count(self) -> int:
        return len(self._shards)

    def get_shard(self, key: str) -> int:
        """Return the index of the shard that holds ``key``."""
        return fnv32(key) % len(self._shards)

    def _shard(self, key: str) -> _Shard:
        return self._shards[self.get_shard(key)]

    def mset(self, data: dict[str, Any]) -> None:
        """Store every pair of ``data``."""
        for key, value in data.items():
            self.set(key, value)

    def set(self, key: str, value: Any) -> None:
        shard = self._shard(key)
        with shard.lock:
            shard.items[key] = value

    def upsert(
        self, key: str, value: Any, callback: Callable[[bool, Any, Any], Any]
    ) -> Any:
        """Store ``callback(exists, old, value)`` under ``key`` and return it.

        The callback runs with the shard lock held and must not touch the map.
        """
        shard = self._shard(key)
        with shard.lock:
            exists = key in shard.items
            result = callback(exists, shard.items.get(key), value)
            shard.items[key] = result
            return result

    def set_if_absent(self, key: str, value: Any) -> bool:
        """Store ``value`` only if ``key`` is absent; return whether it was stored."""
        shard = self._shard(key)
        with shard.lock:
            if key in shard.items:
                return False
            shard.items[key] = value
            return True

    def get(self, key: str, default: Any = None) -> Any:
        shard = self._shard(key)
        with shard.lock:
            return shard.items.get(key, default)

    def has(self, key: str) -> bool:
        shard = self._shard(key)
        with shard.lock:
            return key in shard.items

    def remove(self, key: str) -> None:
        """Remove ``key`` if present."""
        shard = self._shard(key)
        with shard.lock:
            shard.items.pop(key, None)

    def pop(self, key: str, default: Any = _MISSING) -> Any:
        """Remove ``key`` and return its value; raise KeyError if absent and no default."""
        shard = self._shard(key)
        with shard.lock:
            if key in shard.items:
                return shard.items.pop(key)
        if default is _MISSING:
            raise KeyError(key)
        return default

    def count(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.items)
        return total

    def is_empty(self) -> bool:
        return self.count() == 0

    def items(self) -> dict[str, Any]:
        """Return a snapshot of all entries as a plain dict."""
        snapshot: dict[str, Any] = {}
        for shard in self._shards:
            with shard.lock:
                snapshot.update(shard.items)
        return snapshot

    def iter_callback(self, fn: Callable[[str, Any], None]) -> None:
        """Call ``fn(key, value)`` for every entry, one shard lock at a time."""
        for shard in self._shards:
            with shard.lock:
                for key, value in shard.items.items():
                    fn(key, value)

    def keys(self) -> list[str]:
        result: list[str] = []
        for shard in self._shards:
            with shard.lock:
                result.extend(shard.items)
        return result

    def to_json(self) -> str:
        """Serialise all entries as a JSON object."""
        return json.dumps(self.items(), default=_json_default)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())